"""
Unit tests -- SchemaDescription: build, lookup, text round-trip, parsing.
"""
from src.schema.description import (
    NO_DESCRIPTION,
    SchemaDescription,
    build_schema,
    parse_schema_text,
    schema_text_of,
)


def _drivers():
    return build_schema([
        ("drivers", [("age", "Driver age in years"), ("name", "Full name")]),
    ])


# ── build_schema ─────────────────────────────────────────

def test_build_keeps_order():
    schema = build_schema([("b", [("x", "")]), ("a", [("y", "")])])
    assert schema.table_names() == ["b", "a"]


def test_blank_fields_skipped():
    schema = build_schema([("drivers", [("age", "Age"), ("  ", "ignored"), ("", "ignored")])])
    assert schema.tables[0].field_names() == ["age"]


def test_table_without_fields_dropped():
    schema = build_schema([("empty", []), ("drivers", [("age", "Age")])])
    assert schema.table_names() == ["drivers"]


def test_missing_description_placeholder():
    schema = build_schema([("drivers", [("age", None)])])
    assert schema.tables[0].fields[0].description == NO_DESCRIPTION


def test_empty_schema_is_falsy():
    assert not SchemaDescription()
    assert _drivers()


# ── Lookup ───────────────────────────────────────────────

def test_table_lookup_case_insensitive():
    assert _drivers().table("DRIVERS").name == "drivers"


def test_table_lookup_schema_qualified():
    assert _drivers().table("public.drivers").name == "drivers"


def test_unknown_table():
    assert _drivers().table("trips") is None


def test_has_field_case_insensitive():
    assert _drivers().table("drivers").has_field("AGE")
    assert not _drivers().table("drivers").has_field("salary")


def test_all_field_names_lowercased():
    schema = build_schema([("t", [("DriverAge", "x")])])
    assert schema.all_field_names() == {"driverage"}


# ── Text form ────────────────────────────────────────────

def test_to_text_block_shape():
    text = _drivers().to_text()
    assert text == (
        "Table: drivers\n"
        "Columns:\n"
        "- age: Driver age in years\n"
        "- name: Full name"
    )


def test_to_text_round_trip():
    schema = build_schema([
        ("drivers", [("age", "Driver age"), ("name", "Full name")]),
        ("trips", [("fare", "Fare charged")]),
    ])
    assert parse_schema_text(schema.to_text()) == schema


def test_parse_compact_shape():
    schema = parse_schema_text("drivers(age:int, name:text)")
    table = schema.table("drivers")
    assert table.field_names() == ["age", "name"]
    assert table.fields[0].description == "int"


def test_parse_ignores_free_text():
    text = "Here is my schema:\n\nTable: drivers\nColumns:\n- age: Age\n\nThanks!"
    assert parse_schema_text(text).table("drivers").field_names() == ["age"]


def test_parse_empty_text():
    assert not parse_schema_text("")
    assert not parse_schema_text(None)


def test_parse_prose_has_no_tables():
    assert not parse_schema_text("the drivers table has an age column")


# ── schema_text_of ───────────────────────────────────────

def test_schema_text_of_description():
    assert schema_text_of(_drivers()).startswith("Table: drivers")


def test_schema_text_of_text_and_none():
    assert schema_text_of("drivers(age:int)") == "drivers(age:int)"
    assert schema_text_of(None) == ""
