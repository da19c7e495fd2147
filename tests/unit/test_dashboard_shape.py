"""
Unit tests -- post-execution dashboard shape check.
"""
from src.checks.dashboard_shape import check_dashboard_shape


def test_well_formed():
    rows = [{"label": "Age > 30", "value": 12}, {"label": "Others", "value": 30}]
    assert check_dashboard_shape(rows) == []


def test_float_and_null_values_allowed():
    rows = [{"label": "Rating >= 3", "value": 4.5}, {"label": "Others", "value": None}]
    assert check_dashboard_shape(rows) == []


def test_wrong_row_count():
    rows = [{"label": "Age > 30", "value": 12}]
    assert check_dashboard_shape(rows) == ["The dashboard query must return exactly 2 rows, got 1"]


def test_no_rows():
    assert check_dashboard_shape([]) == ["The dashboard query must return exactly 2 rows, got 0"]


def test_second_label_must_be_others():
    rows = [{"label": "Age > 30", "value": 12}, {"label": "Rest", "value": 30}]
    errors = check_dashboard_shape(rows)
    assert len(errors) == 1
    assert "'Others'" in errors[0]


def test_extra_column():
    rows = [
        {"label": "Age > 30", "value": 12, "x": 1},
        {"label": "Others", "value": 30},
    ]
    errors = check_dashboard_shape(rows)
    assert any("row 1 must have exactly 2 columns" in e for e in errors)


def test_non_numeric_value():
    rows = [{"label": "Age > 30", "value": "12"}, {"label": "Others", "value": 30}]
    errors = check_dashboard_shape(rows)
    assert any("numeric value" in e for e in errors)


def test_boolean_value_rejected():
    rows = [{"label": "Age > 30", "value": True}, {"label": "Others", "value": 30}]
    assert check_dashboard_shape(rows) != []


def test_non_text_label():
    rows = [{"label": 1, "value": 12}, {"label": "Others", "value": 30}]
    errors = check_dashboard_shape(rows)
    assert any("text label" in e for e in errors)
