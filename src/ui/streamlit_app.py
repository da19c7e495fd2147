"""
Streamlit UI -- Dual-Query SQL Copilot.

Features:
  - Schema from an uploaded workbook, a URL, or pasted text
  - Prompt enhancement and prompt -> report + dashboard generation
  - Raw SQL run with a derived dashboard query
  - Report table with CSV download, dashboard bar chart
  - Saved queries with per-item verification
"""
import httpx
import pandas as pd
import streamlit as st

from src.core.config import get_settings
from src.schema.loader import WORKBOOK_EXTENSIONS

API_BASE = get_settings().api_base_url
_TIMEOUT = 60

st.set_page_config(
    page_title="Dual-Query SQL Copilot",
    page_icon="bar_chart",
    layout="wide",
    initial_sidebar_state="expanded",
)


for key, default in {
    "schema_text": "",
    "prompt": "",
    "run": None,
    "verifications": {},
}.items():
    if key not in st.session_state:
        st.session_state[key] = default


def _api(method: str, path: str, **kwargs) -> dict | list | None:
    """Call the API; show the error detail and return None on failure."""
    try:
        resp = httpx.request(method, f"{API_BASE}{path}", timeout=_TIMEOUT, **kwargs)
    except httpx.ConnectError:
        st.error("Cannot reach the API. Start it with:\n```\nuvicorn src.api.main:app --reload\n```")
        return None
    if resp.status_code >= 400:
        try:
            detail = resp.json().get("detail", resp.text)
        except ValueError:
            detail = resp.text
        st.error(f"{detail}")
        return None
    return resp.json()


# ── Sidebar: schema + mode + saved queries ───────────────

with st.sidebar:
    st.title("Schema")
    source = st.radio("Source", ["Upload workbook", "Load from URL", "Paste text"], horizontal=False)

    if source == "Upload workbook":
        upload = st.file_uploader(
            "Excel workbook (one sheet per table)",
            type=[ext.lstrip(".") for ext in WORKBOOK_EXTENSIONS],
        )
        if upload is not None and st.button("Load schema", use_container_width=True):
            data = _api("POST", "/schema/upload", files={"file": (upload.name, upload.getvalue())})
            if data:
                st.session_state.schema_text = data["schema_text"]
    elif source == "Load from URL":
        url = st.text_input("Workbook URL", placeholder="leave empty for the configured default")
        if st.button("Fetch schema", use_container_width=True):
            data = _api("POST", "/schema/fetch", json={"url": url or None})
            if data:
                st.session_state.schema_text = data["schema_text"]

    st.session_state.schema_text = st.text_area(
        "Schema description",
        value=st.session_state.schema_text,
        height=220,
        placeholder="Table: drivers\nColumns:\n- age: Driver age\n- name: Full name",
    )

    st.divider()
    mode = st.selectbox("Completion backend", ["(configured)", "mock", "openai", "anthropic"])
    mode = None if mode == "(configured)" else mode

    st.divider()
    st.subheader("Saved queries")
    saved = _api("GET", "/saved") or []
    if not saved:
        st.caption("No saved queries yet.")
    for item in saved:
        with st.expander(item["name"]):
            st.code(item["query_text"], language="sql")
            if item.get("created_at"):
                st.caption(f"Saved {item['created_at']}")
            c1, c2, c3 = st.columns(3)
            if c1.button("Verify", key=f"verify_{item['id']}"):
                result = _api(
                    "POST", "/queries/verify",
                    json={"sql_query": item["query_text"], "schema_text": st.session_state.schema_text or None, "mode": mode},
                )
                if result:
                    st.session_state.verifications[item["id"]] = result
            if c2.button("Use", key=f"use_{item['id']}"):
                st.session_state.raw_sql = item["query_text"]
            if c3.button("Delete", key=f"delete_{item['id']}"):
                _api("DELETE", f"/saved/{item['id']}")
                st.session_state.verifications.pop(item["id"], None)
                st.rerun()
            verdict = st.session_state.verifications.get(item["id"])
            if verdict:
                (st.success if verdict["is_valid"] else st.error)(verdict["explanation"])


# ── Main area ────────────────────────────────────────────

st.title("Dual-Query SQL Copilot")
st.markdown("Describe what you want in plain English and get a report query plus a condition-vs-Others dashboard query.")

query_tab, report_tab, dashboard_tab = st.tabs(["Query", "Report", "Dashboard"])

with query_tab:
    st.session_state.prompt = st.text_area(
        "Question",
        value=st.session_state.prompt,
        placeholder="e.g. Show drivers older than 30",
    )
    c1, c2 = st.columns(2)
    if c1.button("Enhance prompt", use_container_width=True):
        data = _api(
            "POST", "/queries/enhance",
            json={"schema_text": st.session_state.schema_text, "prompt": st.session_state.prompt, "mode": mode},
        )
        if data:
            st.session_state.prompt = data["enhanced_prompt"]
            st.info(data.get("explanation") or "Prompt enhanced.")
            st.rerun()
    if c2.button("Generate and run", type="primary", use_container_width=True):
        with st.spinner("Generating and running both queries..."):
            data = _api(
                "POST", "/queries/generate",
                json={"schema_text": st.session_state.schema_text, "prompt": st.session_state.prompt, "mode": mode},
            )
        if data:
            st.session_state.run = data

    st.divider()
    st.subheader("Run your own SQL")
    raw_sql = st.text_area("Report query", key="raw_sql", height=140)
    c1, c2 = st.columns(2)
    if c1.button("Run SQL", use_container_width=True):
        with st.spinner("Running..."):
            data = _api(
                "POST", "/queries/run",
                json={"sql_query": raw_sql, "schema_text": st.session_state.schema_text or None, "mode": mode},
            )
        if data:
            st.session_state.run = data
    save_name = c2.text_input("Save as", placeholder="name", label_visibility="collapsed")
    if c2.button("Save query", use_container_width=True):
        if _api("POST", "/saved", json={"name": save_name, "query_text": raw_sql}):
            st.success("Saved.")
            st.rerun()

    run = st.session_state.run
    if run:
        st.success(f"Done in {run.get('latency_ms', 0)} ms")
        with st.expander("Report query", expanded=True):
            st.code(run["report_query"], language="sql")
        if run.get("dashboard_query"):
            with st.expander("Dashboard query", expanded=False):
                st.code(run["dashboard_query"], language="sql")

run = st.session_state.run

with report_tab:
    report = (run or {}).get("report")
    if not report:
        st.info("Run a query to see the report.")
    elif not report["rows"]:
        st.info("The report query returned no rows.")
    else:
        df = pd.DataFrame(report["rows"], columns=[c["name"] for c in report["columns"]])
        st.caption(f"{len(df)} rows · {report['latency_ms']} ms")
        st.dataframe(df, use_container_width=True)
        st.download_button(
            "Download CSV",
            df.to_csv(index=False),
            file_name="report.csv",
            mime="text/csv",
        )

with dashboard_tab:
    dashboard = (run or {}).get("dashboard")
    if run and run.get("dashboard_error"):
        st.warning(f"Dashboard unavailable: {run['dashboard_error']}")
    elif not dashboard:
        st.info("Run a query to see the dashboard.")
    else:
        columns = dashboard["columns"]
        label_col = next((c["name"] for c in columns if c["kind"] == "text"), columns[0]["name"])
        value_col = next((c["name"] for c in columns if c["kind"] == "number"), columns[-1]["name"])
        df = pd.DataFrame(dashboard["rows"])
        st.bar_chart(df.set_index(label_col)[[value_col]])
        st.dataframe(df, use_container_width=True)
