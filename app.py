"""
Streamlit validation console for prismsql.

Flow:
1) Paste or edit SQL (typed by hand or proposed by a model)
2) Pick a role and optional table allowlist
3) Validate against the active schema snapshot
4) Review risk analysis and impact summary
5) Run the sanitized statement (writes need explicit confirmation)
"""

import os

import pandas as pd
import streamlit as st

from prismsql.core import query_logic
from prismsql.core.models import Role
from prismsql.db.data_source import (
    DEFAULT_ALLOWED_TABLES,
    DEMO_SCHEMA,
    get_active_source_info,
    load_schema_snapshot,
    refresh_schema_cache,
)
from prismsql.db.execution_policy import ExecutionPolicy
from prismsql.utils.telemetry import (
    configure_app_logging,
    record_metric_event,
    validation_metric_fields,
)
from sql_guard import CHECK_NAMES, SQLGuard

DUCKDB_PATH = os.getenv("PRISMSQL_DUCKDB_PATH", "prismsql.duckdb")
GUARD = SQLGuard(execution_policy=ExecutionPolicy.from_env())
logger = configure_app_logging()

EXAMPLE_QUERIES = [
    "SELECT name, email FROM demo_users WHERE status = 'active'",
    "SELECT * FROM demo_orders LIMIT 5000",
    "UPDATE demo_users SET status = 'inactive' WHERE email = 'a@example.com'",
    "DELETE FROM demo_orders",
    "SELECT 1; DROP TABLE demo_users",
]


@st.cache_data(show_spinner=False)
def get_schema_snapshot(duckdb_path: str):
    """Snapshot from the DuckDB file, or the built-in demo schema when absent."""
    if get_active_source_info(duckdb_path)["exists"] == "no":
        return DEMO_SCHEMA
    return load_schema_snapshot(duckdb_path)


def init_state() -> None:
    defaults = {
        "sql_text": EXAMPLE_QUERIES[0],
        "last_result": None,
        "validated_sql": None,
        "metrics_validated": 0,
        "metrics_blocked": 0,
        "metrics_executed": 0,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def render_checks(checks_run: tuple[str, ...], valid: bool) -> None:
    rows = []
    for name in CHECK_NAMES:
        if name not in checks_run:
            status = "not run"
        elif not valid and name == checks_run[-1]:
            status = "failed"
        else:
            status = "passed"
        rows.append({"check": name, "status": status})
    st.dataframe(pd.DataFrame(rows), hide_index=True)


init_state()
schema = get_schema_snapshot(DUCKDB_PATH)

st.title("prismsql")
st.caption("SQL validation and risk analysis. Only the sanitized statement is ever executed.")

st.sidebar.header("Access")
role_label = st.sidebar.radio(
    "Role", [Role.RESTRICTED.value, Role.PRIVILEGED.value], key="role"
)
role = Role.parse(role_label)
use_allowlist = st.sidebar.checkbox("Apply table allowlist", value=role is Role.RESTRICTED)
allowed_tables = None
if use_allowlist:
    allowed_tables = st.sidebar.multiselect(
        "Allowed tables",
        [table.name for table in schema],
        default=[name for name in DEFAULT_ALLOWED_TABLES if name in {t.name for t in schema}],
    )

st.sidebar.markdown("---")
st.sidebar.subheader("Session Metrics")
st.sidebar.metric("Validated", st.session_state.metrics_validated)
st.sidebar.metric("Blocked", st.session_state.metrics_blocked)
st.sidebar.metric("Executed", st.session_state.metrics_executed)

st.sidebar.markdown("---")
st.sidebar.subheader("Data Source (DuckDB)")
source_info = get_active_source_info(DUCKDB_PATH)
st.sidebar.caption(f"Path: `{source_info['path']}`")
st.sidebar.caption(f"Exists: {source_info['exists']} | Size MB: {source_info['size_mb']}")
if st.sidebar.button("Refresh Schema"):
    refresh_schema_cache()
    st.rerun()
with st.sidebar.expander("Schema", expanded=False):
    for table in schema:
        st.markdown(f"**{table.name}**")
        st.caption(", ".join(f"{col.name} ({col.data_type})" for col in table.columns))

example = st.selectbox("Examples", ["(none)"] + EXAMPLE_QUERIES)
if example != "(none)" and st.button("Use example"):
    st.session_state.sql_text = example

st.text_area("SQL", key="sql_text", height=160)

if st.button("Validate", type="primary", key="validate"):
    result = GUARD.validate(st.session_state.sql_text, schema, role, allowed_tables)
    st.session_state.validated_sql = st.session_state.sql_text
    record_metric_event("sql_validation", **validation_metric_fields(result, role))
    st.session_state.metrics_validated += 1
    if not result.valid:
        st.session_state.metrics_blocked += 1
    st.session_state.last_result = result

result = st.session_state.last_result
if result is not None:
    explanation = query_logic.explain_validation_result(result)
    if not result.valid:
        st.error(explanation)
    elif result.analysis.requires_confirmation:
        st.warning(explanation)
    else:
        st.success(explanation)

    render_checks(result.checks_performed, result.valid)

    if result.valid:
        st.code(result.sanitized_sql, language="sql")
        st.markdown(query_logic.build_impact_summary(result.analysis))

        validated_sql = st.session_state.validated_sql
        if st.session_state.sql_text != validated_sql:
            st.info("The SQL was edited after validation. Validate it again to run it.")
        else:
            confirmed = False
            if result.analysis.requires_confirmation:
                # Keyed on the reviewed statement so a new statement starts unchecked.
                confirmed = st.checkbox(
                    "I understand the impact and want to run this write.",
                    key=f"confirm::{result.sanitized_sql}",
                )

            if st.button("Run Query", key="run_query", disabled=source_info["exists"] == "no"):
                response = query_logic.execute_validated_sql(
                    DUCKDB_PATH,
                    validated_sql,
                    schema,
                    role,
                    confirmed=confirmed,
                    allowed_tables=allowed_tables,
                    guard=GUARD,
                    expected_sanitized_sql=result.sanitized_sql,
                )
                if response["success"]:
                    st.session_state.metrics_executed += 1
                    st.caption(f"{response['row_count']} row(s) in {response['execution_ms']} ms")
                    st.dataframe(response["rows"])
                else:
                    st.error(response["error"])
