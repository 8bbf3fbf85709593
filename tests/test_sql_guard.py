import pytest

from prismsql.core.models import (
    EstimatedRows,
    OperationKind,
    RiskLevel,
    Role,
    SchemaColumn,
    SchemaTable,
    ValidationResult,
)
from prismsql.core.policy import AccessPolicy
from prismsql.db.data_source import DEMO_SCHEMA
from prismsql.db.execution_policy import ExecutionPolicy
from sql_guard import CHECK_NAMES, SQLGuard, analyze, classify, validate


def test_select_without_limit_gets_default_limit() -> None:
    result = validate("SELECT * FROM demo_users", DEMO_SCHEMA, Role.RESTRICTED)
    assert result.valid is True
    assert result.reason is None
    assert result.sanitized_sql == "SELECT * FROM demo_users LIMIT 100"
    assert result.analysis.kind is OperationKind.SELECT
    assert result.analysis.risk is RiskLevel.SAFE


def test_trailing_semicolon_removed_before_limit_injection() -> None:
    result = validate("SELECT * FROM demo_users;", DEMO_SCHEMA, Role.RESTRICTED)
    assert result.sanitized_sql == "SELECT * FROM demo_users LIMIT 100"


def test_oversized_limit_is_clamped() -> None:
    result = validate("SELECT * FROM demo_users LIMIT 5000", DEMO_SCHEMA, Role.RESTRICTED)
    assert result.valid is True
    assert "LIMIT 1000" in result.sanitized_sql
    assert "5000" not in result.sanitized_sql


def test_small_limit_is_kept() -> None:
    result = validate("SELECT * FROM demo_users LIMIT 10", DEMO_SCHEMA, Role.RESTRICTED)
    assert result.sanitized_sql == "SELECT * FROM demo_users LIMIT 10"


@pytest.mark.parametrize("role", list(Role))
@pytest.mark.parametrize(
    "sql",
    [
        "DROP TABLE demo_users",
        "ALTER TABLE demo_users ADD COLUMN age INTEGER",
        "TRUNCATE demo_orders",
        "CREATE INDEX idx_status ON demo_users (status)",
        "GRANT ALL ON demo_users TO public",
    ],
)
def test_ddl_rejected_for_every_role(sql: str, role: Role) -> None:
    result = validate(sql, DEMO_SCHEMA, role)
    assert result.valid is False
    assert "DDL" in result.reason
    assert result.checks_performed[-1] == "ddl_check"
    assert result.sanitized_sql is None
    assert result.analysis is None


def test_statement_stacking_rejected_at_multiple_statements_check() -> None:
    result = validate("SELECT 1; DROP TABLE demo_users", DEMO_SCHEMA, Role.PRIVILEGED)
    assert result.valid is False
    assert "multiple sql statements" in result.reason.lower()
    assert result.checks_performed == ("empty_query_check", "multiple_statements_check")


def test_semicolon_inside_literal_is_not_a_second_statement() -> None:
    result = validate(
        "SELECT * FROM demo_users WHERE name = 'a;b'", DEMO_SCHEMA, Role.RESTRICTED
    )
    assert result.valid is True


def test_delete_without_where_is_critical_but_allowed() -> None:
    result = validate("DELETE FROM demo_orders", DEMO_SCHEMA, Role.PRIVILEGED)
    assert result.valid is True
    assert result.sanitized_sql == "DELETE FROM demo_orders"
    assert result.analysis.risk is RiskLevel.CRITICAL
    assert result.analysis.estimated_rows is EstimatedRows.ALL
    assert result.analysis.requires_confirmation is True


def test_unknown_table_lists_known_tables() -> None:
    result = validate("SELECT * FROM ghost_table", DEMO_SCHEMA, Role.RESTRICTED)
    assert result.valid is False
    assert "ghost_table" in result.reason
    assert "demo_users, demo_orders, demo_products" in result.reason
    assert result.checks_performed[-1] == "table_existence_check"


def test_tautological_predicate_escalates_to_critical() -> None:
    result = validate(
        "UPDATE demo_users SET status='x' WHERE 1=1", DEMO_SCHEMA, Role.PRIVILEGED
    )
    assert result.valid is True
    assert result.analysis.risk is RiskLevel.CRITICAL
    assert result.analysis.estimated_rows is EstimatedRows.ALL


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT * FROM demo_users",
        "DELETE FROM demo_orders WHERE status = 'pending'",
        "SELECT * FROM ghost_table",
        "DROP TABLE demo_users",
    ],
)
def test_validate_is_deterministic(sql: str) -> None:
    first = validate(sql, DEMO_SCHEMA, Role.PRIVILEGED, ["demo_users"])
    second = validate(sql, DEMO_SCHEMA, Role.PRIVILEGED, ["demo_users"])
    assert first == second


@pytest.mark.parametrize("sql", ["", "   \n\t", None, 42])
def test_empty_or_non_string_input_rejected(sql) -> None:
    result = validate(sql, DEMO_SCHEMA, Role.RESTRICTED)
    assert result.valid is False
    assert result.reason == "Query cannot be empty."
    assert result.checks_performed == ("empty_query_check",)


@pytest.mark.parametrize(
    ("sql", "pattern"),
    [
        ("SELECT * FROM demo_users INTO OUTFILE '/tmp/users.csv'", "INTO OUTFILE"),
        ("SELECT load_file('/etc/passwd') FROM demo_users", "LOAD_FILE"),
        ("EXECUTE dump_users", "EXECUTE"),
        ("exec sp_who", "EXEC"),
    ],
)
def test_blocked_patterns_rejected(sql: str, pattern: str) -> None:
    result = validate(sql, DEMO_SCHEMA, Role.PRIVILEGED)
    assert result.valid is False
    assert f'"{pattern}"' in result.reason
    assert result.checks_performed[-1] == "blocked_patterns_check"


def test_blocked_pattern_check_runs_before_ddl_check() -> None:
    result = validate("CREATE TABLE t AS SELECT load_file('x')", DEMO_SCHEMA, Role.PRIVILEGED)
    assert "LOAD_FILE" in result.reason
    assert "ddl_check" not in result.checks_performed


def test_unknown_operation_rejected_for_any_role() -> None:
    for role in Role:
        result = validate("VACUUM", DEMO_SCHEMA, role)
        assert result.valid is False
        assert 'Operation "UNKNOWN"' in result.reason
        assert "Allowed operations: SELECT, INSERT, UPDATE, DELETE." in result.reason


def test_comment_only_input_is_unknown_operation() -> None:
    result = validate("-- just a note", DEMO_SCHEMA, Role.PRIVILEGED)
    assert result.valid is False
    assert result.checks_performed[-1] == "role_permission_check"


def test_both_roles_currently_share_write_permissions() -> None:
    # Documentation describes the restricted tier as read-only; the default
    # permission table does not. This asserts the current table.
    sql = "DELETE FROM demo_users WHERE email = 'old@example.com'"
    assert validate(sql, DEMO_SCHEMA, Role.RESTRICTED).valid is True
    assert validate(sql, DEMO_SCHEMA, Role.PRIVILEGED).valid is True


def test_read_only_restricted_policy_blocks_writes_for_restricted_role() -> None:
    guard = SQLGuard(AccessPolicy.read_only_restricted())
    sql = "DELETE FROM demo_users WHERE email = 'old@example.com'"

    restricted = guard.validate(sql, DEMO_SCHEMA, Role.RESTRICTED)
    assert restricted.valid is False
    assert "Allowed operations: SELECT." in restricted.reason

    assert guard.validate(sql, DEMO_SCHEMA, Role.PRIVILEGED).valid is True


def test_allowlist_denies_table_for_restricted_role() -> None:
    result = validate(
        "SELECT * FROM demo_orders", DEMO_SCHEMA, Role.RESTRICTED, ["demo_users", "demo_products"]
    )
    assert result.valid is False
    assert result.reason.startswith("Access denied")
    assert "demo_orders" in result.reason
    assert result.checks_performed[-1] == "table_allowlist_check"


def test_allowlist_is_case_insensitive() -> None:
    result = validate("SELECT * FROM demo_orders", DEMO_SCHEMA, Role.RESTRICTED, ["DEMO_ORDERS"])
    assert result.valid is True


def test_allowlist_not_applied_to_privileged_role() -> None:
    result = validate("SELECT * FROM demo_orders", DEMO_SCHEMA, Role.PRIVILEGED, ["demo_users"])
    assert result.valid is True
    assert "table_allowlist_check" not in result.checks_performed


def test_table_existence_checked_before_allowlist() -> None:
    result = validate("SELECT * FROM ghost", DEMO_SCHEMA, Role.RESTRICTED, ["demo_users"])
    assert "does not exist" in result.reason


def test_unknown_column_rejected_with_hint() -> None:
    result = validate("SELECT nickname FROM demo_users", DEMO_SCHEMA, Role.RESTRICTED)
    assert result.valid is False
    assert 'Column "nickname"' in result.reason
    assert "Available: id, email, name, status, created_at..." in result.reason
    assert result.checks_performed[-1] == "column_existence_check"


def test_column_hint_lists_at_most_five_columns() -> None:
    result = validate(
        "SELECT nickname FROM demo_users JOIN demo_orders ON demo_users.id = demo_orders.user_id",
        DEMO_SCHEMA,
        Role.RESTRICTED,
    )
    assert result.valid is False
    assert "total_amount" not in result.reason


def test_columns_resolve_across_joined_tables() -> None:
    result = validate(
        "SELECT total_amount FROM demo_users JOIN demo_orders ON demo_users.id = demo_orders.user_id",
        DEMO_SCHEMA,
        Role.RESTRICTED,
    )
    assert result.valid is True
    assert result.analysis.tables == ("demo_users", "demo_orders")


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT COUNT(*) FROM demo_orders",
        "SELECT id, MAX(total_amount) FROM demo_orders",
    ],
)
def test_skip_list_tokens_are_not_checked(sql: str) -> None:
    assert validate(sql, DEMO_SCHEMA, Role.RESTRICTED).valid is True


def test_comments_are_stripped_from_sanitized_sql() -> None:
    result = validate(
        "SELECT * FROM demo_users -- drop table demo_users", DEMO_SCHEMA, Role.RESTRICTED
    )
    assert result.valid is True
    assert result.sanitized_sql == "SELECT * FROM demo_users LIMIT 100"


def test_block_comment_cannot_smuggle_second_statement() -> None:
    result = validate("SELECT * FROM demo_users /* ; */", DEMO_SCHEMA, Role.RESTRICTED)
    assert result.valid is True


def test_successful_result_lists_checks_in_order() -> None:
    without_allowlist = validate("SELECT * FROM demo_users", DEMO_SCHEMA, Role.RESTRICTED)
    assert without_allowlist.checks_performed == tuple(
        name for name in CHECK_NAMES if name != "table_allowlist_check"
    )

    with_allowlist = validate(
        "SELECT * FROM demo_users", DEMO_SCHEMA, Role.RESTRICTED, ["demo_users"]
    )
    assert with_allowlist.checks_performed == CHECK_NAMES


def test_insert_passes_through_without_limit() -> None:
    sql = "INSERT INTO demo_users (email, name) VALUES ('new@example.com', 'New User')"
    result = validate(sql, DEMO_SCHEMA, Role.RESTRICTED)
    assert result.valid is True
    assert result.sanitized_sql == sql
    assert result.analysis.risk is RiskLevel.MODERATE
    assert result.analysis.estimated_rows is EstimatedRows.SINGLE


def test_role_accepts_wire_values() -> None:
    result = validate("DELETE FROM demo_orders", DEMO_SCHEMA, "creator")
    assert result.valid is True


def test_schema_names_compared_case_insensitively() -> None:
    schema = (
        SchemaTable(
            name="Demo_Users",
            columns=(SchemaColumn(name="Email", data_type="varchar", nullable=False),),
        ),
    )
    result = validate("select email from DEMO_USERS", schema, Role.RESTRICTED)
    assert result.valid is True


def test_custom_execution_policy_changes_limits() -> None:
    guard = SQLGuard(execution_policy=ExecutionPolicy(max_rows=50, default_limit=10))
    assert guard.validate("SELECT * FROM demo_users", DEMO_SCHEMA).sanitized_sql.endswith(
        "LIMIT 10"
    )
    assert guard.validate(
        "SELECT * FROM demo_users LIMIT 500", DEMO_SCHEMA
    ).sanitized_sql.endswith("LIMIT 50")


@pytest.mark.parametrize("sql", ["'''", "((((", ";;;", "SELECT", "\x00", "WHERE = = ="])
def test_malformed_text_never_raises(sql: str) -> None:
    result = validate(sql, DEMO_SCHEMA, Role.PRIVILEGED)
    assert isinstance(result, ValidationResult)


def test_module_level_classify_and_analyze() -> None:
    assert classify("DELETE FROM demo_orders") is OperationKind.DELETE
    assert classify(None) is OperationKind.UNKNOWN
    analysis = analyze("UPDATE demo_users SET status = 'x'", DEMO_SCHEMA)
    assert analysis.risk is RiskLevel.CRITICAL
    assert analysis.columns == ("status",)
