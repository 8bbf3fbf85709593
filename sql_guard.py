"""
sql_guard.py

Access-control gate for candidate SQL, whether typed by a person or proposed
by a model. validate() is the only authority on whether a statement may run;
callers execute the returned sanitized_sql, never the original text.

Checks run in a fixed order and stop at the first failure. Every rejection
is returned as data (ValidationResult), never raised.

This is NOT a full SQL parser. Table and column references come from regex
scans with known blind spots (subqueries, qualified names, literals).
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Sequence

from prismsql.core.extraction import extract_column_names, extract_table_names
from prismsql.core.models import (
    OperationAnalysis,
    OperationKind,
    Role,
    SchemaTable,
    ValidationResult,
)
from prismsql.core.policy import DEFAULT_ACCESS_POLICY, AccessPolicy
from prismsql.core.risk_analysis import analyze_operation
from prismsql.core.sql_text import (
    classify_operation,
    find_blocked_pattern,
    has_multiple_statements,
    strip_comments,
)
from prismsql.db.execution_policy import ExecutionPolicy, enforce_row_limit

logger = logging.getLogger(__name__)

CHECK_NAMES = (
    "empty_query_check",
    "multiple_statements_check",
    "blocked_patterns_check",
    "ddl_check",
    "role_permission_check",
    "table_existence_check",
    "table_allowlist_check",
    "column_existence_check",
    "limit_enforcement",
)


class SQLGuard:
    """Validation engine bound to one access policy and one execution policy."""

    def __init__(
        self,
        access_policy: AccessPolicy = DEFAULT_ACCESS_POLICY,
        execution_policy: Optional[ExecutionPolicy] = None,
    ) -> None:
        self.access_policy = access_policy
        self.execution_policy = execution_policy or ExecutionPolicy()

    def classify(self, sql: Any) -> OperationKind:
        return classify_operation(sql if isinstance(sql, str) else "", self.access_policy)

    def analyze(self, sql: Any, schema: Sequence[SchemaTable] = ()) -> OperationAnalysis:
        return analyze_operation(sql if isinstance(sql, str) else "", schema, self.access_policy)

    def validate(
        self,
        sql: Any,
        schema: Sequence[SchemaTable],
        role: Role = Role.RESTRICTED,
        allowed_tables: Optional[Iterable[str]] = None,
    ) -> ValidationResult:
        policy = self.access_policy
        role = Role.parse(role)
        checks: list[str] = []

        def reject(reason: str) -> ValidationResult:
            logger.debug("Rejected at %s: %s", checks[-1], reason)
            return ValidationResult.reject(reason, tuple(checks))

        checks.append("empty_query_check")
        if not isinstance(sql, str) or not sql.strip():
            return reject("Query cannot be empty.")

        cleaned = strip_comments(sql)

        checks.append("multiple_statements_check")
        if has_multiple_statements(cleaned):
            return reject(
                "Multiple SQL statements are not allowed. Please submit one query at a time."
            )

        checks.append("blocked_patterns_check")
        blocked = find_blocked_pattern(cleaned, policy)
        if blocked:
            return reject(
                f'Blocked pattern detected: "{blocked}". This operation is not permitted.'
            )

        kind = classify_operation(cleaned, policy)

        checks.append("ddl_check")
        if kind is OperationKind.DDL:
            return reject(
                "DDL operations (CREATE, DROP, ALTER, TRUNCATE) are not allowed. "
                "Only data operations are permitted."
            )

        checks.append("role_permission_check")
        allowed_ops = policy.allowed_operations(role)
        if kind not in allowed_ops:
            return reject(
                f'Operation "{kind.value}" is not allowed for role "{role.value}". '
                f"Allowed operations: {', '.join(op.value for op in allowed_ops)}."
            )

        checks.append("table_existence_check")
        referenced_tables = extract_table_names(cleaned)
        schema_tables = [table.name.lower() for table in schema or ()]
        for table in referenced_tables:
            if table not in schema_tables:
                return reject(
                    f'Table "{table}" does not exist. '
                    f"Available tables: {', '.join(schema_tables)}."
                )

        if allowed_tables is not None and policy.allowlist_applies(role):
            checks.append("table_allowlist_check")
            allowed_lower = {name.lower() for name in allowed_tables}
            for table in referenced_tables:
                if table not in allowed_lower:
                    return reject(
                        f'Access denied: Table "{table}" is not accessible with your permissions.'
                    )

        checks.append("column_existence_check")
        known_columns: list[str] = []
        for table in schema or ():
            if table.name.lower() in referenced_tables:
                known_columns.extend(table.column_names())
        for column in extract_column_names(cleaned):
            if column in policy.column_skip_list:
                continue
            if known_columns and column not in known_columns:
                hint = ", ".join(known_columns[: policy.column_hint_size])
                return reject(
                    f'Column "{column}" does not exist in the queried table(s). '
                    f"Available: {hint}..."
                )

        checks.append("limit_enforcement")
        sanitized = enforce_row_limit(cleaned, kind, self.execution_policy)
        analysis = analyze_operation(cleaned, schema, policy)
        return ValidationResult.accept(sanitized, analysis, tuple(checks))


DEFAULT_GUARD = SQLGuard()


def classify(sql: Any) -> OperationKind:
    """Operation kind of a statement under the default policy. Never raises."""
    return DEFAULT_GUARD.classify(sql)


def analyze(sql: Any, schema: Sequence[SchemaTable] = ()) -> OperationAnalysis:
    """Risk analysis under the default policy. No access control."""
    return DEFAULT_GUARD.analyze(sql, schema)


def validate(
    sql: Any,
    schema: Sequence[SchemaTable],
    role: Role = Role.RESTRICTED,
    allowed_tables: Optional[Iterable[str]] = None,
) -> ValidationResult:
    """Full gate under the default policies."""
    return DEFAULT_GUARD.validate(sql, schema, role, allowed_tables)
