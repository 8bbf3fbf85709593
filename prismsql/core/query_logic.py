"""Import-safe helpers around the guard: explanations, request handling, gated execution."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from prismsql.core.models import OperationAnalysis, Role, SchemaTable, ValidationResult
from prismsql.db.data_source import DEFAULT_ALLOWED_TABLES, DEMO_SCHEMA, schema_from_payload
from prismsql.db.execution_policy import run_query_with_timeout
from prismsql.utils.telemetry import record_metric_event, validation_metric_fields
from sql_guard import DEFAULT_GUARD, SQLGuard

logger = logging.getLogger(__name__)

SAFE_MESSAGE = "Query is valid and safe to execute."
FALLBACK_BLOCK_MESSAGE = "Query was blocked for security reasons."


def explain_validation_result(result: ValidationResult) -> str:
    """Human-readable verdict. Makes no decisions of its own."""
    if result.valid:
        analysis = result.analysis
        if analysis is not None and analysis.requires_confirmation:
            return (
                "Query is valid but requires confirmation. "
                f"Risk level: {analysis.risk.value.upper()}. "
                + " ".join(analysis.warnings)
            ).strip()
        return SAFE_MESSAGE
    return result.reason or FALLBACK_BLOCK_MESSAGE


def build_impact_summary(analysis: OperationAnalysis) -> str:
    """Markdown summary shown before a write is confirmed."""
    lines = [
        f"**Operation:** {analysis.kind.value}",
        f"**Risk Level:** {analysis.risk.value.upper()}",
        f"**Affected Tables:** {', '.join(analysis.tables) or 'Unknown'}",
        f"**Estimated Rows:** {analysis.estimated_rows.value}",
    ]
    if analysis.warnings:
        lines.append("")
        lines.append("**Warnings:**")
        lines.extend(f"- {warning}" for warning in analysis.warnings)
    return "\n".join(lines)


def handle_validate_request(
    payload: Mapping[str, Any],
    schema: Optional[Sequence[SchemaTable]] = None,
    guard: SQLGuard = DEFAULT_GUARD,
) -> dict[str, Any]:
    """
    Validate one request payload: {"sql", "role"?, "schema"?, "allowed_tables"?}.
    Returns a JSON-ready response with the verdict and the checks that ran.
    """
    sql = payload.get("sql")
    if not isinstance(sql, str) or not sql.strip():
        return {
            "is_valid": False,
            "sanitized_sql": None,
            "explanation": "No SQL query provided.",
            "blocked_reason": "Query cannot be empty.",
            "operation_analysis": None,
            "checks_performed": ["empty_query_check"],
        }

    role = Role.parse(payload.get("role") or Role.RESTRICTED)
    if payload.get("schema"):
        snapshot = schema_from_payload(payload["schema"])
    else:
        snapshot = tuple(schema) if schema is not None else DEMO_SCHEMA
    allowed_tables = payload.get("allowed_tables")
    if allowed_tables is None:
        allowed_tables = list(DEFAULT_ALLOWED_TABLES)

    result = guard.validate(sql, snapshot, role, allowed_tables)
    record_metric_event("sql_validation", **validation_metric_fields(result, role))

    return {
        "is_valid": result.valid,
        "sanitized_sql": result.sanitized_sql,
        "explanation": explain_validation_result(result),
        "blocked_reason": None if result.valid else result.reason,
        "operation_analysis": result.analysis.to_dict() if result.analysis else None,
        "checks_performed": list(result.checks_performed),
    }


def classify_execution_failure(error_text: str) -> str:
    """Classify execution-stage failures into stable categories."""
    lowered = (error_text or "").lower()
    if "timeout" in lowered:
        return "timeout"

    compile_markers = [
        "parser error",
        "syntax error",
        "binder error",
        "catalog error",
        "does not exist",
        "no such table",
        "no such column",
    ]
    if any(token in lowered for token in compile_markers):
        return "compile_fail"

    return "runtime_fail"


def run_query_if_valid(
    sql: Any,
    schema: Sequence[SchemaTable],
    role: Role,
    run_fn: Callable[[str, ValidationResult], Any],
    confirmed: bool = False,
    allowed_tables: Optional[Iterable[str]] = None,
    guard: SQLGuard = DEFAULT_GUARD,
    expected_sanitized_sql: Optional[str] = None,
) -> tuple[str, Any, ValidationResult]:
    """
    Re-validate, then execute the sanitized statement.
    Returns (status, run_result_or_none, validation_result) where status is
    "executed", "blocked" or "needs_confirmation".

    expected_sanitized_sql is the statement the caller showed for review.
    If re-validation yields a different statement, nothing runs and the
    status is "needs_confirmation", even when confirmed=True.
    """
    result = guard.validate(sql, schema, role, allowed_tables)
    if not result.valid:
        return "blocked", None, result
    if expected_sanitized_sql is not None and result.sanitized_sql != expected_sanitized_sql:
        return "needs_confirmation", None, result
    if result.analysis is not None and result.analysis.requires_confirmation and not confirmed:
        return "needs_confirmation", None, result
    return "executed", run_fn(result.sanitized_sql, result), result


def execute_validated_sql(
    duckdb_path: str,
    sql: Any,
    schema: Sequence[SchemaTable],
    role: Role,
    confirmed: bool = False,
    allowed_tables: Optional[Iterable[str]] = None,
    guard: SQLGuard = DEFAULT_GUARD,
    expected_sanitized_sql: Optional[str] = None,
) -> dict[str, Any]:
    """
    Gated execution against a DuckDB file; writes need confirmed=True.
    Pass expected_sanitized_sql to refuse a statement other than the one reviewed.
    """
    timeout_seconds = guard.execution_policy.timeout_seconds

    def run_fn(sanitized_sql: str, verdict: ValidationResult):
        read_only = verdict.analysis is None or not verdict.analysis.requires_confirmation
        return run_query_with_timeout(duckdb_path, sanitized_sql, timeout_seconds, read_only)

    status, outcome, result = run_query_if_valid(
        sql, schema, role, run_fn, confirmed, allowed_tables, guard, expected_sanitized_sql
    )
    response: dict[str, Any] = {
        "success": False,
        "status": status,
        "sanitized_sql": result.sanitized_sql,
        "operation_analysis": result.analysis.to_dict() if result.analysis else None,
        "explanation": explain_validation_result(result),
        "rows": None,
        "row_count": 0,
        "execution_ms": 0,
        "error": "",
        "failure_category": "",
    }

    if status == "blocked":
        response.update(error=result.reason, failure_category="blocked")
    elif status == "needs_confirmation":
        if expected_sanitized_sql is not None and result.sanitized_sql != expected_sanitized_sql:
            message = "The statement changed since it was reviewed. Validate it again before running."
        else:
            message = "This operation requires confirmation before execution."
        response.update(error=message, failure_category="needs_confirmation")
    else:
        df, elapsed, error = outcome
        response["execution_ms"] = int(elapsed * 1000)
        if error:
            response.update(error=error, failure_category=classify_execution_failure(error))
        else:
            response.update(success=True, rows=df, row_count=int(len(df)))

    if response["failure_category"] not in ("", "blocked"):
        logger.warning("Execution not completed: %s", response["error"])
    record_metric_event(
        "query_execution",
        success=response["success"],
        execution_ms=response["execution_ms"],
        row_count=response["row_count"],
        failure_category=response["failure_category"],
        role=Role.parse(role).value,
    )
    return response
