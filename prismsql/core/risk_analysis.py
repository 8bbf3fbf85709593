"""Risk classification of a statement's potential blast radius."""

from __future__ import annotations

import logging
import re
from typing import Optional, Sequence

from prismsql.core.extraction import extract_column_names, extract_table_names
from prismsql.core.models import (
    EstimatedRows,
    OperationAnalysis,
    OperationKind,
    RiskLevel,
    SchemaTable,
)
from prismsql.core.policy import DEFAULT_ACCESS_POLICY, AccessPolicy
from prismsql.core.sql_text import classify_operation, strip_comments

logger = logging.getLogger(__name__)

WHERE_KEYWORD = re.compile(r"\bWHERE\b", re.IGNORECASE)
TAUTOLOGY = re.compile(r"\bWHERE\s+(?:1\s*=\s*1|TRUE)\b", re.IGNORECASE)
VALUES_KEYWORD = re.compile(r"\bVALUES\b", re.IGNORECASE)
SELECT_KEYWORD = re.compile(r"\bSELECT\b", re.IGNORECASE)
TUPLE_SEPARATOR = re.compile(r"\)\s*,\s*\(")


def count_value_tuples(sql: str) -> int:
    return len(TUPLE_SEPARATOR.findall(sql)) + 1


def _insert_risk(sql: str) -> tuple[RiskLevel, EstimatedRows, list[str]]:
    warnings = ["This will add new records to the database."]
    if VALUES_KEYWORD.search(sql):
        tuples = count_value_tuples(sql)
        warnings.append(f"Inserting {tuples} row(s).")
        rows = EstimatedRows.SINGLE if tuples == 1 else EstimatedRows.MULTIPLE
        return RiskLevel.MODERATE, rows, warnings
    if SELECT_KEYWORD.search(sql):
        warnings.append("INSERT from SELECT may affect many rows.")
        return RiskLevel.HIGH, EstimatedRows.MULTIPLE, warnings
    return RiskLevel.MODERATE, EstimatedRows.UNKNOWN, warnings


def _filtered_write_risk(
    sql: str, verb: str, scoped_warning: str
) -> tuple[RiskLevel, EstimatedRows, list[str]]:
    if not WHERE_KEYWORD.search(sql):
        return (
            RiskLevel.CRITICAL,
            EstimatedRows.ALL,
            [f"NO WHERE CLAUSE - this will {verb} ALL rows in the table!"],
        )
    warnings = [scoped_warning]
    if TAUTOLOGY.search(sql):
        warnings.append("WHERE clause matches ALL rows!")
        return RiskLevel.CRITICAL, EstimatedRows.ALL, warnings
    return RiskLevel.HIGH, EstimatedRows.MULTIPLE, warnings


def assess_risk(kind: OperationKind, sql: str) -> tuple[RiskLevel, EstimatedRows, list[str], bool]:
    """
    Map an operation kind plus predicate shape to
    (risk, estimated_rows, warnings, requires_confirmation).
    """
    if kind is OperationKind.SELECT:
        return RiskLevel.SAFE, EstimatedRows.MULTIPLE, [], False
    if kind is OperationKind.INSERT:
        risk, rows, warnings = _insert_risk(sql)
        return risk, rows, warnings, True
    if kind is OperationKind.UPDATE:
        risk, rows, warnings = _filtered_write_risk(
            sql, "update", "This will modify existing records."
        )
        return risk, rows, warnings, True
    if kind is OperationKind.DELETE:
        risk, rows, warnings = _filtered_write_risk(
            sql, "DELETE", "This will permanently delete records."
        )
        return risk, rows, warnings, True
    if kind is OperationKind.DDL:
        return (
            RiskLevel.CRITICAL,
            EstimatedRows.UNKNOWN,
            ["DDL operations are blocked for safety."],
            True,
        )
    return (
        RiskLevel.HIGH,
        EstimatedRows.UNKNOWN,
        ["Unknown operation type detected."],
        True,
    )


def analyze_operation(
    sql: str,
    schema: Optional[Sequence[SchemaTable]] = None,
    policy: AccessPolicy = DEFAULT_ACCESS_POLICY,
) -> OperationAnalysis:
    """
    Classify risk for a statement. No access control happens here.
    Takes the schema to match the public analyze(sql, schema) signature;
    risk depends only on the statement text, so the schema is not read.
    """
    cleaned = strip_comments(sql if isinstance(sql, str) else "")
    kind = classify_operation(cleaned, policy)
    risk, rows, warnings, requires_confirmation = assess_risk(kind, cleaned)
    logger.debug("Risk analysis: kind=%s risk=%s rows=%s", kind.value, risk.value, rows.value)
    return OperationAnalysis(
        kind=kind,
        risk=risk,
        tables=tuple(extract_table_names(cleaned)),
        columns=tuple(extract_column_names(cleaned)),
        estimated_rows=rows,
        warnings=tuple(warnings),
        requires_confirmation=requires_confirmation,
    )
