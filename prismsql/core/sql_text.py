"""
Text-level passes over a candidate statement: comment stripping,
statement counting, operation classification, blocked-pattern lookup.

These are regex passes, not a tokenizer. Comment stripping runs on raw text,
so a quoted literal such as 'it''s -- a note' loses everything after "--".
"""

from __future__ import annotations

import re
from typing import Optional

from prismsql.core.models import OperationKind
from prismsql.core.policy import DEFAULT_ACCESS_POLICY, AccessPolicy

COMMENT_PATTERNS = [
    re.compile(r"--.*$", re.MULTILINE),
    re.compile(r"/\*[\s\S]*?\*/"),
    re.compile(r"#.*$", re.MULTILINE),
]

SINGLE_QUOTED = re.compile(r"'[^']*'")
DOUBLE_QUOTED = re.compile(r'"[^"]*"')
LEADING_TOKEN = re.compile(r"^([A-Z_][A-Z0-9_]*)")


def strip_comments(sql: str) -> str:
    """Replace line and block comments with a space, then trim."""
    cleaned = sql or ""
    for pattern in COMMENT_PATTERNS:
        cleaned = pattern.sub(" ", cleaned)
    return cleaned.strip()


def split_statements(sql: str) -> list[str]:
    """Non-empty ';'-separated fragments of comment-free text, literals emptied."""
    no_strings = DOUBLE_QUOTED.sub("", SINGLE_QUOTED.sub("", sql or ""))
    return [part for part in no_strings.split(";") if part.strip()]


def has_multiple_statements(sql: str) -> bool:
    return len(split_statements(strip_comments(sql))) > 1


def leading_token(sql: str) -> str:
    match = LEADING_TOKEN.match(strip_comments(sql).upper())
    return match.group(1) if match else ""


def classify_operation(sql: str, policy: AccessPolicy = DEFAULT_ACCESS_POLICY) -> OperationKind:
    """
    Classify a statement by its leading keyword.
    DDL is checked first and also matches "<DDL keyword> TABLE|INDEX|..." anywhere.
    """
    upper = strip_comments(sql if isinstance(sql, str) else "").upper()
    token = leading_token(upper)
    objects = "|".join(re.escape(obj) for obj in policy.ddl_objects)

    for keyword in policy.ddl_keywords:
        if token == keyword:
            return OperationKind.DDL
        if re.search(rf"\b{re.escape(keyword)}\s+({objects})\b", upper):
            return OperationKind.DDL

    if token in ("SELECT", "WITH"):
        return OperationKind.SELECT
    if token == "INSERT":
        return OperationKind.INSERT
    if token == "UPDATE":
        return OperationKind.UPDATE
    if token == "DELETE":
        return OperationKind.DELETE
    return OperationKind.UNKNOWN


def find_blocked_pattern(sql: str, policy: AccessPolicy = DEFAULT_ACCESS_POLICY) -> Optional[str]:
    """First deny-list pattern found as a case-insensitive substring."""
    upper = (sql or "").upper()
    for pattern in policy.blocked_patterns:
        if pattern.upper() in upper:
            return pattern
    return None
