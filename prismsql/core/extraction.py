"""
Table and column references pulled out of a statement with regexes.

This is a lexical approximation. It does not see into subqueries, does not
resolve qualified ``table.column`` references (``u.name`` yields ``u``), and
does not understand expressions. Quoted literals are scanned like any other
text.
"""

from __future__ import annotations

import re

from prismsql.core.sql_text import strip_comments

IDENT = r"[a-zA-Z_][a-zA-Z0-9_]*"

TABLE_PATTERNS = [
    re.compile(rf"\bFROM\s+({IDENT})", re.IGNORECASE),
    re.compile(rf"\bJOIN\s+({IDENT})", re.IGNORECASE),
    re.compile(rf"\bINSERT\s+INTO\s+({IDENT})", re.IGNORECASE),
    re.compile(rf"\bUPDATE\s+({IDENT})", re.IGNORECASE),
    re.compile(rf"\bDELETE\s+FROM\s+({IDENT})", re.IGNORECASE),
]

SELECT_LIST = re.compile(r"\bSELECT\s+([\s\S]+?)\s+FROM\b", re.IGNORECASE)
INSERT_COLUMNS = re.compile(rf"\bINSERT\s+INTO\s+{IDENT}\s*\(([^)]+)\)", re.IGNORECASE)
SET_CLAUSE = re.compile(r"\bSET\s+([\s\S]+?)(?:\bWHERE\b|$)", re.IGNORECASE)
SET_TARGET = re.compile(rf"\b({IDENT})\s*=")
WHERE_CLAUSE = re.compile(
    r"\bWHERE\s+([\s\S]+?)(?:\bORDER\b|\bGROUP\b|\bLIMIT\b|$)", re.IGNORECASE
)
PREDICATE_COLUMN = re.compile(
    rf"\b({IDENT})\s*(?:=|<|>|\bLIKE\b|\bIN\b|\bIS\b|\bBETWEEN\b)", re.IGNORECASE
)
LEADING_IDENT = re.compile(rf"^({IDENT})")


def _add_unique(target: list[str], value: str) -> None:
    lowered = value.strip().lower()
    if lowered and lowered not in target:
        target.append(lowered)


def _split_top_level(text: str) -> list[str]:
    """Split on commas that are not nested inside parentheses."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(depth - 1, 0)
        elif char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return parts


def extract_table_names(sql: str) -> list[str]:
    """Referenced table names, lower-cased, in first-seen order."""
    cleaned = strip_comments(sql)
    found: list[tuple[int, str]] = []
    for pattern in TABLE_PATTERNS:
        for match in pattern.finditer(cleaned):
            found.append((match.start(1), match.group(1)))

    tables: list[str] = []
    for _, name in sorted(found):
        _add_unique(tables, name)
    return tables


def extract_column_names(sql: str) -> list[str]:
    """Referenced column names from SELECT lists, INSERT lists, SET and WHERE."""
    cleaned = strip_comments(sql)
    columns: list[str] = []

    select_match = SELECT_LIST.search(cleaned)
    if select_match and select_match.group(1).strip() != "*":
        for item in _split_top_level(select_match.group(1)):
            col_match = LEADING_IDENT.match(item.strip())
            if col_match:
                _add_unique(columns, col_match.group(1))

    insert_match = INSERT_COLUMNS.search(cleaned)
    if insert_match:
        for item in insert_match.group(1).split(","):
            _add_unique(columns, item)

    set_match = SET_CLAUSE.search(cleaned)
    if set_match:
        for match in SET_TARGET.finditer(set_match.group(1)):
            _add_unique(columns, match.group(1))

    where_match = WHERE_CLAUSE.search(cleaned)
    if where_match:
        for match in PREDICATE_COLUMN.finditer(where_match.group(1)):
            _add_unique(columns, match.group(1))

    return columns
