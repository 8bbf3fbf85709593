"""Row-limit enforcement and guarded DuckDB execution."""

from __future__ import annotations

import multiprocessing as mp
import os
import re
import time
from dataclasses import dataclass
from queue import Empty

import duckdb
import pandas as pd

from prismsql.core.models import OperationKind

LIMIT_CLAUSE = re.compile(r"\bLIMIT\s+(\d+)", re.IGNORECASE)
TRAILING_SEMICOLONS = re.compile(r";*\s*$")


def _read_int_env(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class ExecutionPolicy:
    max_rows: int = 1000
    default_limit: int = 100
    timeout_seconds: int = 15

    @classmethod
    def from_env(cls) -> "ExecutionPolicy":
        defaults = cls()
        return cls(
            max_rows=_read_int_env("SQL_MAX_ROWS", defaults.max_rows),
            default_limit=_read_int_env("SQL_DEFAULT_LIMIT", defaults.default_limit),
            timeout_seconds=_read_int_env("SQL_TIMEOUT_SECONDS", defaults.timeout_seconds),
        )


def enforce_row_limit(sql: str, kind: OperationKind, policy: ExecutionPolicy) -> str:
    """
    Clamp or inject a LIMIT on SELECT statements.
    An existing LIMIT above max_rows is rewritten in place; a missing LIMIT
    gets default_limit appended. Other kinds pass through unchanged.
    """
    cleaned = (sql or "").strip()
    if kind is not OperationKind.SELECT:
        return cleaned

    existing = LIMIT_CLAUSE.search(cleaned)
    if existing:
        if int(existing.group(1)) > policy.max_rows:
            return LIMIT_CLAUSE.sub(f"LIMIT {int(policy.max_rows)}", cleaned, count=1)
        return cleaned

    without_semicolon = TRAILING_SEMICOLONS.sub("", cleaned)
    return f"{without_semicolon} LIMIT {int(policy.default_limit)}"


def _query_worker(duckdb_path: str, sql: str, read_only: bool, result_queue) -> None:
    con = duckdb.connect(duckdb_path, read_only=read_only)
    try:
        start = time.time()
        df = con.execute(sql).df()
        elapsed = time.time() - start
        result_queue.put({"ok": True, "df": df, "elapsed": elapsed})
    except Exception as exc:
        result_queue.put({"ok": False, "error": str(exc)})
    finally:
        con.close()


def run_query_with_timeout(
    duckdb_path: str, sql: str, timeout_seconds: int, read_only: bool = True
) -> tuple[pd.DataFrame, float, str]:
    """
    Run query in a worker process and terminate on timeout.
    Returns (df, elapsed_seconds, error_message).
    """
    ctx = mp.get_context("spawn")
    queue = ctx.Queue()
    process = ctx.Process(target=_query_worker, args=(duckdb_path, sql, read_only, queue))
    process.start()
    process.join(timeout_seconds)

    if process.is_alive():
        process.terminate()
        process.join()
        return pd.DataFrame(), 0.0, f"Query timeout after {timeout_seconds} seconds."

    try:
        payload = queue.get(timeout=2)
    except Empty:
        return pd.DataFrame(), 0.0, "Query failed: no result returned by worker."

    if not payload.get("ok"):
        return pd.DataFrame(), 0.0, payload.get("error", "Unknown query error.")

    return payload["df"], float(payload["elapsed"]), ""
