"""Rebuild the demo DuckDB database from sql/ingest_*.sql scripts."""

import argparse
import os
import sys
from pathlib import Path

import duckdb

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_DB_PATH = os.getenv("PRISMSQL_DUCKDB_PATH", str(REPO_ROOT / "prismsql.duckdb"))


def rebuild_database(db_path: Path, sql_dir: Path, keep_existing: bool = False) -> list[str]:
    """Run every ingest script in name order. Returns the script stems loaded."""
    sql_files = sorted(sql_dir.glob("ingest_*.sql"))
    if not sql_files:
        raise SystemExit(f"No ingest scripts found in {sql_dir}.")

    if keep_existing and not db_path.exists():
        raise SystemExit(f"{db_path} does not exist. Run without --no-delete to create it.")

    if db_path.exists() and not keep_existing:
        db_path.unlink()

    conn = duckdb.connect(str(db_path))
    try:
        for path in sql_files:
            conn.execute(path.read_text(encoding="utf-8"))
    finally:
        conn.close()

    return [path.stem.replace("ingest_", "") for path in sql_files]


def main() -> int:
    parser = argparse.ArgumentParser(description="Rebuild the prismsql demo database.")
    parser.add_argument("--db-path", default=DEFAULT_DB_PATH, help="DuckDB file to (re)create.")
    parser.add_argument("--sql-dir", default=str(REPO_ROOT / "sql"), help="Directory of ingest scripts.")
    parser.add_argument(
        "--no-delete",
        action="store_true",
        help="Load scripts into the existing file instead of recreating it.",
    )
    args = parser.parse_args()

    db_path = Path(args.db_path)
    loaded = rebuild_database(db_path, Path(args.sql_dir), keep_existing=args.no_delete)

    print(f"Rebuilt {db_path}")
    print("Loaded scripts:")
    for name in loaded:
        print(f"- {name}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
