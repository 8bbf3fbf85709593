"""Run the validation benchmark on docs/validation_cases.md."""

from __future__ import annotations

import argparse
import json
import re
import statistics
import sys
import time
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from prismsql.core.models import Role, SchemaTable
from prismsql.db.data_source import DEFAULT_ALLOWED_TABLES, DEMO_SCHEMA, load_schema_snapshot
from sql_guard import DEFAULT_GUARD, SQLGuard

CASE_LINE = re.compile(
    r"^\d+\.\s+EXPECT:\s*(accept|reject)\s*\|\s*ROLE:\s*(\w+)\s*\|\s*SQL:\s*(.+)$",
    re.IGNORECASE,
)


def parse_cases_from_markdown(path: Path) -> list[dict]:
    """
    Read numbered case lines of the form:
      1. EXPECT: accept | ROLE: user | SQL: SELECT * FROM demo_users
    Other lines are ignored.
    """
    content = path.read_text(encoding="utf-8", errors="replace")
    cases: list[dict] = []
    for line in content.splitlines():
        match = CASE_LINE.match(line.strip())
        if match:
            cases.append(
                {
                    "expect_valid": match.group(1).lower() == "accept",
                    "role": Role.parse(match.group(2)).value,
                    "sql": match.group(3).strip(),
                }
            )
    return cases


def run_single_case(
    case: dict,
    schema: tuple[SchemaTable, ...],
    guard: SQLGuard = DEFAULT_GUARD,
    use_allowlist: bool = False,
) -> dict:
    allowed = list(DEFAULT_ALLOWED_TABLES) if use_allowlist else None
    start = time.perf_counter()
    result = guard.validate(case["sql"], schema, Role.parse(case["role"]), allowed)
    validation_us = round((time.perf_counter() - start) * 1_000_000, 1)

    return {
        "sql": case["sql"],
        "role": case["role"],
        "expect_valid": case["expect_valid"],
        "is_valid": result.valid,
        "outcome": "match" if result.valid == case["expect_valid"] else "mismatch",
        "failed_check": "" if result.valid else result.checks_performed[-1],
        "reason": result.reason or "",
        "operation_type": result.analysis.kind.value if result.analysis else "",
        "risk_level": result.analysis.risk.value if result.analysis else "",
        "sanitized_sql": result.sanitized_sql or "",
        "validation_us": validation_us,
    }


def build_summary(results: list[dict]) -> dict:
    total = len(results)
    accepted = sum(1 for r in results if r["is_valid"])
    matched = sum(1 for r in results if r["outcome"] == "match")

    rejection_breakdown: dict[str, int] = {}
    risk_breakdown: dict[str, int] = {}
    for r in results:
        if r["is_valid"]:
            key = r.get("risk_level") or "unknown"
            risk_breakdown[key] = risk_breakdown.get(key, 0) + 1
        else:
            key = r.get("failed_check") or "unknown"
            rejection_breakdown[key] = rejection_breakdown.get(key, 0) + 1

    timings = [float(r.get("validation_us", 0)) for r in results]

    def _ratio(value: int) -> float:
        return round((value / total) * 100.0, 2) if total else 0.0

    return {
        "total_cases": total,
        "counts": {
            "accepted": accepted,
            "rejected": total - accepted,
            "match": matched,
            "mismatch": total - matched,
        },
        "rates_percent": {
            "accept_rate": _ratio(accepted),
            "expectation_match_rate": _ratio(matched),
        },
        "rejection_breakdown": rejection_breakdown,
        "risk_breakdown": risk_breakdown,
        "latency_us": {
            "avg_validation_us": round(sum(timings) / total, 2) if total else 0.0,
            "median_validation_us": round(float(statistics.median(timings)), 2)
            if timings
            else 0.0,
        },
    }


def write_reports(results: list[dict], summary: dict, output_dir: Path) -> tuple[Path, Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    json_path = output_dir / f"validation_benchmark_{stamp}.json"
    csv_path = output_dir / f"validation_benchmark_{stamp}.csv"

    json_path.write_text(
        json.dumps({"summary": summary, "results": results}, indent=2, ensure_ascii=True),
        encoding="utf-8",
    )
    pd.DataFrame(results).to_csv(csv_path, index=False, encoding="utf-8-sig")
    return json_path, csv_path


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the prismsql validation benchmark.")
    parser.add_argument(
        "--cases",
        default=str(PROJECT_ROOT / "docs" / "validation_cases.md"),
        help="Markdown file with EXPECT/ROLE/SQL case lines.",
    )
    parser.add_argument(
        "--duckdb-path",
        default="",
        help="Validate against this database's schema instead of the demo schema.",
    )
    parser.add_argument(
        "--use-allowlist",
        action="store_true",
        help="Apply the default table allowlist to restricted-role cases.",
    )
    parser.add_argument(
        "--output-dir",
        default="reports",
        help="Directory where benchmark reports are written.",
    )
    args = parser.parse_args()

    cases = parse_cases_from_markdown(Path(args.cases))
    schema = load_schema_snapshot(args.duckdb_path) if args.duckdb_path else DEMO_SCHEMA

    results = [
        run_single_case(case, schema, use_allowlist=args.use_allowlist) for case in cases
    ]
    summary = build_summary(results)
    json_path, csv_path = write_reports(results, summary, Path(args.output_dir))

    print("Validation benchmark complete.")
    print(f"Cases: {summary['total_cases']}")
    print(f"Accept rate: {summary['rates_percent']['accept_rate']}%")
    print(f"Expectation match rate: {summary['rates_percent']['expectation_match_rate']}%")
    for r in results:
        if r["outcome"] == "mismatch":
            print(f"MISMATCH [{r['role']}] {r['sql']} -> {r['reason'] or 'accepted'}")
    print(f"JSON report: {json_path}")
    print(f"CSV report: {csv_path}")


if __name__ == "__main__":
    main()
