"""Aggregate sql_validation and query_execution events from the metrics JSONL."""

from __future__ import annotations

import argparse
import json
import statistics
import sys
from collections import Counter
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from prismsql.core.query_logic import classify_execution_failure

VALIDATION_EVENT = "sql_validation"
EXECUTION_EVENT = "query_execution"


def load_metric_events(metrics_path: Path) -> list[dict]:
    """Parsed JSON objects, one per line. Blank or malformed lines are skipped."""
    if not metrics_path.is_file():
        return []

    with metrics_path.open(encoding="utf-8", errors="replace") as handle:
        decoded = []
        for raw in handle:
            raw = raw.strip()
            if not raw:
                continue
            try:
                decoded.append(json.loads(raw))
            except json.JSONDecodeError:
                continue
    return [item for item in decoded if isinstance(item, dict)]


def _percent(part: int, whole: int) -> float:
    return round(part * 100.0 / whole, 2) if whole > 0 else 0.0


def _tally(events: list[dict], key: str) -> dict[str, int]:
    return dict(Counter(str(e.get(key) or "").strip() or "unknown" for e in events))


def _summarize_validation(events: list[dict]) -> dict:
    accepted = [e for e in events if e.get("is_valid")]
    rejected = [e for e in events if not e.get("is_valid")]
    return {
        "accepted": len(accepted),
        "rejected": len(rejected),
        "accept_rate": _percent(len(accepted), len(events)),
        "rejections_by_check": _tally(rejected, "failed_check"),
        "accepted_by_risk": _tally(accepted, "risk_level"),
        "by_role": _tally(events, "role"),
    }


def _failure_category(event: dict) -> str:
    category = str(event.get("failure_category") or "").strip()
    return category or classify_execution_failure(str(event.get("error", "")))


def _summarize_execution(events: list[dict]) -> dict:
    succeeded = [e for e in events if e.get("success")]
    durations = [
        float(e["execution_ms"])
        for e in succeeded
        if isinstance(e.get("execution_ms"), (int, float)) and e["execution_ms"] > 0
    ]
    failures = Counter(_failure_category(e) for e in events if not e.get("success"))
    return {
        "success": len(succeeded),
        "failed": len(events) - len(succeeded),
        "success_rate": _percent(len(succeeded), len(events)),
        "median_execution_ms": round(float(statistics.median(durations)), 2) if durations else 0.0,
        "failure_breakdown": dict(failures),
    }


def summarize_metric_events(events: list[dict]) -> dict:
    """Totals plus one section per event family."""
    validations = [e for e in events if e.get("event") == VALIDATION_EVENT]
    executions = [e for e in events if e.get("event") == EXECUTION_EVENT]
    return {
        "totals": {
            "events": len(events),
            "validation_events": len(validations),
            "execution_events": len(executions),
        },
        "validation": _summarize_validation(validations),
        "execution": _summarize_execution(executions),
    }


def write_summary(summary: dict, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(summary, indent=2, ensure_ascii=True), encoding="utf-8")


def main() -> None:
    parser = argparse.ArgumentParser(description="Summarize prismsql metrics into a JSON report.")
    parser.add_argument("--metrics-path", default="logs/metrics.jsonl", help="Metrics JSONL to read.")
    parser.add_argument(
        "--output", default="reports/metrics_summary.json", help="Where to write the summary."
    )
    args = parser.parse_args()

    summary = summarize_metric_events(load_metric_events(Path(args.metrics_path)))
    write_summary(summary, Path(args.output))

    validation = summary["validation"]
    execution = summary["execution"]
    print(f"Events read: {summary['totals']['events']}")
    print(f"Validations: {validation['accepted']} accepted / {validation['rejected']} rejected")
    print(f"Executions: {execution['success']} ok / {execution['failed']} not completed")
    print(f"Summary written to {args.output}")


if __name__ == "__main__":
    main()
