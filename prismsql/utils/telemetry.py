"""Console/file logging and JSONL metrics for validation and execution."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from prismsql.core.models import Role, ValidationResult

LOGGER_NAME = "prismsql"


def _build_paths() -> tuple[Path, Path]:
    log_dir = Path(os.getenv("APP_LOG_DIR", "logs"))
    app_log_path = Path(os.getenv("APP_LOG_PATH", str(log_dir / "app.log")))
    metrics_log_path = Path(
        os.getenv("APP_METRICS_LOG_PATH", str(log_dir / "metrics.jsonl"))
    )
    return app_log_path, metrics_log_path


def configure_app_logging() -> logging.Logger:
    """
    Attach console + file handlers to the "prismsql" logger once.
    Child loggers (prismsql.core.*, prismsql.db.*) inherit them.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    app_log_path, _ = _build_paths()
    app_log_path.parent.mkdir(parents=True, exist_ok=True)

    logger.setLevel(os.getenv("APP_LOG_LEVEL", "INFO").upper())
    logger.propagate = False

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in (
        logging.StreamHandler(),
        logging.FileHandler(app_log_path, encoding="utf-8"),
    ):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.info("Logging initialized (log file: %s).", app_log_path)
    return logger


def validation_metric_fields(result: ValidationResult, role: Role) -> dict[str, Any]:
    """Flatten a verdict into the fields of a "sql_validation" event."""
    fields: dict[str, Any] = {
        "is_valid": result.valid,
        "role": Role.parse(role).value,
        "checks_run": len(result.checks_performed),
        "failed_check": "",
        "operation_type": "",
        "risk_level": "",
    }
    if not result.valid:
        fields["failed_check"] = result.checks_performed[-1] if result.checks_performed else ""
    elif result.analysis is not None:
        fields["operation_type"] = result.analysis.kind.value
        fields["risk_level"] = result.analysis.risk.value
        fields["requires_confirmation"] = result.analysis.requires_confirmation
    return fields


def record_metric_event(event: str, **fields: Any) -> dict[str, Any]:
    """
    Append one event to the metrics JSONL and echo it to the app log.
    Events in use:
      - sql_validation: see validation_metric_fields()
      - query_execution: success, execution_ms, row_count, failure_category
        (blocked | needs_confirmation | timeout | compile_fail | runtime_fail)
    Returns the payload that was written.
    """
    logger = configure_app_logging()
    _, metrics_log_path = _build_paths()
    metrics_log_path.parent.mkdir(parents=True, exist_ok=True)

    payload = {
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
        "event": event,
        **fields,
    }
    line = json.dumps(payload, ensure_ascii=True)
    try:
        with metrics_log_path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
        logger.info("metric=%s", line)
    except OSError as exc:
        logger.warning("Could not write metric event '%s': %s", event, exc)
    return payload
