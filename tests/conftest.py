import pytest


@pytest.fixture(autouse=True)
def isolated_log_paths(tmp_path, monkeypatch) -> None:
    log_dir = tmp_path / "logs"
    monkeypatch.setenv("APP_LOG_DIR", str(log_dir))
    monkeypatch.setenv("APP_LOG_PATH", str(log_dir / "app.log"))
    monkeypatch.setenv("APP_METRICS_LOG_PATH", str(log_dir / "metrics.jsonl"))
