from pathlib import Path

import duckdb
import pytest
from streamlit.testing.v1 import AppTest

from tools.rebuild_duckdb import rebuild_database

PROJECT_ROOT = Path(__file__).resolve().parents[1]
APP_PATH = str(PROJECT_ROOT / "app.py")
CONFIRM_LABEL = "I understand the impact and want to run this write."


@pytest.fixture
def demo_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    db_path = tmp_path / "demo.duckdb"
    rebuild_database(db_path, PROJECT_ROOT / "sql")
    monkeypatch.setenv("PRISMSQL_DUCKDB_PATH", str(db_path))
    return db_path


def _order_count(db_path: Path) -> int:
    con = duckdb.connect(str(db_path), read_only=True)
    try:
        return con.execute("SELECT COUNT(*) FROM demo_orders").fetchone()[0]
    finally:
        con.close()


def _validate_as_creator(at: AppTest, sql: str) -> None:
    at.radio(key="role").set_value("creator").run()
    at.text_area(key="sql_text").input(sql).run()
    at.button(key="validate").click().run()


def _confirm_box(at: AppTest):
    return next(box for box in at.checkbox if box.label == CONFIRM_LABEL)


def test_console_runs_confirmed_write(demo_db: Path) -> None:
    at = AppTest.from_file(APP_PATH, default_timeout=60)
    at.run()
    _validate_as_creator(at, "DELETE FROM demo_orders WHERE status = 'pending'")

    _confirm_box(at).check().run()
    at.button(key="run_query").click().run()

    assert not at.exception
    assert _order_count(demo_db) == 1


def test_console_does_not_run_sql_edited_after_confirmation(demo_db: Path) -> None:
    at = AppTest.from_file(APP_PATH, default_timeout=60)
    at.run()
    _validate_as_creator(at, "UPDATE demo_users SET status = 'x' WHERE email = 'ada@example.com'")
    _confirm_box(at).check().run()

    at.text_area(key="sql_text").input("DELETE FROM demo_orders").run()

    assert not at.exception
    assert "run_query" not in [button.key for button in at.button]
    assert _order_count(demo_db) == 2


def test_console_confirmation_resets_for_new_statement(demo_db: Path) -> None:
    at = AppTest.from_file(APP_PATH, default_timeout=60)
    at.run()
    _validate_as_creator(at, "UPDATE demo_users SET status = 'x' WHERE email = 'ada@example.com'")
    _confirm_box(at).check().run()

    at.text_area(key="sql_text").input("DELETE FROM demo_orders").run()
    at.button(key="validate").click().run()

    assert _confirm_box(at).value is False
    at.button(key="run_query").click().run()
    assert _order_count(demo_db) == 2
