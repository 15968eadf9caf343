"""Tests for the Alembic migration environment."""
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from virtual_mentor.core.config import settings

ROOT = Path(__file__).resolve().parents[2]


def test_upgrade_runs_on_async_driver(tmp_path, monkeypatch):
    """Test that a plain sqlite URL is migrated through aiosqlite."""
    database = tmp_path / "migrated.db"
    monkeypatch.setattr(settings, "database_url", f"sqlite:///{database}")
    config = Config()
    config.set_main_option("script_location", str(ROOT / "alembic"))

    command.upgrade(config, "head")

    engine = create_engine(f"sqlite:///{database}")
    try:
        inspector = inspect(engine)
        assert {"sessions", "session_messages", "conversations", "conversation_messages", "users"} <= set(
            inspector.get_table_names()
        )
        for table in ("session_messages", "conversation_messages"):
            assert inspector.get_pk_constraint(table)["constrained_columns"] == ["seq"]
            unique_indexes = [i for i in inspector.get_indexes(table) if i["unique"]]
            assert ["id"] in [i["column_names"] for i in unique_indexes]
    finally:
        engine.dispose()
