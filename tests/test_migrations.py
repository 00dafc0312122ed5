"""Alembic revisions build the same schema as the ORM models and reverse cleanly."""

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect

from dashboard.db.models import Base

ROOT = Path(__file__).resolve().parent.parent

REVISIONS = [
    "20260101000000",
    "20260201000000",
    "20260203000001",
    "20260203000002",
    "20260203000003",
    "20260203000004",
]


@pytest.fixture
def database(tmp_path: Path) -> Path:
    return tmp_path / "migrations.sqlite"


@pytest.fixture
def alembic_config(database: Path) -> Config:
    config = Config()
    config.set_main_option("script_location", str(ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", f"sqlite+aiosqlite:///{database}")
    return config


def _inspect(database: Path):
    engine = create_engine(f"sqlite:///{database}")
    try:
        with engine.connect() as conn:
            inspector = inspect(conn)
            return {
                table: {index["name"] for index in inspector.get_indexes(table)}
                for table in inspector.get_table_names()
            }
    finally:
        engine.dispose()


def test_revisions_form_a_single_ordered_chain(alembic_config: Config) -> None:
    script = ScriptDirectory.from_config(alembic_config)

    chain = [rev.revision for rev in script.walk_revisions("base", "heads")]

    assert list(reversed(chain)) == REVISIONS


def test_upgrade_builds_the_model_schema(alembic_config: Config, database: Path) -> None:
    command.upgrade(alembic_config, "head")

    schema = _inspect(database)
    assert set(schema) == set(Base.metadata.tables) | {"alembic_version"}
    for table in Base.metadata.sorted_tables:
        expected = {index.name for index in table.indexes}
        assert schema[table.name] == expected, table.name


def test_downgrade_reverses_each_revision(alembic_config: Config, database: Path) -> None:
    command.upgrade(alembic_config, "head")

    command.downgrade(alembic_config, "20260203000002")
    schema = _inspect(database)
    assert "folders" not in schema
    assert "folder_items" not in schema
    assert "api_key_registry" not in schema
    assert "favorites" in schema

    command.downgrade(alembic_config, "20260101000000")
    assert "idx_users_oidc_subject" not in _inspect(database)["users"]

    command.downgrade(alembic_config, "base")
    assert set(_inspect(database)) == {"alembic_version"}


class _RecordingOps:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def drop_table(self, name: str, **kwargs) -> None:
        self.calls.append(("drop_table", name))

    def drop_index(self, name: str, **kwargs) -> None:
        self.calls.append(("drop_index", name))


def test_folders_downgrade_drops_items_before_folders(
    alembic_config: Config, monkeypatch
) -> None:
    module = ScriptDirectory.from_config(alembic_config).get_revision("20260203000003").module
    ops = _RecordingOps()
    monkeypatch.setattr(module, "op", ops)

    module.downgrade()

    dropped = [name for kind, name in ops.calls if kind == "drop_table"]
    assert dropped == ["folder_items", "folders"]
