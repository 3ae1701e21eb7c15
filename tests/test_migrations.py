"""
The Alembic history builds the same tables as the models.
"""

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from portal.db.base import Base
import portal.db.models  # noqa: F401

ROOT = Path(__file__).resolve().parent.parent


def _config(url: str) -> Config:
    config = Config(str(ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", url)
    config.attributes["configure_logger"] = False
    return config


class TestMigrations:
    def test_upgrade_matches_models(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'migrated.db'}"
        command.upgrade(_config(url), "head")

        engine = create_engine(url)
        inspector = inspect(engine)
        assert set(inspector.get_table_names()) - {"alembic_version"} == set(Base.metadata.tables)
        for name, table in Base.metadata.tables.items():
            migrated = {column["name"] for column in inspector.get_columns(name)}
            assert migrated == {column.name for column in table.columns}, name
        engine.dispose()

    def test_downgrade_removes_everything(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'migrated.db'}"
        config = _config(url)
        command.upgrade(config, "head")

        command.downgrade(config, "base")

        engine = create_engine(url)
        assert set(inspect(engine).get_table_names()) == {"alembic_version"}
        engine.dispose()
