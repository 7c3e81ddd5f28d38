# tests/test_migrations.py
# PURPOSE: the Alembic revision creates the same collections the ORM maps, and drops them again.

import os

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from taskapi.db import Base


def _alembic_config(db_url: str) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", os.path.join(os.path.dirname(__file__), "..", "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def test_upgrade_matches_models_and_downgrade_drops(tmp_path):
    db_url = f"sqlite:///{tmp_path / 'migrated.db'}"
    cfg = _alembic_config(db_url)

    command.upgrade(cfg, "head")
    engine = create_engine(db_url)
    try:
        insp = inspect(engine)
        for table in Base.metadata.sorted_tables:
            migrated = {c["name"] for c in insp.get_columns(table.name)}
            assert migrated == {c.name for c in table.columns}, table.name
        email_indexes = [ix for ix in insp.get_indexes("users") if ix["column_names"] == ["email"]]
        assert email_indexes and email_indexes[0]["unique"]
    finally:
        engine.dispose()

    command.downgrade(cfg, "base")
    engine = create_engine(db_url)
    try:
        assert set(inspect(engine).get_table_names()) <= {"alembic_version"}
    finally:
        engine.dispose()
