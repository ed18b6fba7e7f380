# tests/test_migrations.py
"""
Migration Tests
"""

import importlib.util
from pathlib import Path

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from app.core.database import Base

VERSIONS = Path(__file__).resolve().parent.parent / "migrations" / "versions"


def load_revision(name):
    spec = importlib.util.spec_from_file_location(name, VERSIONS / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestInitialRevision:
    def test_creates_the_model_schema(self):
        revision = load_revision("a1c4e2f09b7d_create_assessment_tables")
        engine = create_engine("sqlite://")

        with engine.begin() as connection:
            with Operations.context(MigrationContext.configure(connection)):
                revision.upgrade()
            inspector = inspect(connection)

            assert set(inspector.get_table_names()) == set(Base.metadata.tables)
            for name, table in Base.metadata.tables.items():
                columns = {c["name"] for c in inspector.get_columns(name)}
                assert columns == {c.name for c in table.columns}, name
                indexes = {i["name"] for i in inspector.get_indexes(name)}
                assert indexes >= {i.name for i in table.indexes}, name

    def test_downgrade_drops_everything(self):
        revision = load_revision("a1c4e2f09b7d_create_assessment_tables")
        engine = create_engine("sqlite://")

        with engine.begin() as connection:
            with Operations.context(MigrationContext.configure(connection)):
                revision.upgrade()
                revision.downgrade()
            assert inspect(connection).get_table_names() == []
