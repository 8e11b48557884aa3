"""The alembic baseline must describe the same schema the models create."""
import importlib.util
from pathlib import Path

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlmodel import SQLModel

from beatbattle.database import init_db

VERSIONS_DIR = Path(__file__).resolve().parents[1] / "alembic" / "versions"


def _load_revision(filename: str):
    spec = importlib.util.spec_from_file_location(filename[:-3], VERSIONS_DIR / filename)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _run(engine, fn):
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            fn()


def _unique_sets(inspector, table):
    return {tuple(uc["column_names"]) for uc in inspector.get_unique_constraints(table)}


def test_initial_revision_matches_models():
    revision = _load_revision("001_initial_bracket_schema.py")
    assert revision.down_revision is None

    migrated = sa.create_engine("sqlite://")
    _run(migrated, revision.upgrade)

    modeled = sa.create_engine("sqlite://")
    init_db(modeled)

    migrated_insp = sa.inspect(migrated)
    modeled_insp = sa.inspect(modeled)
    assert set(migrated_insp.get_table_names()) == set(SQLModel.metadata.tables) == {
        "tournament",
        "entrant",
        "matchup",
        "vote",
    }

    for table in ("tournament", "entrant", "matchup", "vote"):
        migrated_cols = {c["name"]: c["nullable"] for c in migrated_insp.get_columns(table)}
        modeled_cols = {c["name"]: c["nullable"] for c in modeled_insp.get_columns(table)}
        assert migrated_cols == modeled_cols, table
        assert _unique_sets(migrated_insp, table) == _unique_sets(modeled_insp, table), table

    assert ("voter_id", "matchup_id") in _unique_sets(migrated_insp, "vote")
    assert ("tournament_id", "round_number", "slot_index") in _unique_sets(migrated_insp, "matchup")


def test_initial_revision_downgrade_drops_everything():
    revision = _load_revision("001_initial_bracket_schema.py")
    engine = sa.create_engine("sqlite://")

    _run(engine, revision.upgrade)
    _run(engine, revision.downgrade)

    assert sa.inspect(engine).get_table_names() == []
