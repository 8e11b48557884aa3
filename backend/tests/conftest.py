import os

# Must be set before beatbattle.settings is imported so app startup never touches a file DB
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import random  # noqa: E402
from typing import Callable, List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from beatbattle.database import get_session, init_db  # noqa: E402
from beatbattle.main import app  # noqa: E402
from beatbattle.models.entrant import Entrant  # noqa: E402
from beatbattle.models.tournament import Tournament  # noqa: E402
from beatbattle.routes.deps import get_rng  # noqa: E402
from beatbattle.services import tournament_lifecycle  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Tables dropped and recreated per test (see session_fixture)
# 4. App dependencies overridden to use test_engine and a seeded rng (see client_fixture)
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a fresh in-memory database session"""
    SQLModel.metadata.drop_all(test_engine)
    init_db(test_engine)

    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="rng")
def rng_fixture():
    """Deterministic tie-break / shuffle source"""
    return random.Random(1234)


@pytest.fixture(name="client")
def client_fixture(session: Session, rng: random.Random):
    """Test client with overridden database session and random source

    Override MUST be set BEFORE TestClient() and stay in place for its lifetime.
    """
    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_rng] = lambda: rng

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="file_engine")
def file_engine_fixture(tmp_path):
    """File-backed SQLite engine: one real connection per session, for thread races"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="make_tournament")
def make_tournament_fixture() -> Callable[..., Tournament]:
    """Factory: DRAFT tournament with n eligible entrants (seeds 1..n)."""

    def _make(
        session: Session,
        n: int,
        pairing_policy: str = "random",
        max_entrants: Optional[int] = None,
    ) -> Tournament:
        tournament = tournament_lifecycle.create_tournament(
            session,
            name=f"Beat Battle {n}",
            max_entrants=max_entrants or max(n, 2),
            pairing_policy=pairing_policy,
        )
        for i in range(1, n + 1):
            tournament_lifecycle.register_entrant(
                session,
                tournament.id,
                user_id=f"user-{i}",
                name=f"Track {i}",
                content_ref=f"r2://tracks/{i}.mp3",
                seed=i,
            )
        return tournament

    return _make


def entrant_ids(session: Session, tournament_id: int) -> List[int]:
    return [e.id for e in tournament_lifecycle.list_entrants(session, tournament_id)]


def seed_of(session: Session, entrant_id: int) -> int:
    return session.get(Entrant, entrant_id).seed
