from pathlib import Path
from typing import Generator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from beatbattle.settings import settings

DATABASE_URL = settings.database_url

_is_sqlite = DATABASE_URL.startswith("sqlite")
_connect_args = (
    {"check_same_thread": False, "timeout": settings.sqlite_busy_timeout} if _is_sqlite else {}
)

if _is_sqlite and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.replace("sqlite:///", "", 1)
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine: Engine = create_engine(
    DATABASE_URL,
    echo=settings.sql_echo,
    connect_args=_connect_args,
)


def get_session() -> Generator[Session, None, None]:
    """Request-scoped session for route dependencies."""
    with Session(engine) as session:
        yield session


def init_db(bind: Engine = engine) -> None:
    """Create the bracket tables on bind if they do not exist yet."""
    # Table classes register on SQLModel.metadata at import
    from beatbattle.models.entrant import Entrant  # noqa: F401
    from beatbattle.models.matchup import Matchup  # noqa: F401
    from beatbattle.models.tournament import Tournament  # noqa: F401
    from beatbattle.models.vote import Vote  # noqa: F401

    SQLModel.metadata.create_all(bind)
