"""
Environment configuration.

Values come from the process environment, optionally seeded from a .env file.
Read once at import; tests override individual fields through dependency overrides
rather than mutating this object.
"""
import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    database_url: str
    sql_echo: bool
    log_level: str
    sqlite_busy_timeout: int
    resolve_max_attempts: int
    default_max_entrants: int
    tiebreak_seed: Optional[int]
    cors_origins: List[str]


def load_settings() -> Settings:
    origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    extra = os.getenv("CORS_ORIGINS", "")
    if extra:
        origins.extend(o.strip() for o in extra.split(",") if o.strip())

    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./beatbattle.db"),
        sql_echo=_env_bool("SQL_ECHO"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        sqlite_busy_timeout=_env_int("SQLITE_BUSY_TIMEOUT", 30),
        resolve_max_attempts=_env_int("RESOLVE_MAX_ATTEMPTS", 5),
        default_max_entrants=_env_int("DEFAULT_MAX_ENTRANTS", 64),
        tiebreak_seed=_env_int("TIEBREAK_SEED", None),
        cors_origins=origins,
    )


settings = load_settings()
