import logging
import os
import subprocess
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from beatbattle.database import init_db
from beatbattle.routes import matchups, tournaments
from beatbattle.services.round_resolver import build_rng
from beatbattle.settings import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def get_build_info():
    """Short commit of the checkout serving the API, or a startup timestamp outside git."""
    repo_dir = os.path.dirname(os.path.abspath(__file__))
    try:
        proc = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=repo_dir,
            capture_output=True,
            text=True,
            timeout=2,
        )
    except (OSError, subprocess.SubprocessError):
        proc = None
    if proc is not None and proc.returncode == 0 and proc.stdout.strip():
        return proc.stdout.strip()
    return datetime.now().strftime("%Y%m%d-%H%M%S")


BUILD_HASH = get_build_info()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("BeatBattle API started (build %s, %d routes)", BUILD_HASH, len(app.routes))
    yield


app = FastAPI(title="BeatBattle Bracket API", lifespan=lifespan)
app.state.rng = build_rng(settings.tiebreak_seed)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])
app.include_router(matchups.router, prefix="/api", tags=["matchups"])


@app.get("/api/health")
def health_check():
    """Liveness check; build_hash identifies the deployed revision."""
    return {"app_name": "BeatBattle Bracket API", "build_hash": BUILD_HASH, "status": "healthy"}
