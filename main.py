import argparse
import logging
import sqlite3
import sys
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request, Depends
from fastapi.responses import JSONResponse

# Add project root to path for package imports
base_dir = Path(__file__).parent
sys.path.insert(0, str(base_dir))

from db.database import init_db, get_conn, get_db, set_db_path
from db import database
from config import load_config, CONFIG_DIR
from routes import lesson, songs, cards, stats, settings, islands, grammar  # Import routers
from routes.deps import get_user_id
from utils.errors import (
    EnrichmentUnavailable,
    HablaError,
    NotFoundError,
    StaleSessionError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def configure(config: dict) -> None:
    """Apply logging and database settings from the loaded config."""
    logging.basicConfig(
        level=config["server"]["log_level"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    set_db_path(config["database"]["path"])


# First-run init
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: load config, point at the DB and make sure the schema exists
    config = load_config()
    configure(config)
    init_db()
    app.state.config = config
    app.state.registry = None
    app.state.runner = None
    app.state.song_engine = None
    logger.info("Habla ready, database %s", database.DB_PATH)
    yield


app = FastAPI(title="Habla", description="Local-first Spanish vocabulary sprint", lifespan=lifespan)

# Include routers
app.include_router(lesson.router, prefix="/lesson", tags=["lesson"])
app.include_router(songs.router, prefix="/songs", tags=["songs"])
app.include_router(cards.router, prefix="/cards", tags=["cards"])
app.include_router(stats.router, prefix="/stats", tags=["stats"])
app.include_router(settings.router, prefix="/settings", tags=["settings"])
app.include_router(islands.router, prefix="/islands", tags=["islands"])
app.include_router(grammar.router, prefix="/grammar", tags=["grammar"])


def _error(status_code: int, exc: HablaError, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": exc.message, **extra})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error(404, exc)


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    return _error(400, exc)


@app.exception_handler(StaleSessionError)
async def stale_session_handler(request: Request, exc: StaleSessionError):
    return _error(409, exc, redirect=exc.redirect)


@app.exception_handler(EnrichmentUnavailable)
async def enrichment_handler(request: Request, exc: EnrichmentUnavailable):
    return _error(503, exc)


@app.exception_handler(StorageError)
async def storage_handler(request: Request, exc: StorageError):
    logger.error("Storage failure on %s: %s", request.url.path, exc.message)
    return _error(500, exc)


# Home - where the learner is in the sprint
@app.get("/")
async def home(user_id: int = Depends(get_user_id), conn=Depends(get_db)):
    return stats.journey_overview(conn, user_id)


def run_command(args, config: dict) -> int:
    """Run a one-shot CLI command; returns the exit code."""
    from utils.importer import import_song, import_words
    from utils.lyrics import fetch_missing_lyrics

    with get_conn() as conn:
        if args.import_words:
            result = import_words(conn, args.import_words)
            print(f"Imported {result['added']} words ({result['skipped']} skipped)")
        if args.import_song:
            song_id = import_song(conn, args.import_song, config)
            print(f"Imported song {song_id}")
        if args.fetch_lyrics:
            result = fetch_missing_lyrics(conn, config)
            print(f"Fetched lyrics for {result['fetched']} songs ({result['failed']} failed)")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Habla App")
    parser.add_argument("--init", action="store_true", help="Initialize DB and config")
    parser.add_argument("--dev", action="store_true", help="Run in dev mode with reload")
    parser.add_argument("--port", type=int, help="Port to listen on")
    parser.add_argument("--fetch-lyrics", action="store_true", help="Fetch synced lyrics for songs without lines")
    parser.add_argument("--import-words", metavar="FILE", help="Import a JSON frequency word list")
    parser.add_argument("--import-song", metavar="FILE", help="Import a JSON song with vocabulary and LRC")
    args = parser.parse_args()
    try:
        config = load_config()  # Ensures config is copied if missing
        configure(config)
        init_db()
    except (OSError, sqlite3.Error, ValueError) as e:
        logger.error("Startup failed: %s", e)
        sys.exit(1)
    if args.init:
        print(f"DB initialized and config copied to {CONFIG_DIR}")
        sys.exit(0)
    if args.import_words or args.import_song or args.fetch_lyrics:
        try:
            sys.exit(run_command(args, config))
        except (OSError, sqlite3.Error, HablaError) as e:
            logger.error("Command failed: %s", e)
            sys.exit(1)
    # Run server
    port = args.port or config["server"]["port"]
    uvicorn.run(
        "main:app",
        host=config["server"]["host"],
        port=port,
        reload=args.dev,
        log_level=config["server"]["log_level"].lower(),
    )
