import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Union

from config import CONFIG_DIR
from .schema import SCHEMA_SQL, INDEXES_SQL, SEED_SQL, SCHEMA_VERSION

logger = logging.getLogger(__name__)

DB_PATH = Path(os.getenv("DB_PATH", str(CONFIG_DIR / "habla.db")))


def set_db_path(path: Union[str, Path]) -> None:
    """Point the process at a different database file (from config.toml or the CLI)."""
    global DB_PATH
    DB_PATH = Path(path).expanduser()


def init_db():
    """Initialize the database by creating tables, indexes and seed rows if they don't exist."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    with get_conn() as conn:
        conn.executescript(SCHEMA_SQL)
        ensure_card_source_columns(conn)
        ensure_card_progress_step(conn)
        ensure_review_log_mode(conn)
        conn.executescript(INDEXES_SQL)
        conn.executescript(SEED_SQL)
        ensure_cards_fts(conn)
        ensure_schema_version(conn)
        conn.commit()
    logger.info("Database ready at %s (schema v%s)", DB_PATH, SCHEMA_VERSION)


def _columns(conn: sqlite3.Connection, table: str) -> set:
    cursor = conn.cursor()
    cursor.execute(f"PRAGMA table_info({table})")
    return {row[1] for row in cursor.fetchall()}


def ensure_card_source_columns(conn: sqlite3.Connection) -> None:
    """Ensure cards table has the song-source columns for installs that predate songs."""
    columns = _columns(conn, "cards")
    if "source" not in columns:
        conn.execute("ALTER TABLE cards ADD COLUMN source TEXT NOT NULL DEFAULT 'curriculum'")
    if "source_song_id" not in columns:
        conn.execute("ALTER TABLE cards ADD COLUMN source_song_id INTEGER")


def ensure_card_progress_step(conn: sqlite3.Connection) -> None:
    """Ensure card_progress has the learning-step column and normalise due for new cards."""
    if "step" not in _columns(conn, "card_progress"):
        conn.execute("ALTER TABLE card_progress ADD COLUMN step INTEGER")
    conn.execute("UPDATE card_progress SET due = NULL WHERE state = 'new'")
    conn.execute(
        "UPDATE card_progress SET due = COALESCE(last_review, datetime('now')) "
        "WHERE state != 'new' AND due IS NULL"
    )


def ensure_review_log_mode(conn: sqlite3.Connection) -> None:
    """Ensure review_logs records the practice mode."""
    if "mode" not in _columns(conn, "review_logs"):
        conn.execute("ALTER TABLE review_logs ADD COLUMN mode TEXT")


def ensure_cards_fts(conn: sqlite3.Connection) -> None:
    """Ensure FTS table is populated for existing cards."""
    cursor = conn.cursor()
    cursor.execute("SELECT COUNT(*) FROM cards_fts")
    fts_count = cursor.fetchone()[0] or 0
    cursor.execute("SELECT COUNT(*) FROM cards")
    cards_count = cursor.fetchone()[0] or 0
    if fts_count < cards_count:
        cursor.execute("INSERT INTO cards_fts(cards_fts) VALUES('rebuild')")


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Read the SQLite schema version from PRAGMA user_version."""
    cursor = conn.cursor()
    cursor.execute("PRAGMA user_version")
    row = cursor.fetchone()
    return int(row[0]) if row else 0


def ensure_schema_version(conn: sqlite3.Connection) -> None:
    """Ensure the current schema version is written to the database."""
    if get_schema_version(conn) != SCHEMA_VERSION:
        conn.execute(f"PRAGMA user_version = {int(SCHEMA_VERSION)}")


@contextmanager
def get_conn():
    """Context manager for SQLite connection, using row_factory for dict-like rows."""
    conn = sqlite3.connect(DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


def get_db():
    """FastAPI dependency that yields a DB connection and closes it afterwards."""
    with get_conn() as conn:
        yield conn
