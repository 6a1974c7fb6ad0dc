from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

import config
from db import cards as card_repo
from db import database
from db import progress as progress_repo
from models.card import CardCreate, CardSource
from models.progress import CardProgress, CardState

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
TODAY = date(2026, 3, 2)


def _write_test_config(config_path: Path, db_path: Path) -> None:
    config_path.write_text(
        "\n".join(
            [
                "[database]",
                f"path = \"{db_path.as_posix()}\"",
                "",
                "[lesson]",
                "target_retention = 0.9",
                "seed_per_day = true",
                "",
                "[grading]",
                "levenshtein_perfect_threshold = 0.98",
                "levenshtein_good_threshold = 0.85",
                "",
                "[ollama]",
                "enabled = false",
                "model = \"llama3.2\"",
                "timeout = 15",
            ]
        ),
        encoding="utf-8",
    )


@pytest.fixture
def habla_home(tmp_path, monkeypatch):
    config_dir = tmp_path / ".habla"
    config_dir.mkdir()
    config_path = config_dir / "config.toml"
    db_path = config_dir / "habla.db"
    _write_test_config(config_path, db_path)

    for name in ("DB_PATH", "PORT", "HOST", "LOG_LEVEL", "OLLAMA_ENABLED", "TARGET_RETENTION"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config, "CONFIG_PATH", config_path)
    monkeypatch.setattr(database, "DB_PATH", db_path)

    database.init_db()
    return config_dir


@pytest.fixture
def conn(habla_home):
    with database.get_conn() as connection:
        yield connection


def add_words(conn, count: int, start_rank: int = 1, island_id: int = None) -> list:
    """Insert curriculum cards with consecutive frequency ranks; returns their ids."""
    from utils.curriculum import island_for_rank

    ids = []
    for rank in range(start_rank, start_rank + count):
        ids.append(card_repo.create_card(conn, CardCreate(
            term=f"palabra{rank}",
            translation=f"word {rank}",
            frequency_rank=rank,
            island_id=island_id if island_id is not None else island_for_rank(rank),
        )))
    conn.commit()
    return ids


def add_song_card(conn, song_id: int, term: str) -> int:
    card_id = card_repo.create_card(conn, CardCreate(
        term=term,
        translation=f"{term} (en)",
        source=CardSource.SONG,
        source_song_id=song_id,
    ))
    conn.commit()
    return card_id


def make_due(conn, card_id: int, *, user_id: int = 1, now: datetime = NOW, stability: float = 10.0,
             reps: int = 3, lapses: int = 0, state: CardState = CardState.REVIEW) -> CardProgress:
    """Give a card a reviewed history whose due time is one day before ``now``."""
    progress = CardProgress(
        user_id=user_id,
        card_id=card_id,
        stability=stability,
        difficulty=5.0,
        scheduled_days=int(stability),
        reps=reps,
        lapses=lapses,
        state=state,
        step=None if state == CardState.REVIEW else 0,
        due=now - timedelta(days=1),
        last_review=now - timedelta(days=1 + int(stability)),
    )
    progress_repo.upsert_progress(conn, progress)
    conn.commit()
    return progress
