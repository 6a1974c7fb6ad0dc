"""Loading word lists and songs from JSON files."""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

from db import cards as card_repo
from db import songs as song_repo
from models.card import CardCreate
from utils.curriculum import island_for_rank
from utils.errors import ValidationError
from utils.lyrics import store_lyrics
from utils.song_lesson import ensure_song_vocab_cards

logger = logging.getLogger(__name__)


def _load_json(path: Union[str, Path]) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationError(f"{path} is not valid JSON: {e}") from e


def import_words(conn, path: Union[str, Path]) -> Dict[str, int]:
    """Add frequency-ranked words as curriculum cards. Terms already present are skipped."""
    entries = _load_json(path)
    if not isinstance(entries, list):
        raise ValidationError(f"{path} must hold a list of words")
    added = skipped = 0
    for entry in entries:
        term = str(entry.get("term") or "").strip()
        if not term or card_repo.get_card_by_term(conn, term):
            skipped += 1
            continue
        rank = int(entry.get("rank") or 0)
        card_repo.create_card(conn, CardCreate(
            term=term,
            translation=str(entry.get("translation") or ""),
            notes=entry.get("notes"),
            frequency_rank=rank or None,
            island_id=island_for_rank(rank) if rank else None,
        ))
        added += 1
    conn.commit()
    logger.info("Imported %s words from %s (%s skipped)", added, path, skipped)
    return {"added": added, "skipped": skipped}


def import_song(conn, path: Union[str, Path], config: Dict[str, Any] = None) -> int:
    """Create a song with its vocabulary and, when given, its synced lyrics."""
    data = _load_json(path)
    if not isinstance(data, dict) or not data.get("title"):
        raise ValidationError(f"{path} must hold a song object with a title")
    song_id = song_repo.create_song(
        conn,
        title=data["title"],
        artist=data.get("artist") or "",
        album=data.get("album"),
        duration_seconds=data.get("duration_seconds"),
        audio_path=data.get("audio_path"),
        difficulty=int(data.get("difficulty") or 1),
    )
    for vocab in data.get("vocabulary") or []:
        song_repo.create_song_vocab(
            conn,
            song_id,
            vocab["word"],
            vocab.get("translation") or "",
            bool(vocab.get("is_key_vocab", False)),
        )
    if data.get("lrc"):
        store_lyrics(conn, song_id, data["lrc"], config)
    ensure_song_vocab_cards(conn, song_repo.get_song(conn, song_id))
    conn.commit()
    logger.info("Imported song %s - %s as %s", data.get("artist"), data["title"], song_id)
    return song_id
