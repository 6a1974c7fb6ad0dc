"""Synced lyrics: LRC parsing and lookups against lrclib.net."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from db import songs as song_repo
from models.song import Song, SongLine
from utils import ollama
from utils.errors import EnrichmentUnavailable, NotFoundError

logger = logging.getLogger(__name__)

LRC_LINE_RE = re.compile(r"^\[(\d{2}):(\d{2})[.:](\d{2,3})\]\s*(.*)$")
LAST_LINE_DURATION_MS = 5000
DEFAULT_LRCLIB_URL = "https://lrclib.net/api/get"


@dataclass
class LyricLine:
    start_time_ms: int
    end_time_ms: int
    text: str


def parse_lrc(text: Optional[str]) -> List[LyricLine]:
    """Parse ``[mm:ss.xx] text`` lines. Untimed and empty lines are dropped."""
    if not text:
        return []
    parsed = []
    for raw in text.splitlines():
        match = LRC_LINE_RE.match(raw.strip())
        if not match:
            continue
        minutes, seconds, fraction, lyric = match.groups()
        lyric = lyric.strip()
        if not lyric:
            continue
        fraction_ms = int(fraction) * 10 if len(fraction) == 2 else int(fraction)
        start = (int(minutes) * 60 + int(seconds)) * 1000 + fraction_ms
        parsed.append([start, lyric])

    lines = []
    for i, (start, lyric) in enumerate(parsed):
        end = parsed[i + 1][0] if i + 1 < len(parsed) else start + LAST_LINE_DURATION_MS
        if end <= start:
            end = start + 1
        lines.append(LyricLine(start_time_ms=start, end_time_ms=end, text=lyric))
    return lines


def to_song_lines(lyrics: List[LyricLine]) -> List[SongLine]:
    return [
        SongLine(
            line_number=i + 1,
            start_time_ms=line.start_time_ms,
            end_time_ms=line.end_time_ms,
            spanish_text=line.text,
        )
        for i, line in enumerate(lyrics)
    ]


def fetch_synced_lyrics(
    artist: str,
    title: str,
    album: Optional[str] = None,
    duration_seconds: Optional[int] = None,
    config: Dict[str, Any] = None,
) -> str:
    """Return LRC text for a track from lrclib.net."""
    lyrics_cfg = (config or {}).get("lyrics", {})
    params = {"artist_name": artist, "track_name": title}
    if album:
        params["album_name"] = album
    if duration_seconds:
        params["duration"] = str(duration_seconds)
    try:
        response = requests.get(
            lyrics_cfg.get("base_url", DEFAULT_LRCLIB_URL),
            params=params,
            timeout=lyrics_cfg.get("timeout", 10),
        )
    except requests.exceptions.RequestException as e:
        raise EnrichmentUnavailable(f"Lyrics lookup failed: {e}") from e
    if response.status_code == 404:
        raise NotFoundError("Lyrics", f"{artist} - {title}")
    if response.status_code != 200:
        raise EnrichmentUnavailable(f"lrclib returned {response.status_code}: {response.text[:200]}")
    try:
        payload = response.json()
    except ValueError as e:
        raise EnrichmentUnavailable("lrclib returned invalid JSON") from e
    synced = payload.get("syncedLyrics") or ""
    if not synced.strip():
        raise NotFoundError("Synced lyrics", f"{artist} - {title}")
    return synced


def store_lyrics(conn, song_id: int, lrc_text: str, config: Dict[str, Any] = None) -> int:
    """Replace a song's lines with the parsed LRC; translate them when enrichment is on."""
    lines = to_song_lines(parse_lrc(lrc_text))
    if config is not None:
        translations = ollama.translate_lines([line.spanish_text for line in lines], config)
        if translations:
            for line, english in zip(lines, translations):
                line.english_text = english or None
    song_repo.replace_song_lines(conn, song_id, lines)
    return len(lines)


def fetch_and_store_lyrics(conn, song: Song, config: Dict[str, Any] = None) -> int:
    lrc_text = fetch_synced_lyrics(
        song.artist, song.title, song.album, song.duration_seconds, config
    )
    count = store_lyrics(conn, song.id, lrc_text, config)
    logger.info("Stored %s lyric lines for %s - %s", count, song.artist, song.title)
    return count


def fetch_missing_lyrics(conn, config: Dict[str, Any] = None) -> Dict[str, int]:
    """Fetch lyrics for every song that has no lines yet. Failures are logged and skipped."""
    fetched = failed = 0
    for song in song_repo.songs_without_lines(conn):
        try:
            fetch_and_store_lyrics(conn, song, config)
            conn.commit()
            fetched += 1
        except (NotFoundError, EnrichmentUnavailable) as e:
            logger.warning("No lyrics for %s - %s: %s", song.artist, song.title, e)
            failed += 1
    return {"fetched": fetched, "failed": failed}
