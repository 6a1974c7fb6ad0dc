from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple

from models.song import Song, SongLine, SongProgress, SongSession, SongVocab, SongWithDetails
from utils.clock import from_db_ts, to_db_ts, utcnow

SONG_COLUMNS = "s.id, s.title, s.artist, s.album, s.duration_seconds, s.audio_path, s.difficulty"
SONG_PROGRESS_COLUMNS = """
    sp.id AS sp_id, sp.user_id AS sp_user_id, sp.song_id AS sp_song_id,
    sp.stability AS sp_stability, sp.difficulty AS sp_difficulty, sp.reps AS sp_reps,
    sp.lapses AS sp_lapses, sp.state AS sp_state, sp.due AS sp_due,
    sp.last_review AS sp_last_review, sp.vocab_complete AS sp_vocab_complete,
    sp.lyrics_complete AS sp_lyrics_complete, sp.listening_complete AS sp_listening_complete,
    sp.total_listens AS sp_total_listens
"""


def song_from_row(row) -> Song:
    return Song(
        id=row["id"],
        title=row["title"],
        artist=row["artist"] or "",
        album=row["album"],
        duration_seconds=row["duration_seconds"],
        audio_path=row["audio_path"],
        difficulty=row["difficulty"],
    )


def _line_from_row(row) -> SongLine:
    return SongLine(
        id=row["id"],
        song_id=row["song_id"],
        line_number=row["line_number"],
        start_time_ms=row["start_time_ms"],
        end_time_ms=row["end_time_ms"],
        spanish_text=row["spanish_text"],
        english_text=row["english_text"],
    )


def _vocab_from_row(row) -> SongVocab:
    return SongVocab(
        id=row["id"],
        song_id=row["song_id"],
        card_id=row["card_id"],
        word=row["word"],
        translation=row["translation"] or "",
        is_key_vocab=bool(row["is_key_vocab"]),
    )


def _progress_from_row(row) -> Optional[SongProgress]:
    if row["sp_id"] is None:
        return None
    return SongProgress(
        id=row["sp_id"],
        user_id=row["sp_user_id"],
        song_id=row["sp_song_id"],
        stability=row["sp_stability"],
        difficulty=row["sp_difficulty"],
        reps=row["sp_reps"],
        lapses=row["sp_lapses"],
        state=row["sp_state"],
        due=from_db_ts(row["sp_due"]),
        last_review=from_db_ts(row["sp_last_review"]),
        vocab_complete=bool(row["sp_vocab_complete"]),
        lyrics_complete=bool(row["sp_lyrics_complete"]),
        listening_complete=bool(row["sp_listening_complete"]),
        total_listens=row["sp_total_listens"],
    )


def get_song(conn, song_id: int) -> Optional[Song]:
    row = conn.execute(f"SELECT {SONG_COLUMNS} FROM songs s WHERE s.id = ?", (song_id,)).fetchone()
    return song_from_row(row) if row else None


def songs_without_lines(conn) -> List[Song]:
    rows = conn.execute(
        f"""
        SELECT {SONG_COLUMNS} FROM songs s
        WHERE NOT EXISTS (SELECT 1 FROM song_lines l WHERE l.song_id = s.id)
        ORDER BY s.id
        """
    ).fetchall()
    return [song_from_row(row) for row in rows]


def create_song(
    conn,
    *,
    title: str,
    artist: str = "",
    album: Optional[str] = None,
    duration_seconds: Optional[int] = None,
    audio_path: Optional[str] = None,
    difficulty: int = 1,
) -> int:
    cursor = conn.execute(
        """
        INSERT INTO songs (title, artist, album, duration_seconds, audio_path, difficulty)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (title, artist, album, duration_seconds, audio_path, difficulty),
    )
    return cursor.lastrowid


def song_lines(conn, song_id: int) -> List[SongLine]:
    rows = conn.execute(
        """
        SELECT id, song_id, line_number, start_time_ms, end_time_ms, spanish_text, english_text
        FROM song_lines WHERE song_id = ?
        ORDER BY line_number ASC
        """,
        (song_id,),
    ).fetchall()
    return [_line_from_row(row) for row in rows]


def replace_song_lines(conn, song_id: int, lines: Sequence[SongLine]) -> None:
    conn.execute("DELETE FROM song_lines WHERE song_id = ?", (song_id,))
    conn.executemany(
        """
        INSERT INTO song_lines (song_id, line_number, start_time_ms, end_time_ms, spanish_text, english_text)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        [
            (song_id, line.line_number, line.start_time_ms, line.end_time_ms, line.spanish_text, line.english_text)
            for line in lines
        ],
    )


def song_vocabulary(conn, song_id: int, key_only: bool = False) -> List[SongVocab]:
    sql = """
        SELECT id, song_id, card_id, word, translation, is_key_vocab
        FROM song_vocabulary WHERE song_id = ?
    """
    if key_only:
        sql += " AND is_key_vocab = 1"
    sql += " ORDER BY id ASC"
    return [_vocab_from_row(row) for row in conn.execute(sql, (song_id,)).fetchall()]


def create_song_vocab(conn, song_id: int, word: str, translation: str, is_key_vocab: bool = False) -> int:
    cursor = conn.execute(
        """
        INSERT INTO song_vocabulary (song_id, word, translation, is_key_vocab)
        VALUES (?, ?, ?, ?)
        """,
        (song_id, word, translation, int(is_key_vocab)),
    )
    return cursor.lastrowid


def unlinked_song_vocab(conn, song_id: int) -> List[SongVocab]:
    rows = conn.execute(
        """
        SELECT id, song_id, card_id, word, translation, is_key_vocab
        FROM song_vocabulary WHERE song_id = ? AND card_id IS NULL
        ORDER BY id ASC
        """,
        (song_id,),
    ).fetchall()
    return [_vocab_from_row(row) for row in rows]


def link_song_vocab_to_card(conn, vocab_id: int, card_id: int) -> None:
    conn.execute("UPDATE song_vocabulary SET card_id = ? WHERE id = ?", (card_id, vocab_id))


def song_title_for_card(conn, card_id: int) -> Optional[str]:
    row = conn.execute(
        """
        SELECT s.title FROM cards c JOIN songs s ON s.id = c.source_song_id
        WHERE c.id = ?
        """,
        (card_id,),
    ).fetchone()
    return row[0] if row else None


def get_song_progress(conn, user_id: int, song_id: int) -> Optional[SongProgress]:
    row = conn.execute(
        f"SELECT {SONG_PROGRESS_COLUMNS} FROM song_progress sp WHERE sp.user_id = ? AND sp.song_id = ?",
        (user_id, song_id),
    ).fetchone()
    return _progress_from_row(row) if row else None


def get_or_create_song_progress(conn, user_id: int, song_id: int) -> SongProgress:
    conn.execute(
        """
        INSERT INTO song_progress (user_id, song_id) VALUES (?, ?)
        ON CONFLICT(user_id, song_id) DO NOTHING
        """,
        (user_id, song_id),
    )
    return get_song_progress(conn, user_id, song_id)


def upsert_song_progress(conn, progress: SongProgress) -> None:
    conn.execute(
        """
        INSERT INTO song_progress (
            user_id, song_id, stability, difficulty, reps, lapses, state, due, last_review,
            vocab_complete, lyrics_complete, listening_complete, total_listens
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id, song_id) DO UPDATE SET
            stability = excluded.stability,
            difficulty = excluded.difficulty,
            reps = excluded.reps,
            lapses = excluded.lapses,
            state = excluded.state,
            due = excluded.due,
            last_review = excluded.last_review,
            vocab_complete = excluded.vocab_complete,
            lyrics_complete = excluded.lyrics_complete,
            listening_complete = excluded.listening_complete,
            total_listens = excluded.total_listens
        """,
        (
            progress.user_id,
            progress.song_id,
            progress.stability,
            progress.difficulty,
            progress.reps,
            progress.lapses,
            progress.state.value,
            to_db_ts(progress.due),
            to_db_ts(progress.last_review),
            int(progress.vocab_complete),
            int(progress.lyrics_complete),
            int(progress.listening_complete),
            progress.total_listens,
        ),
    )


def increment_listen_count(conn, user_id: int, song_id: int) -> None:
    get_or_create_song_progress(conn, user_id, song_id)
    conn.execute(
        "UPDATE song_progress SET total_listens = total_listens + 1 WHERE user_id = ? AND song_id = ?",
        (user_id, song_id),
    )


def due_songs(conn, user_id: int, limit: int = 10, now: Optional[datetime] = None) -> List[Tuple[Song, SongProgress]]:
    rows = conn.execute(
        f"""
        SELECT {SONG_COLUMNS}, {SONG_PROGRESS_COLUMNS}
        FROM song_progress sp
        JOIN songs s ON s.id = sp.song_id
        WHERE sp.user_id = ? AND sp.state != 'new'
          AND sp.due IS NOT NULL AND substr(sp.due, 1, 19) <= ?
        ORDER BY sp.due ASC
        LIMIT ?
        """,
        (user_id, to_db_ts(now or utcnow()), limit),
    ).fetchall()
    return [(song_from_row(row), _progress_from_row(row)) for row in rows]


def songs_with_progress(conn, user_id: int) -> List[Tuple[Song, Optional[SongProgress]]]:
    rows = conn.execute(
        f"""
        SELECT {SONG_COLUMNS}, {SONG_PROGRESS_COLUMNS}
        FROM songs s
        LEFT JOIN song_progress sp ON sp.song_id = s.id AND sp.user_id = ?
        ORDER BY s.artist, s.title
        """,
        (user_id,),
    ).fetchall()
    return [(song_from_row(row), _progress_from_row(row)) for row in rows]


def songs_in_progress(conn, user_id: int) -> List[int]:
    """Songs the user has studied at least once, most recent first."""
    rows = conn.execute(
        """
        SELECT song_id FROM song_progress
        WHERE user_id = ? AND reps > 0
        ORDER BY last_review DESC
        """,
        (user_id,),
    ).fetchall()
    return [row[0] for row in rows]


def get_song_with_details(conn, user_id: int, song_id: int) -> Optional[SongWithDetails]:
    song = get_song(conn, song_id)
    if song is None:
        return None
    return SongWithDetails(
        song=song,
        lines=song_lines(conn, song_id),
        vocabulary=song_vocabulary(conn, song_id),
        progress=get_song_progress(conn, user_id, song_id),
    )


def create_song_session(conn, user_id: int, song_id: int, mode: str, today: Optional[date] = None) -> int:
    cursor = conn.execute(
        """
        INSERT INTO song_sessions (user_id, song_id, session_date, mode)
        VALUES (?, ?, ?, ?)
        """,
        (user_id, song_id, (today or date.today()).isoformat(), mode),
    )
    return cursor.lastrowid


def update_song_session(
    conn,
    session_id: int,
    *,
    vocab_reviewed: int,
    vocab_correct: int,
    lines_studied: int,
    blanks_correct: int,
    blanks_total: int,
) -> None:
    conn.execute(
        """
        UPDATE song_sessions
        SET vocab_reviewed = ?, vocab_correct = ?, lines_studied = ?,
            blanks_correct = ?, blanks_total = ?
        WHERE id = ?
        """,
        (vocab_reviewed, vocab_correct, lines_studied, blanks_correct, blanks_total, session_id),
    )


def complete_song_session(conn, session_id: int, xp_earned: int, now: Optional[datetime] = None) -> bool:
    cursor = conn.execute(
        """
        UPDATE song_sessions SET xp_earned = ?, completed_at = ?
        WHERE id = ? AND completed_at IS NULL
        """,
        (xp_earned, to_db_ts(now or utcnow()), session_id),
    )
    return cursor.rowcount > 0


def get_song_session(conn, session_id: int) -> Optional[SongSession]:
    row = conn.execute(
        """
        SELECT id, user_id, song_id, session_date, mode, vocab_reviewed, vocab_correct,
               lines_studied, blanks_correct, blanks_total, xp_earned, completed_at
        FROM song_sessions WHERE id = ?
        """,
        (session_id,),
    ).fetchone()
    if not row:
        return None
    return SongSession(**dict(row))
