from datetime import datetime
from typing import Dict, List, Optional, Sequence

from models.progress import CardProgress, CardState, CardWithProgress
from utils.clock import from_db_ts, to_db_ts, utcnow
from .cards import CARD_COLUMNS, card_from_row

PROGRESS_COLUMNS = """
    p.id AS p_id, p.user_id AS p_user_id, p.stability AS p_stability,
    p.difficulty AS p_difficulty, p.elapsed_days AS p_elapsed_days,
    p.scheduled_days AS p_scheduled_days, p.reps AS p_reps, p.lapses AS p_lapses,
    p.state AS p_state, p.step AS p_step, p.due AS p_due, p.last_review AS p_last_review
"""

_ACTIVE_STATES = "('learning', 'review', 'relearning')"


def progress_from_row(row, card_id: Optional[int] = None) -> Optional[CardProgress]:
    """Build a CardProgress from a row of p_* aliased columns (None when the join found nothing)."""
    if row["p_id"] is None:
        return None
    return CardProgress(
        id=row["p_id"],
        user_id=row["p_user_id"],
        card_id=card_id if card_id is not None else row["id"],
        stability=row["p_stability"] or 0.0,
        difficulty=row["p_difficulty"] or 0.0,
        elapsed_days=row["p_elapsed_days"] or 0,
        scheduled_days=row["p_scheduled_days"] or 0,
        reps=row["p_reps"] or 0,
        lapses=row["p_lapses"] or 0,
        state=row["p_state"] or CardState.NEW,
        step=row["p_step"],
        due=from_db_ts(row["p_due"]),
        last_review=from_db_ts(row["p_last_review"]),
    )


def _with_progress(rows) -> List[CardWithProgress]:
    return [
        CardWithProgress(card=card_from_row(row), progress=progress_from_row(row))
        for row in rows
    ]


def get_progress(conn, user_id: int, card_id: int) -> Optional[CardProgress]:
    row = conn.execute(
        f"SELECT {PROGRESS_COLUMNS} FROM card_progress p WHERE p.user_id = ? AND p.card_id = ?",
        (user_id, card_id),
    ).fetchone()
    if not row:
        return None
    return progress_from_row(row, card_id=card_id)


def upsert_progress(conn, progress: CardProgress) -> None:
    due = None if progress.state == CardState.NEW else to_db_ts(progress.due)
    conn.execute(
        """
        INSERT INTO card_progress (
            user_id, card_id, stability, difficulty, elapsed_days, scheduled_days,
            reps, lapses, state, step, due, last_review
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id, card_id) DO UPDATE SET
            stability = excluded.stability,
            difficulty = excluded.difficulty,
            elapsed_days = excluded.elapsed_days,
            scheduled_days = excluded.scheduled_days,
            reps = excluded.reps,
            lapses = excluded.lapses,
            state = excluded.state,
            step = excluded.step,
            due = excluded.due,
            last_review = excluded.last_review
        """,
        (
            progress.user_id,
            progress.card_id,
            progress.stability,
            progress.difficulty,
            progress.elapsed_days,
            progress.scheduled_days,
            progress.reps,
            progress.lapses,
            CardState(progress.state).value,
            progress.step,
            due,
            to_db_ts(progress.last_review),
        ),
    )


def due_cards(conn, user_id: int, limit: int, now: Optional[datetime] = None) -> List[CardWithProgress]:
    """Curriculum cards whose due time has passed, oldest due first."""
    rows = conn.execute(
        f"""
        SELECT {CARD_COLUMNS}, {PROGRESS_COLUMNS}
        FROM card_progress p
        JOIN cards c ON c.id = p.card_id
        WHERE p.user_id = ?
          AND p.state IN {_ACTIVE_STATES}
          AND p.due IS NOT NULL
          AND substr(p.due, 1, 19) <= ?
          AND c.source = 'curriculum'
        ORDER BY p.due ASC, c.id ASC
        LIMIT ?
        """,
        (user_id, to_db_ts(now or utcnow()), limit),
    ).fetchall()
    return _with_progress(rows)


def count_due(conn, user_id: int, now: Optional[datetime] = None) -> int:
    row = conn.execute(
        f"""
        SELECT COUNT(*)
        FROM card_progress p
        JOIN cards c ON c.id = p.card_id
        WHERE p.user_id = ?
          AND p.state IN {_ACTIVE_STATES}
          AND p.due IS NOT NULL
          AND substr(p.due, 1, 19) <= ?
          AND c.source = 'curriculum'
        """,
        (user_id, to_db_ts(now or utcnow())),
    ).fetchone()
    return row[0]


def new_cards_from_islands(
    conn, user_id: int, island_ids: Sequence[int], limit: int
) -> List[CardWithProgress]:
    if not island_ids or limit <= 0:
        return []
    placeholders = ", ".join("?" for _ in island_ids)
    rows = conn.execute(
        f"""
        SELECT {CARD_COLUMNS}, {PROGRESS_COLUMNS}
        FROM cards c
        LEFT JOIN card_progress p ON p.card_id = c.id AND p.user_id = ?
        WHERE (p.id IS NULL OR p.state = 'new')
          AND c.source = 'curriculum'
          AND c.island_id IN ({placeholders})
        ORDER BY c.frequency_rank IS NULL, c.frequency_rank ASC, c.id ASC
        LIMIT ?
        """,
        (user_id, *island_ids, limit),
    ).fetchall()
    return _with_progress(rows)


def song_vocab_due(conn, user_id: int, limit: int, now: Optional[datetime] = None) -> List[CardWithProgress]:
    rows = conn.execute(
        f"""
        SELECT {CARD_COLUMNS}, {PROGRESS_COLUMNS}
        FROM card_progress p
        JOIN cards c ON c.id = p.card_id
        WHERE p.user_id = ?
          AND c.source = 'song'
          AND p.state IN {_ACTIVE_STATES}
          AND p.due IS NOT NULL
          AND substr(p.due, 1, 19) <= ?
        ORDER BY p.due ASC, c.id ASC
        LIMIT ?
        """,
        (user_id, to_db_ts(now or utcnow()), limit),
    ).fetchall()
    return _with_progress(rows)


def song_vocab_new(conn, user_id: int, song_ids: Sequence[int], limit: int) -> List[CardWithProgress]:
    """Never-rated cards promoted from the given songs' vocabulary."""
    if not song_ids or limit <= 0:
        return []
    placeholders = ", ".join("?" for _ in song_ids)
    rows = conn.execute(
        f"""
        SELECT {CARD_COLUMNS}, {PROGRESS_COLUMNS}
        FROM cards c
        LEFT JOIN card_progress p ON p.card_id = c.id AND p.user_id = ?
        WHERE c.source = 'song'
          AND c.source_song_id IN ({placeholders})
          AND (p.id IS NULL OR p.state = 'new')
        ORDER BY c.id ASC
        LIMIT ?
        """,
        (user_id, *song_ids, limit),
    ).fetchall()
    return _with_progress(rows)


def state_counts(conn, user_id: int) -> Dict[str, int]:
    counts = {state.value: 0 for state in CardState}
    rows = conn.execute(
        "SELECT state, COUNT(*) AS n FROM card_progress WHERE user_id = ? GROUP BY state",
        (user_id,),
    ).fetchall()
    for row in rows:
        counts[row["state"]] = row["n"]
    total = conn.execute("SELECT COUNT(*) FROM cards").fetchone()[0]
    counts["new"] = max(0, total - sum(v for k, v in counts.items() if k != "new"))
    return counts


def count_words_learned(conn, user_id: int) -> int:
    row = conn.execute(
        """
        SELECT COUNT(DISTINCT card_id) FROM card_progress
        WHERE user_id = ? AND state IN ('learning', 'review') AND reps > 0
        """,
        (user_id,),
    ).fetchone()
    return row[0]


def count_mastered(conn, user_id: int, min_stability: float) -> int:
    row = conn.execute(
        """
        SELECT COUNT(*) FROM card_progress
        WHERE user_id = ? AND state = 'review' AND stability > ?
        """,
        (user_id, min_stability),
    ).fetchone()
    return row[0]
