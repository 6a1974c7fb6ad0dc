from datetime import date, datetime
from typing import List, Optional

from models.journey import Journey, LessonSession
from utils.clock import to_db_ts, utcnow

SESSION_COLUMNS = """
    id, user_id, session_date, day_number, phase_id, cards_reviewed, cards_correct,
    new_cards_learned, xp_earned, started_at, completed_at
"""


def _session_from_row(row) -> LessonSession:
    return LessonSession(
        id=row["id"],
        user_id=row["user_id"],
        session_date=row["session_date"],
        day_number=row["day_number"],
        phase_id=row["phase_id"],
        cards_reviewed=row["cards_reviewed"],
        cards_correct=row["cards_correct"],
        new_cards_learned=row["new_cards_learned"],
        xp_earned=row["xp_earned"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
    )


def get_or_create_journey(conn, user_id: int, today: Optional[date] = None) -> Journey:
    """Return the user's journey, starting one today if none exists."""
    start = (today or date.today()).isoformat()
    conn.execute(
        """
        INSERT INTO curriculum_journey (user_id, start_date, is_active)
        VALUES (?, ?, 1)
        ON CONFLICT(user_id) DO NOTHING
        """,
        (user_id, start),
    )
    row = conn.execute(
        "SELECT id, user_id, start_date, is_active FROM curriculum_journey WHERE user_id = ?",
        (user_id,),
    ).fetchone()
    return Journey(
        id=row["id"],
        user_id=row["user_id"],
        start_date=row["start_date"],
        is_active=bool(row["is_active"]),
    )


def today_lesson_session(conn, user_id: int, today: Optional[date] = None) -> Optional[LessonSession]:
    row = conn.execute(
        f"SELECT {SESSION_COLUMNS} FROM lesson_sessions WHERE user_id = ? AND session_date = ?",
        (user_id, (today or date.today()).isoformat()),
    ).fetchone()
    return _session_from_row(row) if row else None


def create_lesson_session(
    conn, user_id: int, today: date, *, day_number: int, phase_id: int
) -> LessonSession:
    """Create today's session; an existing row for the date is kept as is."""
    conn.execute(
        """
        INSERT INTO lesson_sessions (user_id, session_date, day_number, phase_id)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(user_id, session_date) DO NOTHING
        """,
        (user_id, today.isoformat(), day_number, phase_id),
    )
    return today_lesson_session(conn, user_id, today)


def update_lesson_session(
    conn,
    session_id: int,
    *,
    cards_reviewed: int,
    cards_correct: int,
    new_cards_learned: int,
    xp_earned: int,
) -> bool:
    """Add aggregates to an open session. Completed sessions are left untouched."""
    cursor = conn.execute(
        """
        UPDATE lesson_sessions
        SET cards_reviewed = cards_reviewed + ?,
            cards_correct = cards_correct + ?,
            new_cards_learned = new_cards_learned + ?,
            xp_earned = xp_earned + ?
        WHERE id = ? AND completed_at IS NULL
        """,
        (cards_reviewed, cards_correct, new_cards_learned, xp_earned, session_id),
    )
    return cursor.rowcount > 0


def complete_lesson_session(conn, session_id: int, now: Optional[datetime] = None) -> bool:
    cursor = conn.execute(
        "UPDATE lesson_sessions SET completed_at = ? WHERE id = ? AND completed_at IS NULL",
        (to_db_ts(now or utcnow()), session_id),
    )
    return cursor.rowcount > 0


def recent_lesson_sessions(conn, user_id: int, limit: int = 7) -> List[LessonSession]:
    rows = conn.execute(
        f"""
        SELECT {SESSION_COLUMNS} FROM lesson_sessions
        WHERE user_id = ?
        ORDER BY session_date DESC
        LIMIT ?
        """,
        (user_id, limit),
    ).fetchall()
    return [_session_from_row(row) for row in rows]
