from datetime import date, timedelta
from typing import Dict, List, Optional

from models.review import DailyLog, ReviewLog
from utils.clock import from_db_ts, to_db_ts, utcnow


def log_review(conn, log: ReviewLog) -> int:
    cursor = conn.execute(
        """
        INSERT INTO review_logs (
            user_id, card_id, rating, elapsed_days, scheduled_days, duration_ms, mode, reviewed_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            log.user_id,
            log.card_id,
            int(log.rating),
            log.elapsed_days,
            log.scheduled_days,
            log.duration_ms,
            log.mode,
            to_db_ts(log.reviewed_at or utcnow()),
        ),
    )
    return cursor.lastrowid


def increment_daily(
    conn,
    user_id: int,
    day: date,
    *,
    xp: int = 0,
    reviewed: int = 0,
    correct: int = 0,
    new_cards: int = 0,
) -> None:
    conn.execute(
        """
        INSERT INTO daily_logs (user_id, date, xp_earned, cards_reviewed, cards_correct, new_cards_added)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id, date) DO UPDATE SET
            xp_earned = xp_earned + excluded.xp_earned,
            cards_reviewed = cards_reviewed + excluded.cards_reviewed,
            cards_correct = cards_correct + excluded.cards_correct,
            new_cards_added = new_cards_added + excluded.new_cards_added
        """,
        (user_id, day.isoformat(), xp, reviewed, correct, new_cards),
    )


def today_stats(conn, user_id: int, today: Optional[date] = None) -> DailyLog:
    day = (today or date.today()).isoformat()
    row = conn.execute(
        """
        SELECT xp_earned, cards_reviewed, cards_correct, new_cards_added
        FROM daily_logs WHERE user_id = ? AND date = ?
        """,
        (user_id, day),
    ).fetchone()
    if not row:
        return DailyLog(user_id=user_id, date=day)
    return DailyLog(
        user_id=user_id,
        date=day,
        xp_earned=row["xp_earned"],
        cards_reviewed=row["cards_reviewed"],
        cards_correct=row["cards_correct"],
        new_cards_added=row["new_cards_added"],
    )


def heatmap_intensity(count: int) -> int:
    if count <= 0:
        return 0
    if count <= 10:
        return 1
    if count <= 30:
        return 2
    if count <= 50:
        return 3
    return 4


def heatmap(conn, user_id: int, days: int, today: Optional[date] = None) -> List[Dict]:
    """One entry per calendar day ending today, oldest first, gaps filled with zeros."""
    end = today or date.today()
    start = end - timedelta(days=days - 1)
    rows = conn.execute(
        """
        SELECT date, cards_reviewed, xp_earned FROM daily_logs
        WHERE user_id = ? AND date BETWEEN ? AND ?
        """,
        (user_id, start.isoformat(), end.isoformat()),
    ).fetchall()
    by_day = {row["date"]: row for row in rows}
    cells = []
    for offset in range(days):
        day = (start + timedelta(days=offset)).isoformat()
        row = by_day.get(day)
        count = row["cards_reviewed"] if row else 0
        cells.append({
            "date": day,
            "count": count,
            "xp": row["xp_earned"] if row else 0,
            "intensity": heatmap_intensity(count),
        })
    return cells


def total_reviews(conn, user_id: int) -> int:
    return conn.execute("SELECT COUNT(*) FROM review_logs WHERE user_id = ?", (user_id,)).fetchone()[0]


def reviews_for_card(conn, user_id: int, card_id: int) -> List[ReviewLog]:
    rows = conn.execute(
        """
        SELECT id, user_id, card_id, rating, elapsed_days, scheduled_days, duration_ms, mode, reviewed_at
        FROM review_logs WHERE user_id = ? AND card_id = ?
        ORDER BY reviewed_at ASC, id ASC
        """,
        (user_id, card_id),
    ).fetchall()
    return [
        ReviewLog(
            id=row["id"],
            user_id=row["user_id"],
            card_id=row["card_id"],
            rating=row["rating"],
            elapsed_days=row["elapsed_days"],
            scheduled_days=row["scheduled_days"],
            duration_ms=row["duration_ms"],
            mode=row["mode"],
            reviewed_at=from_db_ts(row["reviewed_at"]),
        )
        for row in rows
    ]
