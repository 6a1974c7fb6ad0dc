from datetime import date
from typing import Optional

from models.user import StreakInfo, User

DEFAULT_USER_ID = 1
DEFAULT_RETENTION = 0.9


def get_user(conn, user_id: int) -> Optional[User]:
    row = conn.execute(
        """
        SELECT id, username, total_xp, current_streak, longest_streak, last_active_date
        FROM users WHERE id = ?
        """,
        (user_id,),
    ).fetchone()
    if not row:
        return None
    return User(
        id=row["id"],
        username=row["username"],
        total_xp=row["total_xp"],
        current_streak=row["current_streak"],
        longest_streak=row["longest_streak"],
        last_active_date=row["last_active_date"],
    )


def update_xp(conn, user_id: int, delta: int) -> None:
    conn.execute("UPDATE users SET total_xp = total_xp + ? WHERE id = ?", (delta, user_id))


def update_streak(conn, user_id: int, *, current: int, longest: int, last_active: date) -> None:
    conn.execute(
        """
        UPDATE users
        SET current_streak = ?, longest_streak = ?, last_active_date = ?
        WHERE id = ?
        """,
        (current, longest, last_active.isoformat(), user_id),
    )


def streak_info(conn, user_id: int, today: Optional[date] = None) -> StreakInfo:
    user = get_user(conn, user_id)
    if user is None:
        return StreakInfo()
    today = today or date.today()
    return StreakInfo(
        current_streak=user.current_streak,
        longest_streak=user.longest_streak,
        last_active_date=user.last_active_date,
        active_today=user.last_active_date == today.isoformat(),
    )


def get_target_retention(conn, user_id: int, default: float = DEFAULT_RETENTION) -> float:
    row = conn.execute(
        "SELECT target_retention FROM user_settings WHERE user_id = ?",
        (user_id,),
    ).fetchone()
    return float(row[0]) if row else default


def set_target_retention(conn, user_id: int, retention: float) -> None:
    conn.execute(
        """
        INSERT INTO user_settings (user_id, target_retention) VALUES (?, ?)
        ON CONFLICT(user_id) DO UPDATE SET target_retention = excluded.target_retention
        """,
        (user_id, retention),
    )
