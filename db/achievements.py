from typing import List

from models.user import Achievement

ACHIEVEMENT_COLUMNS = "a.id, a.code, a.name, a.description, a.icon, a.xp_reward, a.condition_type, a.condition_value"


def _from_row(row, earned_at=None) -> Achievement:
    return Achievement(
        id=row["id"],
        code=row["code"],
        name=row["name"],
        description=row["description"],
        icon=row["icon"],
        xp_reward=row["xp_reward"],
        condition_type=row["condition_type"],
        condition_value=row["condition_value"],
        earned_at=earned_at,
    )


def all_achievements(conn) -> List[Achievement]:
    rows = conn.execute(
        f"SELECT {ACHIEVEMENT_COLUMNS} FROM achievements a ORDER BY a.condition_type, a.condition_value"
    ).fetchall()
    return [_from_row(row) for row in rows]


def user_achievements(conn, user_id: int) -> List[Achievement]:
    rows = conn.execute(
        f"""
        SELECT {ACHIEVEMENT_COLUMNS}, ua.earned_at
        FROM user_achievements ua
        JOIN achievements a ON a.id = ua.achievement_id
        WHERE ua.user_id = ?
        ORDER BY ua.earned_at DESC, a.id DESC
        """,
        (user_id,),
    ).fetchall()
    return [_from_row(row, earned_at=row["earned_at"]) for row in rows]


def award(conn, user_id: int, achievement_id: int) -> bool:
    """Record an achievement; False when the user already had it."""
    cursor = conn.execute(
        "INSERT OR IGNORE INTO user_achievements (user_id, achievement_id) VALUES (?, ?)",
        (user_id, achievement_id),
    )
    return cursor.rowcount > 0


def count_earned(conn, user_id: int) -> int:
    return conn.execute(
        "SELECT COUNT(*) FROM user_achievements WHERE user_id = ?",
        (user_id,),
    ).fetchone()[0]
