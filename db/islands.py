from datetime import datetime
from typing import List, Optional

from models.island import Island, IslandStats
from utils.clock import to_db_ts, utcnow
from utils.mastery import MASTERED_STABILITY, mastery_percent

ISLAND_COLUMNS = "i.id, i.name, i.description, i.icon, i.unlock_xp, i.sort_order"


def island_from_row(row) -> Island:
    return Island(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        icon=row["icon"],
        unlock_xp=row["unlock_xp"],
        sort_order=row["sort_order"],
    )


def all_islands(conn) -> List[Island]:
    rows = conn.execute(f"SELECT {ISLAND_COLUMNS} FROM islands i ORDER BY i.sort_order, i.id").fetchall()
    return [island_from_row(row) for row in rows]


def get_island(conn, island_id: int) -> Optional[Island]:
    row = conn.execute(f"SELECT {ISLAND_COLUMNS} FROM islands i WHERE i.id = ?", (island_id,)).fetchone()
    return island_from_row(row) if row else None


def unlocked_islands(conn, user_id: int) -> List[Island]:
    """Islands whose unlock threshold the user's total XP has reached."""
    rows = conn.execute(
        f"""
        SELECT {ISLAND_COLUMNS}
        FROM islands i
        JOIN users u ON u.id = ?
        WHERE i.unlock_xp <= u.total_xp
        ORDER BY i.sort_order, i.id
        """,
        (user_id,),
    ).fetchall()
    return [island_from_row(row) for row in rows]


def islands_with_stats(
    conn, user_id: int, now: Optional[datetime] = None, island_id: Optional[int] = None
) -> List[IslandStats]:
    """Every island with the user's card counts, in display order.

    Learned means rated at least once. Mastered uses the same threshold as
    the stats page: review state with stability above three weeks.
    """
    where = "WHERE i.id = ?" if island_id is not None else ""
    params = [user_id, to_db_ts(now or utcnow()), MASTERED_STABILITY, user_id]
    if island_id is not None:
        params.append(island_id)
    rows = conn.execute(
        f"""
        SELECT {ISLAND_COLUMNS},
            i.unlock_xp <= COALESCE((SELECT total_xp FROM users WHERE id = ?), 0) AS unlocked,
            COUNT(c.id) AS total_cards,
            COALESCE(SUM(p.state IS NOT NULL AND p.state != 'new'), 0) AS learned_cards,
            COALESCE(SUM(
                p.state IN ('learning', 'review', 'relearning')
                AND p.due IS NOT NULL
                AND substr(p.due, 1, 19) <= ?
            ), 0) AS due_cards,
            COALESCE(SUM(p.state = 'review' AND p.stability > ?), 0) AS mastered_cards
        FROM islands i
        LEFT JOIN cards c ON c.island_id = i.id
        LEFT JOIN card_progress p ON p.card_id = c.id AND p.user_id = ?
        {where}
        GROUP BY i.id
        ORDER BY i.sort_order, i.id
        """,
        params,
    ).fetchall()
    return [
        IslandStats(
            island=island_from_row(row),
            total_cards=row["total_cards"],
            learned_cards=row["learned_cards"],
            due_cards=row["due_cards"],
            mastered_cards=row["mastered_cards"],
            mastery_percent=mastery_percent(row["mastered_cards"], row["total_cards"]),
            unlocked=bool(row["unlocked"]),
        )
        for row in rows
    ]


def island_stats(conn, user_id: int, island_id: int, now: Optional[datetime] = None) -> Optional[IslandStats]:
    stats = islands_with_stats(conn, user_id, now, island_id=island_id)
    return stats[0] if stats else None
