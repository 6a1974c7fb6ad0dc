import sqlite3
from typing import List, Optional

from models.card import Bridge, Card, CardCreate, CardUpdate
from utils.search import normalize_fts_query

CARD_COLUMNS = """
    c.id, c.island_id, c.term, c.translation, c.example_sentence, c.notes,
    c.audio_url, c.frequency_rank, c.source, c.source_song_id, c.created_at
"""


def card_from_row(row: sqlite3.Row) -> Card:
    return Card(
        id=row["id"],
        island_id=row["island_id"],
        term=row["term"],
        translation=row["translation"] or "",
        example_sentence=row["example_sentence"],
        notes=row["notes"],
        audio_url=row["audio_url"],
        frequency_rank=row["frequency_rank"],
        source=row["source"] or "curriculum",
        source_song_id=row["source_song_id"],
        created_at=row["created_at"],
    )


def get_card(conn, card_id: int) -> Optional[Card]:
    row = conn.execute(f"SELECT {CARD_COLUMNS} FROM cards c WHERE c.id = ?", (card_id,)).fetchone()
    return card_from_row(row) if row else None


def get_card_by_term(conn, term: str) -> Optional[Card]:
    row = conn.execute(
        f"SELECT {CARD_COLUMNS} FROM cards c WHERE lower(c.term) = lower(?) LIMIT 1",
        (term,),
    ).fetchone()
    return card_from_row(row) if row else None


def create_card(conn, card: CardCreate) -> int:
    cursor = conn.execute(
        """
        INSERT INTO cards (
            island_id, term, translation, example_sentence, notes,
            audio_url, frequency_rank, source, source_song_id
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            card.island_id,
            card.term,
            card.translation,
            card.example_sentence,
            card.notes,
            card.audio_url,
            card.frequency_rank,
            card.source.value,
            card.source_song_id,
        ),
    )
    return cursor.lastrowid


def update_card(conn, card_id: int, changes: CardUpdate) -> bool:
    fields = changes.model_dump(exclude_unset=True)
    if not fields:
        return get_card(conn, card_id) is not None
    assignments = ", ".join(f"{name} = ?" for name in fields)
    cursor = conn.execute(
        f"UPDATE cards SET {assignments} WHERE id = ?",
        (*fields.values(), card_id),
    )
    return cursor.rowcount > 0


def set_example_sentence(conn, card_id: int, sentence: str) -> None:
    conn.execute("UPDATE cards SET example_sentence = ? WHERE id = ?", (sentence, card_id))


def delete_card(conn, card_id: int) -> bool:
    cursor = conn.execute("DELETE FROM cards WHERE id = ?", (card_id,))
    return cursor.rowcount > 0


def search_cards(conn, query: str, island_id: Optional[int] = None, limit: int = 50) -> List[Card]:
    """Full-text search over term and translation, optionally within one island."""
    match = normalize_fts_query(query)
    if not match:
        return []
    sql = f"""
        SELECT {CARD_COLUMNS}
        FROM cards_fts
        JOIN cards c ON c.id = cards_fts.rowid
        WHERE cards_fts MATCH ?
    """
    params: list = [match]
    if island_id is not None:
        sql += " AND c.island_id = ?"
        params.append(island_id)
    sql += " ORDER BY bm25(cards_fts), c.frequency_rank LIMIT ?"
    params.append(limit)
    return [card_from_row(row) for row in conn.execute(sql, params).fetchall()]


def list_cards(conn, limit: int = 50, offset: int = 0) -> List[Card]:
    rows = conn.execute(
        f"""
        SELECT {CARD_COLUMNS} FROM cards c
        ORDER BY c.frequency_rank IS NULL, c.frequency_rank ASC, c.id ASC
        LIMIT ? OFFSET ?
        """,
        (limit, offset),
    ).fetchall()
    return [card_from_row(row) for row in rows]


def cards_by_island(conn, island_id: int) -> List[Card]:
    rows = conn.execute(
        f"""
        SELECT {CARD_COLUMNS} FROM cards c
        WHERE c.island_id = ?
        ORDER BY c.frequency_rank IS NULL, c.frequency_rank ASC, c.id ASC
        """,
        (island_id,),
    ).fetchall()
    return [card_from_row(row) for row in rows]


def count_cards(conn) -> int:
    return conn.execute("SELECT COUNT(*) FROM cards").fetchone()[0]


def random_translations(conn, exclude_card_id: int, count: int) -> List[str]:
    """Distinct translations of other cards, used as MCQ distractors."""
    rows = conn.execute(
        """
        SELECT DISTINCT translation FROM cards
        WHERE id != ? AND translation != ''
          AND translation != (SELECT translation FROM cards WHERE id = ?)
        ORDER BY RANDOM()
        LIMIT ?
        """,
        (exclude_card_id, exclude_card_id, count),
    ).fetchall()
    return [row[0] for row in rows]


def get_bridge(conn, card_id: int) -> Optional[Bridge]:
    row = conn.execute(
        "SELECT card_id, hindi, dutch, english FROM bridges WHERE card_id = ?",
        (card_id,),
    ).fetchone()
    if not row:
        return None
    return Bridge(card_id=row["card_id"], hindi=row["hindi"], dutch=row["dutch"], english=row["english"])


def save_bridge(conn, bridge: Bridge) -> None:
    conn.execute(
        """
        INSERT INTO bridges (card_id, hindi, dutch, english)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(card_id) DO UPDATE SET
            hindi = excluded.hindi,
            dutch = excluded.dutch,
            english = excluded.english
        """,
        (bridge.card_id, bridge.hindi, bridge.dutch, bridge.english),
    )
