import json
from typing import Any, Dict, Optional


def get_question(conn, card_id: int, kind: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        "SELECT payload, source FROM questions WHERE card_id = ? AND kind = ?",
        (card_id, kind),
    ).fetchone()
    if not row:
        return None
    payload = json.loads(row["payload"])
    payload["source"] = row["source"]
    return payload


def save_question(conn, card_id: int, kind: str, payload: Dict[str, Any], source: str) -> None:
    """Cache a generated question. An AI question is never replaced by a local one."""
    conn.execute(
        """
        INSERT INTO questions (card_id, kind, payload, source)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(card_id, kind) DO UPDATE SET
            payload = excluded.payload,
            source = excluded.source,
            created_at = datetime('now')
        WHERE questions.source = 'local' OR excluded.source = 'ai'
        """,
        (card_id, kind, json.dumps(payload, ensure_ascii=False), source),
    )
