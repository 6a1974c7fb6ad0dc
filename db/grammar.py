import json
from typing import List, Optional, Sequence

from models.card import Card
from models.grammar import GrammarExample, GrammarRule
from .cards import CARD_COLUMNS, card_from_row

RULE_COLUMNS = "g.id, g.rule_key, g.title, g.explanation, g.examples, g.difficulty_level, g.created_at"


def _examples(raw: Optional[str]) -> List[GrammarExample]:
    try:
        items = json.loads(raw or "[]")
    except json.JSONDecodeError:
        return []
    if not isinstance(items, list):
        return []
    return [
        GrammarExample(spanish=str(item.get("spanish", "")), english=str(item.get("english", "")))
        for item in items
        if isinstance(item, dict) and item.get("spanish")
    ]


def rule_from_row(row) -> GrammarRule:
    return GrammarRule(
        id=row["id"],
        rule_key=row["rule_key"],
        title=row["title"],
        explanation=row["explanation"],
        examples=_examples(row["examples"]),
        difficulty_level=row["difficulty_level"],
        created_at=row["created_at"],
    )


def save_rule(
    conn,
    rule_key: str,
    title: str,
    explanation: str,
    examples: Sequence[GrammarExample],
    difficulty_level: int = 1,
) -> int:
    """Insert or refresh a rule by key; returns its id either way."""
    payload = json.dumps([e.model_dump() for e in examples], ensure_ascii=False)
    conn.execute(
        """
        INSERT INTO grammar_rules (rule_key, title, explanation, examples, difficulty_level)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(rule_key) DO UPDATE SET
            title = excluded.title,
            explanation = excluded.explanation,
            examples = excluded.examples,
            difficulty_level = excluded.difficulty_level
        """,
        (rule_key, title, explanation, payload, difficulty_level),
    )
    return conn.execute("SELECT id FROM grammar_rules WHERE rule_key = ?", (rule_key,)).fetchone()[0]


def link_card(conn, card_id: int, rule_id: int) -> None:
    conn.execute(
        "INSERT OR IGNORE INTO card_grammar (card_id, grammar_rule_id) VALUES (?, ?)",
        (card_id, rule_id),
    )


def rule_for_card(conn, card_id: int) -> Optional[GrammarRule]:
    row = conn.execute(
        f"""
        SELECT {RULE_COLUMNS}
        FROM grammar_rules g
        JOIN card_grammar cg ON cg.grammar_rule_id = g.id
        WHERE cg.card_id = ?
        ORDER BY g.id
        LIMIT 1
        """,
        (card_id,),
    ).fetchone()
    return rule_from_row(row) if row else None


def rule_by_key(conn, rule_key: str) -> Optional[GrammarRule]:
    row = conn.execute(f"SELECT {RULE_COLUMNS} FROM grammar_rules g WHERE g.rule_key = ?", (rule_key,)).fetchone()
    return rule_from_row(row) if row else None


def all_rules(conn) -> List[GrammarRule]:
    rows = conn.execute(
        f"SELECT {RULE_COLUMNS} FROM grammar_rules g ORDER BY g.difficulty_level, g.title"
    ).fetchall()
    return [rule_from_row(row) for row in rows]


def cards_for_rule(conn, rule_id: int) -> List[Card]:
    rows = conn.execute(
        f"""
        SELECT {CARD_COLUMNS}
        FROM cards c
        JOIN card_grammar cg ON cg.card_id = c.id
        WHERE cg.grammar_rule_id = ?
        ORDER BY c.frequency_rank IS NULL, c.frequency_rank, c.id
        """,
        (rule_id,),
    ).fetchall()
    return [card_from_row(row) for row in rows]
