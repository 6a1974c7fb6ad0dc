from fastapi import APIRouter, Depends

from db.database import get_db
from db import cards as card_repo
from db import grammar as grammar_repo
from routes.deps import get_app_config
from utils.errors import NotFoundError
from utils.grammar import grammar_for_card, rules_by_difficulty

router = APIRouter()


@router.get("/")
async def list_rules(conn=Depends(get_db)):
    """Known grammar rules grouped by difficulty level."""
    return {
        level: [rule.model_dump() for rule in rules]
        for level, rules in rules_by_difficulty(conn).items()
    }


@router.get("/card/{card_id}")
async def card_tip(card_id: int, conn=Depends(get_db), config: dict = Depends(get_app_config)):
    card = card_repo.get_card(conn, card_id)
    if card is None:
        raise NotFoundError("Card", card_id)
    tip = grammar_for_card(conn, card, config)
    conn.commit()
    return tip.model_dump()


@router.get("/{rule_key}")
async def rule_detail(rule_key: str, conn=Depends(get_db)):
    rule = grammar_repo.rule_by_key(conn, rule_key)
    if rule is None:
        raise NotFoundError("Grammar rule", rule_key)
    return {
        **rule.model_dump(),
        "cards": [card.model_dump() for card in grammar_repo.cards_for_rule(conn, rule.id)],
    }
