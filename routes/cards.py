import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, Query

from db.database import get_db
from db import cards as card_repo
from db import logs as log_repo
from db import progress as progress_repo
from models.card import CardCreate, CardUpdate
from routes.deps import get_app_config, get_user_id
from utils.errors import NotFoundError, StorageError, ValidationError
from utils.mastery import mastery_status
from utils.questions import enrich_card

router = APIRouter()


def _require_card(conn, card_id: int):
    card = card_repo.get_card(conn, card_id)
    if card is None:
        raise NotFoundError("Card", card_id)
    return card


@router.get("/")
async def list_cards(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    island_id: Optional[int] = None,
    conn=Depends(get_db),
):
    if island_id is not None:
        return [card.model_dump() for card in card_repo.cards_by_island(conn, island_id)]
    return [card.model_dump() for card in card_repo.list_cards(conn, limit, offset)]


@router.get("/search")
async def search_cards(
    q: str = "",
    island_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=200),
    conn=Depends(get_db),
):
    """Full-text search on Spanish term and English translation."""
    return [card.model_dump() for card in card_repo.search_cards(conn, q, island_id, limit)]


@router.post("/")
async def create_card(card: CardCreate, conn=Depends(get_db)):
    if not card.term.strip():
        raise ValidationError("Term is required")
    if card_repo.get_card_by_term(conn, card.term.strip()):
        raise ValidationError(f"A card for '{card.term}' already exists")
    try:
        card_id = card_repo.create_card(conn, card.model_copy(update={"term": card.term.strip()}))
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise StorageError(f"Could not create card: {e}") from e
    return card_repo.get_card(conn, card_id).model_dump()


@router.get("/{card_id}")
async def get_card(card_id: int, user_id: int = Depends(get_user_id), conn=Depends(get_db)):
    card = _require_card(conn, card_id)
    progress = progress_repo.get_progress(conn, user_id, card_id)
    bridge = card_repo.get_bridge(conn, card_id)
    return {
        "card": card.model_dump(),
        "progress": progress.model_dump() if progress else None,
        "mastery": mastery_status(progress),
        "bridge": bridge.model_dump() if bridge else None,
        "reviews": [log.model_dump() for log in log_repo.reviews_for_card(conn, user_id, card_id)],
    }


@router.put("/{card_id}")
async def update_card(card_id: int, changes: CardUpdate, conn=Depends(get_db)):
    _require_card(conn, card_id)
    try:
        card_repo.update_card(conn, card_id, changes)
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise StorageError(f"Could not update card: {e}") from e
    return card_repo.get_card(conn, card_id).model_dump()


@router.delete("/{card_id}")
async def delete_card(card_id: int, conn=Depends(get_db)):
    _require_card(conn, card_id)
    card_repo.delete_card(conn, card_id)
    conn.commit()
    return {"deleted": card_id}


@router.post("/{card_id}/enrich")
async def enrich(card_id: int, conn=Depends(get_db), config: dict = Depends(get_app_config)):
    """Generate memory bridges and an example sentence when text generation is on."""
    card = _require_card(conn, card_id)
    result = enrich_card(conn, card, config)
    conn.commit()
    bridge = card_repo.get_bridge(conn, card_id)
    return {
        "card": card_repo.get_card(conn, card_id).model_dump(),
        "bridge": bridge.model_dump() if bridge else None,
        "generated": result,
    }
