from fastapi import APIRouter, Depends

from db.database import get_db
from db import cards as card_repo
from db import islands as island_repo
from routes.deps import get_user_id
from utils.errors import NotFoundError

router = APIRouter()


@router.get("/")
async def list_islands(user_id: int = Depends(get_user_id), conn=Depends(get_db)):
    """Every island with the learner's progress and whether it is unlocked."""
    return [stats.model_dump() for stats in island_repo.islands_with_stats(conn, user_id)]


@router.get("/unlocked")
async def unlocked_islands(user_id: int = Depends(get_user_id), conn=Depends(get_db)):
    return [island.model_dump() for island in island_repo.unlocked_islands(conn, user_id)]


@router.get("/{island_id}")
async def island_detail(island_id: int, user_id: int = Depends(get_user_id), conn=Depends(get_db)):
    stats = island_repo.island_stats(conn, user_id, island_id)
    if stats is None:
        raise NotFoundError("Island", island_id)
    return {
        **stats.model_dump(),
        "cards": [card.model_dump() for card in card_repo.cards_by_island(conn, island_id)],
    }
