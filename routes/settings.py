from fastapi import APIRouter, Depends, Form

from db.database import get_db
from db import users as user_repo
from routes.deps import get_app_config, get_user_id
from utils.errors import ValidationError

router = APIRouter()

MIN_RETENTION = 0.7
MAX_RETENTION = 0.99


@router.get("/")
async def get_settings(
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    config: dict = Depends(get_app_config),
):
    default = config["lesson"]["target_retention"]
    return {
        "target_retention": user_repo.get_target_retention(conn, user_id, default),
        "seed_per_day": config["lesson"]["seed_per_day"],
        "ollama_enabled": config["ollama"]["enabled"],
    }


@router.post("/")
async def update_settings(
    target_retention: float = Form(...),
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
):
    """Change how aggressively cards are scheduled; applies to the next rating."""
    if not MIN_RETENTION <= target_retention <= MAX_RETENTION:
        raise ValidationError(
            f"Target retention must be between {MIN_RETENTION} and {MAX_RETENTION}"
        )
    user_repo.set_target_retention(conn, user_id, target_retention)
    conn.commit()
    return {"target_retention": target_retention}
