from pydantic import BaseModel, validator
from typing import Optional
from datetime import datetime

from .progress import Rating


class ReviewCreate(BaseModel):
    card_id: int
    rating: int
    duration_ms: int = 0

    @validator('rating')
    def validate_rating(cls, v):
        if v not in (1, 2, 3, 4):
            raise ValueError("Rating must be 1 (again), 2 (hard), 3 (good) or 4 (easy)")
        return v


class ReviewLog(BaseModel):
    user_id: int
    card_id: int
    rating: Rating
    elapsed_days: int = 0
    scheduled_days: int = 0
    duration_ms: int = 0
    mode: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    id: Optional[int] = None

    class Config:
        from_attributes = True


class DailyLog(BaseModel):
    user_id: int
    date: str  # ISO date
    xp_earned: int = 0
    cards_reviewed: int = 0
    cards_correct: int = 0
    new_cards_added: int = 0

    class Config:
        from_attributes = True
