from pydantic import BaseModel
from typing import Optional


class Journey(BaseModel):
    id: int
    user_id: int
    start_date: str  # ISO date
    is_active: bool = True

    class Config:
        from_attributes = True


class LessonSession(BaseModel):
    id: int
    user_id: int
    session_date: str
    day_number: int
    phase_id: int
    cards_reviewed: int = 0
    cards_correct: int = 0
    new_cards_learned: int = 0
    xp_earned: int = 0
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None
