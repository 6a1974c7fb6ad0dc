from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum, IntEnum

from .card import Card


class Rating(IntEnum):
    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


class CardState(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


class CardProgress(BaseModel):
    """FSRS memory state of one card for one user.

    A progress with state ``new`` has never been rated: reps, stability and
    due are all empty. Every other state carries a due timestamp.
    """
    user_id: int
    card_id: int
    stability: float = 0.0
    difficulty: float = 0.0
    elapsed_days: int = 0
    scheduled_days: int = 0
    reps: int = 0
    lapses: int = 0
    state: CardState = CardState.NEW
    step: Optional[int] = None
    due: Optional[datetime] = None
    last_review: Optional[datetime] = None
    id: Optional[int] = None

    class Config:
        from_attributes = True

    @property
    def is_new(self) -> bool:
        return self.state == CardState.NEW


class CardWithProgress(BaseModel):
    card: Card
    progress: Optional[CardProgress] = None

    @property
    def is_new(self) -> bool:
        return self.progress is None or self.progress.is_new
