from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Dict, Optional

from fsrs import Card as FSRSCard
from fsrs import Rating as FSRSRating
from fsrs import Scheduler as FSRSScheduler
from fsrs import State as FSRSState

from models.progress import CardProgress, CardState
from utils.clock import as_utc, utcnow

_TO_FSRS_STATE = {
    CardState.LEARNING: FSRSState.Learning,
    CardState.REVIEW: FSRSState.Review,
    CardState.RELEARNING: FSRSState.Relearning,
}
_FROM_FSRS_STATE = {value: key for key, value in _TO_FSRS_STATE.items()}

# One step each: good on a learning or relearning card graduates it to review.
LEARNING_STEPS = (timedelta(minutes=10),)
RELEARNING_STEPS = (timedelta(minutes=10),)


@dataclass(frozen=True)
class SchedulingPreview:
    rating: int
    next_due: datetime
    interval_days: int
    retrievability_at_due: float


def new_progress(user_id: int, card_id: int) -> CardProgress:
    """Progress for a card that has never been rated."""
    return CardProgress(user_id=user_id, card_id=card_id)


class Scheduler:
    """FSRS scheduling over CardProgress rows.

    Wraps py-fsrs with fuzzing off so results are reproducible. The
    instance holds no per-card state and is safe to share.
    """

    def __init__(self, target_retention: float = 0.9, maximum_interval: int = 36500):
        self.target_retention = target_retention
        self._fsrs = FSRSScheduler(
            desired_retention=target_retention,
            maximum_interval=maximum_interval,
            learning_steps=LEARNING_STEPS,
            relearning_steps=RELEARNING_STEPS,
            enable_fuzzing=False,
        )

    def _effective_now(self, progress: Optional[CardProgress], now: Optional[datetime]) -> datetime:
        current = as_utc(now) if now else utcnow()
        if progress is not None and progress.last_review is not None:
            current = max(current, as_utc(progress.last_review))
        return current

    @staticmethod
    def _has_memory(progress: Optional[CardProgress]) -> bool:
        return (
            progress is not None
            and progress.state != CardState.NEW
            and progress.stability > 0
            and progress.difficulty > 0
        )

    def _to_fsrs(self, progress: Optional[CardProgress], now: datetime) -> FSRSCard:
        card_id = progress.card_id if progress is not None else 0
        if not self._has_memory(progress):
            return FSRSCard(card_id=card_id, state=FSRSState.Learning, step=0, due=now)
        state = _TO_FSRS_STATE[CardState(progress.state)]
        step = None
        if state != FSRSState.Review:
            step = progress.step or 0
        return FSRSCard(
            card_id=card_id,
            state=state,
            step=step,
            stability=progress.stability,
            difficulty=progress.difficulty,
            due=as_utc(progress.due) if progress.due else now,
            last_review=as_utc(progress.last_review) if progress.last_review else None,
        )

    def apply(self, progress: Optional[CardProgress], rating: int, now: Optional[datetime] = None) -> CardProgress:
        """Return the progress that results from rating the card at ``now``.

        A missing progress is rated as a card never seen before.
        """
        progress = progress or new_progress(0, 0)
        rating = min(4, max(1, int(rating)))
        now = self._effective_now(progress, now)
        card, _ = self._fsrs.review_card(
            self._to_fsrs(progress, now), FSRSRating(rating), review_datetime=now
        )
        state = _FROM_FSRS_STATE[card.state]
        scheduled_days = max(0, (card.due - now).days)
        if state == CardState.REVIEW:
            scheduled_days = max(1, scheduled_days)
        elapsed_days = 0
        if progress.last_review is not None:
            elapsed_days = max(0, (now - as_utc(progress.last_review)).days)
        lapses = progress.lapses
        if rating == 1 and progress.state == CardState.REVIEW:
            lapses += 1
        return progress.model_copy(update={
            "stability": card.stability,
            "difficulty": card.difficulty,
            "elapsed_days": elapsed_days,
            "scheduled_days": scheduled_days,
            "reps": progress.reps + 1,
            "lapses": lapses,
            "state": state,
            "step": card.step,
            "due": card.due,
            "last_review": now,
        })

    def preview(self, progress: Optional[CardProgress], now: Optional[datetime] = None) -> Dict[int, SchedulingPreview]:
        progress = progress or new_progress(0, 0)
        now = self._effective_now(progress, now)
        previews = {}
        for rating in (1, 2, 3, 4):
            result = self.apply(progress, rating, now)
            previews[rating] = SchedulingPreview(
                rating=rating,
                next_due=result.due,
                interval_days=result.scheduled_days,
                retrievability_at_due=self.retrievability(result, result.due),
            )
        return previews

    def is_due(self, progress: Optional[CardProgress], now: Optional[datetime] = None) -> bool:
        if progress is None or progress.state == CardState.NEW or progress.due is None:
            return True
        return as_utc(now or utcnow()) >= as_utc(progress.due)

    def retrievability(self, progress: Optional[CardProgress], now: Optional[datetime] = None) -> float:
        """Probability of recall at ``now``; 0 for cards never reviewed."""
        if not self._has_memory(progress) or progress.last_review is None:
            return 0.0
        now = self._effective_now(progress, now)
        card = self._to_fsrs(progress, now)
        return float(self._fsrs.get_card_retrievability(card, current_datetime=now))


@lru_cache(maxsize=8)
def get_scheduler(target_retention: float = 0.9) -> Scheduler:
    """One shared scheduler per retention target."""
    return Scheduler(target_retention=round(target_retention, 2))
