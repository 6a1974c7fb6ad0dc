from __future__ import annotations

import logging
import random
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from db import journey as journey_repo
from db import logs as log_repo
from db import progress as progress_repo
from db import users as user_repo
from models.review import ReviewLog
from models.user import Achievement
from utils import accounting
from utils.clock import utcnow
from utils.composer import DailyLesson, LessonCard, compose_lesson, compose_practice
from utils.errors import NotFoundError, StaleSessionError, StorageError, ValidationError
from utils.scheduler import Scheduler, SchedulingPreview, get_scheduler, new_progress

logger = logging.getLogger(__name__)

DEFAULT_PRACTICE_SIZE = 20


@dataclass
class CardResult:
    card_id: int
    term: str
    translation: str
    rating: int
    time_spent_ms: int
    mode: str
    was_correct: bool
    is_new: bool


@dataclass
class LessonSummary:
    day_number: int
    phase_name: str
    total_cards: int
    correct_count: int
    accuracy: int
    total_time_ms: int
    avg_time_per_card_ms: int
    xp_earned: int
    new_learned: int
    results: List[CardResult] = field(default_factory=list)
    struggles: List[CardResult] = field(default_factory=list)
    achievements: List[Achievement] = field(default_factory=list)
    message: str = ""


@dataclass
class LessonState:
    user_id: int
    lesson: DailyLesson
    current_index: int = 0
    reviewed: int = 0
    correct: int = 0
    new_learned: int = 0
    xp_earned: int = 0
    total_time_ms: int = 0
    results: List[CardResult] = field(default_factory=list)
    summary: Optional[LessonSummary] = None

    @property
    def total(self) -> int:
        return len(self.lesson.cards)

    @property
    def is_finished(self) -> bool:
        return self.current_index >= self.total

    @property
    def current_card(self) -> Optional[LessonCard]:
        if self.is_finished:
            return None
        return self.lesson.cards[self.current_index]


@dataclass
class ReviewOutcome:
    state: LessonState
    result: CardResult
    xp: int
    finished: bool


class LessonRegistry:
    """In-process home of the active daily and song lessons, keyed by user id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._user_locks: Dict[int, threading.RLock] = {}
        self._lessons: Dict[int, LessonState] = {}
        self._song_lessons: Dict[int, Any] = {}

    @contextmanager
    def user_lock(self, user_id: int):
        """Hold one user's lessons for a whole mutate-then-advance step."""
        with self._lock:
            lock = self._user_locks.setdefault(user_id, threading.RLock())
        with lock:
            yield

    def get_lesson(self, user_id: int) -> Optional[LessonState]:
        with self._lock:
            return self._lessons.get(user_id)

    def put_lesson(self, user_id: int, state: LessonState) -> None:
        with self._lock:
            self._lessons[user_id] = state

    def drop_lesson(self, user_id: int) -> None:
        with self._lock:
            self._lessons.pop(user_id, None)

    def get_song_lesson(self, user_id: int) -> Optional[Any]:
        with self._lock:
            return self._song_lessons.get(user_id)

    def put_song_lesson(self, user_id: int, state: Any) -> None:
        with self._lock:
            self._song_lessons[user_id] = state

    def drop_song_lesson(self, user_id: int) -> None:
        with self._lock:
            self._song_lessons.pop(user_id, None)


def daily_rng(user_id: int, today: date) -> random.Random:
    """RNG seeded by user and date so a lost lesson can be rebuilt identically."""
    return random.Random(f"{user_id}:{today.isoformat()}")


class LessonRunner:
    """Drives the daily lesson: one rating at a time, then the summary."""

    def __init__(self, registry: LessonRegistry, config: Optional[dict] = None):
        self.registry = registry
        lesson_cfg = (config or {}).get("lesson", {})
        self.default_retention = float(lesson_cfg.get("target_retention", 0.9))
        self.seed_per_day = bool(lesson_cfg.get("seed_per_day", True))
        self.practice_size = int(lesson_cfg.get("practice_size", DEFAULT_PRACTICE_SIZE))

    def scheduler_for(self, conn, user_id: int) -> Scheduler:
        return get_scheduler(user_repo.get_target_retention(conn, user_id, self.default_retention))

    def start(
        self,
        conn,
        user_id: int,
        *,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
        rng: Optional[random.Random] = None,
    ) -> LessonState:
        """Compose a fresh lesson, replacing any lesson the user left behind."""
        today = today or date.today()
        if user_repo.get_user(conn, user_id) is None:
            raise NotFoundError("User", user_id)
        if rng is None:
            rng = daily_rng(user_id, today) if self.seed_per_day else random.Random()
        with self.registry.user_lock(user_id):
            try:
                lesson = compose_lesson(conn, user_id, today=today, now=now, rng=rng)
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise StorageError(f"Could not build lesson: {exc}") from exc
            state = LessonState(user_id=user_id, lesson=lesson)
            self.registry.put_lesson(user_id, state)
        logger.info("Started lesson for user %s with %s cards", user_id, state.total)
        return state

    def start_practice(
        self,
        conn,
        user_id: int,
        limit: Optional[int] = None,
        *,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
        rng: Optional[random.Random] = None,
    ) -> LessonState:
        """Start a practice run of due then new cards. It takes the daily lesson's slot
        but does not record a lesson session for the day.
        """
        limit = self.practice_size if limit is None else limit
        if limit < 1:
            raise ValidationError(f"Practice needs at least one card, got {limit}")
        if user_repo.get_user(conn, user_id) is None:
            raise NotFoundError("User", user_id)
        with self.registry.user_lock(user_id):
            try:
                lesson = compose_practice(conn, user_id, limit, today=today, now=now, rng=rng)
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise StorageError(f"Could not build practice: {exc}") from exc
            state = LessonState(user_id=user_id, lesson=lesson)
            self.registry.put_lesson(user_id, state)
        logger.info("Started practice for user %s with %s cards", user_id, state.total)
        return state

    def current(self, user_id: int) -> LessonState:
        state = self.registry.get_lesson(user_id)
        if state is None:
            raise StaleSessionError("No active lesson; start a new one")
        return state

    def preview(self, conn, state: LessonState, now: Optional[datetime] = None) -> Dict[int, SchedulingPreview]:
        card = state.current_card
        if card is None:
            return {}
        progress = card.progress or new_progress(state.user_id, card.card_id)
        return self.scheduler_for(conn, state.user_id).preview(progress, now)

    def review(
        self,
        conn,
        user_id: int,
        card_id: int,
        rating: int,
        duration_ms: int = 0,
        *,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> ReviewOutcome:
        if rating not in (1, 2, 3, 4):
            raise ValidationError(f"Rating must be between 1 and 4, got {rating}")
        today = today or date.today()
        now = now or utcnow()
        duration_ms = max(0, int(duration_ms or 0))

        with self.registry.user_lock(user_id):
            state = self.current(user_id)
            if state.is_finished:
                raise StaleSessionError("Lesson already finished; start a new one")
            lesson_card = state.current_card
            if lesson_card.card_id != card_id:
                if all(c.card_id != card_id for c in state.lesson.cards):
                    raise NotFoundError("Card", card_id)
                raise ValidationError(f"Card {card_id} is not the current card")

            scheduler = self.scheduler_for(conn, user_id)
            try:
                progress = progress_repo.get_progress(conn, user_id, card_id)
                is_new = progress is None or progress.is_new
                before = progress or new_progress(user_id, card_id)
                after = scheduler.apply(before, rating, now)
                log_repo.log_review(conn, ReviewLog(
                    user_id=user_id,
                    card_id=card_id,
                    rating=rating,
                    elapsed_days=after.elapsed_days,
                    scheduled_days=before.scheduled_days,
                    duration_ms=duration_ms,
                    mode=lesson_card.mode,
                    reviewed_at=after.last_review,
                ))
                xp = accounting.record_review(conn, user_id, rating=rating, is_new=is_new, today=today)
                progress_repo.upsert_progress(conn, after)
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise StorageError(f"Could not save review: {exc}") from exc

            correct = rating >= 3
            result = CardResult(
                card_id=card_id,
                term=lesson_card.card.term,
                translation=lesson_card.card.translation,
                rating=rating,
                time_spent_ms=duration_ms,
                mode=lesson_card.mode,
                was_correct=correct,
                is_new=is_new,
            )
            lesson_card.progress = after
            state.results.append(result)
            state.reviewed += 1
            state.xp_earned += xp
            state.total_time_ms += duration_ms
            if correct:
                state.correct += 1
                if is_new:
                    state.new_learned += 1
            state.current_index += 1

            if state.is_finished:
                self.finalize(conn, user_id, today=today, now=now)
            return ReviewOutcome(state=state, result=result, xp=xp, finished=state.is_finished)

    def skip(
        self, conn, user_id: int, *, today: Optional[date] = None, now: Optional[datetime] = None
    ) -> LessonState:
        with self.registry.user_lock(user_id):
            state = self.current(user_id)
            if state.is_finished:
                raise StaleSessionError("Lesson already finished; start a new one")
            state.current_index += 1
            if state.is_finished:
                self.finalize(conn, user_id, today=today, now=now)
            return state

    def _close_session(self, conn, state: LessonState, today: date, now: Optional[datetime]) -> None:
        lesson = state.lesson
        session = journey_repo.today_lesson_session(conn, state.user_id, today)
        if session is None:
            session = journey_repo.create_lesson_session(
                conn, state.user_id, today,
                day_number=lesson.day_number, phase_id=lesson.phase.id,
            )
        if not session.is_complete:
            journey_repo.update_lesson_session(
                conn,
                session.id,
                cards_reviewed=state.reviewed,
                cards_correct=state.correct,
                new_cards_learned=state.new_learned,
                xp_earned=state.xp_earned,
            )
            journey_repo.complete_lesson_session(conn, session.id, now)

    def finalize(
        self, conn, user_id: int, *, today: Optional[date] = None, now: Optional[datetime] = None
    ) -> LessonSummary:
        """Close today's session, unless this was practice, and build the summary.

        Safe to call more than once.
        """
        today = today or date.today()
        with self.registry.user_lock(user_id):
            state = self.current(user_id)
            if state.summary is not None:
                return state.summary
            lesson = state.lesson
            try:
                if not lesson.is_practice:
                    self._close_session(conn, state, today, now)
                achievements = accounting.check_achievements(conn, user_id)
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise StorageError(f"Could not finish lesson: {exc}") from exc

            accuracy = state.correct * 100 // state.reviewed if state.reviewed else 0
            state.summary = LessonSummary(
                day_number=lesson.day_number,
                phase_name=lesson.phase.name,
                total_cards=state.total,
                correct_count=state.correct,
                accuracy=accuracy,
                total_time_ms=state.total_time_ms,
                avg_time_per_card_ms=state.total_time_ms // state.reviewed if state.reviewed else 0,
                xp_earned=state.xp_earned,
                new_learned=state.new_learned,
                results=list(state.results),
                struggles=[r for r in state.results if r.rating < 3],
                achievements=achievements,
                message=accounting.motivational_message(lesson.day_number, accuracy),
            )
            logger.info(
                "Finished day %s lesson for user %s: %s/%s correct, %s XP",
                lesson.day_number, user_id, state.correct, state.reviewed, state.xp_earned,
            )
            return state.summary
