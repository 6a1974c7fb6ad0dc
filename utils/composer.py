"""Daily lesson composition.

Blends due reviews with new vocabulary for the current curriculum phase,
spaces new cards out between reviews and picks a practice mode for each
card.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from db import islands as island_repo
from db import journey as journey_repo
from db import progress as progress_repo
from db import songs as song_repo
from models.card import Card, CardSource
from models.progress import CardProgress, CardState, CardWithProgress
from utils.clock import utcnow
from utils.curriculum import CurriculumPhase, ModeWeights, day_number, get_phase_for_day
from utils.selector import select_pools

logger = logging.getLogger(__name__)

STANDARD = "standard"
REVERSE = "reverse"
TYPING = "typing"
MCQ = "mcq"
FILL_BLANK = "fill_blank"
SENTENCE_BUILD = "sentence_build"
PRACTICE_MODES = (STANDARD, REVERSE, TYPING, MCQ, FILL_BLANK, SENTENCE_BUILD)

MIN_REVIEWS_BETWEEN_NEW = 3


@dataclass
class LessonCard:
    card: Card
    progress: Optional[CardProgress]
    mode: str
    is_new: bool
    is_song_vocab: bool = False
    song_title: Optional[str] = None

    @property
    def card_id(self) -> int:
        return self.card.id


@dataclass
class DailyLesson:
    day_number: int
    phase: CurriculumPhase
    cards: List[LessonCard] = field(default_factory=list)
    estimated_minutes: int = 0
    due_review_count: int = 0
    new_card_count: int = 0
    session_date: Optional[date] = None
    is_practice: bool = False


def estimated_minutes(card_count: int) -> int:
    """Ninety seconds per card, rounded up."""
    return (card_count * 3 + 1) // 2


def interleave(
    reviews: Sequence[CardWithProgress], new_cards: Sequence[CardWithProgress]
) -> List[CardWithProgress]:
    """Place new cards between runs of reviews.

    With enough reviews every new card follows a block of ``k`` reviews,
    ``k = max(3, (R + 1) // (N + 1))``. Otherwise the reviews are spread
    over the gaps between new cards so that two new cards only touch when
    there are too few reviews to separate them.
    """
    reviews = list(reviews)
    new_cards = list(new_cards)
    if not new_cards:
        return reviews
    if not reviews:
        return new_cards

    k = max(MIN_REVIEWS_BETWEEN_NEW, (len(reviews) + 1) // (len(new_cards) + 1))
    if k * len(new_cards) <= len(reviews):
        gaps = [k] * len(new_cards)
    else:
        # gaps[i] is the number of reviews placed before new card i
        gaps = [0] * len(new_cards)
        remaining = len(reviews)
        for i in list(range(1, len(new_cards))) + [0]:
            if remaining == 0:
                break
            gaps[i] += 1
            remaining -= 1
        i = 0
        while remaining:
            gaps[i % len(new_cards)] += 1
            remaining -= 1
            i += 1

    result: List[CardWithProgress] = []
    review_iter = iter(reviews)
    for gap, new_card in zip(gaps, new_cards):
        for _ in range(gap):
            result.append(next(review_iter))
        result.append(new_card)
    result.extend(review_iter)
    return result


def weighted_mode(weights: ModeWeights, rng: random.Random, exclude: Optional[str] = None) -> str:
    """Categorical draw over standard/reverse/typing using phase weights."""
    table: Dict[str, int] = weights.as_dict()
    if exclude in table:
        table[exclude] = 0
    total = sum(table.values())
    if total <= 0:
        return MCQ if exclude == STANDARD else STANDARD
    roll = rng.randrange(total)
    for mode, weight in table.items():
        if roll < weight:
            return mode
        roll -= weight
    return STANDARD


def weighted_mode_with_bias(weights: ModeWeights, rng: random.Random, bias_mode: str, bias_percent: int) -> str:
    if rng.randrange(100) < bias_percent:
        return bias_mode
    return weighted_mode(weights, rng)


def _rule_mode(
    progress: Optional[CardProgress], is_new: bool, weights: ModeWeights, rng: random.Random
) -> str:
    if is_new or progress is None or progress.state == CardState.NEW:
        return MCQ if rng.randrange(100) < 50 else STANDARD

    if progress.state == CardState.RELEARNING or progress.lapses > 2:
        if rng.randrange(100) < 30:
            return MCQ
        return weighted_mode_with_bias(weights, rng, STANDARD, 70)

    if progress.stability < 5:
        if rng.randrange(100) < 25:
            return MCQ
        return weighted_mode(weights, rng, exclude=TYPING)

    if progress.stability <= 21:
        roll = rng.randrange(100)
        if roll < 20:
            return MCQ
        if roll < 35:
            return FILL_BLANK
        return weighted_mode(weights, rng)

    if progress.reps >= 5:
        roll = rng.randrange(100)
        if roll < 15:
            return MCQ
        if roll < 30:
            return FILL_BLANK
        if roll < 45:
            return SENTENCE_BUILD
        return weighted_mode_with_bias(weights, rng, TYPING, 40)

    return weighted_mode(weights, rng)


def assign_mode(
    progress: Optional[CardProgress],
    is_new: bool,
    history: List[str],
    weights: ModeWeights,
    rng: random.Random,
) -> str:
    """Pick a practice mode for one card and record it in ``history``.

    Never returns the same mode three times in a row.
    """
    mode = _rule_mode(progress, is_new, weights, rng)
    if len(history) >= 2 and history[-1] == history[-2] == mode:
        mode = weighted_mode(weights, rng, exclude=mode)
    history.append(mode)
    return mode


def build_lesson_cards(
    conn,
    ordered: Sequence[CardWithProgress],
    new_ids: set,
    weights: ModeWeights,
    rng: random.Random,
) -> List[LessonCard]:
    history: List[str] = []
    titles: Dict[int, Optional[str]] = {}
    cards: List[LessonCard] = []
    for item in ordered:
        is_new = item.card.id in new_ids
        is_song = item.card.source == CardSource.SONG
        song_title = None
        if is_song:
            if item.card.id not in titles:
                titles[item.card.id] = song_repo.song_title_for_card(conn, item.card.id)
            song_title = titles[item.card.id]
        cards.append(LessonCard(
            card=item.card,
            progress=item.progress,
            mode=assign_mode(item.progress, is_new, history, weights, rng),
            is_new=is_new,
            is_song_vocab=is_song,
            song_title=song_title,
        ))
    return cards


def compose_lesson(
    conn,
    user_id: int,
    *,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> DailyLesson:
    today = today or date.today()
    now = now or utcnow()
    rng = rng or random.Random()

    journey = journey_repo.get_or_create_journey(conn, user_id, today)
    day = day_number(date.fromisoformat(journey.start_date), today)
    phase = get_phase_for_day(day)

    pools = select_pools(conn, user_id, phase, now)
    reviews = pools.reviews
    new_cards = pools.new_cards
    new_ids = {item.card.id for item in new_cards}

    ordered = interleave(reviews, new_cards)
    cards = build_lesson_cards(conn, ordered, new_ids, phase.mode_weights, rng)

    logger.info(
        "Composed day %s lesson (%s): %s reviews, %s new, due load %s",
        day, phase.name, len(reviews), len(new_cards), pools.due_load,
    )
    return DailyLesson(
        day_number=day,
        phase=phase,
        cards=cards,
        estimated_minutes=estimated_minutes(len(cards)),
        due_review_count=len(reviews),
        new_card_count=len(new_cards),
        session_date=today,
    )


def compose_practice(
    conn,
    user_id: int,
    limit: int,
    *,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> DailyLesson:
    """Free practice outside the daily lesson.

    Due cards come first, oldest due first; the remaining slots are filled
    with new cards from the islands the user has unlocked.
    """
    today = today or date.today()
    now = now or utcnow()
    rng = rng or random.Random()

    journey = journey_repo.get_or_create_journey(conn, user_id, today)
    day = day_number(date.fromisoformat(journey.start_date), today)
    phase = get_phase_for_day(day)

    reviews = progress_repo.due_cards(conn, user_id, limit, now)
    island_ids = [island.id for island in island_repo.unlocked_islands(conn, user_id)]
    new_cards = progress_repo.new_cards_from_islands(conn, user_id, island_ids, limit - len(reviews))
    new_ids = {item.card.id for item in new_cards}
    cards = build_lesson_cards(conn, list(reviews) + list(new_cards), new_ids, phase.mode_weights, rng)

    logger.info("Composed practice for user %s: %s due, %s new", user_id, len(reviews), len(new_cards))
    return DailyLesson(
        day_number=day,
        phase=phase,
        cards=cards,
        estimated_minutes=estimated_minutes(len(cards)),
        due_review_count=len(reviews),
        new_card_count=len(new_cards),
        session_date=today,
        is_practice=True,
    )
