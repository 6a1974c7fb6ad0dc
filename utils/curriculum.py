from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Tuple

MAX_DAYS = 14


@dataclass(frozen=True)
class ModeWeights:
    standard: int
    reverse: int
    typing: int

    def as_dict(self) -> Dict[str, int]:
        return {"standard": self.standard, "reverse": self.reverse, "typing": self.typing}


@dataclass(frozen=True)
class CurriculumPhase:
    id: int
    name: str
    description: str
    start_day: int
    end_day: int
    new_cards_per_day: int
    target_islands: Tuple[int, ...]
    mode_weights: ModeWeights = field(default_factory=lambda: ModeWeights(60, 30, 10))

    def contains(self, day: int) -> bool:
        return self.start_day <= day <= self.end_day


PHASES: Tuple[CurriculumPhase, ...] = (
    CurriculumPhase(
        id=1,
        name="Sprint Week 1",
        description="Core 500 most frequent words",
        start_day=1,
        end_day=7,
        new_cards_per_day=72,
        target_islands=(1, 2, 3),
        mode_weights=ModeWeights(standard=60, reverse=30, typing=10),
    ),
    CurriculumPhase(
        id=2,
        name="Sprint Week 2",
        description="Advanced 500 words + Review",
        start_day=8,
        end_day=14,
        new_cards_per_day=72,
        target_islands=(4, 5, 6, 7, 8, 9),
        mode_weights=ModeWeights(standard=50, reverse=35, typing=15),
    ),
)


def get_phase_for_day(day: int) -> CurriculumPhase:
    """Phase whose day range holds ``day``; days past the last phase stay in it."""
    for phase in PHASES:
        if phase.contains(day):
            return phase
    if day < PHASES[0].start_day:
        return PHASES[0]
    return PHASES[-1]


def get_phase(phase_id: int) -> CurriculumPhase:
    for phase in PHASES:
        if phase.id == phase_id:
            return phase
    return PHASES[0]


def day_number(start_date: date, today: date) -> int:
    return min(MAX_DAYS, max(1, (today - start_date).days + 1))


def island_for_rank(rank: int) -> int:
    """Island assignment used when importing a frequency list."""
    if rank <= 100:
        return 1
    if rank <= 250:
        return 2
    if rank <= 500:
        return 3
    return 4
