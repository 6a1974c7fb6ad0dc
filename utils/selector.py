from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from db import progress as progress_repo
from db import songs as song_repo
from models.progress import CardWithProgress
from utils.curriculum import CurriculumPhase

DUE_LIMIT = 100
SONG_DUE_LIMIT = 5
SONG_NEW_LIMIT = 2


@dataclass
class CardPools:
    due: List[CardWithProgress] = field(default_factory=list)
    song_due: List[CardWithProgress] = field(default_factory=list)
    new: List[CardWithProgress] = field(default_factory=list)
    song_new: List[CardWithProgress] = field(default_factory=list)
    due_load: int = 0
    new_budget: int = 0

    @property
    def reviews(self) -> List[CardWithProgress]:
        return self.due + self.song_due

    @property
    def new_cards(self) -> List[CardWithProgress]:
        return self.new + self.song_new


def new_card_budget(base: int, due_load: int) -> int:
    """Scale back new words on heavy review days."""
    if due_load > 150:
        return max(50, base - 20)
    if due_load > 100:
        return max(60, base - 10)
    return base


def select_pools(conn, user_id: int, phase: CurriculumPhase, now: datetime) -> CardPools:
    pools = CardPools()
    pools.due = progress_repo.due_cards(conn, user_id, DUE_LIMIT, now=now)
    pools.song_due = progress_repo.song_vocab_due(conn, user_id, SONG_DUE_LIMIT, now=now)
    song_ids = song_repo.songs_in_progress(conn, user_id)
    pools.song_new = progress_repo.song_vocab_new(conn, user_id, song_ids, SONG_NEW_LIMIT)

    pools.due_load = progress_repo.count_due(conn, user_id, now=now) + len(pools.song_due)
    pools.new_budget = new_card_budget(phase.new_cards_per_day, pools.due_load)
    pools.new = progress_repo.new_cards_from_islands(
        conn, user_id, phase.target_islands, pools.new_budget
    )
    return pools
