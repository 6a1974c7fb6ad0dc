"""Song lessons as a phase state machine.

A lesson walks through the phases of its mode. Phases with work items
(vocab cards, lines, blanks) keep an index and advance on their own when
the items run out; listening phases wait for an explicit ``next``.
"""
from __future__ import annotations

import logging
import random
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Tuple

from db import cards as card_repo
from db import songs as song_repo
from db import users as user_repo
from models.card import CardCreate, CardSource
from models.progress import CardState
from models.song import Song, SongLine, SongProgress, SongVocab
from utils import accounting
from utils.clock import utcnow
from utils.cloze import SongBlank, build_blanks, check_blank
from utils.errors import NotFoundError, StaleSessionError, StorageError, ValidationError

logger = logging.getLogger(__name__)

BLANKS_PER_LESSON = 8
MAX_SONG_INTERVAL_DAYS = 30


class SongMode(str, Enum):
    VOCAB = "vocab"
    LYRICS = "lyrics"
    LISTENING = "listening"
    FULL = "full"


class SongPhase(str, Enum):
    VOCAB_PREVIEW = "vocab_preview"
    FIRST_LISTEN = "first_listen"
    LINE_BREAKDOWN = "line_breakdown"
    FILL_BLANKS = "fill_blanks"
    FINAL_LISTEN = "final_listen"
    COMPLETE = "complete"


PHASE_SEQUENCES: Dict[SongMode, Tuple[SongPhase, ...]] = {
    SongMode.VOCAB: (SongPhase.VOCAB_PREVIEW, SongPhase.COMPLETE),
    SongMode.LYRICS: (SongPhase.LINE_BREAKDOWN, SongPhase.COMPLETE),
    SongMode.LISTENING: (SongPhase.FILL_BLANKS, SongPhase.COMPLETE),
    SongMode.FULL: (
        SongPhase.VOCAB_PREVIEW,
        SongPhase.FIRST_LISTEN,
        SongPhase.LINE_BREAKDOWN,
        SongPhase.FILL_BLANKS,
        SongPhase.FINAL_LISTEN,
        SongPhase.COMPLETE,
    ),
}

BASE_XP = {SongMode.VOCAB: 10, SongMode.LYRICS: 15, SongMode.LISTENING: 20, SongMode.FULL: 30}


def next_phase(current: SongPhase, mode: SongMode) -> SongPhase:
    sequence = PHASE_SEQUENCES[mode]
    if current not in sequence:
        return sequence[0]
    position = sequence.index(current)
    return sequence[min(position + 1, len(sequence) - 1)]


def song_xp(mode: SongMode, vocab_correct: int, vocab_total: int, blanks_correct: int, blanks_total: int) -> int:
    xp = BASE_XP[mode]
    if vocab_total > 0:
        xp += int(vocab_correct / vocab_total * 10)
    if blanks_total > 0:
        xp += int(blanks_correct / blanks_total * 15)
    return xp


def song_message(accuracy: int) -> str:
    if accuracy >= 90:
        return "Amazing! You really know this song!"
    if accuracy >= 80:
        return "Great listening skills!"
    if accuracy >= 70:
        return "Good job! Keep practicing!"
    if accuracy >= 60:
        return "Nice effort! Listen again to catch more."
    return "Keep listening! You'll get better with practice."


def estimated_minutes(vocab_count: int, line_count: int, blank_count: int) -> int:
    return 3 + vocab_count // 2 + line_count // 4 + blank_count // 2


def update_song_progress(progress: SongProgress, mode: SongMode, accuracy: float, now: datetime) -> SongProgress:
    """Simplified memory update for a whole song after one lesson."""
    stability = progress.stability
    lapses = progress.lapses
    if accuracy >= 0.8:
        stability = 1.5 * stability + 1
        state = CardState.REVIEW
    elif accuracy >= 0.6:
        stability = 1.2 * stability + 0.5
        state = CardState.LEARNING
    else:
        stability = 0.8 * stability
        lapses += 1
        state = CardState.RELEARNING
    interval = min(MAX_SONG_INTERVAL_DAYS, max(1, int(stability)))
    return progress.model_copy(update={
        "stability": stability,
        "lapses": lapses,
        "state": state,
        "reps": progress.reps + 1,
        "last_review": now,
        "due": now + timedelta(days=interval),
        "vocab_complete": progress.vocab_complete or mode in (SongMode.VOCAB, SongMode.FULL),
        "lyrics_complete": progress.lyrics_complete or mode in (SongMode.LYRICS, SongMode.FULL),
        "listening_complete": progress.listening_complete or mode in (SongMode.LISTENING, SongMode.FULL),
    })


def ensure_song_vocab_cards(conn, song: Song) -> int:
    """Promote unlinked song vocabulary to cards so it joins the daily lesson flow."""
    created = 0
    for vocab in song_repo.unlinked_song_vocab(conn, song.id):
        card_id = card_repo.create_card(conn, CardCreate(
            term=vocab.word,
            translation=vocab.translation,
            notes=f"From song: {song.title}",
            source=CardSource.SONG,
            source_song_id=song.id,
        ))
        song_repo.link_song_vocab_to_card(conn, vocab.id, card_id)
        created += 1
    if created:
        logger.info("Promoted %s words from %s to cards", created, song.title)
    return created


@dataclass
class SongVocabCard:
    vocab: SongVocab
    mode: str
    rating: Optional[int] = None


@dataclass
class SongLessonSummary:
    song_id: int
    title: str
    mode: SongMode
    vocab_reviewed: int
    vocab_correct: int
    lines_studied: int
    blanks_correct: int
    blanks_total: int
    accuracy: int
    xp_earned: int
    next_due: Optional[datetime]
    message: str


@dataclass
class SongLessonState:
    user_id: int
    song: Song
    mode: SongMode
    lines: List[SongLine]
    vocab_cards: List[SongVocabCard]
    blanks: List[SongBlank]
    session_id: int
    phase: SongPhase = SongPhase.VOCAB_PREVIEW
    index: int = 0
    vocab_reviewed: int = 0
    vocab_correct: int = 0
    lines_studied: int = 0
    blanks_correct: int = 0
    blanks_answered: int = 0
    today: Optional[date] = None
    started_at: datetime = field(default_factory=utcnow)
    summary: Optional[SongLessonSummary] = None

    def items(self, phase: Optional[SongPhase] = None) -> Optional[list]:
        """Work items of a phase, or None for phases without items."""
        phase = phase or self.phase
        if phase == SongPhase.VOCAB_PREVIEW:
            return self.vocab_cards
        if phase == SongPhase.LINE_BREAKDOWN:
            return self.lines
        if phase == SongPhase.FILL_BLANKS:
            return self.blanks
        return None

    @property
    def current_item(self):
        items = self.items()
        if items is None or self.index >= len(items):
            return None
        return items[self.index]

    @property
    def is_complete(self) -> bool:
        return self.phase == SongPhase.COMPLETE

    @property
    def estimated_minutes(self) -> int:
        return estimated_minutes(len(self.vocab_cards), len(self.lines), len(self.blanks))


class SongLessonEngine:
    def __init__(self, registry):
        self.registry = registry

    def start(
        self,
        conn,
        user_id: int,
        song_id: int,
        mode: str = SongMode.FULL.value,
        *,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
        rng: Optional[random.Random] = None,
    ) -> SongLessonState:
        try:
            mode = SongMode(mode)
        except ValueError:
            raise ValidationError(f"Unknown song lesson mode: {mode}")
        song = song_repo.get_song(conn, song_id)
        if song is None:
            raise NotFoundError("Song", song_id)
        rng = rng or random.Random()
        today = today or date.today()

        with self.registry.user_lock(user_id):
            try:
                lines = song_repo.song_lines(conn, song_id)
                vocabulary = song_repo.song_vocabulary(conn, song_id)
                song_repo.get_or_create_song_progress(conn, user_id, song_id)
                session_id = song_repo.create_song_session(conn, user_id, song_id, mode.value, today)
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise StorageError(f"Could not start song lesson: {exc}") from exc

            vocab_cards = [
                SongVocabCard(vocab=v, mode="reverse" if rng.randrange(100) < 30 else "standard")
                for v in vocabulary
                if v.is_key_vocab
            ]
            blanks = build_blanks(lines, [v.word for v in vocabulary], rng, BLANKS_PER_LESSON)
            state = SongLessonState(
                user_id=user_id,
                song=song,
                mode=mode,
                lines=lines,
                vocab_cards=vocab_cards,
                blanks=blanks,
                session_id=session_id,
                phase=PHASE_SEQUENCES[mode][0],
                today=today,
                started_at=now or utcnow(),
            )
            self.registry.put_song_lesson(user_id, state)
            self._skip_empty(conn, state, now)
        logger.info("Started %s lesson for song %s (%s)", mode.value, song_id, song.title)
        return state

    def current(self, user_id: int) -> SongLessonState:
        state = self.registry.get_song_lesson(user_id)
        if state is None:
            raise StaleSessionError("No active song lesson", redirect="/songs")
        return state

    def _require_phase(self, state: SongLessonState, phase: SongPhase) -> None:
        if state.phase != phase:
            raise ValidationError(f"Lesson is in {state.phase.value}, not {phase.value}")

    def _skip_empty(self, conn, state: SongLessonState, now: Optional[datetime]) -> None:
        while not state.is_complete:
            items = state.items()
            if items is None or state.index < len(items):
                return
            self._advance(conn, state, now)

    def _advance(self, conn, state: SongLessonState, now: Optional[datetime]) -> None:
        if state.phase == SongPhase.FIRST_LISTEN:
            try:
                song_repo.increment_listen_count(conn, state.user_id, state.song.id)
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise StorageError(f"Could not record listen: {exc}") from exc
        state.phase = next_phase(state.phase, state.mode)
        state.index = 0
        if state.is_complete:
            self._finish(conn, state, now)

    def review_vocab(self, conn, user_id: int, rating: int, *, now: Optional[datetime] = None) -> SongLessonState:
        if rating not in (1, 2, 3, 4):
            raise ValidationError(f"Rating must be between 1 and 4, got {rating}")
        with self.registry.user_lock(user_id):
            state = self.current(user_id)
            self._require_phase(state, SongPhase.VOCAB_PREVIEW)
            card = state.current_item
            card.rating = rating
            state.vocab_reviewed += 1
            if rating >= 3:
                state.vocab_correct += 1
            state.index += 1
            self._skip_empty(conn, state, now)
            return state

    def next_phase(self, conn, user_id: int, *, now: Optional[datetime] = None) -> SongLessonState:
        """Leave the current phase, e.g. after a listening pass."""
        with self.registry.user_lock(user_id):
            state = self.current(user_id)
            if state.is_complete:
                return state
            self._advance(conn, state, now)
            self._skip_empty(conn, state, now)
            return state

    def next_line(self, conn, user_id: int, *, now: Optional[datetime] = None) -> SongLessonState:
        with self.registry.user_lock(user_id):
            state = self.current(user_id)
            self._require_phase(state, SongPhase.LINE_BREAKDOWN)
            state.lines_studied += 1
            state.index += 1
            self._skip_empty(conn, state, now)
            return state

    def skip_line(self, conn, user_id: int, *, now: Optional[datetime] = None) -> SongLessonState:
        with self.registry.user_lock(user_id):
            state = self.current(user_id)
            self._require_phase(state, SongPhase.LINE_BREAKDOWN)
            state.index += 1
            self._skip_empty(conn, state, now)
            return state

    def submit_blank(
        self, conn, user_id: int, answer: str, *, now: Optional[datetime] = None
    ) -> Tuple[SongLessonState, SongBlank]:
        with self.registry.user_lock(user_id):
            state = self.current(user_id)
            self._require_phase(state, SongPhase.FILL_BLANKS)
            blank = state.current_item
            blank.user_answer = answer
            blank.is_correct = check_blank(blank, answer)
            state.blanks_answered += 1
            if blank.is_correct:
                state.blanks_correct += 1
            state.index += 1
            self._skip_empty(conn, state, now)
            return state, blank

    def complete(self, conn, user_id: int, *, now: Optional[datetime] = None) -> SongLessonSummary:
        """Finish the lesson early or return the summary of a finished one."""
        with self.registry.user_lock(user_id):
            state = self.current(user_id)
            if state.summary is None:
                state.phase = SongPhase.COMPLETE
                self._finish(conn, state, now)
            return state.summary

    def _finish(self, conn, state: SongLessonState, now: Optional[datetime]) -> None:
        if state.summary is not None:
            return
        now = now or utcnow()
        total = state.vocab_reviewed + state.blanks_answered
        correct = state.vocab_correct + state.blanks_correct
        accuracy = correct / total if total else 0.0
        xp = song_xp(state.mode, state.vocab_correct, state.vocab_reviewed, state.blanks_correct, state.blanks_answered)
        try:
            progress = song_repo.get_or_create_song_progress(conn, state.user_id, state.song.id)
            updated = update_song_progress(progress, state.mode, accuracy, now)
            song_repo.update_song_session(
                conn,
                state.session_id,
                vocab_reviewed=state.vocab_reviewed,
                vocab_correct=state.vocab_correct,
                lines_studied=state.lines_studied,
                blanks_correct=state.blanks_correct,
                blanks_total=state.blanks_answered,
            )
            song_repo.complete_song_session(conn, state.session_id, xp, now)
            user_repo.update_xp(conn, state.user_id, xp)
            accounting.touch_streak(conn, state.user_id, state.today or date.today())
            ensure_song_vocab_cards(conn, state.song)
            song_repo.upsert_song_progress(conn, updated)
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(f"Could not save song lesson: {exc}") from exc

        percent = int(accuracy * 100)
        state.summary = SongLessonSummary(
            song_id=state.song.id,
            title=state.song.title,
            mode=state.mode,
            vocab_reviewed=state.vocab_reviewed,
            vocab_correct=state.vocab_correct,
            lines_studied=state.lines_studied,
            blanks_correct=state.blanks_correct,
            blanks_total=state.blanks_answered,
            accuracy=percent,
            xp_earned=xp,
            next_due=updated.due,
            message=song_message(percent),
        )
        logger.info(
            "Finished song %s (%s): accuracy %s%%, %s XP, next due %s",
            state.song.id, state.mode.value, percent, xp, updated.due,
        )
