from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from models.song import SongLine

PUNCTUATION = ".,!?¿¡"
BLANK = "____"
MIN_WORDS_PER_LINE = 3
MIN_RANDOM_WORD_LENGTH = 3

_ACCENTS = str.maketrans("áéíóúüñÁÉÍÓÚÜÑ", "aeiouunAEIOUUN")


def strip_accents(text: str) -> str:
    return text.translate(_ACCENTS)


def clean_word(word: str) -> str:
    return word.lower().strip(PUNCTUATION)


def answers_match(expected: str, given: str) -> bool:
    """Case-insensitive comparison that forgives missing Spanish accents."""
    given = (given or "").strip().lower()
    expected = (expected or "").strip().lower()
    if given == expected:
        return True
    return strip_accents(given) == strip_accents(expected)


def render_blank_line(text: str, blank_index: int) -> str:
    words = text.split()
    if blank_index < 0 or blank_index >= len(words):
        return text
    words[blank_index] = BLANK
    return " ".join(words)


@dataclass
class SongBlank:
    line: SongLine
    blank_word: str
    blank_index: int
    user_answer: Optional[str] = None
    is_correct: Optional[bool] = None

    @property
    def display_text(self) -> str:
        return render_blank_line(self.line.spanish_text, self.blank_index)

    @property
    def answered(self) -> bool:
        return self.is_correct is not None


def check_blank(blank: SongBlank, answer: str) -> bool:
    return answers_match(blank.blank_word, answer)


def build_blanks(
    lines: Sequence[SongLine],
    vocab_words: Iterable[str],
    rng: random.Random,
    count: int = 8,
) -> List[SongBlank]:
    """Choose up to ``count`` words to hide, preferring the song's vocabulary."""
    vocab = {clean_word(word) for word in vocab_words if word}
    eligible = [line for line in lines if len(line.spanish_text.split()) >= MIN_WORDS_PER_LINE]
    candidates: List[SongBlank] = []
    taken = set()

    for line in eligible:
        for idx, word in enumerate(line.spanish_text.split()):
            cleaned = clean_word(word)
            if cleaned and cleaned in vocab:
                candidates.append(SongBlank(line=line, blank_word=cleaned, blank_index=idx))
                taken.add((line.line_number, idx))

    if len(candidates) < count:
        shuffled = list(eligible)
        rng.shuffle(shuffled)
        for line in shuffled:
            if len(candidates) >= count * 2:
                break
            words = line.spanish_text.split()
            idx = rng.randint(1, len(words) - 2)
            cleaned = clean_word(words[idx])
            if len(cleaned) < MIN_RANDOM_WORD_LENGTH or (line.line_number, idx) in taken:
                continue
            candidates.append(SongBlank(line=line, blank_word=cleaned, blank_index=idx))
            taken.add((line.line_number, idx))

    rng.shuffle(candidates)
    return candidates[:count]
