"""Question payloads for the exercise modes.

Every question is answerable from local data. When text generation is
enabled, richer versions are produced in the background and replace the
local ones in the cache.
"""
import logging
import random
import re
import sqlite3
from typing import Any, Dict, Iterable, Optional

from db import cards as card_repo
from db import questions as question_repo
from db.database import get_conn
from models.card import Bridge, Card
from utils import ollama
from utils.cloze import BLANK
from utils.composer import FILL_BLANK, MCQ, SENTENCE_BUILD, LessonCard

logger = logging.getLogger(__name__)

QUESTION_MODES = (MCQ, FILL_BLANK, SENTENCE_BUILD)
FILLER_OPTIONS = ("something else", "another word", "different meaning")
SENTENCE_HINT = "Arrange the words to form a sentence"

_GENERATORS = {
    MCQ: ollama.generate_mcq,
    FILL_BLANK: ollama.generate_fill_blank,
    SENTENCE_BUILD: ollama.generate_sentence_build,
}


def local_mcq(conn, card: Card, rng: random.Random) -> Dict[str, Any]:
    distractors = card_repo.random_translations(conn, card.id, 3)
    for filler in FILLER_OPTIONS:
        if len(distractors) >= 3:
            break
        if filler not in distractors and filler != card.translation:
            distractors.append(filler)
    correct_index = rng.randrange(4)
    options = list(distractors[:3])
    options.insert(correct_index, card.translation)
    return {
        "question": f"What does '{card.term}' mean?",
        "options": options,
        "correct_index": correct_index,
        "explanation": f"'{card.term}' means '{card.translation}' in English.",
    }


def local_fill_blank(card: Card) -> Dict[str, Any]:
    sentence = card.example_sentence or ""
    pattern = re.compile(rf"\b{re.escape(card.term)}\b", re.IGNORECASE)
    if sentence and pattern.search(sentence):
        masked = pattern.sub(BLANK, sentence, count=1)
    else:
        masked = f"{BLANK} es una palabra importante."
    return {"sentence": masked, "answer": card.term, "hint": card.translation}


def local_sentence_build(card: Card, rng: random.Random) -> Dict[str, Any]:
    sentence = card.example_sentence or f"{card.term} es importante."
    words = sentence.split()
    shuffled = list(words)
    rng.shuffle(shuffled)
    return {
        "sentence": sentence,
        "words": shuffled,
        "answer": words,
        "hint": SENTENCE_HINT,
    }


def local_question(conn, card: Card, kind: str, rng: random.Random) -> Dict[str, Any]:
    if kind == MCQ:
        return local_mcq(conn, card, rng)
    if kind == FILL_BLANK:
        return local_fill_blank(card)
    if kind == SENTENCE_BUILD:
        return local_sentence_build(card, rng)
    raise ValueError(f"No question format for mode {kind}")


def question_for(conn, lesson_card: LessonCard, rng: Optional[random.Random] = None) -> Optional[Dict[str, Any]]:
    """Cached question for the card's mode, building a local one on a miss."""
    if lesson_card.mode not in QUESTION_MODES:
        return None
    cached = question_repo.get_question(conn, lesson_card.card_id, lesson_card.mode)
    if cached is not None:
        return cached
    payload = local_question(conn, lesson_card.card, lesson_card.mode, rng or random.Random())
    question_repo.save_question(conn, lesson_card.card_id, lesson_card.mode, payload, "local")
    conn.commit()
    payload["source"] = "local"
    return payload


def generate_ai_question(conn, card: Card, kind: str, config: Dict[str, Any]) -> bool:
    payload = _GENERATORS[kind](card.term, card.translation, config)
    if payload is None:
        return False
    if kind == SENTENCE_BUILD:
        words = payload["sentence"].split()
        shuffled = list(words)
        random.shuffle(shuffled)
        payload = {**payload, "words": shuffled, "answer": words, "hint": SENTENCE_HINT}
    question_repo.save_question(conn, card.id, kind, payload, "ai")
    return True


def enrich_card(conn, card: Card, config: Dict[str, Any]) -> Dict[str, bool]:
    """Fill in bridges and an example sentence where the card lacks them."""
    result = {"bridges": False, "example": False}
    if card_repo.get_bridge(conn, card.id) is None:
        bridges = ollama.generate_bridges(card.term, card.translation, config)
        if bridges:
            card_repo.save_bridge(conn, Bridge(card_id=card.id, **bridges))
            result["bridges"] = True
    if not card.example_sentence:
        example = ollama.generate_example(card.term, card.translation, config)
        if example:
            card_repo.set_example_sentence(conn, card.id, example)
            result["example"] = True
    return result


def enrich_upcoming(items: Iterable[tuple], config: Dict[str, Any]) -> None:
    """Background task: generate AI questions for ``(card_id, mode)`` pairs of a lesson.

    Runs on its own connection after the response has been sent. Failures
    only leave the local questions in place.
    """
    if not config.get("ollama", {}).get("enabled", False):
        return
    generated = 0
    with get_conn() as conn:
        for card_id, kind in items:
            if kind not in QUESTION_MODES:
                continue
            cached = question_repo.get_question(conn, card_id, kind)
            if cached is not None and cached.get("source") == "ai":
                continue
            card = card_repo.get_card(conn, card_id)
            if card is None:
                continue
            try:
                if generate_ai_question(conn, card, kind, config):
                    conn.commit()
                    generated += 1
            except sqlite3.Error as e:
                conn.rollback()
                logger.warning("Could not cache question for card %s: %s", card_id, e)
    logger.info("Generated %s AI questions", generated)
