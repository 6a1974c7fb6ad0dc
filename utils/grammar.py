"""Grammar tips shown next to cards and before a lesson.

A card's tip comes from the rule linked to it, then from text generation
(which stores and links the new rule), then from a few local rules for
regular verbs and noun gender.
"""
import logging
import sqlite3
from typing import Any, Dict, List, Optional, Sequence

from db import grammar as grammar_repo
from models.card import Card
from models.grammar import GrammarExample, GrammarRule, GrammarTip
from utils import ollama
from utils.composer import LessonCard

logger = logging.getLogger(__name__)

TIP_LENGTH = 200
LESSON_TIP_LENGTH = 150
MAX_LESSON_TIPS = 2
UNAVAILABLE = "Grammar information not available for this card."

_VERB_ENDINGS = {
    "ar": ("o", "as", "a", "amos", "áis", "an"),
    "er": ("o", "es", "e", "emos", "éis", "en"),
    "ir": ("o", "es", "e", "imos", "ís", "en"),
}


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len - 3] + "..."


def tip_from_rule(rule: GrammarRule, max_len: int = TIP_LENGTH, source: str = "cached",
                  max_examples: Optional[int] = None) -> GrammarTip:
    examples = rule.examples if max_examples is None else rule.examples[:max_examples]
    return GrammarTip(
        rule_key=rule.rule_key,
        title=rule.title,
        short_explanation=truncate(rule.explanation, max_len),
        examples=list(examples),
        source=source,
    )


def local_rule(card: Card) -> Optional[Dict[str, Any]]:
    """Rule for regular infinitives and -o/-a nouns; None for anything else."""
    term = card.term.strip().lower()
    translation = card.translation.strip()
    if " " in term or len(term) < 3:
        return None
    ending = term[-2:]
    if translation.lower().startswith("to ") and ending in _VERB_ENDINGS:
        stem = term[:-2]
        forms = _VERB_ENDINGS[ending]
        meaning = translation[3:]
        return {
            "rule_key": f"present_tense_{ending}",
            "title": f"Present Tense: -{ending.upper()} Verbs",
            "explanation": (
                f"Regular -{ending} verbs drop -{ending} and add "
                + ", ".join(f"-{f}" for f in forms)
                + " for yo, tú, él/ella, nosotros, vosotros and ellos."
            ),
            "examples": [
                {"spanish": f"Yo {stem}{forms[0]}.", "english": f"I {meaning}."},
                {"spanish": f"Nosotros {stem}{forms[3]}.", "english": f"We {meaning}."},
            ],
        }
    if term[-1] in ("o", "a"):
        article = "el" if term[-1] == "o" else "la"
        return {
            "rule_key": "noun_gender",
            "title": "Noun Gender",
            "explanation": (
                "Nouns ending in -o are usually masculine and take el or un. "
                "Nouns ending in -a are usually feminine and take la or una."
            ),
            "examples": [{"spanish": f"{article} {card.term}", "english": f"the {translation}"}],
        }
    return None


def _tip(data: Dict[str, Any], source: str) -> GrammarTip:
    return GrammarTip(
        rule_key=data["rule_key"],
        title=data["title"],
        short_explanation=truncate(data["explanation"], TIP_LENGTH),
        examples=[GrammarExample(**e) for e in data["examples"]],
        source=source,
    )


def grammar_for_card(conn, card: Card, config: Dict[str, Any] = None) -> GrammarTip:
    """Best available tip for a card. Generated rules are saved; the caller commits."""
    rule = grammar_repo.rule_for_card(conn, card.id)
    if rule is not None:
        return tip_from_rule(rule)

    generated = ollama.generate_grammar(card.term, card.translation, card.example_sentence, config)
    if generated:
        examples = [GrammarExample(**e) for e in generated["examples"]]
        try:
            rule_id = grammar_repo.save_rule(
                conn, generated["rule_key"], generated["title"], generated["explanation"],
                examples, generated["difficulty"],
            )
            grammar_repo.link_card(conn, card.id, rule_id)
        except sqlite3.Error as e:
            logger.warning("Could not save grammar rule %s: %s", generated["rule_key"], e)
        return _tip(generated, "ai")

    local = local_rule(card)
    if local:
        return _tip(local, "local")
    return GrammarTip(title="Grammar", short_explanation=UNAVAILABLE, source="none")


def lesson_tips(conn, cards: Sequence[LessonCard], config: Dict[str, Any] = None) -> List[GrammarTip]:
    """Up to two distinct tips for a lesson, preferring rules already linked to its cards."""
    tips: List[GrammarTip] = []
    seen = set()
    for lesson_card in cards:
        if len(tips) >= MAX_LESSON_TIPS:
            break
        rule = grammar_repo.rule_for_card(conn, lesson_card.card_id)
        if rule is None or rule.rule_key in seen:
            continue
        seen.add(rule.rule_key)
        tips.append(tip_from_rule(rule, LESSON_TIP_LENGTH, max_examples=2))
    if tips:
        return tips

    first_new = next((c for c in cards if c.is_new), None)
    if first_new is not None:
        tip = grammar_for_card(conn, first_new.card, config)
        if tip.source != "none":
            tips.append(tip)
    return tips


def rules_by_difficulty(conn) -> Dict[int, List[GrammarRule]]:
    grouped: Dict[int, List[GrammarRule]] = {}
    for rule in grammar_repo.all_rules(conn):
        grouped.setdefault(rule.difficulty_level, []).append(rule)
    return grouped
