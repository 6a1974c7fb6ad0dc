from db import cards as card_repo
from db import grammar as grammar_repo
from models.card import CardCreate
from models.grammar import GrammarExample
from utils import grammar, ollama
from utils.composer import STANDARD, LessonCard


def _card(conn, term, translation):
    card_id = card_repo.create_card(conn, CardCreate(term=term, translation=translation))
    conn.commit()
    return card_repo.get_card(conn, card_id)


def _link(conn, card, rule_key, title="Rule", explanation="Explained."):
    rule_id = grammar_repo.save_rule(
        conn, rule_key, title, explanation,
        [GrammarExample(spanish="Yo hablo.", english="I speak."), GrammarExample(spanish="Tú hablas.")],
    )
    grammar_repo.link_card(conn, card.id, rule_id)
    conn.commit()
    return rule_id


def _no_generation(*args, **kwargs):
    raise AssertionError("text generation should not run")


def test_local_rule_for_regular_verbs(conn):
    rule = grammar.local_rule(_card(conn, "hablar", "to speak"))
    assert rule["rule_key"] == "present_tense_ar"
    assert rule["examples"][0] == {"spanish": "Yo hablo.", "english": "I speak."}
    assert rule["examples"][1]["spanish"] == "Nosotros hablamos."

    rule = grammar.local_rule(_card(conn, "vivir", "to live"))
    assert rule["title"] == "Present Tense: -IR Verbs"
    assert rule["examples"][1]["spanish"] == "Nosotros vivimos."


def test_local_rule_for_noun_gender(conn):
    assert grammar.local_rule(_card(conn, "perro", "dog"))["examples"][0]["spanish"] == "el perro"
    assert grammar.local_rule(_card(conn, "casa", "house"))["examples"][0]["spanish"] == "la casa"
    assert grammar.local_rule(_card(conn, "por favor", "please")) is None
    assert grammar.local_rule(_card(conn, "sol", "sun")) is None


def test_linked_rule_is_used_without_generation(conn, monkeypatch):
    card = _card(conn, "hablar", "to speak")
    _link(conn, card, "present_tense_ar", explanation="x" * 300)
    monkeypatch.setattr(ollama, "generate_grammar", _no_generation)

    tip = grammar.grammar_for_card(conn, card)

    assert tip.source == "cached"
    assert tip.rule_key == "present_tense_ar"
    assert len(tip.short_explanation) == grammar.TIP_LENGTH
    assert tip.short_explanation.endswith("...")


def test_generated_rule_is_saved_and_linked(conn, monkeypatch):
    card = _card(conn, "comer", "to eat")
    monkeypatch.setattr(ollama, "generate_grammar", lambda term, translation, example, config: {
        "rule_key": "present_tense_er",
        "title": "Present Tense: -ER Verbs",
        "explanation": "Drop -er and add the endings.",
        "examples": [{"spanish": "Yo como.", "english": "I eat."}],
        "difficulty": 2,
    })

    tip = grammar.grammar_for_card(conn, card, {"ollama": {"enabled": True}})
    conn.commit()

    assert tip.source == "ai"
    rule = grammar_repo.rule_for_card(conn, card.id)
    assert rule.rule_key == "present_tense_er"
    assert rule.difficulty_level == 2
    assert [c.id for c in grammar_repo.cards_for_rule(conn, rule.id)] == [card.id]

    monkeypatch.setattr(ollama, "generate_grammar", _no_generation)
    assert grammar.grammar_for_card(conn, card).source == "cached"


def test_falls_back_to_local_then_to_placeholder(conn, monkeypatch):
    monkeypatch.setattr(ollama, "generate_grammar", lambda *args: None)
    assert grammar.grammar_for_card(conn, _card(conn, "bailar", "to dance")).source == "local"

    tip = grammar.grammar_for_card(conn, _card(conn, "sol", "sun"))
    assert tip.source == "none"
    assert tip.short_explanation == grammar.UNAVAILABLE
    assert grammar_repo.all_rules(conn) == []


def test_save_rule_updates_existing_key(conn):
    card = _card(conn, "hablar", "to speak")
    first = _link(conn, card, "present_tense_ar", title="Old")
    second = _link(conn, card, "present_tense_ar", title="New")
    assert first == second
    assert grammar_repo.rule_by_key(conn, "present_tense_ar").title == "New"


def test_lesson_tips_are_distinct_and_capped(conn, monkeypatch):
    cards = [_card(conn, term, "to x") for term in ("hablar", "cantar", "comer", "vivir")]
    _link(conn, cards[0], "present_tense_ar")
    _link(conn, cards[1], "present_tense_ar")
    _link(conn, cards[2], "present_tense_er")
    _link(conn, cards[3], "present_tense_ir")
    monkeypatch.setattr(ollama, "generate_grammar", _no_generation)
    lesson_cards = [LessonCard(card=c, progress=None, mode=STANDARD, is_new=True) for c in cards]

    tips = grammar.lesson_tips(conn, lesson_cards)

    assert [t.rule_key for t in tips] == ["present_tense_ar", "present_tense_er"]
    assert all(len(t.examples) <= 2 for t in tips)


def test_lesson_tips_fall_back_to_first_new_card(conn, monkeypatch):
    monkeypatch.setattr(ollama, "generate_grammar", lambda *args: None)
    review = LessonCard(card=_card(conn, "sol", "sun"), progress=None, mode=STANDARD, is_new=False)
    new = LessonCard(card=_card(conn, "casa", "house"), progress=None, mode=STANDARD, is_new=True)

    tips = grammar.lesson_tips(conn, [review, new])

    assert [t.rule_key for t in tips] == ["noun_gender"]
    assert grammar.lesson_tips(conn, [review]) == []


def test_generate_grammar_parses_model_reply(monkeypatch):
    reply = """```json
{"rule_key": "Present Tense AR", "title": "Present Tense", "explanation": "Endings.",
 "examples": [{"spanish": "Yo hablo.", "english": "I speak."}, {"english": "missing"}], "difficulty": 9}
```"""
    monkeypatch.setattr(ollama, "call_llm", lambda prompt, config=None: reply)

    rule = ollama.generate_grammar("hablar", "to speak")

    assert rule["rule_key"] == "present_tense_ar"
    assert rule["difficulty"] == 5
    assert rule["examples"] == [{"spanish": "Yo hablo.", "english": "I speak."}]


def test_generate_grammar_rejects_incomplete_reply(monkeypatch):
    monkeypatch.setattr(ollama, "call_llm", lambda prompt, config=None: '{"title": "No key"}')
    assert ollama.generate_grammar("hablar", "to speak") is None
    monkeypatch.setattr(ollama, "call_llm", lambda prompt, config=None: None)
    assert ollama.generate_grammar("hablar", "to speak") is None
