import random
from datetime import timedelta

import pytest

from db import journey as journey_repo
from db import songs as song_repo
from models.card import Card
from models.progress import CardProgress, CardState, CardWithProgress
from utils.composer import (
    MCQ,
    PRACTICE_MODES,
    STANDARD,
    assign_mode,
    compose_lesson,
    estimated_minutes,
    interleave,
)
from utils.curriculum import PHASES
from utils.selector import new_card_budget

from conftest import NOW, TODAY, add_song_card, add_words, make_due


def _items(prefix: str, count: int):
    return [
        CardWithProgress(card=Card(id=i + (1000 if prefix == "n" else 0), term=f"{prefix}{i}"))
        for i in range(count)
    ]


def _new_positions(ordered, new_items):
    new_ids = {item.card.id for item in new_items}
    return [i for i, item in enumerate(ordered) if item.card.id in new_ids]


def test_fresh_user_gets_a_full_day_of_new_words(conn):
    add_words(conn, 600)
    lesson = compose_lesson(conn, 1, today=TODAY, now=NOW, rng=random.Random(3))

    assert lesson.day_number == 1
    assert lesson.phase.name == "Sprint Week 1"
    assert len(lesson.cards) == 72
    assert all(card.is_new for card in lesson.cards)
    assert {card.card.island_id for card in lesson.cards} <= {1, 2, 3}
    assert lesson.estimated_minutes == 108
    assert lesson.due_review_count == 0
    assert lesson.new_card_count == 72


def test_heavy_review_day_reduces_new_words(conn):
    due_ids = add_words(conn, 160, start_rank=1, island_id=1)
    for card_id in due_ids:
        make_due(conn, card_id)
    add_words(conn, 100, start_rank=161, island_id=2)

    lesson = compose_lesson(conn, 1, today=TODAY, now=NOW, rng=random.Random(5))

    assert lesson.due_review_count == 100
    assert lesson.new_card_count == 52
    assert len(lesson.cards) == 152
    flags = [card.is_new for card in lesson.cards]
    assert not any(a and b for a, b in zip(flags, flags[1:]))


def test_song_reviews_join_the_lesson(conn):
    add_words(conn, 10)
    song_id = song_repo.create_song(conn, title="Despacito", artist="Luis Fonsi")
    song_card = add_song_card(conn, song_id, "pasito")
    make_due(conn, song_card)

    lesson = compose_lesson(conn, 1, today=TODAY, now=NOW, rng=random.Random(1))

    song_cards = [c for c in lesson.cards if c.is_song_vocab]
    assert [c.card_id for c in song_cards] == [song_card]
    assert song_cards[0].song_title == "Despacito"
    assert not song_cards[0].is_new


def test_second_week_draws_from_later_islands(conn):
    add_words(conn, 50, start_rank=1)
    add_words(conn, 50, start_rank=501)
    journey_repo.get_or_create_journey(conn, 1, TODAY - timedelta(days=9))
    conn.commit()

    lesson = compose_lesson(conn, 1, today=TODAY, now=NOW, rng=random.Random(2))

    assert lesson.day_number == 10
    assert lesson.phase == PHASES[1]
    assert {card.card.island_id for card in lesson.cards} == {4}


def test_no_mode_three_times_in_a_row(conn):
    ids = add_words(conn, 40)
    for card_id in ids[:30]:
        make_due(conn, card_id, stability=30.0, reps=8)
    for seed in range(5):
        lesson = compose_lesson(conn, 1, today=TODAY, now=NOW, rng=random.Random(seed))
        modes = [card.mode for card in lesson.cards]
        assert set(modes) <= set(PRACTICE_MODES)
        for a, b, c in zip(modes, modes[1:], modes[2:]):
            assert not a == b == c


def test_same_seed_rebuilds_the_same_lesson(conn):
    ids = add_words(conn, 200)
    for card_id in ids[:20]:
        make_due(conn, card_id)
    first = compose_lesson(conn, 1, today=TODAY, now=NOW, rng=random.Random("1:2026-03-02"))
    second = compose_lesson(conn, 1, today=TODAY, now=NOW, rng=random.Random("1:2026-03-02"))
    assert [(c.card_id, c.mode) for c in first.cards] == [(c.card_id, c.mode) for c in second.cards]


def test_interleave_uses_blocks_when_reviews_suffice():
    reviews, new = _items("r", 30), _items("n", 5)
    ordered = interleave(reviews, new)
    positions = _new_positions(ordered, new)
    assert len(ordered) == 35
    assert positions == [5, 11, 17, 23, 29]
    assert [item.card.id for item in ordered if item.card.id < 1000] == list(range(30))


def test_interleave_spreads_reviews_when_short():
    reviews, new = _items("r", 4), _items("n", 5)
    ordered = interleave(reviews, new)
    positions = _new_positions(ordered, new)
    assert all(b - a > 1 for a, b in zip(positions, positions[1:]))


@pytest.mark.parametrize("reviews,new", [(0, 3), (3, 0), (1, 1), (2, 3)])
def test_interleave_keeps_every_card(reviews, new):
    r, n = _items("r", reviews), _items("n", new)
    ordered = interleave(r, n)
    assert sorted(item.card.id for item in ordered) == sorted(item.card.id for item in r + n)


def test_new_card_budget():
    assert new_card_budget(72, 0) == 72
    assert new_card_budget(72, 100) == 72
    assert new_card_budget(72, 101) == 62
    assert new_card_budget(72, 151) == 52
    assert new_card_budget(55, 120) == 60
    assert new_card_budget(60, 200) == 50


def test_estimated_minutes_rounds_up():
    assert estimated_minutes(0) == 0
    assert estimated_minutes(1) == 2
    assert estimated_minutes(72) == 108
    assert estimated_minutes(152) == 228


def test_new_cards_are_mcq_or_standard_without_a_run():
    weights = PHASES[0].mode_weights
    rng = random.Random(11)
    modes = {assign_mode(None, True, [], weights, rng) for _ in range(50)}
    assert modes <= {MCQ, STANDARD}


def test_third_repeat_for_new_card_is_redrawn_from_phase_weights():
    weights = PHASES[0].mode_weights
    seen = set()
    for seed in range(200):
        rng = random.Random(seed)
        history = [STANDARD, STANDARD]
        mode = assign_mode(None, True, history, weights, rng)
        assert mode != STANDARD
        assert history[-1] == mode
        seen.add(mode)
    assert "reverse" in seen


def test_new_cards_never_run_three_in_a_row():
    weights = PHASES[0].mode_weights
    rng = random.Random(11)
    history = []
    modes = [assign_mode(None, True, history, weights, rng) for _ in range(100)]
    assert history == modes
    for a, b, c in zip(modes, modes[1:], modes[2:]):
        assert not (a == b == c)


def test_struggling_cards_avoid_typing_when_stability_is_low():
    weights = PHASES[0].mode_weights
    progress = CardProgress(user_id=1, card_id=1, stability=2.0, reps=2, state=CardState.REVIEW, due=NOW)
    rng = random.Random(4)
    modes = {assign_mode(progress, False, [], weights, rng) for _ in range(200)}
    assert "typing" not in modes
    assert "sentence_build" not in modes
