from datetime import timedelta

import pytest

from models.progress import CardProgress, CardState
from utils.scheduler import Scheduler, get_scheduler, new_progress

from conftest import NOW


def _review_progress(**overrides) -> CardProgress:
    values = dict(
        user_id=1,
        card_id=7,
        stability=12.0,
        difficulty=5.0,
        scheduled_days=12,
        reps=4,
        lapses=1,
        state=CardState.REVIEW,
        due=NOW - timedelta(days=1),
        last_review=NOW - timedelta(days=13),
    )
    values.update(overrides)
    return CardProgress(**values)


@pytest.mark.parametrize("stability", [0.5, 3.0, 12.0, 90.0])
def test_good_on_review_card_moves_due_forward(stability):
    scheduler = Scheduler()
    progress = _review_progress(stability=stability)
    good = scheduler.apply(progress, 3, NOW)
    again = scheduler.apply(progress, 1, NOW)
    assert good.due > NOW
    assert good.scheduled_days >= again.scheduled_days
    assert good.state == CardState.REVIEW


def test_again_on_review_card_is_a_lapse():
    progress = _review_progress(lapses=2)
    after = Scheduler().apply(progress, 1, NOW)
    assert after.lapses == 3
    assert after.state == CardState.RELEARNING
    assert after.reps == progress.reps + 1


def test_again_while_learning_is_not_a_lapse():
    scheduler = Scheduler()
    first = scheduler.apply(new_progress(1, 7), 1, NOW)
    assert first.state == CardState.LEARNING
    second = scheduler.apply(first, 1, NOW + timedelta(minutes=10))
    assert second.lapses == 0
    assert second.state == CardState.LEARNING


def _progress_in(state: CardState) -> CardProgress:
    scheduler = Scheduler()
    if state == CardState.NEW:
        return new_progress(1, 7)
    if state == CardState.LEARNING:
        return scheduler.apply(new_progress(1, 7), 1, NOW - timedelta(minutes=30))
    if state == CardState.RELEARNING:
        return scheduler.apply(_review_progress(), 1, NOW - timedelta(minutes=30))
    return _review_progress()


@pytest.mark.parametrize(
    "start,rating,expected",
    [
        (CardState.NEW, 1, CardState.LEARNING),
        (CardState.NEW, 2, CardState.LEARNING),
        (CardState.NEW, 3, CardState.REVIEW),
        (CardState.NEW, 4, CardState.REVIEW),
        (CardState.LEARNING, 1, CardState.LEARNING),
        (CardState.LEARNING, 2, CardState.LEARNING),
        (CardState.LEARNING, 3, CardState.REVIEW),
        (CardState.LEARNING, 4, CardState.REVIEW),
        (CardState.REVIEW, 1, CardState.RELEARNING),
        (CardState.REVIEW, 2, CardState.REVIEW),
        (CardState.REVIEW, 3, CardState.REVIEW),
        (CardState.REVIEW, 4, CardState.REVIEW),
        (CardState.RELEARNING, 1, CardState.RELEARNING),
        (CardState.RELEARNING, 2, CardState.RELEARNING),
        (CardState.RELEARNING, 3, CardState.REVIEW),
        (CardState.RELEARNING, 4, CardState.REVIEW),
    ],
)
def test_state_transitions(start, rating, expected):
    progress = _progress_in(start)
    assert progress.state == start
    after = Scheduler().apply(progress, rating, NOW)
    assert after.state == expected
    assert after.reps == progress.reps + 1
    expected_lapses = progress.lapses + 1 if start == CardState.REVIEW and rating == 1 else progress.lapses
    assert after.lapses == expected_lapses
    if expected == CardState.REVIEW:
        assert after.scheduled_days >= 1


def test_missing_progress_is_rated_as_fresh_card():
    scheduler = Scheduler()
    after = scheduler.apply(None, 3, NOW)
    fresh = scheduler.apply(new_progress(0, 0), 3, NOW)
    assert after.reps == 1
    assert after.state == fresh.state
    assert after.due == fresh.due
    previews = scheduler.preview(None, NOW)
    assert sorted(previews) == [1, 2, 3, 4]
    assert previews[3].next_due == fresh.due


@pytest.mark.parametrize("rating", [1, 2, 3, 4])
def test_first_rating_leaves_new_state(rating):
    after = Scheduler().apply(new_progress(1, 7), rating, NOW)
    assert after.reps == 1
    assert after.state != CardState.NEW
    assert after.due is not None
    assert after.last_review == NOW


def test_easy_on_new_card_graduates_to_review():
    after = Scheduler().apply(new_progress(1, 7), 4, NOW)
    assert after.state == CardState.REVIEW
    assert after.scheduled_days >= 1


def test_rating_is_clamped():
    scheduler = Scheduler()
    progress = _review_progress()
    assert scheduler.apply(progress, 9, NOW).due == scheduler.apply(progress, 4, NOW).due
    assert scheduler.apply(progress, 0, NOW).state == CardState.RELEARNING


def test_clock_going_backwards_uses_last_review():
    progress = _review_progress(last_review=NOW)
    after = Scheduler().apply(progress, 3, NOW - timedelta(days=2))
    assert after.last_review == NOW
    assert after.elapsed_days == 0


def test_elapsed_days_counts_since_last_review():
    after = Scheduler().apply(_review_progress(), 3, NOW)
    assert after.elapsed_days == 13


def test_preview_offers_all_four_ratings_in_order():
    previews = Scheduler().preview(_review_progress(), NOW)
    assert sorted(previews) == [1, 2, 3, 4]
    assert previews[1].next_due <= previews[3].next_due <= previews[4].next_due
    assert previews[4].interval_days >= previews[3].interval_days


def test_is_due_and_retrievability():
    scheduler = Scheduler()
    progress = _review_progress()
    assert scheduler.is_due(progress, NOW)
    assert not scheduler.is_due(progress, NOW - timedelta(days=2))
    assert scheduler.is_due(None, NOW)
    assert scheduler.retrievability(new_progress(1, 7), NOW) == 0.0
    assert 0.0 < scheduler.retrievability(progress, NOW) < 1.0


def test_higher_retention_schedules_sooner():
    progress = _review_progress()
    relaxed = get_scheduler(0.8).apply(progress, 3, NOW)
    strict = get_scheduler(0.95).apply(progress, 3, NOW)
    assert strict.scheduled_days <= relaxed.scheduled_days
    assert get_scheduler(0.8) is get_scheduler(0.8)
