import random
import sqlite3
from datetime import timedelta

import pytest

from db import journey as journey_repo
from db import logs as log_repo
from db import progress as progress_repo
from db import users as user_repo
from models.progress import CardState
from utils import accounting
from utils.errors import NotFoundError, StaleSessionError, StorageError, ValidationError
from utils.lesson_runner import LessonRegistry, LessonRunner, daily_rng

from conftest import NOW, TODAY, add_words, make_due


@pytest.fixture
def runner():
    return LessonRunner(LessonRegistry(), {"lesson": {"target_retention": 0.9, "seed_per_day": True}})


def _start(conn, runner, words: int = 5):
    add_words(conn, words)
    return runner.start(conn, 1, today=TODAY, now=NOW, rng=random.Random(1))


def test_rating_a_new_card_good(conn, runner):
    state = _start(conn, runner)
    card = state.current_card

    outcome = runner.review(conn, 1, card.card_id, 3, 4200, today=TODAY, now=NOW)

    assert outcome.xp == 6
    assert outcome.result.was_correct
    assert state.current_index == 1
    progress = progress_repo.get_progress(conn, 1, card.card_id)
    assert progress.state == CardState.REVIEW
    assert progress.reps == 1
    logs = log_repo.reviews_for_card(conn, 1, card.card_id)
    assert len(logs) == 1
    assert logs[0].rating == 3
    assert logs[0].duration_ms == 4200
    assert logs[0].mode == card.mode
    user = user_repo.get_user(conn, 1)
    assert user.total_xp == 6
    assert user.current_streak == 1
    daily = log_repo.today_stats(conn, 1, TODAY)
    assert (daily.cards_reviewed, daily.cards_correct, daily.new_cards_added, daily.xp_earned) == (1, 1, 1, 6)


def test_review_without_lesson_is_stale_and_writes_nothing(conn, runner):
    ids = add_words(conn, 1)
    with pytest.raises(StaleSessionError) as excinfo:
        runner.review(conn, 1, ids[0], 3, today=TODAY, now=NOW)
    assert excinfo.value.redirect == "/lesson/start"
    assert progress_repo.get_progress(conn, 1, ids[0]) is None
    assert log_repo.total_reviews(conn, 1) == 0
    assert user_repo.get_user(conn, 1).total_xp == 0


def test_review_rejects_bad_input(conn, runner):
    state = _start(conn, runner)
    current = state.current_card.card_id
    other = state.lesson.cards[1].card_id
    with pytest.raises(ValidationError):
        runner.review(conn, 1, current, 5, today=TODAY, now=NOW)
    with pytest.raises(ValidationError):
        runner.review(conn, 1, other, 3, today=TODAY, now=NOW)
    with pytest.raises(NotFoundError):
        runner.review(conn, 1, 99999, 3, today=TODAY, now=NOW)
    assert state.current_index == 0
    assert log_repo.total_reviews(conn, 1) == 0


def test_storage_failure_leaves_lesson_untouched(conn, runner, monkeypatch):
    state = _start(conn, runner)
    card_id = state.current_card.card_id

    def broken_upsert(conn, progress):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(progress_repo, "upsert_progress", broken_upsert)
    with pytest.raises(StorageError):
        runner.review(conn, 1, card_id, 3, today=TODAY, now=NOW)

    assert state.current_index == 0
    assert state.reviewed == 0
    assert log_repo.total_reviews(conn, 1) == 0
    assert user_repo.get_user(conn, 1).total_xp == 0


def test_finishing_the_lesson_builds_summary_once(conn, runner):
    state = _start(conn, runner, words=3)
    ratings = [3, 1, 4]
    for i, rating in enumerate(ratings):
        card = state.current_card
        outcome = runner.review(conn, 1, card.card_id, rating, 1000, today=TODAY, now=NOW + timedelta(seconds=i))
    assert outcome.finished

    summary = state.summary
    assert summary.total_cards == 3
    assert summary.correct_count == 2
    assert summary.accuracy == 66
    assert summary.new_learned == 2
    assert summary.avg_time_per_card_ms == 1000
    assert [r.rating for r in summary.struggles] == [1]
    assert summary.message == accounting.MILESTONE_MESSAGES[1]
    assert any(a.code == "first_review" for a in summary.achievements)

    again = runner.finalize(conn, 1, today=TODAY, now=NOW)
    assert again is summary
    session = journey_repo.today_lesson_session(conn, 1, TODAY)
    assert session.is_complete
    assert session.cards_reviewed == 3
    assert session.cards_correct == 2
    assert session.xp_earned == summary.xp_earned


def test_second_lesson_same_day_does_not_recount_session(conn, runner):
    state = _start(conn, runner, words=2)
    for card in list(state.lesson.cards):
        runner.review(conn, 1, card.card_id, 3, today=TODAY, now=NOW)
    first = journey_repo.today_lesson_session(conn, 1, TODAY)

    add_words(conn, 2, start_rank=50)
    state = runner.start(conn, 1, today=TODAY, now=NOW + timedelta(hours=1), rng=random.Random(2))
    for card in list(state.lesson.cards):
        if card.progress is None:
            runner.review(conn, 1, card.card_id, 3, today=TODAY, now=NOW + timedelta(hours=1))
        else:
            runner.skip(conn, 1, today=TODAY, now=NOW + timedelta(hours=1))

    session = journey_repo.today_lesson_session(conn, 1, TODAY)
    assert session.id == first.id
    assert session.cards_reviewed == first.cards_reviewed


def test_skip_moves_on_without_writing(conn, runner):
    state = _start(conn, runner, words=2)
    runner.skip(conn, 1, today=TODAY, now=NOW)
    assert state.current_index == 1
    assert log_repo.total_reviews(conn, 1) == 0
    runner.skip(conn, 1, today=TODAY, now=NOW)
    assert state.is_finished
    assert state.summary.total_cards == 2
    with pytest.raises(StaleSessionError):
        runner.skip(conn, 1, today=TODAY, now=NOW)


def test_preview_covers_every_rating(conn, runner):
    state = _start(conn, runner)
    previews = runner.preview(conn, state, NOW)
    assert sorted(previews) == [1, 2, 3, 4]


def test_user_retention_setting_is_used(conn, runner):
    user_repo.set_target_retention(conn, 1, 0.8)
    conn.commit()
    assert runner.scheduler_for(conn, 1).target_retention == 0.8


def test_daily_rng_is_stable_per_user_and_day():
    assert daily_rng(1, TODAY).random() == daily_rng(1, TODAY).random()
    assert daily_rng(1, TODAY).random() != daily_rng(2, TODAY).random()


def test_start_unknown_user(conn, runner):
    with pytest.raises(NotFoundError):
        runner.start(conn, 42, today=TODAY, now=NOW)


def test_practice_puts_due_cards_before_new_cards_from_unlocked_islands(conn, runner):
    ids = add_words(conn, 5)
    add_words(conn, 3, start_rank=501)
    make_due(conn, ids[3])
    make_due(conn, ids[4])

    state = runner.start_practice(conn, 1, 4, today=TODAY, now=NOW, rng=random.Random(2))

    assert state.lesson.is_practice
    assert [c.card_id for c in state.lesson.cards] == [ids[3], ids[4], ids[0], ids[1]]
    assert [c.is_new for c in state.lesson.cards] == [False, False, True, True]
    assert (state.lesson.due_review_count, state.lesson.new_card_count) == (2, 2)


def test_practice_draws_from_islands_unlocked_by_xp(conn, runner):
    add_words(conn, 1)
    locked = add_words(conn, 2, start_rank=501)
    state = runner.start_practice(conn, 1, 10, today=TODAY, now=NOW)
    assert not {c.card_id for c in state.lesson.cards} & set(locked)

    user_repo.update_xp(conn, 1, 500)
    conn.commit()
    state = runner.start_practice(conn, 1, 10, today=TODAY, now=NOW)
    assert set(locked) <= {c.card_id for c in state.lesson.cards}


def test_practice_does_not_close_the_daily_session(conn, runner):
    add_words(conn, 2)
    state = runner.start_practice(conn, 1, 2, today=TODAY, now=NOW, rng=random.Random(3))
    for _ in range(2):
        runner.review(conn, 1, state.current_card.card_id, 3, 1000, today=TODAY, now=NOW)

    assert state.is_finished
    assert state.summary.total_cards == 2
    assert state.summary.xp_earned == 12
    assert journey_repo.today_lesson_session(conn, 1, TODAY) is None
    assert [a.code for a in state.summary.achievements] == ["first_review"]
    assert user_repo.get_user(conn, 1).total_xp == 12 + 10


def test_practice_size_comes_from_config(conn):
    runner = LessonRunner(LessonRegistry(), {"lesson": {"practice_size": 3}})
    add_words(conn, 5)
    assert runner.start_practice(conn, 1, today=TODAY, now=NOW).total == 3
    with pytest.raises(ValidationError):
        runner.start_practice(conn, 1, 0, today=TODAY, now=NOW)


def test_empty_practice_is_finished_at_once(conn, runner):
    state = runner.start_practice(conn, 1, today=TODAY, now=NOW)
    assert state.total == 0
    assert state.is_finished
