import random
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Form, Query

from db.database import get_db
from db import cards as card_repo
from routes.deps import get_app_config, get_runner, get_user_id
from utils.composer import LessonCard
from utils.errors import ValidationError
from utils.grammar import lesson_tips
from utils.grading import suggest_rating, token_diff
from utils.lesson_runner import LessonRunner, LessonState, LessonSummary
from utils.questions import enrich_upcoming, question_for

router = APIRouter()


def lesson_card_payload(conn, lesson_card: LessonCard, rng: Optional[random.Random] = None) -> dict:
    card = lesson_card.card
    bridge = card_repo.get_bridge(conn, card.id)
    progress = lesson_card.progress
    return {
        "card_id": card.id,
        "term": card.term,
        "translation": card.translation,
        "example_sentence": card.example_sentence,
        "notes": card.notes,
        "audio_url": card.audio_url,
        "mode": lesson_card.mode,
        "is_new": lesson_card.is_new,
        "is_song_vocab": lesson_card.is_song_vocab,
        "song_title": lesson_card.song_title,
        "state": progress.state.value if progress else "new",
        "bridge": bridge.model_dump() if bridge else None,
        "question": question_for(conn, lesson_card, rng),
    }


def state_payload(conn, runner: LessonRunner, state: LessonState) -> dict:
    lesson = state.lesson
    payload = {
        "day_number": lesson.day_number,
        "phase": {"id": lesson.phase.id, "name": lesson.phase.name},
        "total": state.total,
        "position": state.current_index,
        "reviewed": state.reviewed,
        "correct": state.correct,
        "xp_earned": state.xp_earned,
        "estimated_minutes": lesson.estimated_minutes,
        "due_review_count": lesson.due_review_count,
        "new_card_count": lesson.new_card_count,
        "practice": lesson.is_practice,
        "finished": state.is_finished,
        "card": None,
        "intervals": {},
    }
    current = state.current_card
    if current is not None:
        payload["card"] = lesson_card_payload(conn, current)
        payload["intervals"] = {
            rating: {"due": preview.next_due, "interval_days": preview.interval_days}
            for rating, preview in runner.preview(conn, state).items()
        }
    return payload


def summary_payload(summary: LessonSummary) -> dict:
    return {
        "day_number": summary.day_number,
        "phase_name": summary.phase_name,
        "total_cards": summary.total_cards,
        "correct_count": summary.correct_count,
        "accuracy": summary.accuracy,
        "total_time_ms": summary.total_time_ms,
        "avg_time_per_card_ms": summary.avg_time_per_card_ms,
        "xp_earned": summary.xp_earned,
        "new_learned": summary.new_learned,
        "struggles": [r.__dict__ for r in summary.struggles],
        "results": [r.__dict__ for r in summary.results],
        "achievements": [a.model_dump() for a in summary.achievements],
        "message": summary.message,
    }


@router.post("/start")
async def start_lesson(
    background_tasks: BackgroundTasks,
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    runner: LessonRunner = Depends(get_runner),
    config: dict = Depends(get_app_config),
):
    """Compose today's lesson, replacing any lesson in progress."""
    state = runner.start(conn, user_id)
    upcoming = [(c.card_id, c.mode) for c in state.lesson.cards]
    background_tasks.add_task(enrich_upcoming, upcoming, config)
    return state_payload(conn, runner, state)


@router.get("/start")
async def resume_or_start(
    background_tasks: BackgroundTasks,
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    runner: LessonRunner = Depends(get_runner),
    config: dict = Depends(get_app_config),
):
    state = runner.registry.get_lesson(user_id)
    if state is not None and not state.is_finished:
        return state_payload(conn, runner, state)
    return await start_lesson(background_tasks, user_id, conn, runner, config)


@router.post("/practice")
async def start_practice(
    background_tasks: BackgroundTasks,
    limit: Optional[int] = Query(None, ge=1, le=200),
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    runner: LessonRunner = Depends(get_runner),
    config: dict = Depends(get_app_config),
):
    """Due cards then new cards from unlocked islands, outside the daily lesson."""
    state = runner.start_practice(conn, user_id, limit)
    upcoming = [(c.card_id, c.mode) for c in state.lesson.cards]
    background_tasks.add_task(enrich_upcoming, upcoming, config)
    return state_payload(conn, runner, state)


@router.get("/tips")
async def grammar_tips(
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    runner: LessonRunner = Depends(get_runner),
    config: dict = Depends(get_app_config),
):
    """Grammar tips for the cards still ahead in the current lesson."""
    state = runner.current(user_id)
    tips = lesson_tips(conn, state.lesson.cards[state.current_index:], config)
    conn.commit()
    return [tip.model_dump() for tip in tips]


@router.get("/current")
async def current_card(
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    runner: LessonRunner = Depends(get_runner),
):
    return state_payload(conn, runner, runner.current(user_id))


@router.post("/review")
async def submit_review(
    card_id: int = Form(...),
    rating: int = Form(...),
    duration_ms: int = Form(0),
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    runner: LessonRunner = Depends(get_runner),
):
    """Record one rating and return the next card, or the summary when done."""
    outcome = runner.review(conn, user_id, card_id, rating, duration_ms)
    response = {
        "xp": outcome.xp,
        "was_correct": outcome.result.was_correct,
        "finished": outcome.finished,
    }
    if outcome.finished:
        response["summary"] = summary_payload(outcome.state.summary)
    else:
        response["lesson"] = state_payload(conn, runner, outcome.state)
    return response


@router.post("/skip")
async def skip_card(
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    runner: LessonRunner = Depends(get_runner),
):
    state = runner.skip(conn, user_id)
    if state.is_finished:
        return {"finished": True, "summary": summary_payload(state.summary)}
    return {"finished": False, "lesson": state_payload(conn, runner, state)}


@router.get("/summary")
async def lesson_summary(
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    runner: LessonRunner = Depends(get_runner),
):
    state = runner.current(user_id)
    if not state.is_finished:
        raise ValidationError(f"Lesson has {state.total - state.current_index} cards left")
    return summary_payload(runner.finalize(conn, user_id))


@router.post("/check-typing")
async def check_typing(
    expected: str = Form(...),
    typed: str = Form(""),
    config: dict = Depends(get_app_config),
):
    """Suggest a rating for a typed answer."""
    return {
        "suggested_rating": suggest_rating(expected, typed, config),
        "diff": token_diff(expected, typed),
    }
