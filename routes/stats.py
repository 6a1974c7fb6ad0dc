from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from db.database import get_db
from db import achievements as achievement_repo
from db import cards as card_repo
from db import journey as journey_repo
from db import logs as log_repo
from db import progress as progress_repo
from db import users as user_repo
from routes.deps import get_user_id
from utils import accounting
from utils.curriculum import MAX_DAYS, day_number, get_phase_for_day
from utils.errors import NotFoundError
from utils.mastery import MASTERED_STABILITY, mastery_percent

router = APIRouter()

HEATMAP_DAYS = 84


@router.get("/")
async def user_stats(user_id: int = Depends(get_user_id), conn=Depends(get_db)):
    """Progress dashboard: level, streak, heatmap, card states and achievements."""
    user = user_repo.get_user(conn, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    mastered = progress_repo.count_mastered(conn, user_id, MASTERED_STABILITY)
    total_cards = card_repo.count_cards(conn)
    return {
        "user": user.model_dump(),
        "level": accounting.level_progress(user.total_xp),
        "streak": user_repo.streak_info(conn, user_id).model_dump(),
        "today": log_repo.today_stats(conn, user_id).model_dump(),
        "daily_goal": accounting.DEFAULT_DAILY_GOAL,
        "heatmap": log_repo.heatmap(conn, user_id, HEATMAP_DAYS),
        "states": progress_repo.state_counts(conn, user_id),
        "words_learned": progress_repo.count_words_learned(conn, user_id),
        "mastered": mastered,
        "mastered_percent": mastery_percent(mastered, total_cards),
        "total_reviews": log_repo.total_reviews(conn, user_id),
        "sessions": [s.model_dump() for s in journey_repo.recent_lesson_sessions(conn, user_id)],
        "achievements": [a.model_dump() for a in achievement_repo.user_achievements(conn, user_id)],
        "achievements_total": len(achievement_repo.all_achievements(conn)),
    }


def journey_overview(conn, user_id: int, today: Optional[date] = None) -> dict:
    """Where the learner stands in the two-week sprint."""
    today = today or date.today()
    current = journey_repo.get_or_create_journey(conn, user_id, today)
    conn.commit()
    day = day_number(date.fromisoformat(current.start_date), today)
    phase = get_phase_for_day(day)
    session = journey_repo.today_lesson_session(conn, user_id, today)
    due = progress_repo.count_due(conn, user_id)
    completed = session is not None and session.is_complete
    return {
        "day_number": day,
        "max_days": MAX_DAYS,
        "phase": {"id": phase.id, "name": phase.name, "description": phase.description},
        "due_count": due,
        "today_complete": completed,
        "today": session.model_dump() if session else None,
        "message": accounting.motivational_message(day, 0, is_complete=completed),
    }
