from __future__ import annotations

import logging
import math
import random
from datetime import date, timedelta
from typing import List, Optional

from db import achievements as achievement_repo
from db import logs as log_repo
from db import progress as progress_repo
from db import users as user_repo
from models.user import Achievement
from utils.clock import parse_day

logger = logging.getLogger(__name__)

DEFAULT_DAILY_GOAL = 20

MILESTONE_MESSAGES = {
    1: "Day 1! Let's crush 1000 words in 2 weeks.",
    3: "Day 3! You've already learned ~200 words!",
    7: "Week 1 complete! ~500 words down, 500 to go!",
    10: "Day 10! Over 700 words learned. The finish line is close!",
    14: "YOU DID IT! 1000 words in 14 days. Absolute legend.",
}
DEFAULT_MESSAGES = (
    "Great job today!",
    "You're making progress!",
    "Keep up the momentum!",
    "One step closer to fluency!",
    "Your consistency is paying off!",
)
HIGH_ACCURACY_MESSAGES = ("Outstanding accuracy!", "You're crushing it!", "Nearly perfect!")
GOOD_ACCURACY_MESSAGES = ("Solid performance!", "Great recall today!", "Keep it up!")
LOW_ACCURACY_MESSAGES = ("Every mistake is a lesson!", "You're building foundations!", "Practice makes progress!")
PENDING_MESSAGE = "Your daily lesson awaits!"


def review_xp(rating: int, is_new: bool, streak: int) -> int:
    xp = 2
    if rating >= 3:
        xp += 1
        if is_new:
            xp += 3
    xp += min(5, max(0, streak) // 7)
    return xp


def next_streak(last_active: Optional[date], current: int, today: date) -> int:
    if last_active is None:
        return 1
    if last_active == today:
        return max(1, current)
    if last_active == today - timedelta(days=1):
        return current + 1
    return 1


def touch_streak(conn, user_id: int, today: date) -> int:
    """Register activity for ``today`` and return the resulting streak."""
    user = user_repo.get_user(conn, user_id)
    last_active = parse_day(user.last_active_date)
    streak = next_streak(last_active, user.current_streak, today)
    if last_active == today and streak == user.current_streak:
        return streak
    user_repo.update_streak(
        conn,
        user_id,
        current=streak,
        longest=max(user.longest_streak, streak),
        last_active=today,
    )
    return streak


def record_review(conn, user_id: int, *, rating: int, is_new: bool, today: date) -> int:
    """Credit XP for one rating and bump the streak and today's counters."""
    streak = touch_streak(conn, user_id, today)
    xp = review_xp(rating, is_new, streak)
    user_repo.update_xp(conn, user_id, xp)
    log_repo.increment_daily(
        conn,
        user_id,
        today,
        xp=xp,
        reviewed=1,
        correct=1 if rating >= 3 else 0,
        new_cards=1 if is_new else 0,
    )
    return xp


def achievement_metric(conn, user_id: int, condition_type: str) -> int:
    if condition_type == "cards_reviewed":
        return log_repo.total_reviews(conn, user_id)
    if condition_type == "streak":
        user = user_repo.get_user(conn, user_id)
        return user.current_streak if user else 0
    if condition_type == "words_learned":
        return progress_repo.count_words_learned(conn, user_id)
    return 0


def check_achievements(conn, user_id: int) -> List[Achievement]:
    """Award every achievement whose threshold is met; return the new ones."""
    earned = {a.id for a in achievement_repo.user_achievements(conn, user_id)}
    metrics = {}
    awarded = []
    for achievement in achievement_repo.all_achievements(conn):
        if achievement.id in earned:
            continue
        kind = achievement.condition_type
        if kind not in metrics:
            metrics[kind] = achievement_metric(conn, user_id, kind)
        if metrics[kind] < achievement.condition_value:
            continue
        if achievement_repo.award(conn, user_id, achievement.id):
            user_repo.update_xp(conn, user_id, achievement.xp_reward)
            awarded.append(achievement)
            logger.info("User %s earned achievement %s", user_id, achievement.code)
    return awarded


def level_for_xp(xp: int) -> int:
    if xp <= 0:
        return 1
    return int(math.floor(math.sqrt(xp / 100))) + 1


def xp_for_level(level: int) -> int:
    return (level - 1) ** 2 * 100


def level_progress(xp: int) -> dict:
    level = level_for_xp(xp)
    floor_xp = xp_for_level(level)
    next_xp = xp_for_level(level + 1)
    span = next_xp - floor_xp
    return {
        "level": level,
        "xp": xp,
        "level_xp": floor_xp,
        "next_level_xp": next_xp,
        "percent": int((xp - floor_xp) * 100 / span) if span > 0 else 0,
    }


def motivational_message(
    day_number: int, accuracy: int, is_complete: bool = True, rng: Optional[random.Random] = None
) -> str:
    if not is_complete:
        return PENDING_MESSAGE
    if day_number in MILESTONE_MESSAGES:
        return MILESTONE_MESSAGES[day_number]
    if accuracy >= 90:
        messages = HIGH_ACCURACY_MESSAGES
    elif accuracy >= 80:
        messages = GOOD_ACCURACY_MESSAGES
    elif accuracy < 60:
        messages = LOW_ACCURACY_MESSAGES
    else:
        messages = DEFAULT_MESSAGES
    return (rng or random).choice(messages)
