from pydantic import BaseModel
from typing import Optional


class User(BaseModel):
    id: int
    username: str
    total_xp: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_active_date: Optional[str] = None  # ISO date

    class Config:
        from_attributes = True


class StreakInfo(BaseModel):
    current_streak: int = 0
    longest_streak: int = 0
    last_active_date: Optional[str] = None
    active_today: bool = False


class Achievement(BaseModel):
    id: int
    code: str
    name: str
    description: str = ""
    icon: str = ""
    xp_reward: int = 0
    condition_type: str
    condition_value: int
    earned_at: Optional[str] = None

    class Config:
        from_attributes = True
