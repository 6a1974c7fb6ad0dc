from pydantic import BaseModel


class Island(BaseModel):
    id: int
    name: str
    description: str = ""
    icon: str = ""
    unlock_xp: int = 0
    sort_order: int = 0

    class Config:
        from_attributes = True


class IslandStats(BaseModel):
    island: Island
    total_cards: int = 0
    learned_cards: int = 0
    due_cards: int = 0
    mastered_cards: int = 0
    mastery_percent: float = 0.0
    unlocked: bool = False
