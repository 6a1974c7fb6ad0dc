from pydantic import BaseModel
from typing import List, Optional


class GrammarExample(BaseModel):
    spanish: str
    english: str = ""


class GrammarRule(BaseModel):
    id: int
    rule_key: str
    title: str
    explanation: str = ""
    examples: List[GrammarExample] = []
    difficulty_level: int = 1
    created_at: Optional[str] = None

    class Config:
        from_attributes = True


class GrammarTip(BaseModel):
    """Short form of a rule shown next to a card."""
    rule_key: Optional[str] = None
    title: str
    short_explanation: str
    examples: List[GrammarExample] = []
    source: str = "cached"  # cached | ai | local | none
