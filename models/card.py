from pydantic import BaseModel
from typing import Optional
from enum import Enum


class CardSource(str, Enum):
    CURRICULUM = "curriculum"
    SONG = "song"


class CardBase(BaseModel):
    term: str
    translation: str = ""
    island_id: Optional[int] = None
    example_sentence: Optional[str] = None
    notes: Optional[str] = None
    audio_url: Optional[str] = None
    frequency_rank: Optional[int] = None
    source: CardSource = CardSource.CURRICULUM
    source_song_id: Optional[int] = None


class CardCreate(CardBase):
    pass


class CardUpdate(BaseModel):
    term: Optional[str] = None
    translation: Optional[str] = None
    island_id: Optional[int] = None
    example_sentence: Optional[str] = None
    notes: Optional[str] = None
    audio_url: Optional[str] = None
    frequency_rank: Optional[int] = None


class Card(CardBase):
    id: int
    created_at: Optional[str] = None

    class Config:
        from_attributes = True


class Bridge(BaseModel):
    card_id: int
    hindi: Optional[str] = None
    dutch: Optional[str] = None
    english: Optional[str] = None
