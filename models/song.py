from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from .progress import CardState


class Song(BaseModel):
    id: int
    title: str
    artist: str = ""
    album: Optional[str] = None
    duration_seconds: Optional[int] = None
    audio_path: Optional[str] = None
    difficulty: int = 1

    class Config:
        from_attributes = True


class SongLine(BaseModel):
    id: Optional[int] = None
    song_id: Optional[int] = None
    line_number: int
    start_time_ms: int
    end_time_ms: int
    spanish_text: str
    english_text: Optional[str] = None

    class Config:
        from_attributes = True


class SongVocab(BaseModel):
    id: int
    song_id: int
    word: str
    translation: str = ""
    is_key_vocab: bool = False
    card_id: Optional[int] = None

    class Config:
        from_attributes = True


class SongProgress(BaseModel):
    user_id: int
    song_id: int
    stability: float = 0.0
    difficulty: float = 0.0
    reps: int = 0
    lapses: int = 0
    state: CardState = CardState.NEW
    due: Optional[datetime] = None
    last_review: Optional[datetime] = None
    vocab_complete: bool = False
    lyrics_complete: bool = False
    listening_complete: bool = False
    total_listens: int = 0
    id: Optional[int] = None

    class Config:
        from_attributes = True


class SongSession(BaseModel):
    id: int
    user_id: int
    song_id: int
    session_date: str
    mode: str
    vocab_reviewed: int = 0
    vocab_correct: int = 0
    lines_studied: int = 0
    blanks_correct: int = 0
    blanks_total: int = 0
    xp_earned: int = 0
    completed_at: Optional[str] = None

    class Config:
        from_attributes = True


class SongWithDetails(BaseModel):
    song: Song
    lines: List[SongLine] = []
    vocabulary: List[SongVocab] = []
    progress: Optional[SongProgress] = None
