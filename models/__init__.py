from .card import Card, CardCreate, CardUpdate, CardSource, Bridge
from .progress import CardProgress, CardState, CardWithProgress, Rating
from .review import ReviewCreate, ReviewLog, DailyLog
from .user import User, StreakInfo, Achievement
from .journey import Journey, LessonSession
from .song import Song, SongLine, SongVocab, SongProgress, SongSession, SongWithDetails
from .island import Island, IslandStats
from .grammar import GrammarExample, GrammarRule, GrammarTip

__all__ = [
    'Card', 'CardCreate', 'CardUpdate', 'CardSource', 'Bridge',
    'CardProgress', 'CardState', 'CardWithProgress', 'Rating',
    'ReviewCreate', 'ReviewLog', 'DailyLog',
    'User', 'StreakInfo', 'Achievement',
    'Journey', 'LessonSession',
    'Song', 'SongLine', 'SongVocab', 'SongProgress', 'SongSession', 'SongWithDetails',
    'Island', 'IslandStats',
    'GrammarExample', 'GrammarRule', 'GrammarTip',
]
