# Routes package __init__.py - re-exports routers for main.py convenience
from .lesson import router as lesson_router
from .songs import router as songs_router
from .cards import router as cards_router
from .stats import router as stats_router
from .settings import router as settings_router
from .islands import router as islands_router
from .grammar import router as grammar_router

__all__ = ['lesson_router', 'songs_router', 'cards_router', 'stats_router', 'settings_router', 'islands_router', 'grammar_router']
