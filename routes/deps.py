from fastapi import Query, Request

from config import load_config
from db.users import DEFAULT_USER_ID
from utils.lesson_runner import LessonRegistry, LessonRunner
from utils.song_lesson import SongLessonEngine


def get_user_id(user_id: int = Query(DEFAULT_USER_ID, ge=1)) -> int:
    return user_id


def get_app_config(request: Request) -> dict:
    state = request.app.state
    if getattr(state, "config", None) is None:
        state.config = load_config()
    return state.config


def get_registry(request: Request) -> LessonRegistry:
    state = request.app.state
    if getattr(state, "registry", None) is None:
        state.registry = LessonRegistry()
    return state.registry


def get_runner(request: Request) -> LessonRunner:
    state = request.app.state
    if getattr(state, "runner", None) is None:
        state.runner = LessonRunner(get_registry(request), get_app_config(request))
    return state.runner


def get_song_engine(request: Request) -> SongLessonEngine:
    state = request.app.state
    if getattr(state, "song_engine", None) is None:
        state.song_engine = SongLessonEngine(get_registry(request))
    return state.song_engine
