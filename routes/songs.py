from typing import Optional

from fastapi import APIRouter, Depends, Form, Query

from db.database import get_db
from db import songs as song_repo
from routes.deps import get_app_config, get_song_engine, get_user_id
from utils.errors import NotFoundError
from utils.lyrics import fetch_and_store_lyrics
from utils.song_lesson import SongLessonEngine, SongLessonState, SongLessonSummary, SongPhase, SongVocabCard

router = APIRouter()


def _item_payload(state: SongLessonState) -> Optional[dict]:
    item = state.current_item
    if item is None:
        return None
    if state.phase == SongPhase.VOCAB_PREVIEW:
        card: SongVocabCard = item
        return {
            "word": card.vocab.word,
            "translation": card.vocab.translation,
            "mode": card.mode,
        }
    if state.phase == SongPhase.LINE_BREAKDOWN:
        return item.model_dump()
    return {
        "line_number": item.line.line_number,
        "display_text": item.display_text,
        "start_time_ms": item.line.start_time_ms,
        "end_time_ms": item.line.end_time_ms,
        "english_text": item.line.english_text,
    }


def song_state_payload(state: SongLessonState) -> dict:
    items = state.items()
    payload = {
        "song": state.song.model_dump(),
        "mode": state.mode.value,
        "phase": state.phase.value,
        "index": state.index,
        "phase_total": len(items) if items is not None else None,
        "item": _item_payload(state),
        "vocab_reviewed": state.vocab_reviewed,
        "vocab_correct": state.vocab_correct,
        "lines_studied": state.lines_studied,
        "blanks_correct": state.blanks_correct,
        "blanks_answered": state.blanks_answered,
        "estimated_minutes": state.estimated_minutes,
        "complete": state.is_complete,
    }
    if state.phase in (SongPhase.FIRST_LISTEN, SongPhase.FINAL_LISTEN):
        payload["lines"] = [line.model_dump() for line in state.lines]
    if state.summary is not None:
        payload["summary"] = song_summary_payload(state.summary)
    return payload


def song_summary_payload(summary: SongLessonSummary) -> dict:
    return {
        "song_id": summary.song_id,
        "title": summary.title,
        "mode": summary.mode.value,
        "vocab_reviewed": summary.vocab_reviewed,
        "vocab_correct": summary.vocab_correct,
        "lines_studied": summary.lines_studied,
        "blanks_correct": summary.blanks_correct,
        "blanks_total": summary.blanks_total,
        "accuracy": summary.accuracy,
        "xp_earned": summary.xp_earned,
        "next_due": summary.next_due,
        "message": summary.message,
    }


@router.get("/")
async def list_songs(user_id: int = Depends(get_user_id), conn=Depends(get_db)):
    return [
        {"song": song.model_dump(), "progress": progress.model_dump() if progress else None}
        for song, progress in song_repo.songs_with_progress(conn, user_id)
    ]


@router.get("/due")
async def due_songs(user_id: int = Depends(get_user_id), conn=Depends(get_db)):
    return [
        {"song": song.model_dump(), "progress": progress.model_dump()}
        for song, progress in song_repo.due_songs(conn, user_id)
    ]


@router.get("/lesson/current")
async def current_song_lesson(
    user_id: int = Depends(get_user_id),
    engine: SongLessonEngine = Depends(get_song_engine),
):
    return song_state_payload(engine.current(user_id))


@router.post("/lesson/vocab-review")
async def vocab_review(
    rating: int = Form(...),
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    engine: SongLessonEngine = Depends(get_song_engine),
):
    return song_state_payload(engine.review_vocab(conn, user_id, rating))


@router.post("/lesson/next-phase")
async def advance_phase(
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    engine: SongLessonEngine = Depends(get_song_engine),
):
    return song_state_payload(engine.next_phase(conn, user_id))


@router.post("/lesson/next-line")
async def next_line(
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    engine: SongLessonEngine = Depends(get_song_engine),
):
    return song_state_payload(engine.next_line(conn, user_id))


@router.post("/lesson/skip-line")
async def skip_line(
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    engine: SongLessonEngine = Depends(get_song_engine),
):
    return song_state_payload(engine.skip_line(conn, user_id))


@router.post("/lesson/submit-blank")
async def submit_blank(
    answer: str = Form(""),
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    engine: SongLessonEngine = Depends(get_song_engine),
):
    state, blank = engine.submit_blank(conn, user_id, answer)
    return {
        "correct": blank.is_correct,
        "expected": blank.blank_word,
        "line": blank.line.spanish_text,
        "lesson": song_state_payload(state),
    }


@router.post("/lesson/complete")
async def complete_song_lesson(
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    engine: SongLessonEngine = Depends(get_song_engine),
):
    return song_summary_payload(engine.complete(conn, user_id))


@router.get("/{song_id}")
async def song_detail(song_id: int, user_id: int = Depends(get_user_id), conn=Depends(get_db)):
    details = song_repo.get_song_with_details(conn, user_id, song_id)
    if details is None:
        raise NotFoundError("Song", song_id)
    return details.model_dump()


@router.post("/{song_id}/start")
async def start_song_lesson(
    song_id: int,
    mode: str = Query("full"),
    user_id: int = Depends(get_user_id),
    conn=Depends(get_db),
    engine: SongLessonEngine = Depends(get_song_engine),
):
    return song_state_payload(engine.start(conn, user_id, song_id, mode))


@router.post("/{song_id}/fetch-lyrics")
async def fetch_lyrics(song_id: int, conn=Depends(get_db), config: dict = Depends(get_app_config)):
    song = song_repo.get_song(conn, song_id)
    if song is None:
        raise NotFoundError("Song", song_id)
    count = fetch_and_store_lyrics(conn, song, config)
    conn.commit()
    return {"song_id": song_id, "lines": count}
