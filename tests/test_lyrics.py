import pytest
import requests

from db import songs as song_repo
from utils import lyrics
from utils.errors import EnrichmentUnavailable, NotFoundError
from utils.lyrics import fetch_missing_lyrics, fetch_synced_lyrics, parse_lrc, store_lyrics


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def test_parse_single_line():
    lines = parse_lrc("[01:23.45] hola")
    assert len(lines) == 1
    assert lines[0].start_time_ms == 83450
    assert lines[0].text == "hola"
    assert lines[0].end_time_ms > lines[0].start_time_ms


def test_parse_empty_input():
    assert parse_lrc("") == []
    assert parse_lrc(None) == []


def test_parse_sets_end_times_and_skips_noise():
    text = "\n".join([
        "[ar:Luis Fonsi]",
        "[00:01.00] Sí, sabes que ya llevo un rato mirándote",
        "[00:05.500] Tengo que bailar contigo hoy",
        "[00:07.00]",
        "no timestamp here",
        "[00:09.25] Vi que tu mirada ya estaba llamándome",
    ])
    lines = parse_lrc(text)
    assert [line.start_time_ms for line in lines] == [1000, 5500, 9250]
    assert [line.end_time_ms for line in lines] == [5500, 9250, 14250]
    assert lines[1].text == "Tengo que bailar contigo hoy"


def test_fetch_synced_lyrics_passes_track_details(monkeypatch):
    calls = []

    def fake_get(url, params=None, timeout=None):
        calls.append((url, params, timeout))
        return FakeResponse(payload={"syncedLyrics": "[00:01.00] hola"})

    monkeypatch.setattr(lyrics.requests, "get", fake_get)
    config = {"lyrics": {"base_url": "http://lrclib.test/api/get", "timeout": 3}}
    text = fetch_synced_lyrics("Luis Fonsi", "Despacito", "Vida", 229, config)

    assert text == "[00:01.00] hola"
    url, params, timeout = calls[0]
    assert url == "http://lrclib.test/api/get"
    assert params == {"artist_name": "Luis Fonsi", "track_name": "Despacito", "album_name": "Vida", "duration": "229"}
    assert timeout == 3


def test_fetch_synced_lyrics_errors(monkeypatch):
    monkeypatch.setattr(lyrics.requests, "get", lambda *a, **k: FakeResponse(status_code=404))
    with pytest.raises(NotFoundError):
        fetch_synced_lyrics("x", "y")

    monkeypatch.setattr(lyrics.requests, "get", lambda *a, **k: FakeResponse(payload={"syncedLyrics": None}))
    with pytest.raises(NotFoundError):
        fetch_synced_lyrics("x", "y")

    monkeypatch.setattr(lyrics.requests, "get", lambda *a, **k: FakeResponse(status_code=500, text="boom"))
    with pytest.raises(EnrichmentUnavailable):
        fetch_synced_lyrics("x", "y")

    def timeout(*args, **kwargs):
        raise requests.exceptions.Timeout("slow")

    monkeypatch.setattr(lyrics.requests, "get", timeout)
    with pytest.raises(EnrichmentUnavailable):
        fetch_synced_lyrics("x", "y")


def test_store_lyrics_replaces_lines(conn):
    song_id = song_repo.create_song(conn, title="Despacito", artist="Luis Fonsi")
    assert store_lyrics(conn, song_id, "[00:01.00] uno dos\n[00:02.00] tres cuatro") == 2
    assert store_lyrics(conn, song_id, "[00:03.00] cinco seis") == 1
    conn.commit()
    lines = song_repo.song_lines(conn, song_id)
    assert [(l.line_number, l.spanish_text, l.start_time_ms) for l in lines] == [(1, "cinco seis", 3000)]


def test_fetch_missing_lyrics_counts_failures(conn, monkeypatch):
    found = song_repo.create_song(conn, title="Despacito", artist="Luis Fonsi")
    song_repo.create_song(conn, title="Unknown", artist="Nobody")
    conn.commit()

    def fake_get(url, params=None, timeout=None):
        if params["track_name"] == "Despacito":
            return FakeResponse(payload={"syncedLyrics": "[00:01.00] Despacito quiero respirar"})
        return FakeResponse(status_code=404)

    monkeypatch.setattr(lyrics.requests, "get", fake_get)
    result = fetch_missing_lyrics(conn, {"lyrics": {}, "ollama": {"enabled": False}})

    assert result == {"fetched": 1, "failed": 1}
    assert len(song_repo.song_lines(conn, found)) == 1
    assert [s.title for s in song_repo.songs_without_lines(conn)] == ["Unknown"]
