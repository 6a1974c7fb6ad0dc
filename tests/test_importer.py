import json

import pytest

from db import cards as card_repo
from db import songs as song_repo
from models.card import CardSource
from utils.errors import ValidationError
from utils.importer import import_song, import_words


def _write(path, data):
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return path


def test_import_words_assigns_islands_and_skips_known_terms(conn, tmp_path):
    path = _write(tmp_path / "words.json", [
        {"rank": 1, "term": "de", "translation": "of"},
        {"rank": 180, "term": "casa", "translation": "house", "notes": "feminine"},
        {"rank": 620, "term": "ventana", "translation": "window"},
        {"rank": 2, "term": "de", "translation": "from"},
        {"rank": 3, "term": "", "translation": "nothing"},
    ])

    assert import_words(conn, path) == {"added": 3, "skipped": 2}
    casa = card_repo.get_card_by_term(conn, "casa")
    assert casa.island_id == 2
    assert casa.frequency_rank == 180
    assert casa.notes == "feminine"
    assert card_repo.get_card_by_term(conn, "ventana").island_id == 4

    assert import_words(conn, path) == {"added": 0, "skipped": 5}


def test_import_words_rejects_bad_files(conn, tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("[{", encoding="utf-8")
    with pytest.raises(ValidationError):
        import_words(conn, broken)
    with pytest.raises(ValidationError):
        import_words(conn, _write(tmp_path / "object.json", {"term": "de"}))


def test_import_song_with_lyrics_and_vocabulary(conn, tmp_path):
    path = _write(tmp_path / "despacito.json", {
        "title": "Despacito",
        "artist": "Luis Fonsi",
        "duration_seconds": 229,
        "difficulty": 2,
        "vocabulary": [
            {"word": "despacito", "translation": "slowly", "is_key_vocab": True},
            {"word": "cuello", "translation": "neck"},
        ],
        "lrc": "[00:01.00] Despacito\n[00:04.50] Quiero respirar tu cuello despacito",
    })

    song_id = import_song(conn, path)

    song = song_repo.get_song(conn, song_id)
    assert (song.title, song.artist, song.difficulty) == ("Despacito", "Luis Fonsi", 2)
    assert [line.start_time_ms for line in song_repo.song_lines(conn, song_id)] == [1000, 4500]
    vocab = song_repo.song_vocabulary(conn, song_id)
    assert [v.is_key_vocab for v in vocab] == [True, False]
    assert all(v.card_id is not None for v in vocab)
    card = card_repo.get_card(conn, vocab[0].card_id)
    assert card.source == CardSource.SONG
    assert card.source_song_id == song_id


def test_import_song_requires_title(conn, tmp_path):
    with pytest.raises(ValidationError):
        import_song(conn, _write(tmp_path / "song.json", {"artist": "Nobody"}))
