import random

import pytest

from models.song import SongLine
from utils.cloze import (
    BLANK,
    SongBlank,
    answers_match,
    build_blanks,
    check_blank,
    render_blank_line,
    strip_accents,
)


def _line(number: int, text: str) -> SongLine:
    return SongLine(line_number=number, start_time_ms=number * 1000, end_time_ms=number * 1000 + 900, spanish_text=text)


@pytest.mark.parametrize("word", ["canción", "corazón", "mañana", "pingüino", "está", "Él"])
def test_blank_accepts_word_with_or_without_accents(word):
    blank = SongBlank(line=_line(1, f"una {word} aquí"), blank_word=word, blank_index=1)
    assert check_blank(blank, word)
    assert check_blank(blank, strip_accents(word))
    assert check_blank(blank, f"  {word.upper()} ")


def test_cancion_without_accent_is_accepted():
    blank = SongBlank(line=_line(1, "esta canción es mía"), blank_word="canción", blank_index=1)
    assert check_blank(blank, "cancion")
    assert not check_blank(blank, "camion")


def test_answers_match_rejects_other_words():
    assert not answers_match("corazón", "razón")
    assert not answers_match("sí", "")


def test_render_blank_line():
    assert render_blank_line("quiero respirar tu cuello despacito", 3) == f"quiero respirar tu {BLANK} despacito"
    assert render_blank_line("hola", 5) == "hola"


def test_build_blanks_prefers_song_vocabulary():
    lines = [
        _line(1, "Despacito, quiero respirar tu cuello despacito"),
        _line(2, "Deja que te diga cosas al oído"),
        _line(3, "Para que te acuerdes si no estás conmigo"),
    ]
    blanks = build_blanks(lines, ["despacito", "oído"], random.Random(3), count=3)
    words = {b.blank_word for b in blanks}
    assert {"despacito", "oído"} <= words
    for blank in blanks:
        assert blank.line.spanish_text.split()[blank.blank_index].lower().strip(".,!?¿¡") == blank.blank_word
        assert BLANK in blank.display_text
        assert not blank.answered


def test_build_blanks_skips_short_lines_and_edges():
    lines = [_line(1, "ay ay"), _line(2, "bailando toda noche entera contigo")]
    blanks = build_blanks(lines, [], random.Random(8), count=8)
    assert blanks
    for blank in blanks:
        assert blank.line.line_number == 2
        words = blank.line.spanish_text.split()
        assert 0 < blank.blank_index < len(words) - 1
        assert len(blank.blank_word) >= 3


def test_build_blanks_respects_count():
    lines = [_line(i, f"canto la canción número {i} contigo") for i in range(1, 30)]
    blanks = build_blanks(lines, ["canción"], random.Random(1), count=8)
    assert len(blanks) == 8
