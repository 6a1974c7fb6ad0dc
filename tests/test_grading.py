import pytest

from utils.grading import suggest_rating, token_diff, typing_similarity


@pytest.mark.parametrize(
    "expected,typed,rating",
    [
        ("hola", "hola", 4),
        ("hola", "  HOLA ", 4),
        ("corazón", "corazon", 4),
        ("mañana", "manana", 4),
        ("biblioteca", "biblioteka", 3),
        ("perro", "gato", 1),
        ("perro", "", 1),
        ("perro", "   ", 1),
    ],
)
def test_suggest_rating(expected, typed, rating):
    assert suggest_rating(expected, typed) == rating


def test_thresholds_come_from_config():
    strict = {"grading": {"levenshtein_perfect_threshold": 1.0, "levenshtein_good_threshold": 0.95}}
    assert suggest_rating("biblioteca", "biblioteka", strict) == 1
    assert suggest_rating("biblioteca", "biblioteca", strict) == 4


def test_typing_similarity_ignores_accents_and_case():
    assert typing_similarity("Está", "esta") == 1.0
    assert typing_similarity("casa", "perro") < 0.5


def test_token_diff_marks_mistakes():
    diff = token_diff("yo tengo un perro", "yo tengo perro grande")
    assert [t["status"] for t in diff["expected"]] == ["match", "match", "missing", "match"]
    assert [t["status"] for t in diff["actual"]] == ["match", "match", "match", "extra"]
