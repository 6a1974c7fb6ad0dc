from Levenshtein import ratio as lev_ratio
from difflib import SequenceMatcher
from typing import Dict, Any, List

from utils.cloze import strip_accents

PERFECT_RATING = 4
GOOD_RATING = 3
AGAIN_RATING = 1


def _normalize(text: str) -> str:
    return strip_accents((text or "").strip().lower())


def typing_similarity(expected: str, typed: str) -> float:
    return lev_ratio(_normalize(typed), _normalize(expected))


def suggest_rating(expected: str, typed: str, config: Dict[str, Any] = None) -> int:
    """Suggest an FSRS rating for a typed answer. The learner may still override it."""
    grading_config = (config or {}).get('grading', {})
    perfect_th = grading_config.get('levenshtein_perfect_threshold', 0.98)
    good_th = grading_config.get('levenshtein_good_threshold', 0.85)

    if not typed or not typed.strip():
        return AGAIN_RATING
    similarity = typing_similarity(expected, typed)
    if similarity >= perfect_th:
        return PERFECT_RATING
    if similarity >= good_th:
        return GOOD_RATING
    return AGAIN_RATING


def token_diff(expected_text: str, actual_text: str) -> Dict[str, List[Dict[str, str]]]:
    """Compute a whitespace-token diff so the client can highlight mistakes."""
    expected_tokens = expected_text.split() if expected_text else []
    actual_tokens = actual_text.split() if actual_text else []
    matcher = SequenceMatcher(None, expected_tokens, actual_tokens)
    expected: List[Dict[str, str]] = []
    actual: List[Dict[str, str]] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for token in expected_tokens[i1:i2]:
                expected.append({"token": token, "status": "match"})
            for token in actual_tokens[j1:j2]:
                actual.append({"token": token, "status": "match"})
        elif tag == "delete":
            for token in expected_tokens[i1:i2]:
                expected.append({"token": token, "status": "missing"})
        elif tag == "insert":
            for token in actual_tokens[j1:j2]:
                actual.append({"token": token, "status": "extra"})
        elif tag == "replace":
            for token in expected_tokens[i1:i2]:
                expected.append({"token": token, "status": "substitution"})
            for token in actual_tokens[j1:j2]:
                actual.append({"token": token, "status": "substitution"})
    return {"expected": expected, "actual": actual}
