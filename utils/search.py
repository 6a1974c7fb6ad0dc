from __future__ import annotations

import re
from typing import List, Optional

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def search_tokens(raw: Optional[str]) -> List[str]:
    """Words of a query, lowercased, with Spanish punctuation such as ¿ ¡ dropped."""
    if not raw:
        return []
    return [token.lower() for token in _TOKEN_RE.findall(raw)]


def normalize_fts_query(raw: Optional[str], prefix: bool = True) -> Optional[str]:
    """Turn user input into a safe FTS5 MATCH query over term and translation.

    Each word is quoted so FTS operators in the input stay literal. With
    ``prefix`` the last word also matches longer words, so "canci" finds
    "canción" while the learner is still typing. Accents need no handling
    here: the default unicode61 tokenizer folds them on both sides.

    Returns None for empty input and "" when nothing searchable is left.
    """
    if raw is None or not raw.strip():
        return None
    tokens = search_tokens(raw)
    if not tokens:
        return ""
    quoted = [f'"{token}"' for token in tokens]
    if prefix:
        quoted[-1] += "*"
    return " ".join(quoted)
