from db import cards as card_repo
from models.card import CardCreate
from utils.search import normalize_fts_query, search_tokens


def test_search_tokens_drop_spanish_punctuation():
    assert search_tokens("¿Qué tal?") == ["qué", "tal"]
    assert search_tokens("¡Hola, mundo!") == ["hola", "mundo"]
    assert search_tokens(None) == []


def test_normalize_fts_query_quotes_and_prefixes_last_word():
    assert normalize_fts_query("buenos dias") == '"buenos" "dias"*'
    assert normalize_fts_query("buenos dias", prefix=False) == '"buenos" "dias"'


def test_normalize_fts_query_empty_tokens():
    assert normalize_fts_query("¡¿!!") == ""
    assert normalize_fts_query("   ") is None
    assert normalize_fts_query(None) is None


def test_search_ignores_accents_and_matches_prefixes(conn):
    card_id = card_repo.create_card(conn, CardCreate(term="canción", translation="song"))
    card_repo.create_card(conn, CardCreate(term="camión", translation="truck"))
    conn.commit()

    assert [c.id for c in card_repo.search_cards(conn, "cancion")] == [card_id]
    assert [c.id for c in card_repo.search_cards(conn, "canci")] == [card_id]
    assert [c.id for c in card_repo.search_cards(conn, "so")] == [card_id]
    assert card_repo.search_cards(conn, "???") == []
