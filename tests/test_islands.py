from db import islands as island_repo
from db import progress as progress_repo
from db import users as user_repo
from utils.scheduler import new_progress

from conftest import NOW, add_words, make_due


def test_islands_with_stats_counts_cards_per_island(conn):
    core = add_words(conn, 3)
    add_words(conn, 2, start_rank=101)
    make_due(conn, core[0])
    make_due(conn, core[1], stability=30.0)

    stats = island_repo.islands_with_stats(conn, 1, NOW)

    assert [s.island.id for s in stats] == list(range(1, 10))
    first, second = stats[0], stats[1]
    assert (first.total_cards, first.learned_cards, first.due_cards, first.mastered_cards) == (3, 2, 2, 1)
    assert first.mastery_percent == 33.3
    assert (second.total_cards, second.learned_cards, second.due_cards) == (2, 0, 0)
    assert stats[8].total_cards == 0


def test_unrated_progress_is_not_learned(conn):
    ids = add_words(conn, 1)
    progress_repo.upsert_progress(conn, new_progress(1, ids[0]))
    conn.commit()
    assert island_repo.island_stats(conn, 1, 1, NOW).learned_cards == 0


def test_other_users_progress_is_ignored(conn):
    ids = add_words(conn, 1)
    conn.execute("INSERT INTO users (id, username) VALUES (2, 'other')")
    make_due(conn, ids[0], user_id=2)
    assert island_repo.island_stats(conn, 1, 1, NOW).learned_cards == 0
    assert island_repo.island_stats(conn, 2, 1, NOW).learned_cards == 1


def test_unlocks_follow_total_xp(conn):
    assert [i.id for i in island_repo.unlocked_islands(conn, 1)] == [1, 2, 3]
    stats = island_repo.islands_with_stats(conn, 1, NOW)
    assert [s.unlocked for s in stats[2:5]] == [True, False, False]

    user_repo.update_xp(conn, 1, 1000)
    conn.commit()
    assert [i.id for i in island_repo.unlocked_islands(conn, 1)] == [1, 2, 3, 4, 5]
    assert island_repo.island_stats(conn, 1, 5, NOW).unlocked
    assert not island_repo.island_stats(conn, 1, 6, NOW).unlocked


def test_unknown_island(conn):
    assert island_repo.get_island(conn, 99) is None
    assert island_repo.island_stats(conn, 1, 99, NOW) is None
    assert island_repo.get_island(conn, 9).name == "Music & Culture"
