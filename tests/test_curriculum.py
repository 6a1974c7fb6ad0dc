from datetime import date, timedelta

from utils.curriculum import MAX_DAYS, PHASES, day_number, get_phase, get_phase_for_day, island_for_rank


def test_every_day_of_a_phase_maps_to_it():
    for phase in PHASES:
        for day in range(phase.start_day, phase.end_day + 1):
            assert get_phase_for_day(day) == phase


def test_days_past_the_sprint_stay_in_last_phase():
    assert get_phase_for_day(MAX_DAYS + 1) == PHASES[-1]
    assert get_phase_for_day(200) == PHASES[-1]
    assert get_phase_for_day(0) == PHASES[0]


def test_phase_settings():
    week1, week2 = PHASES
    assert week1.name == "Sprint Week 1"
    assert week1.new_cards_per_day == 72
    assert week1.target_islands == (1, 2, 3)
    assert week2.target_islands == (4, 5, 6, 7, 8, 9)
    assert week2.mode_weights.as_dict() == {"standard": 50, "reverse": 35, "typing": 15}
    assert get_phase(2) == week2
    assert get_phase(99) == week1


def test_day_number_is_clamped():
    start = date(2026, 3, 1)
    assert day_number(start, start) == 1
    assert day_number(start, start + timedelta(days=6)) == 7
    assert day_number(start, start - timedelta(days=3)) == 1
    assert day_number(start, start + timedelta(days=40)) == MAX_DAYS


def test_island_for_rank():
    assert island_for_rank(1) == 1
    assert island_for_rank(100) == 1
    assert island_for_rank(101) == 2
    assert island_for_rank(250) == 2
    assert island_for_rank(500) == 3
    assert island_for_rank(501) == 4
