from datetime import date

import pytest

from playstats.awards import (
    CATEGORIES,
    Nominee,
    build_awards,
    build_awards_for_key,
    pick_winner,
)


def _by_id(result):
    return {award.category_id: award for award in result.awards}


def test_catalogue_sizes_per_tier():
    assert {tier: len(categories) for tier, categories in CATEGORIES.items()} == {
        "week": 3,
        "month": 7,
        "quarter": 8,
        "year": 9,
    }


def test_pick_winner_prefers_first_maximum():
    nominees = [
        Nominee("1", "Alpha", "", 3.0),
        Nominee("2", "Beta", "", 5.0),
        Nominee("3", "Gamma", "", 5.0),
    ]

    assert pick_winner(nominees).game_name == "Beta"
    with pytest.raises(ValueError):
        pick_winner([])


def test_week_awards(make_game):
    games = [
        make_game("Alpha", logs=[("2024-05-13", 1), ("2024-05-14", 1), ("2024-05-15", 1)]),
        make_game("Beta", logs=[("2024-05-16", 4)]),
        make_game("Outside", logs=[("2024-05-01", 9)]),
    ]

    result = build_awards(games, "week", date(2024, 5, 15))
    awards = _by_id(result)

    assert result.period_key == "week-2024-20"
    assert list(awards) == ["game_of_week", "best_session", "guilty_pleasure"]
    assert [nominee.game_name for nominee in awards["game_of_week"].nominees] == [
        "Beta",
        "Alpha",
    ]
    assert awards["game_of_week"].winner.game_name == "Beta"
    assert awards["game_of_week"].nominees[1].stat_line == "3.0h this week · 3 sessions"
    assert awards["best_session"].winner.game_name == "Beta"
    assert awards["guilty_pleasure"].winner.game_name == "Alpha"


def test_category_with_a_single_nominee_is_omitted(make_game):
    games = [make_game("Solo", logs=[("2024-05-14", 2)])]

    result = build_awards(games, "week", date(2024, 5, 15))

    assert result.awards == []


def test_tied_hours_resolve_to_input_order(make_game):
    games = [
        make_game("First", logs=[("2024-05-14", 2)]),
        make_game("Second", logs=[("2024-05-15", 2)]),
    ]

    first = build_awards(games, "week", date(2024, 5, 15))
    second = build_awards(games, "week", date(2024, 5, 15))

    assert _by_id(first)["game_of_week"].winner.game_name == "First"
    assert [award.winner for award in first.awards] == [award.winner for award in second.awards]


def test_month_awards_comeback_and_value(make_game):
    games = [
        make_game("Returner", price=30, logs=[("2024-05-01", 2), ("2024-05-20", 1)]),
        make_game("Steady", price=10, hours=20, logs=[("2024-05-02", 1), ("2024-05-12", 1)]),
        make_game("Freebie", price=0, acquired_free=True, logs=[("2024-05-04", 1)]),
    ]

    awards = _by_id(build_awards(games, "month", date(2024, 5, 1)))

    assert len(awards) == 7
    assert [nominee.game_name for nominee in awards["the_comeback"].nominees] == [
        "Returner",
        "Steady",
    ]
    assert awards["the_comeback"].winner.game_name == "Returner"
    assert awards["the_comeback"].winner.stat_line.startswith("Back after 19 days")
    assert awards["best_value_month"].nominees[0].game_name == "Steady"
    assert awards["best_value_month"].nominees[-1].game_name == "Freebie"
    assert awards["best_value_month"].winner.game_name == "Steady"


def test_quarter_awards_discovery_and_pioneer(make_game):
    games = [
        make_game("Veteran", genre="RPG", rating=8, logs=[("2024-01-10", 3), ("2024-04-05", 6)]),
        make_game("Newcomer", genre="Puzzle", rating=9, logs=[("2024-04-10", 2), ("2024-05-10", 1)]),
    ]

    result = build_awards(games, "quarter", date(2024, 5, 15))
    awards = _by_id(result)

    assert result.period_key == "quarter-2024-Q2"
    assert result.label == "Q2 2024"
    assert awards["game_of_quarter"].winner.game_name == "Veteran"
    assert "best_discovery" not in awards
    assert "genre_pioneer" not in awards
    assert awards["the_grind"].nominees[0].game_name == "Veteran"


def test_year_awards_one_that_got_away(make_game):
    games = [
        make_game("Favourite", rating=9, price=20, logs=[("2024-02-01", 6), ("2024-03-01", 6)]),
        make_game("Runner Up", rating=7, price=60, logs=[("2024-06-01", 10)]),
        make_game("Dropped", status="Abandoned", logs=[("2023-06-01", 4)]),
        make_game("Paused", status="In Progress", logs=[("2023-07-01", 8)]),
    ]

    awards = _by_id(build_awards(games, "year", date(2024, 8, 1)))

    got_away = awards["one_that_got_away"]
    assert [nominee.game_name for nominee in got_away.nominees] == ["Paused", "Dropped"]
    assert got_away.nominees[1].stat_line == "Abandoned after 4.0h"
    assert awards["soulmate"].winner.game_name == "Favourite"
    assert awards["best_investment"].winner.game_name == "Favourite"


def test_build_awards_for_key_matches_anchor(make_game):
    games = [
        make_game("Alpha", logs=[("2024-05-14", 2)]),
        make_game("Beta", logs=[("2024-05-15", 1)]),
    ]

    by_key = build_awards_for_key(games, "month-2024-05")
    by_anchor = build_awards(games, "month", date(2024, 5, 20))

    assert by_key.to_dict() == by_anchor.to_dict()


def test_build_awards_rejects_unknown_period(make_game):
    with pytest.raises(ValueError):
        build_awards([], "decade", date(2024, 1, 1))
    with pytest.raises(ValueError):
        build_awards_for_key([], "fortnight-2024-01")


def test_overall_value_counts_baseline_and_logged_hours(make_game):
    games = [
        make_game("Veteran", price=40, hours=38, logs=[("2024-05-03", 2)]),
        make_game("Fresh", price=40, logs=[("2024-05-04", 4)]),
    ]

    awards = _by_id(build_awards(games, "month", date(2024, 5, 1)))

    best_value = awards["best_value_month"]
    assert best_value.winner.game_name == "Veteran"
    assert best_value.winner.stat_line.startswith("$1.00/hr overall")
