from datetime import date

import pytest

from playstats.metrics import (
    BASELINE_COST,
    blend_score,
    calculate_metrics,
    cost_per_hour,
    days_to_complete,
    roi,
    roi_rating,
    total_hours,
    value_rating,
)
from playstats.records import Game, PlayLog


def test_cost_per_hour_is_zero_without_hours():
    assert cost_per_hour(60, 0) == 0
    assert cost_per_hour(0, 0) == 0
    assert cost_per_hour(20, 40) == pytest.approx(0.5)


@pytest.mark.parametrize(
    "cost, expected",
    [(0, "Excellent"), (1, "Excellent"), (2.5, "Good"), (3, "Good"), (5, "Fair"), (5.01, "Poor")],
)
def test_value_rating_thresholds(cost, expected):
    assert value_rating(cost) == expected


def test_blend_score_caps_normalised_cost():
    assert blend_score(9, 0) == pytest.approx(100)
    assert blend_score(9, BASELINE_COST) == pytest.approx(90)
    assert blend_score(9, 50) == pytest.approx(90)
    assert blend_score(8, 1.75) == pytest.approx(85)


def test_roi_branches_on_free_games():
    assert roi(8, 30, 0) == pytest.approx(240)
    assert roi(8, 30, 60) == pytest.approx(4)
    assert roi_rating(4) == "Good"
    assert roi_rating(22.5) == "Excellent"
    assert roi_rating(0.6) == "Fair"
    assert roi_rating(0.1) == "Poor"


def test_days_to_complete_handles_missing_and_reversed_dates():
    assert days_to_complete("2024-01-01", "2024-01-31") == 30
    assert days_to_complete(date(2024, 1, 31), date(2024, 1, 1)) == 30
    assert days_to_complete("2024-01-01", None) is None
    assert days_to_complete("not-a-date", "2024-01-01") is None


def test_total_hours_adds_baseline_and_logged_sessions():
    game = Game(
        id="1",
        name="Hollow Path",
        hours=10,
        play_logs=(PlayLog(date=date(2024, 3, 1), hours=2.5), PlayLog(date=date(2024, 3, 2), hours=1.5)),
    )
    assert total_hours(game) == pytest.approx(14)


def test_calculate_metrics_for_well_played_game():
    game = Game(id="1", name="Star Forge", price=20, hours=40, rating=9, status="Completed")

    metrics = calculate_metrics(game)

    assert metrics.cost_per_hour == pytest.approx(0.5)
    assert metrics.value_rating == "Excellent"
    assert metrics.normalized_cost == pytest.approx(0.5 / BASELINE_COST)
    assert metrics.roi == pytest.approx(18)
    assert metrics.days_to_complete is None


def test_cost_per_hour_is_never_negative(make_game):
    games = [
        make_game(price=0, hours=0),
        make_game(price=70, hours=0),
        make_game(price=15, logs=[("2024-02-01", 3)]),
    ]
    assert all(calculate_metrics(game).cost_per_hour >= 0 for game in games)


def test_game_from_dict_normalises_payload():
    game = Game.from_dict(
        {
            "id": 4,
            "name": "  Hollow Path ",
            "price": "-5",
            "rating": 14,
            "status": "playing",
            "date_purchased": "2024-02-03T18:30:00Z",
            "play_logs": [
                {"date": "2024-02-04", "hours": 2, "notes": "first night"},
                {"date": "someday", "hours": 1},
                {"date": "2024-02-05", "hours": 0},
            ],
        }
    )

    assert game.name == "Hollow Path"
    assert game.price == 0
    assert game.rating == 10
    assert game.status == "In Progress"
    assert game.date_purchased == date(2024, 2, 3)
    assert [log.note for log in game.play_logs] == ["first night"]
    assert Game.from_dict(game.to_dict()) == game


def test_non_finite_numbers_are_dropped():
    assert PlayLog.from_dict({"date": "2024-02-04", "hours": "inf"}) is None
    assert PlayLog.from_dict({"date": "2024-02-04", "hours": float("nan")}) is None
    assert PlayLog.from_dict(["2024-02-04", 2]) is None

    game = Game.from_dict({"id": 1, "name": "Odd", "price": "inf", "hours": "nan"})

    assert game.price == 0
    assert game.hours == 0
