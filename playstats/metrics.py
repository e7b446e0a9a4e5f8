from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from .records import Game, parse_local_date


BASELINE_COST = 3.5


@dataclass(frozen=True)
class GameMetrics:
    """Derived value numbers for a single game."""

    cost_per_hour: float
    normalized_cost: float
    blend_score: float
    value_rating: str
    roi: float
    days_to_complete: int | None


def total_hours(game: Game) -> float:
    """Baseline hours entered on the game plus every logged session."""

    return float(game.hours or 0.0) + game.logged_hours


def cost_per_hour(price: float, hours: float) -> float:
    return price / hours if hours > 0 else 0.0


def value_rating(cost: float) -> str:
    if cost <= 1:
        return "Excellent"
    if cost <= 3:
        return "Good"
    if cost <= 5:
        return "Fair"
    return "Poor"


def blend_score(rating: float, cost: float) -> float:
    """Combine enjoyment and cost efficiency on a 0-110 scale.

    Cost is normalised against ``BASELINE_COST`` and capped at 1 so anything
    at or above the baseline contributes nothing.
    """

    normalized = min(cost / BASELINE_COST, 1.0)
    return rating * 10 + (10 - normalized * 10)


def roi(rating: float, hours: float, price: float) -> float:
    if price == 0:
        return rating * hours
    return (rating * hours) / price


def roi_rating(value: float) -> str:
    if value >= 5:
        return "Excellent"
    if value >= 1.5:
        return "Good"
    if value >= 0.5:
        return "Fair"
    return "Poor"


def days_to_complete(
    start: date | str | None, end: date | str | None
) -> int | None:
    start_day = parse_local_date(start)
    end_day = parse_local_date(end)
    if start_day is None or end_day is None:
        return None
    return abs((end_day - start_day).days)


def calculate_metrics(game: Game) -> GameMetrics:
    hours = total_hours(game)
    cost = cost_per_hour(game.price, hours)
    return GameMetrics(
        cost_per_hour=cost,
        normalized_cost=cost / BASELINE_COST,
        blend_score=blend_score(game.rating, cost),
        value_rating=value_rating(cost),
        roi=roi(game.rating, hours, game.price),
        days_to_complete=days_to_complete(game.start_date, game.end_date),
    )
