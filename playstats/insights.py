from __future__ import annotations

import calendar
from datetime import date, timedelta
from math import ceil, floor
from statistics import fmean, median
from typing import Any, Dict, List, Sequence

from .aggregation import (
    UNKNOWN_BUCKET,
    get_all_play_logs,
    is_discounted,
    owned_games,
    rank,
    summarize_window,
)
from .metrics import cost_per_hour, total_hours
from .records import Game
from .statuses import COMPLETED, NOT_STARTED


def _days_since(value: date, reference: date) -> int:
    return (reference - value).days


def find_hidden_gems(games: Sequence[Game]) -> List[Dict[str, Any]]:
    """Cheap, well-rated games that soaked up a lot of playtime."""

    candidates = []
    for game in owned_games(games):
        hours = total_hours(game)
        if hours < 10 or game.acquired_free:
            continue
        score = game.rating * 10 / (cost_per_hour(game.price, hours) + 0.1)
        candidates.append({"game": game, "score": score})

    kept = [
        entry
        for entry in candidates
        if entry["game"].price <= 20 and entry["game"].rating >= 7
    ]
    return rank(kept, lambda entry: entry["score"])[:5]


def find_regret_purchases(
    games: Sequence[Game], *, today: date | None = None
) -> List[Dict[str, Any]]:
    """Expensive purchases that fell short of the hours their age implies."""

    reference = today or date.today()
    scored = []
    for game in owned_games(games):
        if game.acquired_free or game.price <= 20:
            continue
        if game.date_purchased:
            elapsed = max(1, _days_since(game.date_purchased, reference))
        else:
            elapsed = 365
        expected = min(elapsed * 0.5, 50.0)
        deficit = max(0.0, expected - total_hours(game))
        regret = (game.price / 10) * deficit
        if regret > 5:
            scored.append({"game": game, "regret_score": regret})
    return rank(scored, lambda entry: entry["regret_score"])[:5]


def find_shelf_warmers(
    games: Sequence[Game], *, today: date | None = None
) -> List[Dict[str, Any]]:
    reference = today or date.today()
    warmers = []
    for game in games:
        if game.status != NOT_STARTED or not game.date_purchased or game.price <= 0:
            continue
        days_sitting = _days_since(game.date_purchased, reference)
        if days_sitting > 30:
            warmers.append({"game": game, "days_sitting": days_sitting})
    return rank(warmers, lambda entry: entry["days_sitting"])[:5]


def _hours_share(games: Sequence[Game], dimension: str) -> List[Dict[str, Any]]:
    hours_by_bucket: Dict[str, float] = {}
    for game in owned_games(games):
        hours = total_hours(game)
        if hours <= 0:
            continue
        bucket = getattr(game, dimension) or UNKNOWN_BUCKET
        hours_by_bucket[bucket] = hours_by_bucket.get(bucket, 0.0) + hours

    grand_total = sum(hours_by_bucket.values())
    rows = [
        {
            dimension: bucket,
            "hours": hours,
            "score": hours / grand_total * 100 if grand_total > 0 else 0.0,
        }
        for bucket, hours in hours_by_bucket.items()
    ]
    return rank(rows, lambda row: row["hours"])


def get_platform_preference(games: Sequence[Game]) -> List[Dict[str, Any]]:
    return _hours_share(games, "platform")


def get_genre_preference(games: Sequence[Game]) -> List[Dict[str, Any]]:
    return _hours_share(games, "genre")


def _discounted(games: Sequence[Game]) -> List[Game]:
    return [game for game in owned_games(games) if is_discounted(game)]


def get_discount_effectiveness(games: Sequence[Game]) -> Dict[str, Any]:
    discounted = _discounted(games)
    if not discounted:
        return {"average_savings": 0.0, "best_deal": None}

    savings = lambda game: (game.original_price or 0.0) - game.price
    return {
        "average_savings": sum(savings(game) for game in discounted) / len(discounted),
        "best_deal": rank(discounted, savings)[0],
    }


def get_patient_gamer_stats(games: Sequence[Game]) -> Dict[str, Any]:
    """Games picked up at 30% off or better."""

    patient = [
        game
        for game in _discounted(games)
        if (game.original_price - game.price) / game.original_price >= 0.3
    ]
    if not patient:
        return {"count": 0, "average_discount": 0.0, "total_saved": 0.0}

    return {
        "count": len(patient),
        "average_discount": sum(
            (game.original_price - game.price) / game.original_price * 100
            for game in patient
        )
        / len(patient),
        "total_saved": sum(game.original_price - game.price for game in patient),
    }


def _percentile(sorted_values: list[float], percentile: float) -> float | None:
    if not sorted_values:
        return None
    if percentile <= 0:
        return float(sorted_values[0])
    if percentile >= 1:
        return float(sorted_values[-1])

    index = (len(sorted_values) - 1) * percentile
    lower = floor(index)
    upper = ceil(index)
    lower_value = float(sorted_values[lower])
    upper_value = float(sorted_values[upper])
    if lower == upper:
        return lower_value
    fraction = index - lower
    return lower_value + (upper_value - lower_value) * fraction


def _describe_durations(values: list[int]) -> dict[str, Any]:
    if not values:
        return {
            "count": 0,
            "min": None,
            "max": None,
            "mean": None,
            "median": None,
            "percentiles": {"p10": None, "p25": None, "p75": None, "p90": None},
        }

    sorted_values = sorted(values)
    return {
        "count": len(sorted_values),
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "mean": float(fmean(sorted_values)),
        "median": float(median(sorted_values)),
        "percentiles": {
            "p10": _percentile(sorted_values, 0.10),
            "p25": _percentile(sorted_values, 0.25),
            "p75": _percentile(sorted_values, 0.75),
            "p90": _percentile(sorted_values, 0.90),
        },
    }


def summarize_completion_times(games: Sequence[Game], *, example_limit: int = 5) -> Dict[str, Any]:
    """Day counts between purchase, first start and finish across the library."""

    stages = {
        "purchase_to_start": ("date_purchased", "start_date"),
        "start_to_finish": ("start_date", "end_date"),
        "purchase_to_finish": ("date_purchased", "end_date"),
    }
    samples: Dict[str, list[dict[str, Any]]] = {stage: [] for stage in stages}

    for game in owned_games(games):
        for stage, (begin_field, end_field) in stages.items():
            begin = getattr(game, begin_field)
            end = getattr(game, end_field)
            if begin and end:
                samples[stage].append(
                    {
                        "game_id": game.id,
                        "name": game.name,
                        "days": (end - begin).days,
                        begin_field: begin.isoformat(),
                        end_field: end.isoformat(),
                    }
                )

    def _summarize(entries: list[dict[str, Any]]) -> dict[str, Any]:
        return {
            "statistics": _describe_durations([entry["days"] for entry in entries]),
            "longest_examples": rank(entries, lambda entry: entry["days"])[
                : max(0, int(example_limit))
            ],
        }

    return {stage: _summarize(entries) for stage, entries in samples.items()}


_PERSONALITY_DESCRIPTIONS = {
    "Completionist": "You see games through to the end. No game left behind!",
    "Deep Diver": "You get deeply invested in the games you love.",
    "Sampler": "You love variety and trying new experiences.",
    "Backlog Hoarder": "Your library is... ambitious. We believe in you!",
    "Balanced Gamer": "A healthy mix of playing and completing.",
    "Speedrunner": "You blaze through games with impressive efficiency.",
    "Explorer": "Genre boundaries cannot contain you.",
}

_PERSONALITY_TRAITS = {
    "Completionist": ["Persistent", "Thorough", "Achievement Hunter"],
    "Deep Diver": ["Immersive", "Committed", "Invested"],
    "Sampler": ["Curious", "Adventurous", "Open-minded"],
    "Backlog Hoarder": ["Deal Hunter", "Optimistic", "Future-focused"],
    "Balanced Gamer": ["Disciplined", "Selective", "Mindful"],
    "Speedrunner": ["Efficient", "Focused", "Goal-oriented"],
    "Explorer": ["Versatile", "Eclectic", "Genre-fluid"],
}


def _classify_personality(
    *,
    owned: int,
    played: int,
    completed: int,
    hours: float,
    genres: int,
) -> Dict[str, Any]:
    if owned == 0:
        return {
            "type": "Balanced Gamer",
            "description": "Just getting started!",
            "traits": [],
            "score": 0.0,
        }

    average_hours = hours / played if played else 0.0
    completion_rate = completed / owned * 100
    play_rate = played / owned * 100

    scores = {
        "Completionist": completion_rate * 1.5 + (20 if average_hours > 20 else 0),
        "Deep Diver": (
            80 + min(average_hours - 30, 20) if average_hours > 30 else average_hours * 2
        ),
        "Sampler": 70 + (played - 20) if played > 20 and average_hours < 15 else 0,
        "Backlog Hoarder": (100 - play_rate) * 0.8 + (20 if owned > 50 else owned * 0.4),
        "Balanced Gamer": (
            60 if play_rate > 50 and 20 < completion_rate < 60 else 30
        ),
        "Speedrunner": 70 + completed if completed > 5 and average_hours < 12 else 0,
        "Explorer": 50 + genres * 5 if genres >= 5 else genres * 10,
    }

    # dict order is the tie-break
    archetype = rank(list(scores), lambda name: scores[name])[0]
    return {
        "type": archetype,
        "description": _PERSONALITY_DESCRIPTIONS[archetype],
        "traits": list(_PERSONALITY_TRAITS[archetype]),
        "score": float(min(100, scores[archetype])),
    }


def get_gaming_personality(games: Sequence[Game]) -> Dict[str, Any]:
    owned = owned_games(games)
    played = [game for game in owned if total_hours(game) > 0]
    return _classify_personality(
        owned=len(owned),
        played=len(played),
        completed=sum(1 for game in owned if game.status == COMPLETED),
        hours=sum(total_hours(game) for game in owned),
        genres=len({game.genre for game in played if game.genre}),
    )


def get_period_personality(games: Sequence[Game], start: date, end: date) -> Dict[str, Any]:
    """Classify only the play that happened inside ``[start, end]``."""

    summary = summarize_window(games, start, end)
    played = [entry.game for entry in summary.games_played]
    return _classify_personality(
        owned=len(played),
        played=len(played),
        completed=len(summary.completed_games),
        hours=summary.total_hours,
        genres=len(summary.hours_by_genre),
    )


def get_session_analysis(games: Sequence[Game]) -> Dict[str, Any]:
    entries = get_all_play_logs(games)
    if not entries:
        return {
            "style": "Consistent Player",
            "average_session_length": 0.0,
            "total_sessions": 0,
            "longest_session": 0.0,
            "sessions_per_week": 0.0,
            "description": "Start logging sessions to see your style!",
        }

    hours = [log.hours for _, log in entries]
    average = sum(hours) / len(hours)
    dates = [log.date for _, log in entries]
    week_span = max(1.0, (max(dates) - min(dates)).days / 7)
    per_week = len(entries) / week_span

    if average >= 3:
        style, description = "Marathon Runner", "You love long, immersive gaming sessions."
    elif average <= 1:
        style, description = "Snack Gamer", "Quick sessions fit perfectly into your busy life."
    elif per_week >= 5:
        style, description = "Consistent Player", "Gaming is a regular part of your routine."
    elif per_week <= 2 and average > 2:
        style, description = (
            "Weekend Warrior",
            "You save up your gaming for dedicated sessions.",
        )
    else:
        style, description = "Binge & Rest", "Intense bursts followed by breaks. Balance!"

    return {
        "style": style,
        "average_session_length": average,
        "total_sessions": len(entries),
        "longest_session": max(hours),
        "sessions_per_week": per_week,
        "description": description,
    }


def _last_played(game: Game) -> date | None:
    if not game.play_logs:
        return None
    return max(log.date for log in game.play_logs)


def get_rotation_stats(games: Sequence[Game], *, today: date | None = None) -> Dict[str, Any]:
    reference = today or date.today()
    two_weeks_ago = reference - timedelta(days=14)
    month_ago = reference - timedelta(days=30)
    two_months_ago = reference - timedelta(days=60)

    active: List[Game] = []
    cooling_off: List[Game] = []
    for game in owned_games(games):
        last = _last_played(game)
        if last is None:
            continue
        if last >= two_weeks_ago:
            active.append(game)
        elif two_months_ago <= last < month_ago and total_hours(game) >= 5:
            cooling_off.append(game)

    count = len(active)
    if count == 0:
        health, description = "Focused", "No recent sessions logged. Time to play!"
    elif count == 1:
        health = "Obsessed"
        description = f"All-in on {active[0].name or 'one game'}. Full immersion!"
    elif count <= 3:
        health, description = "Healthy", "A nice, manageable rotation of games."
    elif count <= 5:
        health, description = "Juggling", "Quite a few games in the mix!"
    else:
        health, description = "Overwhelmed", "So many games, so little time!"

    return {
        "active_games": active,
        "cooling_off": cooling_off,
        "rotation_health": health,
        "games_in_rotation": count,
        "description": description,
    }


def _months_before(reference: date, months: int) -> date:
    year, month = divmod(reference.year * 12 + reference.month - 1 - months, 12)
    month += 1
    day = min(reference.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def get_genre_rut(games: Sequence[Game], *, today: date | None = None) -> Dict[str, Any]:
    """Detect a single genre crowding out the last three months of play."""

    cutoff = _months_before(today or date.today(), 3)
    owned = owned_games(games)
    recent = [
        game for game in owned if any(log.date >= cutoff for log in game.play_logs)
    ]

    if len(recent) < 3:
        return {
            "is_in_rut": False,
            "dominant_genre": None,
            "dominant_percentage": 0.0,
            "suggestion": "Play more games to see genre patterns!",
            "underexplored_genres": [],
        }

    genre_counts: Dict[str, int] = {}
    for game in recent:
        if game.genre:
            genre_counts[game.genre] = genre_counts.get(game.genre, 0) + 1

    with_genre = sum(genre_counts.values())
    dominant = None
    share = 0.0
    if genre_counts:
        dominant = rank(list(genre_counts), lambda genre: genre_counts[genre])[0]
        share = genre_counts[dominant] / with_genre * 100
    in_rut = share >= 60

    underexplored: List[str] = []
    for game in owned:
        if game.genre and game.genre not in genre_counts and game.genre not in underexplored:
            underexplored.append(game.genre)

    if in_rut and dominant:
        suggestion = (
            f"You've been playing a lot of {dominant}. Maybe try something different?"
        )
    elif underexplored:
        suggestion = (
            f"You have {len(underexplored)} genre(s) in your library you haven't "
            "touched recently!"
        )
    else:
        suggestion = "Nice variety in your recent gaming!"

    return {
        "is_in_rut": in_rut,
        "dominant_genre": dominant,
        "dominant_percentage": share,
        "suggestion": suggestion,
        "underexplored_genres": underexplored,
    }


_GRADE_SCALE = (
    (95, "A+"),
    (90, "A"),
    (85, "A-"),
    (80, "B+"),
    (75, "B"),
    (70, "B-"),
    (65, "C+"),
    (60, "C"),
    (55, "C-"),
    (45, "D"),
)

# subject -> weight in the overall score
_GRADE_WEIGHTS = {
    "Dedication": 0.30,
    "Consistency": 0.25,
    "Variety": 0.15,
    "Follow-through": 0.15,
    "Session Quality": 0.15,
}


def letter_grade(score: float) -> str:
    for floor_score, letter in _GRADE_SCALE:
        if score >= floor_score:
            return letter
    return "F"


def _session_quality(average: float) -> float:
    """Sessions between 1.5 and 3 hours score full marks."""

    if average <= 0:
        return 0.0
    if average < 1.5:
        return average / 1.5 * 100
    if average <= 3:
        return 100.0
    return max(40.0, 100 - (average - 3) * 20)


def grade_period(games: Sequence[Game], start: date, end: date) -> Dict[str, Any]:
    """Report-card style grade for the play inside ``[start, end]``.

    Subject caps are rates so the same scale works for a week or a year:

    * Dedication: 2 hours per day scores 100.
    * Consistency: share of days with any play.
    * Variety: 4 genres give 60 points, 5 distinct games give 40.
    * Follow-through: one completion per 14 days scores 100.
    * Session Quality: see ``_session_quality``.
    """

    summary = summarize_window(games, start, end)
    days = max(1, summary.window.days)

    raw_scores = {
        "Dedication": min(summary.total_hours / days / 2.0, 1.0) * 100,
        "Consistency": min(summary.active_days / days, 1.0) * 100,
        "Variety": min(len(summary.hours_by_genre) / 4, 1.0) * 60
        + min(summary.unique_games / 5, 1.0) * 40,
        "Follow-through": min(
            len(summary.completed_games) / max(1.0, days / 14), 1.0
        )
        * 100,
        "Session Quality": _session_quality(summary.average_session_length),
    }

    subjects = [
        {"name": name, "score": round(score, 1), "grade": letter_grade(score)}
        for name, score in raw_scores.items()
    ]
    overall = sum(raw_scores[name] * weight for name, weight in _GRADE_WEIGHTS.items())
    return {
        "subjects": subjects,
        "overall_score": round(overall, 1),
        "overall": letter_grade(overall),
    }


def _intensity_label(intensity: float) -> str:
    if intensity >= 80:
        return "Intense"
    if intensity >= 60:
        return "Active"
    if intensity >= 40:
        return "Moderate"
    if intensity >= 20:
        return "Light"
    return "Quiet"


def get_mood_arc(games: Sequence[Game], start: date, end: date) -> List[Dict[str, Any]]:
    """Week-by-week play intensity across ``[start, end]``.

    Intensity is out of 100: hours (15 h caps at 50 points), sessions
    (7 caps at 25 points), and the share of active days (25 points).
    The final chunk may be shorter than seven days.
    """

    arc: List[Dict[str, Any]] = []
    chunk_start = start
    week_number = 1
    while chunk_start <= end:
        chunk_end = min(chunk_start + timedelta(days=6), end)
        summary = summarize_window(games, chunk_start, chunk_end)
        intensity = (
            min(summary.total_hours / 15, 1.0) * 50
            + min(summary.total_sessions / 7, 1.0) * 25
            + summary.active_days / summary.window.days * 25
        )
        arc.append(
            {
                "week_num": week_number,
                "start": chunk_start,
                "end": chunk_end,
                "hours": summary.total_hours,
                "sessions": summary.total_sessions,
                "intensity": round(intensity),
                "label": _intensity_label(intensity),
            }
        )
        chunk_start = chunk_end + timedelta(days=1)
        week_number += 1
    return arc
