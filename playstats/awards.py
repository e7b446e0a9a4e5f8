"""Periodic award categories, nominee pools and winners.

Each tier (week, month, quarter, year) has a fixed catalogue of
categories. A category picks its nominees from the games played inside
the period window, gives each nominee a stat line and a numeric score,
and the highest score wins. Ties go to the earlier nominee.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from statistics import pstdev
from typing import Callable, Dict, List, Sequence

from .aggregation import (
    GameActivity,
    PeriodWindow,
    WindowSummary,
    format_period_label,
    owned_games,
    parse_period_key,
    period_key,
    rank,
    resolve_period_window,
    summarize_window,
)
from .metrics import cost_per_hour, total_hours
from .records import Game, PlayLog
from .statuses import ABANDONED, IN_PROGRESS


logger = logging.getLogger(__name__)

MIN_NOMINEES = 2
UNPLAYED_COST = 999.0


@dataclass(frozen=True)
class Nominee:
    game_id: str
    game_name: str
    stat_line: str
    score: float

    def to_dict(self) -> dict:
        return {
            "game_id": self.game_id,
            "game_name": self.game_name,
            "stat_line": self.stat_line,
            "score": self.score,
        }


@dataclass(frozen=True)
class Award:
    category_id: str
    label: str
    description: str
    nominees: List[Nominee]
    winner: Nominee

    def to_dict(self) -> dict:
        return {
            "category_id": self.category_id,
            "label": self.label,
            "description": self.description,
            "nominees": [nominee.to_dict() for nominee in self.nominees],
            "winner": self.winner.to_dict(),
        }


@dataclass(frozen=True)
class PeriodAwards:
    period_type: str
    period_key: str
    label: str
    window: PeriodWindow
    awards: List[Award] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "period_type": self.period_type,
            "period_key": self.period_key,
            "label": self.label,
            "start": self.window.start.isoformat(),
            "end": self.window.end.isoformat(),
            "awards": [award.to_dict() for award in self.awards],
        }


@dataclass(frozen=True)
class _Context:
    period_type: str
    games: Sequence[Game]
    summary: WindowSummary

    @property
    def window(self) -> PeriodWindow:
        return self.summary.window

    @property
    def by_hours(self) -> List[GameActivity]:
        return self.summary.games_played

    @property
    def phrase(self) -> str:
        if self.period_type == "year":
            return f"in {self.window.start.year}"
        return f"this {self.period_type}"

    def logs(self, activity: GameActivity) -> List[PlayLog]:
        entries = [log for log in activity.game.play_logs if self.window.contains(log.date)]
        return sorted(entries, key=lambda log: log.date)

    def activity_for(self, game: Game, index: int) -> GameActivity:
        for entry in self.by_hours:
            if entry.index == index:
                return entry
        return GameActivity(game=game, index=index)


StatLine = Callable[[_Context, GameActivity], str]
Score = Callable[[_Context, GameActivity], float]


@dataclass(frozen=True)
class AwardCategory:
    id: str
    label: str
    description: str
    select: Callable[[_Context], List[GameActivity]]
    stat_line: StatLine
    score: Score


def pick_winner(nominees: Sequence[Nominee]) -> Nominee:
    """Highest score wins; the earliest nominee wins a tie."""

    if not nominees:
        raise ValueError("Cannot pick a winner without nominees.")
    best_index = max(
        range(len(nominees)), key=lambda index: (nominees[index].score, -index)
    )
    return nominees[best_index]


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def _with_fallback(
    chosen: List[GameActivity], fallback: List[GameActivity]
) -> List[GameActivity]:
    return chosen if chosen else fallback


def _cph(activity: GameActivity) -> float:
    game = activity.game
    hours = total_hours(game)
    if hours > 0 and game.price > 0:
        return cost_per_hour(game.price, hours)
    return UNPLAYED_COST


def _window_cph(activity: GameActivity) -> float:
    return activity.game.price / activity.hours if activity.hours > 0 else UNPLAYED_COST


def _longest_gap(ctx: _Context, activity: GameActivity) -> int:
    dates = [log.date for log in ctx.logs(activity)]
    return max(((later - earlier).days for earlier, later in zip(dates, dates[1:])), default=0)


def _session_growth(ctx: _Context, activity: GameActivity) -> float:
    logs = ctx.logs(activity)
    if len(logs) < 3:
        return 0.0
    middle = len(logs) // 2
    first = [log.hours for log in logs[:middle]]
    second = [log.hours for log in logs[middle:]]
    first_average = sum(first) / len(first)
    second_average = sum(second) / len(second)
    return second_average / first_average if first_average > 0 else 0.0


def _is_steady(ctx: _Context, activity: GameActivity) -> bool:
    dates = [log.date for log in ctx.logs(activity)]
    if len(dates) < 3:
        return False
    gaps = [(later - earlier).days for earlier, later in zip(dates, dates[1:])]
    average = sum(gaps) / len(gaps)
    return pstdev(gaps) < average * 0.6 and average < 15


def _disappointment(ctx: _Context, activity: GameActivity) -> float:
    rating = activity.game.rating
    return (10 - rating) * activity.hours if rating > 0 else 0.0


def _prior_genres(ctx: _Context) -> set[str]:
    start = ctx.window.start
    genres = set()
    for game in owned_games(ctx.games):
        if not game.genre:
            continue
        played_before = any(log.date < start for log in game.play_logs)
        if played_before or (game.start_date and game.start_date < start):
            genres.add(game.genre)
    return genres


def _hours_line(ctx: _Context, activity: GameActivity) -> str:
    return f"{activity.hours:.1f}h {ctx.phrase} · {_plural(activity.sessions, 'session')}"


def _rated_line(ctx: _Context, activity: GameActivity) -> str:
    return f"{activity.hours:.1f}h {ctx.phrase} · rated {activity.game.rating:g}/10"


def _best_session_line(ctx: _Context, activity: GameActivity) -> str:
    return f"Best session: {activity.best_session:.1f}h"


def _hours(ctx: _Context, activity: GameActivity) -> float:
    return activity.hours


def _best_session(ctx: _Context, activity: GameActivity) -> float:
    return activity.best_session


def _sessions(ctx: _Context, activity: GameActivity) -> float:
    return float(activity.sessions)


def _days_played(ctx: _Context, activity: GameActivity) -> float:
    return float(activity.days_played)


def _rating(ctx: _Context, activity: GameActivity) -> float:
    return activity.game.rating


def _all_played(ctx: _Context) -> List[GameActivity]:
    return list(ctx.by_hours)


def _top(count: int) -> Callable[[_Context], List[GameActivity]]:
    return lambda ctx: ctx.by_hours[:count]


def _by_best_session(ctx: _Context) -> List[GameActivity]:
    return rank(ctx.by_hours, lambda entry: entry.best_session)


def _comebacks(ctx: _Context) -> List[GameActivity]:
    returned = [entry for entry in ctx.by_hours if _longest_gap(ctx, entry) >= 7]
    return _with_fallback(returned, ctx.by_hours)


def _by_value(ctx: _Context) -> List[GameActivity]:
    return rank(ctx.by_hours, _cph, descending=False)


def _growers(ctx: _Context) -> List[GameActivity]:
    grown = [
        entry
        for entry in ctx.by_hours
        if len(ctx.logs(entry)) >= 3 and _session_growth(ctx, entry) > 1.2
    ]
    return _with_fallback(grown, ctx.by_hours[:4])


def _steady(ctx: _Context) -> List[GameActivity]:
    steady = [entry for entry in ctx.by_hours if _is_steady(ctx, entry)]
    return _with_fallback(steady, ctx.by_hours[:4])


def _discoveries(ctx: _Context) -> List[GameActivity]:
    firsts = {id(game) for game in ctx.summary.first_played_games}
    found = [entry for entry in ctx.by_hours if id(entry.game) in firsts]
    return _with_fallback(found, ctx.by_hours[:4])


def _grinds(ctx: _Context) -> List[GameActivity]:
    grinding = [
        entry
        for entry in ctx.by_hours
        if 0 < entry.game.rating <= 7 and entry.hours >= 5
    ]
    return _with_fallback(grinding, ctx.by_hours[:4])


def _pioneers(ctx: _Context) -> List[GameActivity]:
    prior = _prior_genres(ctx)
    fresh = [
        entry
        for entry in ctx.by_hours
        if entry.game.genre and entry.game.genre not in prior
    ]
    return _with_fallback(fresh, ctx.by_hours[:4])


def _soulmates(ctx: _Context) -> List[GameActivity]:
    matches = [
        entry for entry in ctx.by_hours if entry.game.rating >= 7 and entry.hours >= 10
    ]
    matches = rank(matches, lambda entry: entry.hours * entry.game.rating)
    return _with_fallback(matches, ctx.by_hours)[:6]


def _surprises(ctx: _Context) -> List[GameActivity]:
    liked = [entry for entry in ctx.by_hours if entry.game.rating >= 7]
    return _with_fallback(liked, ctx.by_hours)[:6]


def _investments(ctx: _Context) -> List[GameActivity]:
    paid = [
        entry
        for entry in ctx.by_hours
        if not entry.game.acquired_free and entry.game.price > 0 and entry.hours > 0
    ]
    paid = rank(paid, _window_cph, descending=False)
    return _with_fallback(paid, ctx.by_hours)[:6]


def _session_champs(ctx: _Context) -> List[GameActivity]:
    return _by_best_session(ctx)[:6]


def _got_away(ctx: _Context) -> List[GameActivity]:
    missed = []
    in_progress = []
    for index, game in enumerate(ctx.games):
        if game.is_wishlist:
            continue
        activity = ctx.activity_for(game, index)
        if game.status == IN_PROGRESS:
            in_progress.append(activity)
        if game.status == ABANDONED or (
            game.status == IN_PROGRESS and activity.hours == 0 and game.play_logs
        ):
            missed.append(activity)
    missed = rank(missed, lambda entry: entry.game.logged_hours)
    return _with_fallback(missed, in_progress)[:6]


def _got_away_line(ctx: _Context, activity: GameActivity) -> str:
    if activity.game.status == ABANDONED:
        return f"Abandoned after {activity.game.logged_hours:.1f}h"
    return "Still unfinished"


def _investment_line(ctx: _Context, activity: GameActivity) -> str:
    cost = _window_cph(activity)
    if activity.game.price > 0 and cost != UNPLAYED_COST:
        return f"${cost:.2f}/hr · ${activity.game.price:g} for {activity.hours:.1f}h"
    return f"{activity.hours:.1f}h · free"


def _value_line(ctx: _Context, activity: GameActivity) -> str:
    cost = _cph(activity)
    if cost == UNPLAYED_COST:
        return f"{activity.hours:.1f}h {ctx.phrase} · free"
    return f"${cost:.2f}/hr overall · {activity.hours:.1f}h {ctx.phrase}"


def _comeback_line(ctx: _Context, activity: GameActivity) -> str:
    gap = _longest_gap(ctx, activity)
    if gap >= 7:
        return f"Back after {gap} days away · {activity.hours:.1f}h"
    return _hours_line(ctx, activity)


CATEGORIES: Dict[str, tuple[AwardCategory, ...]] = {
    "week": (
        AwardCategory(
            "game_of_week",
            "Game of the Week",
            "Your MVP. The game that owned this week.",
            _all_played,
            _hours_line,
            _hours,
        ),
        AwardCategory(
            "best_session",
            "Best Session",
            "Which game hosted your best single session?",
            _all_played,
            _best_session_line,
            _best_session,
        ),
        AwardCategory(
            "guilty_pleasure",
            "Guilty Pleasure",
            "The one you kept going back to even if you won't brag about it.",
            _all_played,
            _hours_line,
            _sessions,
        ),
    ),
    "month": (
        AwardCategory(
            "game_of_month",
            "Game of the Month",
            "Your overall pick for the month.",
            _all_played,
            _hours_line,
            _hours,
        ),
        AwardCategory(
            "best_session_month",
            "Best Session",
            "Which game hosted your best single session?",
            _by_best_session,
            _best_session_line,
            _best_session,
        ),
        AwardCategory(
            "the_comeback",
            "The Comeback",
            "A game you returned to after a break.",
            _comebacks,
            _comeback_line,
            lambda ctx, entry: float(_longest_gap(ctx, entry)),
        ),
        AwardCategory(
            "best_value_month",
            "Best Value",
            "Most for your money or time this month.",
            _by_value,
            _value_line,
            lambda ctx, entry: -_cph(entry),
        ),
        AwardCategory(
            "underdog_month",
            "The Underdog",
            "Surprised you. Exceeded expectations.",
            _all_played,
            _rated_line,
            lambda ctx, entry: entry.hours / (entry.game.price + 1),
        ),
        AwardCategory(
            "disappointment_month",
            "Disappointment of the Month",
            "It let you down. Didn't live up to the hype.",
            _all_played,
            _rated_line,
            _disappointment,
        ),
        AwardCategory(
            "wild_card",
            "Wild Card",
            "The game that kept turning up on different days.",
            _all_played,
            lambda ctx, entry: f"Played on {_plural(entry.days_played, 'day')}",
            _days_played,
        ),
    ),
    "quarter": (
        AwardCategory(
            "game_of_quarter",
            "Game of the Quarter",
            "The defining game of these three months.",
            _top(6),
            _rated_line,
            _hours,
        ),
        AwardCategory(
            "the_grower",
            "The Grower",
            "Sessions got longer and better as you played more.",
            _growers,
            lambda ctx, entry: f"Sessions grew · {entry.hours:.1f}h total",
            _session_growth,
        ),
        AwardCategory(
            "most_consistent",
            "Most Consistent",
            "Showed up regularly with steady sessions all quarter.",
            _steady,
            lambda ctx, entry: f"Regular sessions · {_plural(entry.sessions, 'session')}",
            _sessions,
        ),
        AwardCategory(
            "best_discovery",
            "Best Discovery",
            "A standout game you found for the first time this quarter.",
            _discoveries,
            lambda ctx, entry: f"First played this quarter · rated {entry.game.rating:g}/10",
            _rating,
        ),
        AwardCategory(
            "disappointment_quarter",
            "Biggest Disappointment",
            "It let you down. The game that didn't live up.",
            _top(5),
            _rated_line,
            _disappointment,
        ),
        AwardCategory(
            "the_grind",
            "The Grind",
            "You put in the hours even when it was hard.",
            _grinds,
            lambda ctx, entry: (
                f"{entry.hours:.1f}h despite rating {entry.game.rating:g}/10"
            ),
            _hours,
        ),
        AwardCategory(
            "genre_pioneer",
            "Genre Pioneer",
            "Ventured into a genre you hadn't explored before.",
            _pioneers,
            lambda ctx, entry: f"First {entry.game.genre or 'new'} game · {entry.hours:.1f}h",
            _hours,
        ),
        AwardCategory(
            "spotlight",
            "Spotlight",
            "Something interesting worth recognising.",
            _top(5),
            lambda ctx, entry: f"Played on {_plural(entry.days_played, 'day')}",
            _days_played,
        ),
    ),
    "year": (
        AwardCategory(
            "game_of_year",
            "Game of the Year",
            "Your personal game of the year. The one that defined it.",
            _top(8),
            _rated_line,
            _hours,
        ),
        AwardCategory(
            "soulmate",
            "The Soulmate",
            "The game you felt most connected to, hours and love alike.",
            _soulmates,
            lambda ctx, entry: (
                f"{entry.hours:.1f}h · rated {entry.game.rating:g}/10 · a keeper"
            ),
            lambda ctx, entry: entry.hours * entry.game.rating,
        ),
        AwardCategory(
            "biggest_surprise",
            "Biggest Surprise",
            "You didn't see it coming. It exceeded every expectation.",
            _surprises,
            _rated_line,
            _rating,
        ),
        AwardCategory(
            "endurance",
            "The Endurance Award",
            "Most committed. Most hours. The long haul game.",
            _top(6),
            lambda ctx, entry: f"{entry.hours:.1f}h {ctx.phrase}",
            _hours,
        ),
        AwardCategory(
            "best_investment",
            "Best Investment",
            "Best value for money.",
            _investments,
            _investment_line,
            lambda ctx, entry: -_window_cph(entry),
        ),
        AwardCategory(
            "session_of_year",
            "Session of the Year",
            "The game that hosted your single greatest gaming moment.",
            _session_champs,
            _best_session_line,
            _best_session,
        ),
        AwardCategory(
            "one_that_got_away",
            "The One That Got Away",
            "A game you wish you'd spent more time on.",
            _got_away,
            _got_away_line,
            lambda ctx, entry: entry.game.logged_hours,
        ),
        AwardCategory(
            "legacy",
            "The Legacy",
            "The game that changed how you think about gaming.",
            _top(8),
            _rated_line,
            _rating,
        ),
        AwardCategory(
            "critics_choice",
            "Critics' Choice",
            "A pick you might not have expected.",
            _top(6),
            lambda ctx, entry: f"Played on {_plural(entry.days_played, 'day')}",
            _days_played,
        ),
    ),
}


def _build_category(category: AwardCategory, ctx: _Context) -> Award | None:
    pool = category.select(ctx)
    if len(pool) < MIN_NOMINEES:
        return None
    nominees = [
        Nominee(
            game_id=entry.game.id,
            game_name=entry.game.name,
            stat_line=category.stat_line(ctx, entry),
            score=float(category.score(ctx, entry)),
        )
        for entry in pool
    ]
    return Award(
        category_id=category.id,
        label=category.label,
        description=category.description,
        nominees=nominees,
        winner=pick_winner(nominees),
    )


def _build_for_window(
    games: Sequence[Game], period_type: str, window: PeriodWindow
) -> PeriodAwards:
    ctx = _Context(
        period_type=period_type,
        games=games,
        summary=summarize_window(games, window.start, window.end),
    )
    awards = []
    for category in CATEGORIES[period_type]:
        award = _build_category(category, ctx)
        if award is None:
            logger.debug("Skipping %s: fewer than %s nominees", category.id, MIN_NOMINEES)
            continue
        awards.append(award)

    return PeriodAwards(
        period_type=period_type,
        period_key=period_key(period_type, window.start),
        label=format_period_label(window, period_type),
        window=window,
        awards=awards,
    )


def build_awards(games: Sequence[Game], period_type: str, anchor: date) -> PeriodAwards:
    """Nominate and pick winners for the period containing ``anchor``."""

    if period_type not in CATEGORIES:
        raise ValueError(f"Unsupported period: {period_type}")
    return _build_for_window(games, period_type, resolve_period_window(anchor, period_type))


def build_awards_for_key(games: Sequence[Game], key: str) -> PeriodAwards:
    period_type, window = parse_period_key(key)
    return _build_for_window(games, period_type, window)
