from __future__ import annotations

import calendar
import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Dict, Iterable, Iterator, List, Sequence, TypeVar

from .metrics import cost_per_hour, days_to_complete, roi, total_hours
from .records import Game, PlayLog
from .statuses import ABANDONED, COMPLETED, IN_PROGRESS, NOT_STARTED


T = TypeVar("T")

UNKNOWN_BUCKET = "Unknown"
PERIOD_TYPES: tuple[str, ...] = ("week", "month", "quarter", "year")


def rank(
    items: Iterable[T], key: Callable[[T], float], *, descending: bool = True
) -> List[T]:
    """Sort ``items`` by ``key`` with input order as an explicit tie-break."""

    indexed = list(enumerate(items))
    sign = -1.0 if descending else 1.0
    indexed.sort(key=lambda pair: (sign * float(key(pair[1])), pair[0]))
    return [item for _, item in indexed]


def owned_games(games: Iterable[Game]) -> List[Game]:
    return [game for game in games if not game.is_wishlist]


def _iter_logs(games: Sequence[Game]) -> Iterator[tuple[int, Game, PlayLog]]:
    for index, game in enumerate(games):
        if game.is_wishlist:
            continue
        for log in game.play_logs:
            yield index, game, log


def is_discounted(game: Game) -> bool:
    return (
        not game.acquired_free
        and game.original_price is not None
        and game.original_price > game.price
    )


def _discount_percent(game: Game) -> float:
    original = game.original_price or 0.0
    if original <= 0:
        return 0.0
    return (original - game.price) / original * 100.0


def _add(bucket: Dict[str, float], key: str | None, amount: float) -> None:
    bucket[key or UNKNOWN_BUCKET] = bucket.get(key or UNKNOWN_BUCKET, 0.0) + amount


def calculate_summary(games: Sequence[Game]) -> Dict[str, Any]:
    """Build the library-wide analytics summary."""

    owned = owned_games(games)
    wishlist = [game for game in games if game.is_wishlist]
    by_status: Dict[str, List[Game]] = defaultdict(list)
    for game in owned:
        by_status[game.status].append(game)

    hours_by_game = {id(game): total_hours(game) for game in games}
    played = [game for game in owned if hours_by_game[id(game)] > 0]
    completed = by_status[COMPLETED]

    total_spent = sum(game.price for game in owned)
    total_played_hours = sum(hours_by_game[id(game)] for game in owned)

    discounted = [game for game in owned if is_discounted(game)]
    total_discount_savings = sum(
        (game.original_price or 0.0) - game.price for game in discounted
    )
    average_discount = (
        sum(_discount_percent(game) for game in discounted) / len(discounted)
        if discounted
        else 0.0
    )

    completion_times = [
        days_to_complete(game.start_date, game.end_date)
        for game in completed
        if game.start_date and game.end_date
    ]
    completion_times = [days for days in completion_times if days is not None]

    def _cph(game: Game) -> float:
        return cost_per_hour(game.price, hours_by_game[id(game)])

    best_value = worst_value = most_played = highest_rated = best_roi = None
    if played:
        value_candidates = [
            game
            for game in played
            if hours_by_game[id(game)] >= 5 and not game.acquired_free
        ]
        if value_candidates:
            best = rank(value_candidates, _cph, descending=False)[0]
            best_value = {"name": best.name, "cost_per_hour": _cph(best)}

        worst_candidates = [
            game
            for game in played
            if hours_by_game[id(game)] >= 2 and not game.acquired_free and game.price > 0
        ]
        if worst_candidates:
            worst = rank(worst_candidates, _cph)[0]
            worst_value = {"name": worst.name, "cost_per_hour": _cph(worst)}

        top = rank(played, lambda game: hours_by_game[id(game)])[0]
        most_played = {"name": top.name, "hours": hours_by_game[id(top)]}

        favourite = rank(played, lambda game: game.rating)[0]
        highest_rated = {"name": favourite.name, "rating": favourite.rating}

        paid = [game for game in played if game.price > 0 and not game.acquired_free]
        if paid:
            roi_of = lambda game: roi(game.rating, hours_by_game[id(game)], game.price)
            leader = rank(paid, roi_of)[0]
            best_roi = {"name": leader.name, "roi": roi_of(leader)}

    spending_by_genre: Dict[str, float] = {}
    spending_by_platform: Dict[str, float] = {}
    spending_by_source: Dict[str, float] = {}
    spending_by_year: Dict[str, float] = {}
    spending_by_franchise: Dict[str, float] = {}
    hours_by_genre: Dict[str, float] = {}
    hours_by_franchise: Dict[str, float] = {}
    games_by_franchise: Dict[str, float] = {}

    for game in owned:
        hours = hours_by_game[id(game)]
        year = str(game.date_purchased.year) if game.date_purchased else None
        _add(spending_by_genre, game.genre, game.price)
        _add(hours_by_genre, game.genre, hours)
        _add(spending_by_platform, game.platform, game.price)
        _add(spending_by_source, game.purchase_source, game.price)
        _add(spending_by_year, year, game.price)
        _add(spending_by_franchise, game.franchise, game.price)
        _add(hours_by_franchise, game.franchise, hours)
        _add(games_by_franchise, game.franchise, 1)

    free_games = [game for game in owned if game.acquired_free]
    hours_by_subscription: Dict[str, float] = defaultdict(float)
    saved_by_subscription: Dict[str, float] = defaultdict(float)
    games_by_subscription: Dict[str, int] = defaultdict(int)
    for game in free_games:
        source = game.subscription_source or "Other"
        hours_by_subscription[source] += hours_by_game[id(game)]
        saved_by_subscription[source] += game.original_price or 0.0
        games_by_subscription[source] += 1

    return {
        "total_games": len(games),
        "owned_count": len(owned),
        "wishlist_count": len(wishlist),
        "completed_count": len(completed),
        "in_progress_count": len(by_status[IN_PROGRESS]),
        "not_started_count": len(by_status[NOT_STARTED]),
        "abandoned_count": len(by_status[ABANDONED]),
        "total_spent": total_spent,
        "wishlist_value": sum(game.price for game in wishlist),
        "backlog_value": sum(game.price for game in by_status[NOT_STARTED]),
        "average_price": total_spent / len(owned) if owned else 0.0,
        "average_cost_per_hour": cost_per_hour(total_spent, total_played_hours),
        "total_discount_savings": total_discount_savings,
        "average_discount": average_discount,
        "total_hours": total_played_hours,
        "average_hours_per_game": total_played_hours / len(played) if played else 0.0,
        "average_rating": (
            sum(game.rating for game in played) / len(played) if played else 0.0
        ),
        "average_days_to_complete": (
            sum(completion_times) / len(completion_times) if completion_times else None
        ),
        "completion_rate": len(completed) / len(owned) * 100 if owned else 0.0,
        "best_value": best_value,
        "worst_value": worst_value,
        "most_played": most_played,
        "highest_rated": highest_rated,
        "best_roi": best_roi,
        "spending_by_genre": spending_by_genre,
        "spending_by_platform": spending_by_platform,
        "spending_by_source": spending_by_source,
        "spending_by_year": spending_by_year,
        "hours_by_genre": hours_by_genre,
        "spending_by_franchise": spending_by_franchise,
        "hours_by_franchise": hours_by_franchise,
        "games_by_franchise": {key: int(value) for key, value in games_by_franchise.items()},
        "free_games_count": len(free_games),
        "total_saved": sum(game.original_price or 0.0 for game in free_games),
        "hours_by_subscription": dict(hours_by_subscription),
        "saved_by_subscription": dict(saved_by_subscription),
        "games_by_subscription": dict(games_by_subscription),
    }


def get_all_play_logs(games: Sequence[Game]) -> List[tuple[Game, PlayLog]]:
    """Every logged session paired with its game, newest first."""

    entries = [(game, log) for _, game, log in _iter_logs(games)]
    return rank(entries, lambda entry: entry[1].date.toordinal())


def _month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def get_hours_by_month(games: Sequence[Game]) -> Dict[str, float]:
    hours_by_month: Dict[str, float] = defaultdict(float)
    for _, _, log in _iter_logs(games):
        hours_by_month[_month_key(log.date)] += log.hours
    return dict(hours_by_month)


def get_spending_by_month(games: Sequence[Game]) -> Dict[str, float]:
    spending_by_month: Dict[str, float] = defaultdict(float)
    for game in owned_games(games):
        if game.date_purchased:
            spending_by_month[_month_key(game.date_purchased)] += game.price
    return dict(spending_by_month)


def get_cumulative_spending(games: Sequence[Game]) -> List[Dict[str, Any]]:
    spending_by_month = get_spending_by_month(games)
    cumulative = 0.0
    series: List[Dict[str, Any]] = []
    # zero-padded YYYY-MM keys sort chronologically
    for month in sorted(spending_by_month):
        cumulative += spending_by_month[month]
        series.append(
            {"month": month, "total": spending_by_month[month], "cumulative": cumulative}
        )
    return series


@dataclass(frozen=True)
class PeriodStats:
    games_played: List[Game]
    total_hours: float
    total_sessions: int
    most_played_game: Dict[str, Any] | None
    average_session_length: float
    unique_games: int

    def to_dict(self) -> dict:
        return {
            "games_played": [game.name for game in self.games_played],
            "total_hours": self.total_hours,
            "total_sessions": self.total_sessions,
            "most_played_game": self.most_played_game,
            "average_session_length": self.average_session_length,
            "unique_games": self.unique_games,
        }


def _collect_period_stats(
    games: Sequence[Game], include: Callable[[date], bool]
) -> PeriodStats:
    per_game: Dict[int, Dict[str, Any]] = {}
    total = 0.0
    sessions = 0
    for index, game, log in _iter_logs(games):
        if not include(log.date):
            continue
        entry = per_game.setdefault(index, {"game": game, "hours": 0.0, "sessions": 0})
        entry["hours"] += log.hours
        entry["sessions"] += 1
        total += log.hours
        sessions += 1

    entries = [per_game[index] for index in sorted(per_game)]
    most_played = None
    if entries:
        leader = rank(entries, lambda entry: entry["hours"])[0]
        most_played = {"name": leader["game"].name, "hours": leader["hours"]}

    return PeriodStats(
        games_played=[entry["game"] for entry in entries],
        total_hours=total,
        total_sessions=sessions,
        most_played_game=most_played,
        average_session_length=total / sessions if sessions else 0.0,
        unique_games=len(entries),
    )


def get_period_stats(
    games: Sequence[Game], days: int, *, today: date | None = None
) -> PeriodStats:
    """Aggregate play logs from the last ``days`` days (rolling window)."""

    cutoff = (today or date.today()) - timedelta(days=days)
    return _collect_period_stats(games, lambda day: day >= cutoff)


def get_period_stats_for_range(
    games: Sequence[Game], start: date, end: date
) -> PeriodStats:
    return _collect_period_stats(games, lambda day: start <= day <= end)


def get_last_week_stats(games: Sequence[Game], *, today: date | None = None) -> PeriodStats:
    end = (today or date.today()) - timedelta(days=7)
    return get_period_stats_for_range(games, end - timedelta(days=6), end)


def get_last_month_stats(games: Sequence[Game], *, today: date | None = None) -> PeriodStats:
    end = (today or date.today()) - timedelta(days=30)
    return get_period_stats_for_range(games, end - timedelta(days=29), end)


def compare_period_stats(current: PeriodStats, previous: PeriodStats) -> Dict[str, Any]:
    hours_diff = current.total_hours - previous.total_hours
    if abs(hours_diff) < 0.5:
        trend = "same"
    elif hours_diff > 0:
        trend = "up"
    else:
        trend = "down"
    return {
        "hours_diff": hours_diff,
        "games_diff": current.unique_games - previous.unique_games,
        "sessions_diff": current.total_sessions - previous.total_sessions,
        "trend": trend,
    }


def _logged_days(games: Sequence[Game]) -> set[date]:
    return {log.date for _, _, log in _iter_logs(games) if log.hours > 0}


def get_current_streak(games: Sequence[Game], *, today: date | None = None) -> int:
    """Count consecutive logged days walking backwards from today.

    An empty today does not break the streak; the walk starts from
    yesterday instead.
    """

    days = _logged_days(games)
    if not days:
        return 0

    cursor = today or date.today()
    if cursor not in days:
        cursor -= timedelta(days=1)

    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def get_longest_streak(games: Sequence[Game]) -> int:
    days = sorted(_logged_days(games))
    if not days:
        return 0

    longest = current = 1
    for previous, current_day in zip(days, days[1:]):
        if (current_day - previous).days == 1:
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


def get_best_gaming_month(games: Sequence[Game]) -> Dict[str, Any] | None:
    hours_by_month = get_hours_by_month(games)
    if not hours_by_month:
        return None
    month = rank(sorted(hours_by_month), lambda key: hours_by_month[key])[0]
    return {"month": month, "hours": hours_by_month[month]}


def get_gaming_velocity(
    games: Sequence[Game], days: int, *, today: date | None = None
) -> float:
    if days <= 0:
        return 0.0
    return get_period_stats(games, days, today=today).total_hours / days


def get_monthly_trends(
    games: Sequence[Game], month_count: int = 12, *, today: date | None = None
) -> List[Dict[str, Any]]:
    """Hours, spend and purchases for the ``month_count`` months ending today."""

    reference = today or date.today()
    hours_by_month = get_hours_by_month(games)
    spending_by_month = get_spending_by_month(games)
    purchases: Dict[str, int] = defaultdict(int)
    for game in owned_games(games):
        if game.date_purchased:
            purchases[_month_key(game.date_purchased)] += 1

    trends: List[Dict[str, Any]] = []
    for offset in range(month_count - 1, -1, -1):
        year, month = divmod(reference.year * 12 + reference.month - 1 - offset, 12)
        key = f"{year:04d}-{month + 1:02d}"
        trends.append(
            {
                "month": key,
                "hours": hours_by_month.get(key, 0.0),
                "spent": spending_by_month.get(key, 0.0),
                "games": purchases.get(key, 0),
            }
        )
    return trends


@dataclass(frozen=True)
class PeriodWindow:
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, value: date | None) -> bool:
        return value is not None and self.start <= value <= self.end


def resolve_period_window(anchor: date, period_type: str) -> PeriodWindow:
    if period_type == "week":
        iso_year, iso_week, _ = anchor.isocalendar()
        start = date.fromisocalendar(iso_year, iso_week, 1)
        return PeriodWindow(start=start, end=start + timedelta(days=6))
    if period_type == "month":
        last_day = calendar.monthrange(anchor.year, anchor.month)[1]
        return PeriodWindow(
            start=anchor.replace(day=1), end=anchor.replace(day=last_day)
        )
    if period_type == "quarter":
        first_month = (anchor.month - 1) // 3 * 3 + 1
        last_month = first_month + 2
        last_day = calendar.monthrange(anchor.year, last_month)[1]
        return PeriodWindow(
            start=date(anchor.year, first_month, 1),
            end=date(anchor.year, last_month, last_day),
        )
    if period_type == "year":
        return PeriodWindow(start=date(anchor.year, 1, 1), end=date(anchor.year, 12, 31))
    raise ValueError(f"Unsupported period: {period_type}")


def period_key(period_type: str, anchor: date) -> str:
    if period_type == "week":
        iso_year, iso_week, _ = anchor.isocalendar()
        return f"week-{iso_year}-{iso_week:02d}"
    if period_type == "month":
        return f"month-{anchor.year}-{anchor.month:02d}"
    if period_type == "quarter":
        return f"quarter-{anchor.year}-Q{(anchor.month - 1) // 3 + 1}"
    if period_type == "year":
        return f"year-{anchor.year}"
    raise ValueError(f"Unsupported period: {period_type}")


_PERIOD_KEY_PATTERNS = {
    "week": re.compile(r"^week-(\d{4})-(\d{2})$"),
    "month": re.compile(r"^month-(\d{4})-(\d{2})$"),
    "quarter": re.compile(r"^quarter-(\d{4})-Q([1-4])$"),
    "year": re.compile(r"^year-(\d{4})$"),
}


def parse_period_key(key: str) -> tuple[str, PeriodWindow]:
    """Resolve a period key back into its type and calendar window."""

    text = (key or "").strip()
    for period_type, pattern in _PERIOD_KEY_PATTERNS.items():
        match = pattern.match(text)
        if not match:
            continue
        year = int(match.group(1))
        try:
            if period_type == "week":
                anchor = date.fromisocalendar(year, int(match.group(2)), 1)
            elif period_type == "month":
                anchor = date(year, int(match.group(2)), 1)
            elif period_type == "quarter":
                anchor = date(year, (int(match.group(2)) - 1) * 3 + 1, 1)
            else:
                anchor = date(year, 1, 1)
        except ValueError as exc:
            raise ValueError(f"Invalid period key: {key}") from exc
        return period_type, resolve_period_window(anchor, period_type)
    raise ValueError(f"Invalid period key: {key}")


def format_period_label(window: PeriodWindow, period_type: str) -> str:
    if period_type == "week":
        return f"{window.start.strftime('%b %d')} - {window.end.strftime('%b %d, %Y')}"
    if period_type == "month":
        return window.start.strftime("%B %Y")
    if period_type == "quarter":
        return f"Q{(window.start.month - 1) // 3 + 1} {window.start.year}"
    if period_type == "year":
        return str(window.start.year)
    return window.start.isoformat()


@dataclass
class GameActivity:
    """One game's play inside a window."""

    game: Game
    index: int
    hours: float = 0.0
    sessions: int = 0
    best_session: float = 0.0
    dates: List[date] = field(default_factory=list)

    @property
    def days_played(self) -> int:
        return len(set(self.dates))


@dataclass(frozen=True)
class WindowSummary:
    window: PeriodWindow
    total_hours: float
    total_sessions: int
    games_played: List[GameActivity]
    daily_hours: Dict[date, float]
    hours_by_genre: Dict[str, float]
    completed_games: List[Game]
    first_played_games: List[Game]
    longest_session: tuple[Game, PlayLog] | None

    @property
    def unique_games(self) -> int:
        return len(self.games_played)

    @property
    def active_days(self) -> int:
        return sum(1 for hours in self.daily_hours.values() if hours > 0)

    @property
    def average_session_length(self) -> float:
        return self.total_hours / self.total_sessions if self.total_sessions else 0.0


def summarize_window(games: Sequence[Game], start: date, end: date) -> WindowSummary:
    """Break down all play inside ``[start, end]`` per game, day and genre."""

    window = PeriodWindow(start=start, end=end)
    activity: Dict[int, GameActivity] = {}
    daily_hours: Dict[date, float] = defaultdict(float)
    hours_by_genre: Dict[str, float] = defaultdict(float)
    longest: tuple[Game, PlayLog] | None = None
    total = 0.0
    sessions = 0

    for index, game, log in _iter_logs(games):
        if not window.contains(log.date):
            continue
        entry = activity.setdefault(index, GameActivity(game=game, index=index))
        entry.hours += log.hours
        entry.sessions += 1
        entry.best_session = max(entry.best_session, log.hours)
        entry.dates.append(log.date)
        daily_hours[log.date] += log.hours
        if game.genre:
            hours_by_genre[game.genre] += log.hours
        if longest is None or log.hours > longest[1].hours:
            longest = (game, log)
        total += log.hours
        sessions += 1

    played = rank(
        (activity[index] for index in sorted(activity)), lambda entry: entry.hours
    )
    for entry in played:
        entry.dates.sort()

    completed = [
        game
        for game in games
        if game.status == COMPLETED and window.contains(game.end_date)
    ]
    first_played = []
    for entry in played:
        earliest = min(log.date for log in entry.game.play_logs)
        if window.contains(earliest):
            first_played.append(entry.game)

    return WindowSummary(
        window=window,
        total_hours=total,
        total_sessions=sessions,
        games_played=played,
        daily_hours=dict(daily_hours),
        hours_by_genre=dict(hours_by_genre),
        completed_games=completed,
        first_played_games=first_played,
        longest_session=longest,
    )
