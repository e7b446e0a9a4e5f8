"""Plain value objects for games and their play sessions.

Every calculation in the package consumes these records. They carry no
behaviour beyond conversion to and from JSON-friendly dictionaries.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from .statuses import WISHLIST, normalize_status_value


def parse_local_date(value: date | datetime | str | None) -> date | None:
    """Coerce ``value`` into a calendar date.

    ``YYYY-MM-DD`` strings are read as local calendar days, never as UTC
    midnight. Longer ISO timestamps are truncated to their date part.
    Anything unparseable yields ``None``.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) < 10:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


@dataclass(frozen=True)
class PlayLog:
    date: date
    hours: float
    note: str | None = None
    id: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "hours": self.hours,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PlayLog | None":
        if not isinstance(payload, Mapping):
            return None
        log_date = parse_local_date(payload.get("date"))
        hours = _as_float(payload.get("hours"))
        if log_date is None or hours <= 0:
            return None
        return cls(
            date=log_date,
            hours=hours,
            note=optional_text(payload.get("note") or payload.get("notes")),
            id=optional_text(payload.get("id")),
        )


@dataclass(frozen=True)
class Game:
    id: str
    name: str
    price: float = 0.0
    hours: float = 0.0
    rating: float = 0.0
    status: str = "Not Started"
    platform: str | None = None
    genre: str | None = None
    franchise: str | None = None
    purchase_source: str | None = None
    acquired_free: bool = False
    original_price: float | None = None
    subscription_source: str | None = None
    date_purchased: date | None = None
    start_date: date | None = None
    end_date: date | None = None
    play_logs: tuple[PlayLog, ...] = field(default_factory=tuple)

    @property
    def is_wishlist(self) -> bool:
        return self.status == WISHLIST

    @property
    def logged_hours(self) -> float:
        return sum(log.hours for log in self.play_logs)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "original_price": self.original_price,
            "hours": self.hours,
            "rating": self.rating,
            "status": self.status,
            "platform": self.platform,
            "genre": self.genre,
            "franchise": self.franchise,
            "purchase_source": self.purchase_source,
            "acquired_free": self.acquired_free,
            "subscription_source": self.subscription_source,
            "date_purchased": self.date_purchased.isoformat()
            if self.date_purchased
            else None,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "play_logs": [log.to_dict() for log in self.play_logs],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Game":
        logs: Iterable[Mapping[str, Any]] = payload.get("play_logs") or ()
        parsed_logs = tuple(
            log for log in (PlayLog.from_dict(raw) for raw in logs) if log is not None
        )
        original_price = payload.get("original_price")
        return cls(
            id=str(payload.get("id") or ""),
            name=str(payload.get("name") or "").strip(),
            price=max(0.0, _as_float(payload.get("price"))),
            hours=max(0.0, _as_float(payload.get("hours"))),
            rating=min(10.0, max(0.0, _as_float(payload.get("rating")))),
            status=normalize_status_value(payload.get("status")),
            platform=optional_text(payload.get("platform")),
            genre=optional_text(payload.get("genre")),
            franchise=optional_text(payload.get("franchise")),
            purchase_source=optional_text(payload.get("purchase_source")),
            acquired_free=bool(payload.get("acquired_free")),
            original_price=(
                _as_float(original_price) if original_price not in (None, "") else None
            ),
            subscription_source=optional_text(payload.get("subscription_source")),
            date_purchased=parse_local_date(payload.get("date_purchased")),
            start_date=parse_local_date(payload.get("start_date")),
            end_date=parse_local_date(payload.get("end_date")),
            play_logs=parsed_logs,
        )
