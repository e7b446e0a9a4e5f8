from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable


@dataclass(frozen=True)
class StatusDefinition:
    value: str
    label: str
    owned: bool


_STATUS_DEFINITIONS: tuple[StatusDefinition, ...] = (
    StatusDefinition(value="Not Started", label="Backlog", owned=True),
    StatusDefinition(value="In Progress", label="Playing", owned=True),
    StatusDefinition(value="Completed", label="Completed", owned=True),
    StatusDefinition(value="Abandoned", label="Abandoned", owned=True),
    StatusDefinition(value="Wishlist", label="Wishlist", owned=False),
)

STATUS_BY_VALUE: Dict[str, StatusDefinition] = {
    definition.value: definition for definition in _STATUS_DEFINITIONS
}

STATUS_VALUES: tuple[str, ...] = tuple(STATUS_BY_VALUE.keys())

WISHLIST = "Wishlist"
NOT_STARTED = "Not Started"
IN_PROGRESS = "In Progress"
COMPLETED = "Completed"
ABANDONED = "Abandoned"

DEFAULT_STATUS = NOT_STARTED

_STATUS_ALIASES: Dict[str, str] = {
    "".join(value.lower().split()): value for value in STATUS_VALUES
}
_STATUS_ALIASES.update(
    {
        "backlog": NOT_STARTED,
        "playing": IN_PROGRESS,
        "dropped": ABANDONED,
        "finished": COMPLETED,
    }
)


def normalize_status_value(value: str | None) -> str:
    """Normalize a raw status string into a canonical value."""

    if value is None:
        return DEFAULT_STATUS
    compact = "".join(str(value).replace("_", " ").replace("-", " ").lower().split())
    if not compact:
        return DEFAULT_STATUS
    return _STATUS_ALIASES.get(compact, str(value).strip())


def validate_status(value: str | None) -> str:
    """Ensure the provided status maps to a supported value."""

    normalized = normalize_status_value(value)
    if normalized not in STATUS_BY_VALUE:
        allowed = ", ".join(STATUS_VALUES)
        raise ValueError(f"Status must be one of {allowed}.")
    return normalized


def iter_status_definitions() -> Iterable[StatusDefinition]:
    return tuple(_STATUS_DEFINITIONS)
