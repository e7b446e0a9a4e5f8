"""Per-user record of award picks.

Votes live in one JSON object per user, keyed ``<periodKey>::<categoryId>``.
The object is stored as text through a blob backend: a JSON file on disk
for the local user, or a database row for a signed-in user.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping
from urllib.parse import quote

from . import db
from .aggregation import PERIOD_TYPES, parse_period_key
from .models import StoredBlob


logger = logging.getLogger(__name__)

STORAGE_KEY = "award-ballots"
LOCAL_USER = "local"


@dataclass(frozen=True)
class Ballot:
    period_key: str
    period_type: str
    category_id: str
    game_id: str
    game_name: str
    voted_at: str

    def to_dict(self) -> dict:
        return {
            "periodKey": self.period_key,
            "periodType": self.period_type,
            "categoryId": self.category_id,
            "gameId": self.game_id,
            "gameName": self.game_name,
            "votedAt": self.voted_at,
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "Ballot | None":
        if not isinstance(payload, Mapping):
            return None
        fields = ("periodKey", "periodType", "categoryId", "gameId", "gameName", "votedAt")
        if not all(isinstance(payload.get(name), str) for name in fields):
            return None
        return cls(
            period_key=payload["periodKey"],
            period_type=payload["periodType"],
            category_id=payload["categoryId"],
            game_id=payload["gameId"],
            game_name=payload["gameName"],
            voted_at=payload["votedAt"],
        )


def ballot_key(period_key: str, category_id: str) -> str:
    return f"{period_key}::{category_id}"


class BlobBackend:
    """Reads and writes a text blob under a string key."""

    def read(self, key: str) -> str | None:
        raise NotImplementedError

    def write(self, key: str, payload: str) -> None:
        raise NotImplementedError


class FileBlobBackend(BlobBackend):
    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}.json"

    def read(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as error:
            logger.warning("Could not read ballot file %s: %s", path, error)
            return None

    def write(self, key: str, payload: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path_for(key).write_text(payload, encoding="utf-8")


class DatabaseBlobBackend(BlobBackend):
    def read(self, key: str) -> str | None:
        blob = db.session.get(StoredBlob, key)
        return blob.payload if blob else None

    def write(self, key: str, payload: str) -> None:
        blob = db.session.get(StoredBlob, key)
        if blob is None:
            blob = StoredBlob(key=key, payload=payload)
            db.session.add(blob)
        else:
            blob.payload = payload
        db.session.commit()


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class BallotStore:
    def __init__(
        self, backend: BlobBackend, *, clock: Callable[[], str] = _utc_now
    ) -> None:
        self.backend = backend
        self._clock = clock

    @staticmethod
    def _blob_key(user_id: str) -> str:
        return f"{STORAGE_KEY}:{user_id}"

    def _load(self, user_id: str) -> Dict[str, Ballot]:
        raw = self.backend.read(self._blob_key(user_id))
        if not raw:
            return {}
        try:
            payload = json.loads(raw)
        except (ValueError, RecursionError):
            logger.warning("Ballot blob for %s is not valid JSON; ignoring it", user_id)
            return {}
        if not isinstance(payload, dict):
            logger.warning("Ballot blob for %s is not an object; ignoring it", user_id)
            return {}

        ballots: Dict[str, Ballot] = {}
        for key, value in payload.items():
            ballot = Ballot.from_dict(value)
            if ballot is None:
                logger.warning("Skipping malformed ballot %s for %s", key, user_id)
                continue
            ballots[key] = ballot
        return ballots

    def _save(self, user_id: str, ballots: Mapping[str, Ballot]) -> None:
        payload = {key: ballot.to_dict() for key, ballot in ballots.items()}
        self.backend.write(self._blob_key(user_id), json.dumps(payload, sort_keys=True))

    def cast(
        self,
        user_id: str,
        period_key: str,
        period_type: str,
        category_id: str,
        nominee_id: str,
        nominee_name: str,
    ) -> Ballot:
        """Record ``user_id``'s pick, replacing any earlier pick for the category.

        Casting the same pick again is a no-op and keeps the first timestamp.
        """

        if period_type not in PERIOD_TYPES:
            allowed = ", ".join(PERIOD_TYPES)
            raise ValueError(f"Period type must be one of {allowed}.")
        if not period_key or not category_id or not nominee_id:
            raise ValueError("Period key, category and nominee are required.")
        key_type, _ = parse_period_key(period_key)
        if key_type != period_type:
            raise ValueError(f"Period key {period_key} is not a {period_type} key.")

        ballots = self._load(user_id)
        key = ballot_key(period_key, category_id)
        existing = ballots.get(key)
        if (
            existing is not None
            and existing.period_type == period_type
            and existing.game_id == nominee_id
            and existing.game_name == nominee_name
        ):
            return existing

        ballot = Ballot(
            period_key=period_key,
            period_type=period_type,
            category_id=category_id,
            game_id=nominee_id,
            game_name=nominee_name,
            voted_at=self._clock(),
        )
        ballots[key] = ballot
        self._save(user_id, ballots)
        logger.info(
            "Ballot cast for %s: %s -> %s", user_id, key, nominee_name or nominee_id
        )
        return ballot

    def get(self, user_id: str, period_key: str, category_id: str) -> Ballot | None:
        return self._load(user_id).get(ballot_key(period_key, category_id))

    def get_all_for_period(self, user_id: str, period_key: str) -> List[Ballot]:
        return [
            ballot
            for ballot in self._load(user_id).values()
            if ballot.period_key == period_key
        ]

    def clear(self, user_id: str, period_key: str) -> int:
        """Drop every pick for ``period_key``; returns how many were removed."""

        ballots = self._load(user_id)
        kept = {
            key: ballot for key, ballot in ballots.items() if ballot.period_key != period_key
        }
        removed = len(ballots) - len(kept)
        if removed:
            self._save(user_id, kept)
            logger.info("Cleared %s ballot(s) for %s in %s", removed, user_id, period_key)
        return removed


def create_ballot_store(config: Mapping[str, Any], user_id: str) -> BallotStore:
    """Pick the database backend for signed-in users when it is enabled."""

    if user_id != LOCAL_USER and config.get("BALLOT_REMOTE_ENABLED"):
        return BallotStore(DatabaseBlobBackend())
    return BallotStore(FileBlobBackend(config.get("BALLOT_DIR") or "ballots"))
