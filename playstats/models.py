from __future__ import annotations

from datetime import datetime
from typing import List

from . import db
from .records import Game, PlayLog
from .statuses import DEFAULT_STATUS


class GameEntry(db.Model):
    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(32), nullable=False, default=DEFAULT_STATUS)
    price = db.Column(db.Float, nullable=False, default=0.0)
    original_price = db.Column(db.Float, nullable=True)
    hours = db.Column(db.Float, nullable=False, default=0.0)
    rating = db.Column(db.Float, nullable=False, default=0.0)
    platform = db.Column(db.String(64), nullable=True)
    genre = db.Column(db.String(64), nullable=True)
    franchise = db.Column(db.String(128), nullable=True)
    purchase_source = db.Column(db.String(64), nullable=True)
    subscription_source = db.Column(db.String(64), nullable=True)
    acquired_free = db.Column(db.Boolean, nullable=False, default=False)
    date_purchased = db.Column(db.Date, nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    play_logs = db.relationship(
        "PlayLogEntry",
        backref="game",
        order_by="PlayLogEntry.id",
        cascade="all, delete-orphan",
    )

    def to_record(self) -> Game:
        return Game(
            id=str(self.id),
            name=self.name,
            price=self.price or 0.0,
            original_price=self.original_price,
            hours=self.hours or 0.0,
            rating=self.rating or 0.0,
            status=self.status,
            platform=self.platform,
            genre=self.genre,
            franchise=self.franchise,
            purchase_source=self.purchase_source,
            subscription_source=self.subscription_source,
            acquired_free=bool(self.acquired_free),
            date_purchased=self.date_purchased,
            start_date=self.start_date,
            end_date=self.end_date,
            play_logs=tuple(entry.to_record() for entry in self.play_logs),
        )

    def to_dict(self) -> dict:
        return self.to_record().to_dict()


class PlayLogEntry(db.Model):
    __tablename__ = "play_logs"

    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)
    played_on = db.Column(db.Date, nullable=False)
    hours = db.Column(db.Float, nullable=False)
    note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_record(self) -> PlayLog:
        return PlayLog(
            date=self.played_on,
            hours=self.hours,
            note=self.note,
            id=str(self.id),
        )


class StoredBlob(db.Model):
    """Opaque JSON text stored under a string key."""

    __tablename__ = "stored_blobs"

    key = db.Column(db.String(255), primary_key=True)
    payload = db.Column(db.Text, nullable=False, default="{}")
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


def load_games() -> List[Game]:
    """Materialise every stored game, in insertion order, as records."""

    entries = GameEntry.query.order_by(GameEntry.id).all()
    return [entry.to_record() for entry in entries]
