import sys
from datetime import date
from itertools import count
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from playstats import create_app, db  # noqa: E402
from playstats.records import Game, PlayLog  # noqa: E402


@pytest.fixture
def app_instance(tmp_path):
    database_file = tmp_path / "test.db"
    app = create_app(
        database_uri=f"sqlite:///{database_file}",
        ballot_dir=str(tmp_path / "ballots"),
    )
    app.config.update(TESTING=True)

    with app.app_context():
        db.drop_all()
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture
def make_game():
    """Build a ``Game`` record; ``logs`` is a list of ``(date, hours)`` pairs."""

    ids = count(1)

    def _make_game(name="Game", *, logs=(), **fields):
        play_logs = tuple(
            PlayLog(date=day if isinstance(day, date) else date.fromisoformat(day), hours=hours)
            for day, hours in logs
        )
        fields.setdefault("status", "In Progress")
        return Game(id=str(next(ids)), name=name, play_logs=play_logs, **fields)

    return _make_game
