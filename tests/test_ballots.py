import json

import pytest

from playstats import db
from playstats.ballots import (
    STORAGE_KEY,
    BallotStore,
    DatabaseBlobBackend,
    FileBlobBackend,
    create_ballot_store,
)
from playstats.models import StoredBlob


class _Clock:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return f"2024-05-15T10:00:0{self.calls}Z"


@pytest.fixture
def store(tmp_path):
    return BallotStore(FileBlobBackend(tmp_path), clock=_Clock())


def test_cast_and_read_back(store):
    store.cast("local", "month-2024-05", "month", "game_of_month", "7", "Star Forge")

    ballot = store.get("local", "month-2024-05", "game_of_month")

    assert ballot.game_id == "7"
    assert ballot.game_name == "Star Forge"
    assert ballot.period_type == "month"
    assert store.get("local", "month-2024-05", "best_value_month") is None


def test_recasting_identical_vote_is_idempotent(store, tmp_path):
    first = store.cast("local", "week-2024-20", "week", "game_of_week", "1", "Alpha")
    blob_path = next(tmp_path.glob("*.json"))
    before = blob_path.read_text()

    second = store.cast("local", "week-2024-20", "week", "game_of_week", "1", "Alpha")

    assert second == first
    assert blob_path.read_text() == before
    assert len(store.get_all_for_period("local", "week-2024-20")) == 1


def test_recasting_a_different_vote_replaces_it(store):
    store.cast("local", "week-2024-20", "week", "game_of_week", "1", "Alpha")
    store.cast("local", "week-2024-20", "week", "game_of_week", "2", "Beta")

    ballots = store.get_all_for_period("local", "week-2024-20")

    assert [ballot.game_name for ballot in ballots] == ["Beta"]


def test_clear_only_touches_one_period(store):
    store.cast("local", "week-2024-20", "week", "game_of_week", "1", "Alpha")
    store.cast("local", "week-2024-20", "week", "best_session", "1", "Alpha")
    store.cast("local", "month-2024-05", "month", "game_of_month", "2", "Beta")

    assert store.clear("local", "week-2024-20") == 2
    assert store.get_all_for_period("local", "week-2024-20") == []
    assert len(store.get_all_for_period("local", "month-2024-05")) == 1
    assert store.clear("local", "week-2024-20") == 0


def test_users_have_separate_blobs(store):
    store.cast("alice", "year-2024", "year", "game_of_year", "1", "Alpha")

    assert store.get("bob", "year-2024", "game_of_year") is None
    assert store.get("alice", "year-2024", "game_of_year").game_name == "Alpha"


def test_unsupported_period_type_is_rejected(store):
    with pytest.raises(ValueError):
        store.cast("local", "decade-2020", "decade", "game_of_decade", "1", "Alpha")


def test_corrupt_blob_reads_as_empty(tmp_path):
    backend = FileBlobBackend(tmp_path)
    blob_key = f"{STORAGE_KEY}:local"
    backend.write(blob_key, "{not json")
    store = BallotStore(backend)

    assert store.get_all_for_period("local", "week-2024-20") == []

    backend.write(blob_key, json.dumps(["a", "list"]))
    assert store.get("local", "week-2024-20", "game_of_week") is None

    backend.write(blob_key, "[" * 100000)
    assert store.get("local", "week-2024-20", "game_of_week") is None

    backend._path_for(blob_key).write_bytes(b"\xff\xfe\x00garbage")
    assert store.get_all_for_period("local", "week-2024-20") == []
    assert store.clear("local", "week-2024-20") == 0


def test_period_key_must_match_period_type(store):
    with pytest.raises(ValueError):
        store.cast("local", "month-2024-05", "week", "game_of_week", "1", "Alpha")
    with pytest.raises(ValueError):
        store.cast("local", "garbage", "week", "game_of_week", "1", "Alpha")

    assert store.get_all_for_period("local", "month-2024-05") == []


def test_similar_user_ids_keep_separate_files(store, tmp_path):
    store.cast("alice bob", "week-2024-20", "week", "game_of_week", "1", "Alpha")
    store.cast("alice_bob", "week-2024-20", "week", "game_of_week", "2", "Beta")

    assert len(list(tmp_path.glob("*.json"))) == 2
    assert store.get("alice bob", "week-2024-20", "game_of_week").game_name == "Alpha"
    assert store.get("alice_bob", "week-2024-20", "game_of_week").game_name == "Beta"


def test_malformed_records_are_skipped(tmp_path):
    backend = FileBlobBackend(tmp_path)
    good = {
        "periodKey": "week-2024-20",
        "periodType": "week",
        "categoryId": "game_of_week",
        "gameId": "1",
        "gameName": "Alpha",
        "votedAt": "2024-05-15T10:00:00Z",
    }
    backend.write(
        f"{STORAGE_KEY}:local",
        json.dumps({"week-2024-20::game_of_week": good, "week-2024-20::broken": {"gameId": 3}}),
    )

    ballots = BallotStore(backend).get_all_for_period("local", "week-2024-20")

    assert [ballot.category_id for ballot in ballots] == ["game_of_week"]


def test_database_backend_round_trip(app_instance):
    with app_instance.app_context():
        store = BallotStore(DatabaseBlobBackend())
        store.cast("alice", "quarter-2024-Q2", "quarter", "the_grind", "4", "Grinder")

        blob = db.session.get(StoredBlob, f"{STORAGE_KEY}:alice")
        assert "quarter-2024-Q2::the_grind" in json.loads(blob.payload)
        assert store.get("alice", "quarter-2024-Q2", "the_grind").game_name == "Grinder"


def test_backend_selection(tmp_path):
    config = {"BALLOT_DIR": str(tmp_path), "BALLOT_REMOTE_ENABLED": True}

    assert isinstance(create_ballot_store(config, "local").backend, FileBlobBackend)
    assert isinstance(create_ballot_store(config, "alice").backend, DatabaseBlobBackend)

    config["BALLOT_REMOTE_ENABLED"] = False
    assert isinstance(create_ballot_store(config, "alice").backend, FileBlobBackend)
