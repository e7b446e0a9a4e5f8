from datetime import date, timedelta


def _create_game(client, **payload):
    response = client.post("/api/games", json=payload)
    assert response.status_code == 201
    return response.get_json()


def test_create_and_list_games(client):
    created = _create_game(
        client,
        name="Star Forge",
        price=20,
        hours=40,
        rating=9,
        status="completed",
        genre="RPG",
        play_logs=[{"date": "2024-05-01", "hours": 2}],
    )

    assert created["status"] == "Completed"
    assert created["play_logs"][0]["date"] == "2024-05-01"

    listing = client.get("/api/games").get_json()
    assert [game["name"] for game in listing] == ["Star Forge"]


def test_create_game_validation(client):
    assert client.post("/api/games", json={"name": ""}).status_code == 400

    response = client.post("/api/games", json={"name": "Odd", "status": "Lost"})
    assert response.status_code == 400
    assert "Status must be one of" in response.get_json()["error"]

    response = client.post("/api/games", json={"name": "Odd", "price": "free"})
    assert response.status_code == 400

    response = client.post(
        "/api/games", json={"name": "Odd", "play_logs": [{"date": "soon", "hours": 1}]}
    )
    assert response.status_code == 400

    response = client.post("/api/games", json={"name": "Odd", "price": "inf"})
    assert response.status_code == 400
    assert "finite" in response.get_json()["error"]
    assert client.post("/api/games", json={"name": "Odd", "hours": "nan"}).status_code == 400
    assert client.post("/api/games", json=["not", "an", "object"]).status_code == 400
    assert client.post("/api/games", json={"name": 5}).status_code == 201


def test_add_play_log(client):
    game = _create_game(client, name="Dust Runner")

    response = client.post(
        f"/api/games/{game['id']}/logs", json={"date": "2024-05-03", "hours": 1.5}
    )
    assert response.status_code == 201

    assert client.post(f"/api/games/{game['id']}/logs", json={"date": "2024-05-03", "hours": 0}).status_code == 400
    assert client.post(f"/api/games/{game['id']}/logs", json={"date": "2024-05-03", "hours": "inf"}).status_code == 400
    assert client.post("/api/games/999/logs", json={"date": "2024-05-03", "hours": 1}).status_code == 404


def test_statuses_endpoint(client):
    statuses = client.get("/api/statuses").get_json()

    assert [status["value"] for status in statuses][-1] == "Wishlist"
    assert statuses[-1]["owned"] is False


def test_summary_and_streaks(client):
    today = date(2024, 5, 15)
    _create_game(
        client,
        name="Streaky",
        price=30,
        play_logs=[
            {"date": (today - timedelta(days=offset)).isoformat(), "hours": 1}
            for offset in range(1, 4)
        ],
    )

    summary = client.get("/api/analytics/summary").get_json()
    assert summary["total_spent"] == 30
    assert summary["total_hours"] == 3

    streaks = client.get("/api/analytics/streaks?date=2024-05-15").get_json()
    assert streaks == {"current": 3, "longest": 3}

    period = client.get("/api/analytics/period?days=7&date=2024-05-15").get_json()
    assert period["total_sessions"] == 3
    assert client.get("/api/analytics/period?days=0").status_code == 400

    comparison = client.get("/api/analytics/comparison?date=2024-05-15").get_json()
    assert comparison["week"]["change"]["trend"] == "up"


def test_insight_endpoints(client):
    _create_game(client, name="Star Forge", price=20, hours=40, rating=9, status="Completed")

    gems = client.get("/api/insights/hidden-gems").get_json()
    assert gems[0]["game"]["name"] == "Star Forge"

    grade = client.get("/api/insights/grade?start=2024-05-01&end=2024-05-31").get_json()
    assert grade["overall"] == "F"

    assert client.get("/api/insights/grade?start=2024-05-31&end=2024-05-01").status_code == 400
    assert client.get("/api/insights/horoscope").status_code == 404


def test_awards_endpoint(client):
    _create_game(client, name="Alpha", play_logs=[{"date": "2024-05-14", "hours": 3}])
    _create_game(client, name="Beta", play_logs=[{"date": "2024-05-15", "hours": 1}])

    payload = client.get("/api/awards/week?date=2024-05-15").get_json()

    assert payload["period_key"] == "week-2024-20"
    winners = {award["category_id"]: award["winner"]["game_name"] for award in payload["awards"]}
    assert winners["game_of_week"] == "Alpha"

    assert client.get("/api/awards/decade?date=2024-05-15").status_code == 400


def test_ballot_endpoints(client):
    vote = {
        "period_type": "week",
        "category_id": "game_of_week",
        "game_id": "1",
        "game_name": "Alpha",
    }

    response = client.post("/api/ballots/week-2024-20", json=vote)
    assert response.status_code == 201
    assert response.get_json()["gameName"] == "Alpha"

    remote = client.post(
        "/api/ballots/week-2024-20", json=vote, headers={"X-User-Id": "alice"}
    )
    assert remote.status_code == 201

    ballots = client.get("/api/ballots/week-2024-20").get_json()
    assert [ballot["categoryId"] for ballot in ballots] == ["game_of_week"]

    cleared = client.delete("/api/ballots/week-2024-20").get_json()
    assert cleared == {"removed": 1}
    assert client.get("/api/ballots/week-2024-20").get_json() == []
    assert len(client.get("/api/ballots/week-2024-20", headers={"X-User-Id": "alice"}).get_json()) == 1

    bad = dict(vote, period_type="decade")
    assert client.post("/api/ballots/week-2024-20", json=bad).status_code == 400


def test_game_detail_includes_metrics(client):
    game = _create_game(
        client,
        name="Star Forge",
        price=20,
        hours=38,
        rating=9,
        play_logs=[{"date": "2024-05-01", "hours": 2}],
    )

    detail = client.get(f"/api/games/{game['id']}").get_json()

    assert detail["metrics"]["cost_per_hour"] == 0.5
    assert detail["metrics"]["value_rating"] == "Excellent"
    assert detail["metrics"]["roi_rating"] == "Excellent"
    assert client.get("/api/games/999").status_code == 404


def test_ballot_period_key_is_validated(client):
    vote = {
        "period_type": "week",
        "category_id": "game_of_week",
        "game_id": 1,
        "game_name": "Alpha",
    }

    assert client.post("/api/ballots/month-2024-05", json=vote).status_code == 400
    assert client.post("/api/ballots/garbage", json=vote).status_code == 400
    assert client.post("/api/ballots/week-2024-20", json=dict(vote, category_id=["x"])).status_code == 400

    response = client.post("/api/ballots/week-2024-20", json=vote)
    assert response.status_code == 201
    assert response.get_json()["gameId"] == "1"
    assert client.get("/api/ballots/month-2024-05").get_json() == []
