import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from realorai.config import Settings
from realorai.main import create_app


def _start(client, daily=False):
    response = client.post("/api/game/start", json={"isDailyChallenge": daily})
    assert response.status_code == 201
    return response.json()


def _perfect_answer(game_round):
    image = game_round["image"]
    if image["isAI"]:
        return {"guess": {"lat": 0, "lng": 0}, "prediction": "ai"}
    location = image["location"]
    return {"guess": {"lat": location["lat"], "lng": location["lng"]}, "prediction": "real"}


def _play(client, session):
    for index in range(5):
        response = client.post(
            f"/api/game/{session['id']}/guess",
            json=_perfect_answer(session["rounds"][index]),
        )
        assert response.status_code == 200
        session = response.json()["session"]
    return session


def test_health(client):
    assert client.get("/api/health").json() == {"status": "healthy"}


def test_images(client):
    images = client.get("/api/game/images").json()
    assert len(images) == 5
    assert sum(1 for image in images if image["isAI"]) == 2
    for image in images:
        assert (image["location"] is None) == image["isAI"]


def test_daily_images_are_stable(client):
    first = client.get("/api/game/images", params={"daily": "true"}).json()
    second = client.get("/api/game/images", params={"daily": "true"}).json()
    assert [i["id"] for i in first] == [i["id"] for i in second]


def test_start_game(client):
    session = _start(client, daily=True)
    assert session["currentRound"] == 0
    assert session["totalScore"] == 0
    assert session["isCompleted"] is False
    assert session["isDailyChallenge"] is True
    assert len(session["rounds"]) == 5

    fetched = client.get(f"/api/game/{session['id']}").json()
    assert fetched["id"] == session["id"]


def test_full_game_flow(client):
    session = _play(client, _start(client, daily=True))

    assert session["isCompleted"] is True
    assert session["currentRound"] == 4
    assert session["totalScore"] == 27500

    summary = client.get(f"/api/game/{session['id']}/summary").json()
    assert summary == {
        "totalScore": 27500,
        "grade": "A+",
        "correctPredictions": 5,
        "roundsPlayed": 5,
        "averageDistance": 0.0,
    }

    response = client.post(f"/api/game/{session['id']}/submit", json={"userName": "Ada"})
    assert response.json() == {"success": True, "rank": 1}

    board = client.get("/api/game/leaderboard").json()
    assert board["daily"][0]["userName"] == "Ada"
    assert board["allTime"][0]["score"] == 27500


def test_guess_after_completion_conflicts(client):
    session = _play(client, _start(client))
    response = client.post(
        f"/api/game/{session['id']}/guess",
        json={"guess": {"lat": 0, "lng": 0}, "prediction": "ai"},
    )
    assert response.status_code == 409
    assert response.json()["code"] == "ALREADY_COMPLETED"
    assert client.get(f"/api/game/{session['id']}").json()["totalScore"] == 27500


def test_session_score_submitted_once(client):
    session = _play(client, _start(client))
    assert client.post(f"/api/game/{session['id']}/submit", json={}).status_code == 200
    assert client.post(f"/api/game/{session['id']}/submit", json={}).status_code == 409


def test_unfinished_game_cannot_be_submitted(client):
    session = _start(client)
    response = client.post(f"/api/game/{session['id']}/submit", json={})
    assert response.status_code == 409


def test_timeout_closes_round(client):
    session = _start(client)
    response = client.post(f"/api/game/{session['id']}/timeout")
    assert response.status_code == 200
    body = response.json()
    assert body["round"]["completed"] is True
    assert body["session"]["currentRound"] == 1


def test_ai_round_distance_is_null(client):
    session = _play(client, _start(client))
    for game_round in session["rounds"]:
        if game_round["image"]["isAI"]:
            assert game_round["distance"] is None


def test_invalid_guess_rejected(client):
    session = _start(client)
    bad_lat = {"guess": {"lat": 91, "lng": 0}, "prediction": "ai"}
    bad_prediction = {"guess": {"lat": 0, "lng": 0}, "prediction": "maybe"}
    for payload in (bad_lat, bad_prediction):
        response = client.post(f"/api/game/{session['id']}/guess", json=payload)
        assert response.status_code == 422
    assert client.get(f"/api/game/{session['id']}").json()["currentRound"] == 0


def test_unknown_session(client):
    response = client.get("/api/game/missing")
    assert response.status_code == 404
    assert response.json()["code"] == "SESSION_NOT_FOUND"


def test_delete_game(client):
    session = _start(client)
    assert client.delete(f"/api/game/{session['id']}").status_code == 204
    assert client.get(f"/api/game/{session['id']}").status_code == 404


def test_submit_score(client):
    response = client.post("/api/game/score", json={"score": 12000, "isDailyChallenge": False})
    assert response.json() == {"success": True, "rank": 1}
    response = client.post("/api/game/score", json={"score": 15000, "isDailyChallenge": True})
    assert response.json() == {"success": True, "rank": 1}

    board = client.get("/api/game/leaderboard").json()
    assert [e["score"] for e in board["allTime"]] == [15000, 12000]
    assert [e["score"] for e in board["daily"]] == [15000]
    assert board["allTime"][1]["userName"] == "Anonymous"


def test_submit_score_out_of_range(client):
    assert client.post("/api/game/score", json={"score": -1}).status_code == 422
    assert client.post("/api/game/score", json={"score": 37501}).status_code == 422
    assert client.post("/api/game/score", json={"score": 37500}).status_code == 200


def test_leaderboard_is_bounded(client):
    for score in range(11):
        client.post("/api/game/score", json={"score": score * 1000})
    scores = [e["score"] for e in client.get("/api/game/leaderboard").json()["allTime"]]
    assert scores == [10000, 9000, 8000, 7000, 6000, 5000, 4000, 3000, 2000, 1000]


def test_leaderboard_survives_restart(settings):
    with TestClient(create_app(settings)) as client:
        client.post("/api/game/score", json={"score": 21000, "isDailyChallenge": True})
        before = client.get("/api/game/leaderboard").json()

    with TestClient(create_app(settings)) as client:
        board = client.get("/api/game/leaderboard").json()
    assert [e["score"] for e in board["daily"]] == [21000]
    assert [e["score"] for e in board["allTime"]] == [21000]
    assert board == before
    assert board["allTime"][0]["date"].endswith("Z")


def test_pool_exhausted(tmp_path, settings):
    pool = tmp_path / "pool.json"
    pool.write_text(
        '[{"id": "a", "url": "https://example.com/a.jpg", "isAI": true, "prompt": "castle"}]'
    )
    settings.IMAGE_POOL_PATH = str(pool)

    with TestClient(create_app(settings)) as client:
        response = client.post("/api/game/start", json={})
    assert response.status_code == 503
    assert response.json()["code"] == "POOL_EXHAUSTED"


class _BrokenRepository:
    async def save(self, entry, is_daily_challenge):
        raise RuntimeError("disk full")


def test_failed_session_submit_can_be_retried(client):
    session = _play(client, _start(client))
    repository = client.app.state.leaderboard_repository
    client.app.state.leaderboard_repository = _BrokenRepository()

    with pytest.raises(RuntimeError):
        client.post(f"/api/game/{session['id']}/submit", json={})

    client.app.state.leaderboard_repository = repository
    response = client.post(f"/api/game/{session['id']}/submit", json={})
    assert response.json() == {"success": True, "rank": 1}


def test_round_mix_must_fill_the_game():
    with pytest.raises(ValidationError):
        Settings(REAL_IMAGES_PER_GAME=4)
    assert Settings(ROUNDS_PER_GAME=6, REAL_IMAGES_PER_GAME=4).ROUNDS_PER_GAME == 6
