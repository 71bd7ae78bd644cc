from datetime import timedelta

import httpx
import pytest

from app.database import get_db
from app.main import app
from app.services.window_guard import utcnow


@pytest.fixture
async def client(session_factory):
    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


async def _signup_and_signin(client, name, role):
    email = f"{name.lower()}@example.com"
    created = await client.post(
        "/api/auth/signup",
        json={"name": name, "email": email, "password": "hunter22", "role": role},
    )
    assert created.status_code == 201
    signed_in = await client.post("/api/auth/signin", json={"email": email, "password": "hunter22"})
    token = signed_in.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.anyio
async def test_health(client):
    response = await client.get("/health")
    assert response.json() == {"ok": True}


@pytest.mark.anyio
async def test_missing_token_uses_error_envelope(client):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json() == {"success": False, "data": None, "error": "UNAUTHORIZED"}


@pytest.mark.anyio
async def test_malformed_body_is_invalid_request(client):
    response = await client.post("/api/auth/signup", json={"email": "not-an-email"})
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_REQUEST"


@pytest.mark.anyio
async def test_duplicate_email_and_bad_password(client):
    await _signup_and_signin(client, "Dana", "contestee")

    again = await client.post(
        "/api/auth/signup",
        json={"name": "Dana", "email": "DANA@example.com", "password": "whatever1"},
    )
    assert again.status_code == 400
    assert again.json()["error"] == "EMAIL_ALREADY_EXISTS"

    wrong = await client.post("/api/auth/signin", json={"email": "dana@example.com", "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json()["error"] == "INVALID_CREDENTIALS"


@pytest.mark.anyio
async def test_contest_round_trip_over_http(client):
    setter = await _signup_and_signin(client, "Setter", "creator")
    player = await _signup_and_signin(client, "Player", "contestee")

    now = utcnow()
    denied = await client.post(
        "/api/contests",
        headers=player,
        json={
            "title": "Nope",
            "startTime": (now - timedelta(hours=1)).isoformat(),
            "endTime": (now + timedelta(hours=1)).isoformat(),
        },
    )
    assert denied.status_code == 403
    assert denied.json()["error"] == "FORBIDDEN"

    created = await client.post(
        "/api/contests",
        headers=setter,
        json={
            "title": "Round 1",
            "startTime": (now - timedelta(hours=1)).isoformat(),
            "endTime": (now + timedelta(hours=1)).isoformat(),
        },
    )
    assert created.status_code == 201
    contest_id = created.json()["data"]["id"]

    question = await client.post(
        f"/api/contests/{contest_id}/mcq",
        headers=setter,
        json={"questionText": "2 + 2?", "options": ["3", "4"], "correctOptionIndex": 1, "points": 5},
    )
    question_id = question.json()["data"]["id"]

    answer = await client.post(
        f"/api/contests/{contest_id}/mcq/{question_id}/submit",
        headers=player,
        json={"selectedOptionIndex": 1},
    )
    assert answer.json() == {"success": True, "data": {"isCorrect": True, "pointsEarned": 5}, "error": None}

    repeat = await client.post(
        f"/api/contests/{contest_id}/mcq/{question_id}/submit",
        headers=player,
        json={"selectedOptionIndex": 0},
    )
    assert repeat.status_code == 400
    assert repeat.json()["error"] == "ALREADY_SUBMITTED"

    board = await client.get(f"/api/contests/{contest_id}/leaderboard", headers=setter)
    rows = board.json()["data"]
    assert [(row["name"], row["totalPoints"], row["rank"]) for row in rows] == [("Player", 5, 1)]


@pytest.mark.anyio
async def test_unknown_contest_is_not_found(client):
    player = await _signup_and_signin(client, "Lost", "contestee")
    response = await client.get("/api/contests/does-not-exist/leaderboard", headers=player)
    assert response.status_code == 404
    assert response.json()["error"] == "CONTEST_NOT_FOUND"
