"""End-to-end HTTP flows against a live replica set (skipped when unavailable)."""

import asyncio

import pytest

pytestmark = pytest.mark.asyncio


async def _register(client, username="alice", **extra):
    body = {"username": username, "password": "s3cret", "email": f"{username}@example.com", **extra}
    r = await client.post("/register", json=body)
    assert r.status_code == 201, r.text
    return r.json()["token"]


async def test_register_login_profile_round_trip(db_client):
    await _register(db_client)
    r = await db_client.post("/login", json={"username": "alice", "password": "s3cret"})
    assert r.status_code == 200
    token = r.json()["token"]

    r = await db_client.get("/user-info", headers={"Authorization": token})
    assert r.status_code == 200
    assert r.json() == {"username": "alice", "balance": 1000}

    r = await db_client.get("/balance", headers={"Authorization": f"Bearer {token}"})
    assert r.json() == {"balance": 1000}


async def test_register_validation(db_client):
    r = await db_client.post("/register", json={"username": "alice", "password": "s3cret"})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"

    r = await db_client.post("/register", json={"username": "alice", "phone_number": "+15550001"})
    assert r.status_code == 422


async def test_register_duplicate_username(db_client):
    await _register(db_client)
    r = await db_client.post(
        "/register", json={"username": "alice", "password": "x", "email": "elsewhere@example.com"}
    )
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "DUPLICATE_IDENTITY"
    assert r.json()["error"]["details"] == {"field": "username"}


async def test_login_failures_look_the_same(db_client):
    await _register(db_client)
    wrong_password = await db_client.post("/login", json={"username": "alice", "password": "nope"})
    unknown_user = await db_client.post("/login", json={"username": "mallory", "password": "nope"})
    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json()["error"] == unknown_user.json()["error"]

    r = await db_client.post("/login", json={"username": "alice"})
    assert r.status_code == 422


async def test_outcomes_update_balance_and_ledger(db_client):
    token = await _register(db_client)
    headers = {"Authorization": token}

    r = await db_client.post(
        "/outcome",
        json={"betAmount": 50, "numberOfPanels": 4, "outcome": {"panels": ["x", "o"]}, "payout": 0},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json() == {"message": "Game outcome processed successfully", "newBalance": 950, "replayed": False}

    r = await db_client.post(
        "/outcome", json={"betAmount": 0, "numberOfPanels": 4, "outcome": {}, "payout": 200}, headers=headers
    )
    assert r.json()["newBalance"] == 1150

    r = await db_client.get("/user-info", headers=headers)
    assert r.json()["balance"] == 1150

    r = await db_client.get("/outcomes", headers=headers)
    page = r.json()
    assert set(page) == {"entries", "limit", "offset", "total"}
    assert (page["limit"], page["offset"], page["total"]) == (50, 0, 2)
    assert [e["balance_after"] for e in page["entries"]] == [950, 1150]
    assert page["entries"][0]["panels"] == 4
    assert page["entries"][0]["outcome"] == {"panels": ["x", "o"]}


async def test_outcome_idempotency_header(db_client):
    token = await _register(db_client)
    headers = {"Authorization": token, "Idempotency-Key": "spin-1"}
    body = {"betAmount": 25, "numberOfPanels": 3, "outcome": {}, "payout": 0}
    first = await db_client.post("/outcome", json=body, headers=headers)
    second = await db_client.post("/outcome", json=body, headers=headers)
    assert first.json()["newBalance"] == second.json()["newBalance"] == 975
    assert second.json()["replayed"] is True
    r = await db_client.get("/balance", headers={"Authorization": token})
    assert r.json() == {"balance": 975}


async def test_outcome_idempotency_key_reuse_conflicts(db_client):
    token = await _register(db_client)
    headers = {"Authorization": token, "Idempotency-Key": "spin-1"}
    body = {"betAmount": 25, "numberOfPanels": 3, "outcome": {}, "payout": 0}
    await db_client.post("/outcome", json=body, headers=headers)
    r = await db_client.post("/outcome", json={**body, "payout": 400}, headers=headers)
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "IDEMPOTENCY_KEY_REUSED"
    r = await db_client.get("/balance", headers={"Authorization": token})
    assert r.json() == {"balance": 975}


async def test_outcome_insufficient_funds(db_client):
    token = await _register(db_client)
    r = await db_client.post(
        "/outcome",
        json={"betAmount": 5000, "numberOfPanels": 3, "outcome": {}, "payout": 0},
        headers={"Authorization": token},
    )
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INSUFFICIENT_FUNDS"


async def test_outcome_rejects_negative_amounts(db_client):
    token = await _register(db_client)
    r = await db_client.post(
        "/outcome",
        json={"betAmount": -1, "numberOfPanels": 3, "outcome": {}, "payout": 0},
        headers={"Authorization": token},
    )
    assert r.status_code == 422


async def test_concurrent_outcomes_over_http(db_client):
    token = await _register(db_client)
    headers = {"Authorization": token}
    body = {"betAmount": 10, "numberOfPanels": 3, "outcome": {}, "payout": 3}
    responses = await asyncio.gather(*[db_client.post("/outcome", json=body, headers=headers) for _ in range(10)])
    assert all(r.status_code == 200 for r in responses)
    r = await db_client.get("/balance", headers=headers)
    assert r.json() == {"balance": 1000 - 10 * 10 + 10 * 3}


async def test_set_balance(db_client):
    token = await _register(db_client)
    headers = {"Authorization": token}
    r = await db_client.post("/balance", json={"balance": 321}, headers=headers)
    assert r.status_code == 200
    assert r.json() == {"message": "Balance updated successfully"}
    assert (await db_client.get("/balance", headers=headers)).json() == {"balance": 321}

    r = await db_client.post("/balance", json={"balance": "lots"}, headers=headers)
    assert r.status_code == 422


async def test_token_for_deleted_account_is_not_found(db_client):
    from wagerbook.models.account import Account

    token = await _register(db_client)
    await Account.find_all().delete()
    r = await db_client.get("/user-info", headers={"Authorization": token})
    assert r.status_code == 404
    r = await db_client.post(
        "/outcome",
        json={"betAmount": 1, "numberOfPanels": 3, "outcome": {}, "payout": 0},
        headers={"Authorization": token},
    )
    assert r.status_code == 404
