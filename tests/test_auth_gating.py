"""Protected routes reject missing or bad credentials before touching storage.

The app here has no datastore attached, so any request that got as far as
the store would fail with STORAGE_FAILURE instead of 401.
"""

import pytest

from wagerbook.core.security import issue_token

pytestmark = pytest.mark.asyncio

PROTECTED = [
    ("GET", "/balance", None),
    ("POST", "/balance", {"balance": 500}),
    ("POST", "/outcome", {"betAmount": 50, "numberOfPanels": 3, "outcome": {"win": False}, "payout": 0}),
    ("GET", "/outcomes", None),
    ("GET", "/user-info", None),
]


@pytest.mark.parametrize("method,path,body", PROTECTED)
async def test_missing_credential_is_rejected(client, method, path, body):
    r = await client.request(method, path, json=body)
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "UNAUTHENTICATED"
    assert r.json()["error"]["message"] == "No token provided"


@pytest.mark.parametrize("method,path,body", PROTECTED)
async def test_invalid_credential_is_rejected(client, method, path, body):
    r = await client.request(method, path, json=body, headers={"Authorization": "garbage.token.value"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "INVALID_CREDENTIAL"


async def test_credential_checked_before_body(client):
    r = await client.post("/balance", json={"balance": "not-a-number"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "UNAUTHENTICATED"


async def test_valid_credential_without_datastore_reports_storage_failure(client):
    token = issue_token("65f000000000000000000001")
    r = await client.post(
        "/outcome",
        json={"betAmount": 50, "numberOfPanels": 3, "outcome": {}, "payout": 0},
        headers={"Authorization": token},
    )
    assert r.status_code == 503
    assert r.json()["error"]["code"] == "STORAGE_FAILURE"
    # driver detail never reaches the caller
    assert r.json()["error"]["message"] == "Storage unavailable"


async def test_error_envelope_carries_request_id(client):
    r = await client.get("/balance", headers={"X-Request-ID": "req-123"})
    assert r.status_code == 401
    assert r.json()["request_id"] == "req-123"
    assert r.headers["X-Request-ID"] == "req-123"
