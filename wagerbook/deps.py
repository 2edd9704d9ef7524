"""Shared FastAPI dependencies."""

from fastapi import Header, Request

from wagerbook.core.exceptions import StorageFailureError
from wagerbook.core.logging import bind_user_id
from wagerbook.core.security import extract_token, verify_token
from wagerbook.db.init import Datastore


async def get_current_user_id(authorization: str | None = Header(default=None)) -> str:
    """Dependency: verify the raw token in the Authorization header and return the user id.

    Declared first on every protected route so that missing or bad
    credentials are rejected before the store is touched.
    """
    user_id = verify_token(extract_token(authorization))
    bind_user_id(user_id)
    return user_id


async def get_datastore(request: Request) -> Datastore:
    """Dependency: the pooled datastore opened at startup."""
    datastore = getattr(request.app.state, "datastore", None)
    if datastore is None:
        raise StorageFailureError()
    return datastore


def get_idempotency_key(idempotency_key: str | None = Header(default=None, alias="Idempotency-Key")) -> str | None:
    """Optional client key that makes a retried settlement a no-op."""
    if idempotency_key is None:
        return None
    return idempotency_key.strip() or None
