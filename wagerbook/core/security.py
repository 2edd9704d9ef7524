"""Identity tokens and password hashing."""

import asyncio
import hashlib
from typing import Any

import bcrypt
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from wagerbook.core.config import Settings, get_settings
from wagerbook.core.exceptions import BadRequestError, InvalidCredentialError, UnauthenticatedError

TOKEN_SALT = "wagerbook-identity"
BEARER_SCHEME = "bearer"
# bcrypt only looks at the first 72 bytes and newer releases reject longer input
MAX_PASSWORD_BYTES = 72


def get_token_serializer(settings: Settings | None = None) -> URLSafeTimedSerializer:
    """Serializer that signs with SECRET_KEY and also accepts PREVIOUS_SECRET_KEYS."""
    settings = settings or get_settings()
    return URLSafeTimedSerializer(
        settings.verification_keys,
        salt=TOKEN_SALT,
        signer_kwargs={"key_derivation": "hmac", "digest_method": hashlib.sha256},
    )


def issue_token(user_id: str, settings: Settings | None = None) -> str:
    """Return a signed, timestamped identity token carrying the user id."""
    serializer = get_token_serializer(settings)
    return serializer.dumps({"user_id": user_id})


def extract_token(header_value: str | None) -> str:
    """Strip an optional ``Bearer`` prefix; fail fast when nothing was sent."""
    token = (header_value or "").strip()
    scheme, _, rest = token.partition(" ")
    if scheme.lower() == BEARER_SCHEME:
        token = rest.strip()
    if not token:
        raise UnauthenticatedError()
    return token


def verify_token(token: str | None, settings: Settings | None = None, max_age: int | None = None) -> str:
    """
    Verify an identity token and return the user id it carries.

    Raises UnauthenticatedError when no token is given and InvalidCredentialError
    when the token is malformed, signed with an unknown key, or older than
    TOKEN_MAX_AGE_SECONDS. No storage is consulted.
    """
    if not token:
        raise UnauthenticatedError()
    settings = settings or get_settings()
    serializer = get_token_serializer(settings)
    if max_age is None:
        max_age = settings.token_max_age_seconds
    try:
        payload: Any = serializer.loads(token, max_age=max_age)
    except SignatureExpired as e:
        raise InvalidCredentialError("Token expired") from e
    except BadSignature as e:
        raise InvalidCredentialError() from e
    user_id = payload.get("user_id") if isinstance(payload, dict) else None
    if not isinstance(user_id, str) or not user_id:
        raise InvalidCredentialError()
    return user_id


def _password_bytes(password: str) -> bytes:
    raw = password.encode("utf-8")
    if len(raw) > MAX_PASSWORD_BYTES:
        raise BadRequestError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return raw


async def hash_password(password: str, rounds: int | None = None) -> str:
    rounds = rounds or get_settings().bcrypt_rounds
    raw = _password_bytes(password)
    hashed = await asyncio.to_thread(bcrypt.hashpw, raw, bcrypt.gensalt(rounds=rounds))
    return hashed.decode("ascii")


async def verify_password(password: str, password_hash: str) -> bool:
    try:
        raw = _password_bytes(password)
    except BadRequestError:
        return False
    try:
        return await asyncio.to_thread(bcrypt.checkpw, raw, password_hash.encode("ascii"))
    except ValueError:
        # stored hash is not a bcrypt hash
        return False
