"""Account store: one balance per user, uniqueness enforced by the database."""

import re
from datetime import datetime, timezone

from beanie import PydanticObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from wagerbook.core.audit import log_event
from wagerbook.core.config import get_settings
from wagerbook.core.exceptions import DuplicateIdentityError, NotFoundError, StorageFailureError
from wagerbook.core.logging import get_logger
from wagerbook.db.init import Datastore, storage_errors
from wagerbook.models.account import Account

log = get_logger(__name__)

IDENTITY_FIELDS = ("username", "email", "phone_number")


def to_object_id(user_id: str | PydanticObjectId) -> PydanticObjectId:
    """Parse a user id; an id that cannot exist is reported as a missing account."""
    if isinstance(user_id, PydanticObjectId):
        return user_id
    try:
        return PydanticObjectId(user_id)
    except (InvalidId, TypeError) as e:
        raise NotFoundError("User not found") from e


def _duplicate_field(exc: DuplicateKeyError) -> str | None:
    key_value = (exc.details or {}).get("keyValue") or {}
    for field in IDENTITY_FIELDS:
        if field in key_value:
            return field
    match = re.search(r"index: (\w+?)(?:_unique|_1)\b", str(exc))
    return match.group(1) if match else None


async def create_account(
    datastore: Datastore,
    username: str,
    password_hash: str,
    email: str | None = None,
    phone_number: str | None = None,
) -> Account:
    """
    Insert a new account with the starting grant. Collisions raise DuplicateIdentityError.

    The insert and its audit entry commit together, so a failed audit write
    leaves no account behind.
    """
    initial_balance = get_settings().initial_balance

    async def _insert(session) -> Account:
        account = Account(
            username=username,
            password_hash=password_hash,
            email=email or None,
            phone_number=phone_number or None,
            balance=initial_balance,
        )
        await account.insert(session=session)
        await log_event(
            str(account.id),
            "account_created",
            "account",
            str(account.id),
            {"username": username},
            session=session,
        )
        return account

    try:
        account = await datastore.run_in_transaction(_insert)
    except DuplicateKeyError as e:
        field = _duplicate_field(e)
        log.info("account_duplicate", username=username, field=field)
        raise DuplicateIdentityError(details={"field": field} if field else None) from e
    except PyMongoError as e:
        log.error("storage_failure", operation="create_account", username=username, error=str(e))
        raise StorageFailureError() from e
    log.info("account_created", user_id=str(account.id), username=username)
    return account


async def get_account(user_id: str | PydanticObjectId) -> Account:
    oid = to_object_id(user_id)
    with storage_errors("get_account", user_id=str(oid)):
        account = await Account.get(oid)
    if not account:
        raise NotFoundError("User not found")
    return account


async def get_balance(user_id: str | PydanticObjectId) -> int:
    account = await get_account(user_id)
    return account.balance


async def get_profile(user_id: str | PydanticObjectId) -> dict:
    account = await get_account(user_id)
    return {"username": account.username, "balance": account.balance}


async def find_by_username(username: str) -> Account:
    """Return the account including its password hash (for login only)."""
    with storage_errors("find_by_username", username=username):
        account = await Account.find_one(Account.username == username)
    if not account:
        raise NotFoundError("User not found")
    return account


async def set_balance(datastore: Datastore, user_id: str | PydanticObjectId, new_balance: int) -> int:
    """
    Overwrite the balance unconditionally (administrative adjustment).

    Runs in a transaction on the account document so it serialises with
    settlements, and records the previous value in the audit log within the
    same transaction. Returns the previous balance.
    """
    oid = to_object_id(user_id)

    async def _overwrite(session) -> int | None:
        before = await Account.get_motor_collection().find_one_and_update(
            {"_id": oid},
            {"$set": {"balance": new_balance, "updated_at": datetime.now(timezone.utc)}},
            projection={"balance": 1},
            return_document=ReturnDocument.BEFORE,
            session=session,
        )
        if before is None:
            return None
        await log_event(
            str(oid),
            "balance_overwritten",
            "account",
            str(oid),
            {"previous_balance": before.get("balance"), "balance": new_balance},
            session=session,
        )
        return before.get("balance")

    with storage_errors("set_balance", user_id=str(oid)):
        previous = await datastore.run_in_transaction(_overwrite)
    if previous is None:
        raise NotFoundError("User not found")
    log.info("balance_overwritten", user_id=str(oid), previous_balance=previous, balance=new_balance)
    return previous
