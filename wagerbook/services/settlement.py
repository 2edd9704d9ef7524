"""
Wager settlement: append the outcome record and move the balance as one unit.

Everything happens inside a single MongoDB transaction. The balance write is
a compare-and-set on the value read in the same transaction, so two
settlements for the same account cannot both apply a delta to the same
starting balance. The loser gets a write conflict, which the driver retries
from the top. The ledger append shares the transaction, so a record exists
if and only if the balance change it describes was committed.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from beanie import PydanticObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo.errors import DuplicateKeyError, PyMongoError

from wagerbook.core.config import get_settings
from wagerbook.core.exceptions import (
    BadRequestError,
    ConflictError,
    InsufficientFundsError,
    NotFoundError,
    SettlementFailureError,
)
from wagerbook.core.logging import get_logger
from wagerbook.db.init import Datastore
from wagerbook.models.account import Account
from wagerbook.models.outcome_record import OutcomeRecord
from wagerbook.services import ledger
from wagerbook.services.accounts import to_object_id

log = get_logger(__name__)

TRANSIENT_TRANSACTION_ERROR = "TransientTransactionError"


class BalanceConflictError(PyMongoError):
    """The account balance moved between read and write; the transaction is retried."""

    def __init__(self, user_id: PydanticObjectId):
        super().__init__(
            f"balance of {user_id} changed during settlement",
            error_labels=[TRANSIENT_TRANSACTION_ERROR],
        )


@dataclass
class Wager:
    bet_amount: int
    payout: int
    panels: Any = None
    outcome: Any = None


@dataclass
class Settlement:
    new_balance: int
    record: OutcomeRecord
    replayed: bool = False


def compute_new_balance(current_balance: int, bet_amount: int, payout: int) -> int:
    return current_balance + payout - bet_amount


def check_funds(current_balance: int, bet_amount: int, allow_negative_balance: bool) -> None:
    """A stake larger than the balance is refused unless negative balances are allowed."""
    if not allow_negative_balance and bet_amount > current_balance:
        raise InsufficientFundsError(details={"balance": current_balance, "bet_amount": bet_amount})


def _validate(wager: Wager) -> None:
    if wager.bet_amount < 0 or wager.payout < 0:
        raise BadRequestError("betAmount and payout must not be negative")


def _replayed(existing: OutcomeRecord, wager: Wager) -> Settlement:
    """Result of an earlier settlement under the same key; a different wager under that key is refused."""
    if existing.bet_amount != wager.bet_amount or existing.payout != wager.payout:
        raise ConflictError(
            "Idempotency-Key was already used for a different outcome",
            details={"bet_amount": existing.bet_amount, "payout": existing.payout},
            code="IDEMPOTENCY_KEY_REUSED",
        )
    return Settlement(new_balance=existing.balance_after, record=existing, replayed=True)


async def _replay(user_id: PydanticObjectId, idempotency_key: str, wager: Wager) -> Settlement | None:
    existing = await ledger.find_by_idempotency_key(user_id, idempotency_key)
    if existing is None:
        return None
    return _replayed(existing, wager)


async def settle(
    datastore: Datastore,
    user_id: str | PydanticObjectId,
    wager: Wager,
    idempotency_key: str | None = None,
    allow_negative_balance: bool | None = None,
) -> Settlement:
    """
    Settle one wager for ``user_id`` and return the resulting balance.

    With an ``idempotency_key``, a repeat of an already settled request
    returns the original result (``replayed=True``) without touching the
    balance. Reusing the key for a different stake or payout raises
    ConflictError. NotFoundError and InsufficientFundsError leave no trace;
    any storage failure aborts the transaction and surfaces as
    SettlementFailureError.
    """
    _validate(wager)
    oid = to_object_id(user_id)
    if allow_negative_balance is None:
        allow_negative_balance = get_settings().allow_negative_balance

    async def _commit(session: AsyncIOMotorClientSession) -> Settlement:
        if idempotency_key:
            existing = await ledger.find_by_idempotency_key(oid, idempotency_key, session=session)
            if existing is not None:
                return _replayed(existing, wager)

        account = await Account.get(oid, session=session)
        if account is None:
            raise NotFoundError("User not found")
        check_funds(account.balance, wager.bet_amount, allow_negative_balance)
        new_balance = compute_new_balance(account.balance, wager.bet_amount, wager.payout)

        now = datetime.now(timezone.utc)
        result = await Account.get_motor_collection().update_one(
            {"_id": oid, "balance": account.balance},
            {"$set": {"balance": new_balance, "updated_at": now}},
            session=session,
        )
        if result.matched_count != 1:
            raise BalanceConflictError(oid)

        record = OutcomeRecord(
            user_id=oid,
            bet_amount=wager.bet_amount,
            payout=wager.payout,
            panels=wager.panels,
            outcome=wager.outcome,
            balance_after=new_balance,
            idempotency_key=idempotency_key,
            created_at=now,
        )
        await ledger.append(record, session)
        return Settlement(new_balance=new_balance, record=record)

    try:
        settlement = await datastore.run_in_transaction(_commit)
    except DuplicateKeyError as e:
        # a concurrent request with the same idempotency key committed first
        replay = None
        if idempotency_key:
            try:
                replay = await _replay(oid, idempotency_key, wager)
            except PyMongoError as lookup_error:
                log.error("settlement_failed", user_id=str(oid), error=str(lookup_error))
                raise SettlementFailureError() from lookup_error
        if replay is None:
            log.error("settlement_failed", user_id=str(oid), error=str(e))
            raise SettlementFailureError() from e
        settlement = replay
    except PyMongoError as e:
        log.error("settlement_failed", user_id=str(oid), error=str(e))
        raise SettlementFailureError() from e

    if settlement.replayed:
        log.info("outcome_replayed", user_id=str(oid), idempotency_key=idempotency_key, new_balance=settlement.new_balance)
    else:
        log.info(
            "outcome_settled",
            user_id=str(oid),
            record_id=str(settlement.record.id),
            bet_amount=wager.bet_amount,
            payout=wager.payout,
            new_balance=settlement.new_balance,
        )
    return settlement
