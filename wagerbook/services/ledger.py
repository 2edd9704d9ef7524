"""Outcome ledger: append-only history of settled wagers."""

from beanie import PydanticObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession

from wagerbook.core.pagination import paginate
from wagerbook.db.init import storage_errors
from wagerbook.models.outcome_record import OutcomeRecord


async def append(record: OutcomeRecord, session: AsyncIOMotorClientSession) -> OutcomeRecord:
    """
    Insert a record inside the caller's transaction.

    There is no update or delete counterpart. Driver errors propagate so the
    surrounding transaction aborts.
    """
    await record.insert(session=session)
    return record


async def find_by_idempotency_key(
    user_id: PydanticObjectId,
    idempotency_key: str,
    session: AsyncIOMotorClientSession | None = None,
) -> OutcomeRecord | None:
    return await OutcomeRecord.find_one(
        OutcomeRecord.user_id == user_id,
        OutcomeRecord.idempotency_key == idempotency_key,
        session=session,
    )


async def list_for_user(user_id: PydanticObjectId, limit: int = 50, offset: int = 0) -> list[OutcomeRecord]:
    """Records for one account in creation order (oldest first)."""
    limit, offset = paginate(limit, offset)
    with storage_errors("list_outcomes", user_id=str(user_id)):
        return (
            await OutcomeRecord.find(OutcomeRecord.user_id == user_id)
            .sort("+created_at", "+_id")
            .skip(offset)
            .limit(limit)
            .to_list()
        )


async def count_for_user(user_id: PydanticObjectId) -> int:
    with storage_errors("count_outcomes", user_id=str(user_id)):
        return await OutcomeRecord.find(OutcomeRecord.user_id == user_id).count()
