from datetime import datetime, timezone
from typing import Any

from beanie import Document, PydanticObjectId
from pydantic import Field
from pymongo import ASCENDING, IndexModel


class OutcomeRecord(Document):
    """One settled wager. Inserted once, never updated or deleted."""
    user_id: PydanticObjectId
    bet_amount: int
    payout: int
    panels: Any = None  # wager shape as sent by the client
    outcome: Any = None
    balance_after: int  # snapshot, not a live reference
    idempotency_key: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "outcome_records"
        indexes = [
            [("user_id", 1), ("created_at", 1), ("_id", 1)],
            IndexModel(
                [("user_id", ASCENDING), ("idempotency_key", ASCENDING)],
                name="user_idempotency_key_unique",
                unique=True,
                partialFilterExpression={"idempotency_key": {"$type": "string"}},
            ),
        ]
