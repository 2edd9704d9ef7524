from datetime import datetime, timezone
from typing import Any

from beanie import Document
from pydantic import Field


class AuditLog(Document):
    """Administrative and account events; balance changes from wagers live in the ledger."""
    user_id: str | None = None  # optional for system events
    event_type: str  # account_created, balance_overwritten
    entity_type: str
    entity_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "audit_logs"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            [("event_type", 1), ("created_at", -1)],
        ]
