from datetime import datetime, timezone

from beanie import Document, Indexed
from pydantic import Field
from pymongo import ASCENDING, IndexModel


class Account(Document):
    username: Indexed(str, unique=True)
    password_hash: str  # bcrypt; never serialised to clients
    email: str | None = None
    phone_number: str | None = None
    balance: int = 0  # only written inside a transaction (settlement or set_balance)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "accounts"
        indexes = [
            # unique only where present, so many accounts may omit email or phone
            IndexModel(
                [("email", ASCENDING)],
                name="email_unique",
                unique=True,
                partialFilterExpression={"email": {"$type": "string"}},
            ),
            IndexModel(
                [("phone_number", ASCENDING)],
                name="phone_number_unique",
                unique=True,
                partialFilterExpression={"phone_number": {"$type": "string"}},
            ),
        ]
