import asyncio
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, TypeVar

import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from wagerbook.core.config import Settings, get_settings
from wagerbook.core.exceptions import StorageFailureError
from wagerbook.core.logging import get_logger
from wagerbook.models.account import Account
from wagerbook.models.audit_log import AuditLog
from wagerbook.models.outcome_record import OutcomeRecord

log = get_logger(__name__)

T = TypeVar("T")

DOCUMENT_MODELS = [
    Account,
    OutcomeRecord,
    AuditLog,
]


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


@dataclass
class Datastore:
    """Pooled client handed to the services that need transactions."""

    client: AsyncIOMotorClient
    database: AsyncIOMotorDatabase

    async def run_in_transaction(self, callback: Callable[[AsyncIOMotorClientSession], Awaitable[T]]) -> T:
        """
        Run ``callback(session)`` inside a multi-document transaction.

        Commits when the callback returns, aborts when it raises. Errors
        labelled TransientTransactionError (write conflicts on the same
        document) re-run the callback from the start.
        """
        async with await self.client.start_session() as session:
            return await session.with_transaction(callback)

    async def supports_transactions(self) -> bool:
        hello = await self.client.admin.command("hello")
        return "setName" in hello or hello.get("msg") == "isdbgrid"

    def close(self) -> None:
        self.client.close()


@contextmanager
def storage_errors(operation: str, **context: Any) -> Iterator[None]:
    """Log driver errors with detail and surface a generic StorageFailureError."""
    try:
        yield
    except PyMongoError as e:
        log.error("storage_failure", operation=operation, error=str(e), **context)
        raise StorageFailureError() from e


def create_client(settings: Settings) -> AsyncIOMotorClient:
    # Atlas in Docker: tlsCAFile + tlsDisableOCSPEndpointCheck avoid TLSV1_ALERT_INTERNAL_ERROR
    kwargs: dict[str, Any] = {
        "serverSelectionTimeoutMS": settings.mongodb_timeout_ms,
        "tz_aware": True,
    }
    if _use_tls(settings.mongodb_uri):
        kwargs["tlsCAFile"] = certifi.where()
        kwargs["tlsDisableOCSPEndpointCheck"] = True
    return AsyncIOMotorClient(settings.mongodb_uri, **kwargs)


async def connect(settings: Settings | None = None, retries: int | None = None) -> Datastore:
    """Connect with retries, bind the document models and return the datastore."""
    settings = settings or get_settings()
    attempts = max(1, retries if retries is not None else settings.db_connect_retries)
    client = create_client(settings)
    for attempt in range(1, attempts + 1):
        try:
            await client.admin.command("ping")
            break
        except PyMongoError as e:
            log.warning("db_connect_failed", attempt=attempt, attempts=attempts, error=str(e))
            if attempt == attempts:
                client.close()
                raise StorageFailureError() from e
            await asyncio.sleep(settings.db_connect_retry_delay_seconds)
    database = client[settings.mongodb_db_name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    datastore = Datastore(client=client, database=database)
    try:
        with storage_errors("connect", db=settings.mongodb_db_name):
            transactions = await datastore.supports_transactions()
    except StorageFailureError:
        client.close()
        raise
    if not transactions:
        # settlements, registrations and balance overwrites will fail
        log.warning("db_transactions_unavailable", db=settings.mongodb_db_name)
    log.info("db_connected", db=settings.mongodb_db_name, transactions=transactions)
    return datastore
