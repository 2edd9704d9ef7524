import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Use test DB; transactions need a replica set (e.g. mongod --replSet rs0)
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/?directConnection=true")
os.environ.setdefault("MONGODB_DB_NAME", "wagerbook_test")
os.environ.setdefault("MONGODB_TIMEOUT_MS", "1500")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")
os.environ.setdefault("BCRYPT_ROUNDS", "4")


@pytest_asyncio.fixture
async def datastore():
    """Connected datastore on a clean test database; skips when MongoDB is unreachable."""
    from wagerbook.core.config import get_settings
    from wagerbook.core.exceptions import StorageFailureError
    from wagerbook.db.init import DOCUMENT_MODELS, connect

    settings = get_settings()
    try:
        ds = await connect(settings, retries=1)
    except StorageFailureError:
        pytest.skip("MongoDB not available")
    for model in DOCUMENT_MODELS:
        await model.get_motor_collection().delete_many({})
    try:
        yield ds
    finally:
        await ds.client.drop_database(settings.mongodb_db_name)
        ds.close()


@pytest_asyncio.fixture
async def tx_datastore(datastore):
    """Datastore that supports multi-document transactions (replica set or mongos)."""
    if not await datastore.supports_transactions():
        pytest.skip("MongoDB transactions need a replica set")
    yield datastore


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """API client without a database; only paths that fail before storage work."""
    from wagerbook.main import app
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def db_client(tx_datastore) -> AsyncGenerator[AsyncClient, None]:
    from wagerbook.main import app
    app.state.datastore = tx_datastore
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.state.datastore = None
