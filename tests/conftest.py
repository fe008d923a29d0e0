import os
import sys
from pathlib import Path

# Must be set before the application reads its settings
os.environ.setdefault("ENVIRONMENT", "testing")

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from httpx import ASGITransport, AsyncClient

from quiz_engine.config import get_settings
from quiz_engine.backend.app import create_app
from quiz_engine.backend.database.connection import (
    create_async_engine_instance,
    create_session_factory,
    create_tables,
    get_db
)
from quiz_engine.backend.dependencies import get_clock, get_shuffler
from tests.factories import FixedClock, reverse_shuffle


@pytest.fixture(scope="session")
def settings():
    """Provide settings for tests"""
    return get_settings()


@pytest.fixture
async def engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine_instance("sqlite+aiosqlite://")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def app(session_factory, clock):
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_shuffler] = lambda: reverse_shuffle
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
