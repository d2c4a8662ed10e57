"""
Pytest Configuration and Fixtures

Every test gets a freshly created schema in a throwaway SQLite file
(aiosqlite driver) and its own event bus, so published events can be
inspected without a broker.
"""
import os
import sys
import tempfile
import uuid

# Settings are read at import time: point them at the test database first
_TEST_DB_DIR = tempfile.mkdtemp(prefix="family_accord_tests_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.pop("NOTIFICATION_URL", None)

# Add services/core to path for imports
app_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if app_dir not in sys.path:
    sys.path.insert(0, app_dir)

import pytest
import pytest_asyncio
from sqlalchemy import event

from authorization import Caller
from database import AsyncSessionLocal, create_schema, drop_schema, engine
from event_bus import EventBus
from infrastructure.uow import create_uow_provider


@event.listens_for(engine.sync_engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # ON DELETE SET NULL on conflicts.goal_*_id needs this in SQLite
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture
async def db_schema():
    """Drop and recreate all tables around each test"""
    await drop_schema()
    await create_schema()
    yield
    # Pooled connections belong to this test's event loop
    await engine.dispose()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def published(bus):
    """Events the bus delivered, in order"""
    events = []
    bus.subscribe(events.append)
    return events


@pytest.fixture
def uow_provider(db_schema, bus):
    return create_uow_provider(AsyncSessionLocal, bus)


# =============================================================================
# Callers
# =============================================================================

@pytest.fixture
def family_id():
    return uuid.uuid4()


@pytest.fixture
def parent(family_id):
    return Caller(user_id=uuid.uuid4(), family_id=family_id, verified_member=True)


@pytest.fixture
def child(family_id):
    return Caller(user_id=uuid.uuid4(), family_id=family_id, verified_member=True)


@pytest.fixture
def outsider():
    """Verified member of a different family"""
    return Caller(user_id=uuid.uuid4(), family_id=uuid.uuid4(), verified_member=True)


@pytest.fixture
def unverified(family_id):
    """Claims the family but the membership check failed upstream"""
    return Caller(user_id=uuid.uuid4(), family_id=family_id, verified_member=False)


@pytest.fixture
def headers_for():
    """Gateway identity headers for a caller"""
    def _headers(caller: Caller) -> dict:
        return {
            "X-User-Id": str(caller.user_id),
            "X-Family-Id": str(caller.family_id),
            "X-Family-Member": "true" if caller.verified_member else "false",
        }
    return _headers
