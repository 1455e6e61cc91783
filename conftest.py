"""
Shared pytest fixtures for the Contact Identity Resolution test suite
Each test gets its own SQLite database file through aiosqlite.
"""

import os

# Keep import-time settings deterministic for the test run
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from sqlalchemy import event, select

from database import DatabaseManager
from models import Contact
from services.cluster_lock import ClusterLockManager
from services.identity_service import IdentityService


@pytest_asyncio.fixture
async def database(tmp_path):
    """Fresh SQLite database with the contacts table created"""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'contacts.db'}")
    await manager.create_tables()
    yield manager
    await manager.dispose()


@pytest.fixture
def service(database):
    """Identity service bound to the test database"""
    return IdentityService(
        database=database,
        cluster_locks=ClusterLockManager(use_advisory_locks=False),
        max_attempts=3
    )


@pytest.fixture
def write_counter(database):
    """Counts INSERT/UPDATE/DELETE statements executed against the test database"""
    statements = []

    def record(conn, cursor, statement, parameters, context, executemany):
        verb = statement.lstrip().split(" ", 1)[0].upper()
        if verb in ("INSERT", "UPDATE", "DELETE"):
            statements.append(statement)

    engine = database.engine.sync_engine
    event.listen(engine, "before_cursor_execute", record)
    yield statements
    event.remove(engine, "before_cursor_execute", record)


@pytest.fixture
def fetch_contacts(database):
    """Load every contact row (including soft-deleted ones) ordered by id"""

    async def _fetch():
        async with database.get_session() as session:
            result = await session.execute(select(Contact).order_by(Contact.id))
            return list(result.scalars().all())

    return _fetch
