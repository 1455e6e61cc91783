"""
Database connection and session management for the Contact Identity Resolution service
This module sets up the async SQLAlchemy engine and transactional session scope.
Supports local PostgreSQL, AWS RDS and SQLite (tests) with connection pooling
where the backend supports it.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from config import settings
from models import Base

# Configure logging
logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Database connection manager that handles the async SQLAlchemy engine,
    session creation, and connection lifecycle management

    The engine is created lazily on first use so importing this module never
    opens a connection.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.get_active_database_url()
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._initialize_database()
        return self._engine

    def _initialize_database(self):
        """Initialize database engine and session factory"""
        url = make_url(self.database_url)
        logger.info(f"Initializing database connection to: {url.render_as_string(hide_password=True)}")

        engine_options = {
            "echo": settings.DEBUG,  # Log SQL queries in debug mode
        }

        if url.get_backend_name() != "sqlite":
            engine_options.update(
                pool_pre_ping=True,  # Validate connections before use
                pool_recycle=3600,
            )
            if settings.is_lambda_environment():
                # Single concurrent execution per Lambda container
                engine_options.update(pool_size=1, max_overflow=0, pool_timeout=10)
            else:
                engine_options.update(
                    pool_size=settings.DB_POOL_SIZE,
                    max_overflow=settings.DB_MAX_OVERFLOW,
                    pool_timeout=settings.DB_POOL_TIMEOUT,
                )

        self._engine = create_async_engine(self.database_url, **engine_options)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,  # Don't expire objects after commit
            autoflush=False  # Explicit flushes only
        )

        logger.info("Database connection initialized successfully")

    async def create_tables(self):
        """Create all database tables defined in models"""
        logger.info("Creating database tables...")
        async with self.engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    async def test_connection(self) -> bool:
        """Test database connection"""
        try:
            async with self.engine.connect() as connection:
                await connection.execute(text("SELECT 1"))
            logger.info("Database connection test successful")
            return True
        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """
        Async context manager for one transactional session
        Commits when the block exits cleanly, rolls back on any error
        Usage:
            async with db_manager.get_session() as session:
                # database operations
        """
        if self._session_factory is None:
            self._initialize_database()

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.debug(f"Database session rolled back: {e!r}")
            raise
        finally:
            await session.close()

    async def dispose(self):
        """Close all pooled connections"""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None


# Global database manager instance
db_manager = DatabaseManager()
