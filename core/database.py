"""
Database Management and Configuration.

This module owns the persistent store for bubbles, votes, suggestions and
suggestion votes. It uses SQLAlchemy's asyncio extension with SQLModel table
models.

Key Components:
- `Database`: Wraps the async engine and session factory for one database URL.
  It creates the tables on startup, hands out sessions, runs health checks and
  disposes the engine on shutdown.
- `write_lock`: A single `asyncio.Lock` per `Database`. Every store-mutating
  operation in the services runs while holding it, so the read-check-write
  sequence of a vote is never interleaved with another mutation even though
  the async driver suspends on I/O.
- `get_database_info`: Diagnostic information for the health endpoints.

Architectural Design:
- Asynchronous Operations: `aiosqlite` for SQLite (the default) and `asyncpg`
  for PostgreSQL keep database I/O off the event loop.
- Commit per mutation: services commit at the end of every mutating operation,
  so each change is flushed to disk before the response is sent.
- Explicit construction: the application builds one `Database` in its lifespan
  and passes it to the services, which keeps tests free to point a fresh
  instance at a temporary file.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

# Table models must be imported before metadata.create_all
from core import models  # noqa: F401

logger = logging.getLogger(__name__)


def _create_engine(database_url: str) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        kwargs: Dict[str, Any] = {
            "connect_args": {"check_same_thread": False},
            "echo": False,  # Set to True for SQL debugging
        }
        if ":memory:" in database_url or database_url.endswith("://"):
            # One shared connection, otherwise every checkout sees an empty DB
            kwargs["poolclass"] = StaticPool
        return create_async_engine(database_url, **kwargs)

    return create_async_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Validate connections before use
        echo=False,
    )


class Database:
    """Async engine, session factory and write lock for one database URL"""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = _create_engine(database_url)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )
        self.write_lock = asyncio.Lock()

    @property
    def database_type(self) -> str:
        return "postgresql" if "postgresql" in self.database_url else "sqlite"

    async def create_db_and_tables(self) -> None:
        """
        Initialize the database and create all tables.
        Called during application startup.
        """
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Bubble Map database tables created successfully")
        except Exception as e:
            logger.error(f"Failed to create Bubble Map database tables: {e}")
            raise

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Get an async database session"""
        async with self.session_factory() as session:
            yield session

    async def health_check(self) -> Dict[str, Any]:
        """Check connectivity and that the bubbles table is readable"""
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
                result = await session.execute(text("SELECT COUNT(*) FROM bubbles"))
                bubble_count = result.scalar()

            return {
                "status": "healthy",
                "database_type": self.database_type,
                "tables_accessible": True,
                "bubble_count": bubble_count,
            }
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "status": "unhealthy",
                "error": str(e),
                "database_type": self.database_type,
            }

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_database_info(database: Database) -> Dict[str, Any]:
    """
    Get basic database information for health checks.
    """
    health = await database.health_check()
    url = database.database_url
    return {
        "database_url": url.split("@")[1] if "@" in url else "masked",  # Hide credentials
        "connection_healthy": health["status"] == "healthy",
        "database_type": database.database_type,
    }
