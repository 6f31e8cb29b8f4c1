"""
SoundCheck Database Connection Manager
Async database connections and transaction scopes
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker
)
from sqlalchemy.orm import declarative_base

from ..core.config import get_settings
from ..core.logging import performance_logger

settings = get_settings()

# SQLAlchemy base for models
Base = declarative_base()


class DatabaseManager:
    """Manages database connections and sessions"""

    def __init__(self):
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    async def initialize(self, database_url: Optional[str] = None) -> None:
        """Initialize database connections"""
        url = database_url or settings.DATABASE_URL

        engine_kwargs = {
            "echo": settings.is_development,  # Log SQL queries in dev
            "pool_pre_ping": True,
        }
        if not url.startswith("sqlite"):
            engine_kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
            engine_kwargs["max_overflow"] = settings.DATABASE_MAX_OVERFLOW

        self._engine = create_async_engine(url, **engine_kwargs)

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

    async def close(self) -> None:
        """Close database connections"""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @property
    def engine(self) -> AsyncEngine:
        if not self._engine:
            raise RuntimeError("Database not initialized")
        return self._engine

    @property
    def dialect_name(self) -> str:
        """Name of the connected dialect (postgresql, sqlite, ...)"""
        return self.engine.dialect.name

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get async database session"""
        if not self._session_factory:
            raise RuntimeError("Database not initialized")

        async with self._session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """Session whose work commits on exit or rolls back on error"""
        async with self.get_session() as session:
            async with session.begin():
                yield session

    async def create_all(self) -> None:
        """Create all tables (development and tests; production uses Alembic)"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def check_health(self) -> bool:
        """Check database health"""
        try:
            async with self.get_session() as session:
                result = await session.execute(text("SELECT 1"))
                result.fetchone()

            return True

        except Exception as e:
            performance_logger.logger.error(f"Database health check failed: {e}")
            return False


# Global database manager instance
database_manager = DatabaseManager()
