"""
Database Client

Async SQLAlchemy database connection and session management.
"""

import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool
from tenacity import before_sleep_log, retry, stop_after_attempt, wait_exponential

from recording_service.config.settings import settings
from recording_service.infrastructure.database.models import Base

logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> dict:
    if ":memory:" in database_url:
        # One shared connection, otherwise every session sees an empty database
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    if database_url.startswith("sqlite"):
        return {"poolclass": NullPool}
    return {"pool_pre_ping": True}


class DatabaseClient:
    """Database client for managing async connections"""

    def __init__(self):
        self.engine = None
        self.session_maker = None

    @retry(
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def verify_connection(self):
        """Verify database connection with retry logic.

        This is called before table creation to ensure the database is ready.
        Retries with exponential backoff for K8s/scale-to-zero scenarios.
        """
        if not self.engine:
            raise RuntimeError("Engine not initialized. Call initialize() first.")

        async with self.engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection verified")

    async def initialize(self, database_url: Optional[str] = None):
        """Initialize database engine and create tables"""
        database_url = database_url or settings.database_url
        logger.info(f"Initializing database: {database_url}")

        self.engine = create_async_engine(database_url, echo=False, **_engine_options(database_url))

        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        await self.verify_connection()

        # Alembic migrations run before uvicorn starts in container deployments;
        # create_all() covers local and test setups
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database initialized successfully")

    async def close(self):
        """Close database connections"""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")

    def get_session(self) -> AsyncSession:
        """Get database session"""
        if not self.session_maker:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self.session_maker()

    async def health_check(self) -> bool:
        """Check database health"""
        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


# Global database client instance
db_client = DatabaseClient()

