import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from prometheus_client import Counter
from prometheus_client import Gauge
from sqlalchemy import event
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.ext.asyncio import create_async_engine

from app.core.config import settings
from app.core.custom_logging import log_execution
from app.core.custom_logging import logger
from app.core.errors import AudioAPIError
from app.models import Base

DB_POOL_CONNECTIONS = Gauge(
    "vibe_loop_db_pool_connections",
    "Database connections by state",
    ["state"],
    multiprocess_mode="liveall",
)

DB_SESSION_ERRORS = Counter(
    "vibe_loop_db_session_errors",
    "Database session errors by exception type",
    ["type"],
)


def engine_options(database_url: str) -> dict:
    """Pool and driver options; only PostgreSQL gets a sized pool and asyncpg args."""
    options: dict = {"echo": settings.DEBUG, "pool_pre_ping": True}
    if make_url(database_url).get_backend_name() == "postgresql":
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_recycle=settings.DB_POOL_RECYCLE,
            connect_args={
                "server_settings": {"application_name": settings.APP_NAME},
                "timeout": settings.DB_CONNECT_TIMEOUT,
            },
        )
    return options


class Database:
    """Process-wide engine and session factory, created lazily or in the lifespan."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.engine = None
            cls._instance.sessionmaker = None
        return cls._instance

    @log_execution(level=logging.DEBUG)
    async def initialize(self, database_url: str | None = None) -> None:
        """Create the engine, make sure tables exist and verify connectivity."""
        url = database_url or settings.database_url
        logger.debug(f"Connecting to database at {make_url(url).render_as_string()}")
        self.engine = create_async_engine(url, **engine_options(url))

        # Migrations own the schema in production; this only fills in missing tables
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.sessionmaker = async_sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
            autoflush=False,
            class_=AsyncSession,
        )
        self._track_pool(self.engine)
        await self.ping()

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
        self.engine = None
        self.sessionmaker = None

    async def ping(self) -> None:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.critical(f"Database unreachable: {e}")
            raise
        logger.info("Database reachable")

    @staticmethod
    def _track_pool(engine: AsyncEngine) -> None:
        pool = engine.sync_engine.pool

        @event.listens_for(pool, "connect")
        def on_connect(dbapi_conn, connection_record):
            DB_POOL_CONNECTIONS.labels("open").inc()

        @event.listens_for(pool, "close")
        def on_close(dbapi_conn, connection_record):
            DB_POOL_CONNECTIONS.labels("open").dec()

        @event.listens_for(pool, "checkout")
        def on_checkout(dbapi_conn, connection_record, connection_proxy):
            DB_POOL_CONNECTIONS.labels("in_use").inc()

        @event.listens_for(pool, "checkin")
        def on_checkin(dbapi_conn, connection_record):
            DB_POOL_CONNECTIONS.labels("in_use").dec()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session scope; rolls back on any error, counts and logs the unexpected ones."""
        if self.sessionmaker is None:
            await self.initialize()

        async with self.sessionmaker() as session:
            try:
                yield session
            except AudioAPIError:
                await session.rollback()
                raise
            except Exception as e:
                await session.rollback()
                DB_SESSION_ERRORS.labels(type(e).__name__).inc()
                logger.error(f"Database session error: {e!r}")
                raise


database = Database()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; shared by all dependencies of one request."""
    async with database.session() as session:
        yield session
