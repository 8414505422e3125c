from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from . import config
from .config import DATABASE_URL
import logging

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    options = {"echo": config.DATABASE_ECHO, "pool_pre_ping": True}
    if make_url(url).get_backend_name() == "sqlite":
        # aiosqlite connections are tied to the loop that opened them
        options["poolclass"] = NullPool
    return options


def enable_sqlite_foreign_keys(async_engine) -> None:
    """SQLite only checks foreign keys when asked to, per connection."""
    if async_engine.dialect.name != "sqlite":
        return

    @event.listens_for(async_engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


try:
    logger.info(f"Attempting to create engine with URL: {make_url(DATABASE_URL).render_as_string(hide_password=True)}")
    engine = create_async_engine(DATABASE_URL, **_engine_options(DATABASE_URL))
    enable_sqlite_foreign_keys(engine)
    AsyncSessionFactory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    logger.info("Async database engine and session factory created successfully.")
except Exception as e:
    logger.error(f"FATAL: Failed to create database engine or session factory: {e}")
    raise RuntimeError(f"Could not initialize database connection: {e}")

Base = declarative_base()


async def get_db_session() -> AsyncSession:
    """FastAPI dependency to inject DB session."""
    async with AsyncSessionFactory() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Rolling back session due to error: {e}")
            await session.rollback()
            raise
