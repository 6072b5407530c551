"""Async database engine and session. PostgreSQL via DATABASE_URL."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from ticketdesk.config import get_settings

logger = logging.getLogger(__name__)

INIT_ATTEMPTS = 5


# SQLAlchemy 2.0 style
class Base(DeclarativeBase):
    pass


def _get_engine_url() -> str:
    return get_settings().database_url


_engine = create_async_engine(
    _get_engine_url(),
    echo=get_settings().debug,
    future=True,
)

async_session_factory = async_sessionmaker(
    _engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Create tables if they don't exist. Retries on connection errors."""
    # Register models on Base.metadata before create_all.
    from ticketdesk.storage import models  # noqa: F401

    logger.info("Initializing database: %s", _engine.url.render_as_string(hide_password=True))
    for attempt in range(1, INIT_ATTEMPTS + 1):
        try:
            async with _engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            return
        except (SQLAlchemyError, OSError) as e:
            if attempt == INIT_ATTEMPTS:
                logger.error("Giving up on database after %s attempts", INIT_ATTEMPTS)
                raise
            logger.warning("Database not ready (attempt %s/%s): %s", attempt, INIT_ATTEMPTS, type(e).__name__)
            await asyncio.sleep(2.0 * attempt)


async def ping_db(session: AsyncSession) -> bool:
    """True when a trivial query round-trips through the session's connection."""
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Database ping failed: %s", type(e).__name__)
        await session.rollback()
        return False
    return True


async def close_db() -> None:
    await _engine.dispose()
