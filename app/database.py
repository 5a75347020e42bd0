import logging

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


engine = create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG)


@event.listens_for(engine.sync_engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    if engine.dialect.name != "sqlite":
        return
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def run_migrations(bind: AsyncEngine = engine) -> None:
    """
    Apply any missing column migrations to existing tables.
    Safe to run on a fresh DB (table won't exist yet, create_all_tables handles that).
    """
    if bind.dialect.name != "sqlite":
        return
    async with bind.begin() as conn:
        result = await conn.execute(text("PRAGMA table_info(activities)"))
        columns = [row[1] for row in result.fetchall()]
        if columns and "user_id" not in columns:
            await conn.execute(text("ALTER TABLE activities ADD COLUMN user_id VARCHAR(36)"))
            logger.info("Migration: added user_id column to activities table")


async def create_all_tables(bind: AsyncEngine = engine) -> None:
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
