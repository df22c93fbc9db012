"""
Database setup and session management for the SQL table backend.
"""

from pathlib import Path
from urllib.parse import urlparse

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from ruletable.config import DatabaseConfig


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


def get_async_database_url(config: DatabaseConfig) -> str:
    """Get the async database URL from config.

    Converts a plain sqlite:// URL to sqlite+aiosqlite://. Other URLs are
    returned unchanged and must name an async driver that is installed.
    """
    url = config.url

    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    return url


def _ensure_sqlite_parent_dir(url: str) -> None:
    """Ensure parent directory exists for SQLite database."""
    if "sqlite" in url:
        # Format: sqlite+aiosqlite:///./data/ruletable.db or sqlite+aiosqlite:////abs/path.db
        parsed = urlparse(url)
        if parsed.path:
            path = parsed.path[1:]
            if path and path != ":memory:":
                db_path = Path(path)
                db_path.parent.mkdir(parents=True, exist_ok=True)


def create_async_db_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create an async database engine."""
    url = get_async_database_url(config)
    _ensure_sqlite_parent_dir(url)
    return create_async_engine(url, echo=False)


def create_async_session_factory(engine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory."""
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> bool:
    """
    Create the policy table if it does not exist.

    Returns:
        True if the table was created, False if it already existed.
    """
    from ruletable.models.policy import PolicyItem

    def _create(sync_conn) -> bool:
        existed = inspect(sync_conn).has_table(PolicyItem.__tablename__)
        Base.metadata.create_all(sync_conn)
        return not existed

    async with engine.begin() as conn:
        return await conn.run_sync(_create)
