"""Database engine and session factory."""
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)

from faceid.core.logging import get_logger

logger = get_logger(__name__)


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given URL.

    Args:
        database_url: SQLAlchemy async URL, e.g. postgresql+asyncpg://... or sqlite+aiosqlite://...
        echo: Whether to log emitted SQL

    Returns:
        AsyncEngine: Configured engine
    """
    engine = create_async_engine(database_url, echo=echo, pool_pre_ping=True)
    logger.info(
        "Created identity store engine",
        url=engine.url.render_as_string(hide_password=True),
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )
