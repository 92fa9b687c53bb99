"""
Database configuration.

The relational store is optional: it only receives notification rows.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from cundina.config.settings import Settings


def create_session_factory(settings: Settings) -> async_sessionmaker[AsyncSession] | None:
    """
    Build an async session factory from settings.

    Returns:
        Session factory, or None when DATABASE_URL is not set
    """
    if not settings.database_url:
        return None
    engine: AsyncEngine = create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
    )
    return async_sessionmaker(engine, expire_on_commit=False)
