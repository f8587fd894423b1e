"""
Database engine and session factory.

One async engine per process; request handlers and services receive an
`AsyncSession` from `async_session_maker`.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tierpay.config.settings import settings


def create_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    """Create the async engine for the configured database."""
    return create_async_engine(
        url or settings.async_database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
        **kwargs,
    )


def create_session_maker(
    engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Create a session maker bound to an engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async_engine = create_engine()
async_session_maker = create_session_maker(async_engine)
