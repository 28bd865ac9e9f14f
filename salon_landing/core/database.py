"""Async engine and session factory shared by the API, the document store and workers."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from salon_landing.core.config import get_settings

settings = get_settings()


def _engine_options(url: str) -> dict:
    # SQLite (local runs) uses a single-connection pool without sizing
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_size": 20, "max_overflow": 10, "pool_pre_ping": True}


engine = create_async_engine(
    settings.database_url, echo=False, **_engine_options(settings.database_url)
)

# expire_on_commit=False: services hand committed rows back to callers
async_session_factory = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for routers."""
    async with async_session_factory() as session:
        yield session


async def init_db() -> None:
    """Create intake, account, staging and document tables if missing.

    Deployed databases are migrated with Alembic instead.
    """
    import salon_landing.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
