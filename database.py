"""
Account store connection: async engine, session factory and the request-scoped session
"""
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from config.settings import settings, IS_PRODUCTION

SQLITE_FALLBACK_URL = "sqlite+aiosqlite:///./sql_app.db"


def resolve_database_url(url: str, production: bool = False) -> str:
    """
    Pick the async driver URL for the account store. Production must run on
    Postgres; plain postgresql:// URLs are moved onto asyncpg.
    """
    if production:
        if not url:
            raise RuntimeError("DATABASE_URL must be set in production. SQLite is not allowed in production.")
        if "sqlite" in url.lower():
            raise RuntimeError("SQLite is forbidden in production. Use a PostgreSQL DATABASE_URL.")
    url = url or SQLITE_FALLBACK_URL
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url.replace("postgresql://", "postgresql+asyncpg://", 1)


engine = create_async_engine(resolve_database_url(settings.database_url, IS_PRODUCTION), echo=False)

Base = declarative_base()

SessionFactory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


async def init_db():
    """Create the account, billing, trial and tool-account tables on startup"""
    import database_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One unit of work per request: commit on success, roll back on any error
    async with SessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
