"""Database connection and session management using SQLAlchemy async ORM"""
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from counselboard.config import DATABASE_URL, SQL_ECHO

# Base class for declarative models
Base = declarative_base()


def normalize_database_url(url: str) -> str:
    """Convert sync driver URLs to their async equivalents."""
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the session store.

    SQLite connections get foreign key enforcement switched on so participant
    links cascade with their session. Server databases get a connection pool.
    """
    url = normalize_database_url(url)

    if url.startswith("sqlite"):
        async_engine = create_async_engine(url, echo=echo)

        @event.listens_for(async_engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return async_engine

    # pool_size=5: single authoritative writer, a handful of readers
    # pool_recycle=3600: Recycle connections every hour to prevent stale connections
    return create_async_engine(
        url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
        pool_pre_ping=True,
    )


def build_session_factory(async_engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(DATABASE_URL, echo=SQL_ECHO)

# Create async session factory
AsyncSessionLocal = build_session_factory(engine)


async def init_db(async_engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    # Register models on Base.metadata
    import counselboard.models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for FastAPI endpoints to get database session.

    Usage in FastAPI:
        @app.get("/items")
        async def read_items(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Item))
            return result.scalars().all()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
