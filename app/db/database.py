import os
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncGenerator

from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool

db_port = os.getenv("DB_PORT", "5432")
if db_port == "None" or not db_port:
    db_port = "5432"

# DATABASE_URL wins when set (tests use sqlite+aiosqlite)
ASYNC_DATABASE_URL = os.getenv("DATABASE_URL") or (
    f"postgresql+asyncpg://{os.getenv('DB_USER')}:{os.getenv('DB_PASSWORD')}"
    f"@{os.getenv('DB_HOST')}:{db_port}/{os.getenv('DB_NAME')}"
)

# Sync URL for Alembic and scripts
DATABASE_URL = ASYNC_DATABASE_URL.replace("+asyncpg", "").replace("+aiosqlite", "")

_is_sqlite = ASYNC_DATABASE_URL.startswith("sqlite")

engine = create_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# sqlite connections must not outlive the event loop that opened them
async_engine = create_async_engine(
    ASYNC_DATABASE_URL,
    echo=False,
    **({"poolclass": NullPool} if _is_sqlite else {"pool_pre_ping": True}),
)
AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Async dependency for FastAPI routes."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session for background tasks and the scheduler: commit on success, rollback on error."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@contextmanager
def get_sync_db_session():
    """Sync session for operator scripts."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
