"""
Async engine, session factory and declarative base.

Everything is created lazily; tests and scripts point DATABASE_URL elsewhere
before first use.
"""
from sqlalchemy import Column, DateTime
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from typing import Any, AsyncGenerator, Dict, Optional
from datetime import datetime
import uuid

from academia.core.config import settings


Base = declarative_base()


_engine: Optional[AsyncEngine] = None
_async_session_local: Optional[async_sessionmaker[AsyncSession]] = None


def generate_uuid() -> str:
    """Primary keys are UUID strings so SQLite and PostgreSQL behave the same"""
    return str(uuid.uuid4())


class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


def get_database_url() -> str:
    """Plain postgresql:// URLs are switched to the asyncpg driver"""
    db_url = settings.DATABASE_URL
    if db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return db_url


def engine_options(db_url: str) -> Dict[str, Any]:
    """
    SQLite and development PostgreSQL run without a pool; production
    PostgreSQL gets a bounded pool with pre-ping and 30 minute recycling.
    """
    options: Dict[str, Any] = {"echo": settings.DB_ECHO}
    if db_url.startswith("sqlite"):
        options.update(connect_args={"check_same_thread": False}, poolclass=NullPool)
    elif settings.DEBUG or settings.ENVIRONMENT == "development":
        options.update(poolclass=NullPool)
    else:
        options.update(
            pool_size=10,
            max_overflow=20,
            pool_timeout=30,
            pool_recycle=1800,
            pool_pre_ping=True,
        )
    return options


def get_engine() -> AsyncEngine:
    """Engine is created on first use so importing models never needs a database"""
    global _engine
    if _engine is None:
        db_url = get_database_url()
        _engine = create_async_engine(db_url, **engine_options(db_url))
    return _engine


def get_session_local() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory (lazy initialization)"""
    global _async_session_local
    if _async_session_local is None:
        _async_session_local = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False
        )
    return _async_session_local


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session - only commits if there are pending changes"""
    session_factory = get_session_local()
    async with session_factory() as session:
        try:
            yield session
            if session.new or session.dirty or session.deleted:
                await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """Create all tables"""
    # Register models on the metadata before create_all
    import academia.models  # noqa: F401

    eng = get_engine()
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connection"""
    global _engine, _async_session_local
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_local = None
