"""
Async engine, session factory and the request-scoped session dependency.

Work that must only happen once data is durable (pushes, emails, rating
recomputation) is registered on the session with `after_commit` and fired by
`commit`. A rolled-back session drops its callbacks.
"""

from typing import AsyncGenerator, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import get_settings

settings = get_settings()

AFTER_COMMIT_KEY = "after_commit_callbacks"


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
    }


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.DATABASE_URL),
)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

_session_factory: async_sessionmaker = AsyncSessionLocal


def get_session_factory() -> async_sessionmaker:
    """Factory used by background jobs that outlive the request session."""
    return _session_factory


def configure_session_factory(factory: async_sessionmaker) -> None:
    global _session_factory
    _session_factory = factory


def after_commit(session: AsyncSession, callback: Callable[[], object]) -> None:
    session.info.setdefault(AFTER_COMMIT_KEY, []).append(callback)


async def commit(session: AsyncSession) -> None:
    """Commit, then fire callbacks registered during this unit of work."""
    await session.commit()
    for callback in session.info.pop(AFTER_COMMIT_KEY, []):
        callback()


async def rollback(session: AsyncSession) -> None:
    session.info.pop(AFTER_COMMIT_KEY, None)
    await session.rollback()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One session per request. Write endpoints `commit` before building their
    response; anything left uncommitted is rolled back when the session closes.
    """
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await rollback(session)
            raise
