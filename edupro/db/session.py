from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from edupro.core.config import settings


def _engine_kwargs(url: str) -> dict:
    # pool_pre_ping / pool_recycle avoid stale connections on server databases;
    # SQLite uses a file or memory and has no network pool to recycle.
    if url.startswith("sqlite"):
        return {}
    return {"pool_pre_ping": True, "pool_recycle": 300}


engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
    **_engine_kwargs(settings.database_url),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


async def init_models() -> None:
    """Create all tables. Used on startup when AUTO_CREATE_TABLES is set."""
    # Import models so they register on Base.metadata
    import edupro.core.models  # noqa: F401
    import edupro.auth.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
