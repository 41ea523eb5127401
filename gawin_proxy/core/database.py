import os
import logging
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from .config import DATABASE_URL

logger = logging.getLogger("Gawin.Core.Database")


def _ensure_sqlite_dir(url: str) -> None:
    # sqlite+aiosqlite:///./data/gawin.db -> ./data
    prefix = "sqlite+aiosqlite:///"
    if not url.startswith(prefix):
        return
    db_path = url[len(prefix):]
    directory = os.path.dirname(db_path)
    if directory and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)


_ensure_sqlite_dir(DATABASE_URL)

engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    poolclass=NullPool
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

Base = declarative_base()


async def get_db():
    """Dependency: one session per request."""
    async with async_session_maker() as session:
        yield session


async def init_db():
    # Tables must be registered on Base.metadata before create_all.
    from ..models import db_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready.")
