"""
Database engine and session factories

The tenancy tables live in one relational database reached through an async
SQLAlchemy engine; TenantDataStore opens one session per call.
"""

from typing import Optional

from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
import structlog

from schoolhub.core.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()


def build_engine(url: str, **kwargs) -> AsyncEngine:
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_async_engine(url, echo=settings.DEBUG, future=True, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Loaded attributes survive commit; snapshots are built from them afterwards"""
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async_engine = build_engine(settings.async_database_url)
async_session_maker = build_session_factory(async_engine)


async def init_db(engine: Optional[AsyncEngine] = None):
    """Create the tenancy tables directly (tests, local runs); deployments use Alembic"""
    import schoolhub.models  # noqa: F401  register tables on SQLModel.metadata

    async with (engine or async_engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("tenancy_tables_created", tables=sorted(SQLModel.metadata.tables))


async def dispose_db(engine: Optional[AsyncEngine] = None):
    await (engine or async_engine).dispose()
    logger.info("database_engine_disposed")
