import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from discord_link.core import settings
from discord_link.database.models import Base

logger = logging.getLogger(__name__)

async_engine = create_async_engine(settings.database.assemble_db_connection(), poolclass=NullPool)
logger.debug(f"Database backend: {async_engine.url.get_backend_name()}")
AsyncSessionLocal: async_sessionmaker[AsyncSession] = async_sessionmaker(
    async_engine, autoflush=True, expire_on_commit=False, class_=AsyncSession
)


async def init_models() -> None:
    """Create the tables that do not exist yet."""
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")
