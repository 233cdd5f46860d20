import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from discord_link.core import settings as app_settings
from discord_link.database.crud import CRUDUserRecord
from discord_link.database.models import Base
from discord_link.helpers.discord import DiscordClient
from discord_link.helpers.reddit import RedditClient


@pytest.fixture
def settings():
    """A private copy of the test settings, safe to edit in a test."""
    return app_settings.model_copy(deep=True)


@pytest.fixture
def discord_client(settings):
    return DiscordClient(settings_provider=lambda: settings)


@pytest.fixture
def reddit_client(settings):
    return RedditClient(settings_provider=lambda: settings)


@pytest.fixture
def user_id():
    return "t2_1a2b3c"  # Randomly generated id.


@pytest.fixture
def member_id():
    return "815223854165240996"  # Randomly generated id.


@pytest_asyncio.fixture
async def store():
    """A user record store backed by an in-memory SQLite database."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield CRUDUserRecord(async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession))

    await engine.dispose()
