import asyncio
import logging

from discord_link.core import settings
from discord_link.database.session import init_models
from discord_link.web.server import serve

logger = logging.getLogger(__name__)


async def main() -> None:
    await init_models()
    logger.debug(f"Starting web server listening on port: {settings.WEB_PORT}")
    await serve()


if __name__ == "__main__":
    logger.info(f"Starting discord-link {settings.VERSION or ''}".strip())
    asyncio.run(main())
