"""Helper methods to handle webhook calls."""
import logging

import aiohttp

from discord_link import trace_config

logger = logging.getLogger(__name__)


async def webhook_call(url: str, data: dict) -> bool:
    """Send a POST request to the webhook URL with the given data. Failures are logged, never raised."""
    async with aiohttp.ClientSession(trace_configs=[trace_config]) as session:
        try:
            async with session.post(url, json=data) as response:
                if not response.ok:
                    logger.error(f"Failed to send to webhook: {response.status} - {await response.text()}")
                    return False
        except aiohttp.ClientError as e:
            logger.error(f"Failed to send to webhook: {e}")
            return False
    return True
