import logging.handlers
from pathlib import Path

import aiohttp
import arrow
import sentry_sdk
from aiohttp import TraceRequestEndParams
from colorlog import ColoredFormatter
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from discord_link.core import settings

start_time = arrow.utcnow()

root = Path(__file__).parent.parent
settings.ROOT = root

LOG_FORMAT = "%(asctime)s - %(name)s %(levelname)s: %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

# Chatty libraries and the level they are capped at.
QUIET_LOGGERS = {
    "asyncio": logging.ERROR,
    "sqlalchemy.engine": logging.WARNING,
    "hypercorn.error": logging.INFO,
    "hypercorn.access": logging.WARNING,
}


def setup_logging(log_dir: Path) -> None:
    """Log everything to a daily file rotated at 5 MB, and to a colored console at the configured level."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"discord_link_{start_time.format('DD-MM-YYYY')}.log"

    file_handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=5 * (2 ** 20), backupCount=10, encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL)
    console_handler.setFormatter(ColoredFormatter(fmt=f"%(log_color)s{LOG_FORMAT}", datefmt=LOG_DATE_FORMAT))

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    # force drops handlers installed by an earlier import or by the test runner.
    logging.basicConfig(level=logging.DEBUG, handlers=[console_handler, file_handler], force=True)


def setup_sentry() -> None:
    """Report errors to Sentry outside of debug runs, tagged with the release from pyproject.toml."""
    if not settings.SENTRY_DSN or settings.DEBUG:
        return

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT or "local",
        release=settings.VERSION,
        integrations=[
            SqlalchemyIntegration(),
            AsyncioIntegration(),
            StarletteIntegration(transaction_style="url"),
            FastApiIntegration(transaction_style="url"),
        ],
    )


setup_logging(root / "logs")
setup_sentry()


async def on_request_end(session, context, params: TraceRequestEndParams) -> None:
    """Log every Discord and Reddit API call with its status."""
    resp = params.response
    protocol = f"HTTP/{resp.version.major}.{resp.version.minor}"
    logging.getLogger("aiohttp.client").debug(f'"{resp.method} - {protocol}" {resp.url} <{resp.status}>')


trace_config = aiohttp.TraceConfig()
trace_config.on_request_end.append(on_request_end)
