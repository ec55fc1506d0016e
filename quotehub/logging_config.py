"""
logging_config.py — Loguru setup for the inbox service

quotehub modules log through Loguru directly, or through a DiagnosticsSink
(diagnostics.py) for warn-once dedupe. Nothing in the package uses stdlib
logging; the intercept handler exists for the libraries underneath it
(uvicorn, starlette, sqlalchemy, httpx), so their records share the same
sinks and format.

Business Rules:
- JSON lines in production (https, non-localhost APP_URL), colorized console
  otherwise
- Production also writes log_file with 50MB rotation and 7-day retention
- Chatty library loggers are capped at WARNING
- Explicit arguments win over settings (tests, scripts)

Called by: quotehub/main.py (lifespan)
Depends on: config.py (log_level, app_url, log_file)
"""

import logging
import sys

from loguru import logger

from .config import settings

QUIET_LIBRARY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "sqlalchemy.pool")

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)


def _is_production(app_url: str) -> bool:
    url = app_url.strip().lower()
    return url.startswith("https://") and "localhost" not in url


def setup_logging(
    log_level: str | None = None,
    app_url: str | None = None,
    log_file: str | None = None,
) -> None:
    """Replace Loguru's handlers and route library logging into them."""
    logger.remove()

    level = (log_level or settings.log_level).upper()
    production = _is_production(settings.app_url if app_url is None else app_url)

    if production:
        logger.add(sys.stdout, level=level, format="{message}", serialize=True)
        logger.add(
            log_file or settings.log_file,
            level=level,
            rotation="50 MB",
            retention="7 days",
            compression="gz",
            serialize=True,
        )
    else:
        logger.add(sys.stdout, level=level, format=CONSOLE_FORMAT, colorize=True)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in QUIET_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging configured", level=level, production=production)


class _InterceptHandler(logging.Handler):
    """Forward a stdlib record to Loguru, attributed to the library's caller."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())
