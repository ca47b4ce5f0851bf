import logging
import sys
from typing import Any

from loguru import logger

from .config import get_settings


class InterceptHandler(logging.Handler):
    """Intercept stdlib logging and redirect to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller the record originated from
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _health_log_filter(record: dict[str, Any]) -> bool:
    # Health checks only show up at DEBUG
    if "/health" in record.get("message", ""):
        return bool(record["level"].no <= 10)
    return True


def setup_logging() -> None:
    """Configure loguru for the API process and CLI jobs."""
    settings = get_settings()

    logger.remove()

    if settings.debug:
        logger.add(
            sys.stderr,
            level="DEBUG",
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<level>{message}</level>"
            ),
            backtrace=True,
            diagnose=True,
        )
    else:
        logger.add(
            sys.stderr,
            level="INFO",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}",
            filter=_health_log_filter,
            backtrace=True,
            diagnose=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ["uvicorn", "uvicorn.error", "uvicorn.access", "sqlalchemy.engine", "aiosqlite"]:
        logging.getLogger(name).handlers = [InterceptHandler()]

    # Engine and driver chatter only in DEBUG
    quiet = logging.DEBUG if settings.debug else logging.WARNING
    logging.getLogger("sqlalchemy.engine").setLevel(quiet)
    logging.getLogger("aiosqlite").setLevel(quiet)


def get_logger(name: str) -> Any:
    return logger.bind(name=name)
