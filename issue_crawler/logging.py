"""femtologging wiring for the crawler.

Modules take a logger from :func:`get_logger` and write through the
``log_*`` helpers, which interpolate percent-style templates eagerly because
femtologging loggers accept only finished messages.

>>> from issue_crawler.logging import get_logger, log_info
>>> log_info(get_logger(__name__), "[%s] page=%d", "octo/reef", 1)

"""

from __future__ import annotations

import typing as typ

from femtologging import basicConfig, get_logger

#: Levels accepted by ``CRAWLER_LOG_LEVEL``.
LOG_LEVELS = frozenset(
    {"TRACE", "DEBUG", "INFO", "WARN", "WARNING", "ERROR", "CRITICAL"}
)
DEFAULT_LOG_LEVEL = "INFO"


class CrawlerLogger(typ.Protocol):
    """The part of a femtologging logger the helpers rely on."""

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Return ``(level, fell_back)`` for a raw ``CRAWLER_LOG_LEVEL`` value.

    Unset or unknown values fall back to ``INFO`` with ``fell_back`` set so
    the caller can warn once logging is running.
    """
    candidate = (level or "").strip().upper()
    if candidate in LOG_LEVELS:
        return candidate, False
    return DEFAULT_LOG_LEVEL, True


def configure_logging(level: str | None, *, force: bool = False) -> tuple[str, bool]:
    """Install the root femtologging handler at ``level``."""
    resolved, fell_back = normalize_log_level(level)
    basicConfig(level=resolved, force=force)
    return resolved, fell_back


def _emit(
    logger: CrawlerLogger,
    level: str,
    template: str,
    args: tuple[object, ...],
    exc_info: object | None,
) -> None:
    # A bare template may legitimately contain a literal "%".
    message = template % args if args else template
    logger.log(level, message, exc_info=exc_info, stack_info=False)


def log_debug(
    logger: CrawlerLogger, template: str, *args: object, exc_info: object = None
) -> None:
    """Emit a DEBUG line."""
    _emit(logger, "DEBUG", template, args, exc_info)


def log_info(
    logger: CrawlerLogger, template: str, *args: object, exc_info: object = None
) -> None:
    """Emit an INFO line."""
    _emit(logger, "INFO", template, args, exc_info)


def log_warning(
    logger: CrawlerLogger, template: str, *args: object, exc_info: object = None
) -> None:
    """Emit a WARNING line."""
    _emit(logger, "WARNING", template, args, exc_info)


def log_error(
    logger: CrawlerLogger, template: str, *args: object, exc_info: object = None
) -> None:
    """Emit an ERROR line, optionally carrying the exception being reported."""
    _emit(logger, "ERROR", template, args, exc_info)


__all__ = [
    "DEFAULT_LOG_LEVEL",
    "LOG_LEVELS",
    "CrawlerLogger",
    "configure_logging",
    "get_logger",
    "log_debug",
    "log_error",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
