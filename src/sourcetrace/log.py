"""Logging helper module."""

from logging import (
    DEBUG,
    INFO,
    Formatter,
    Logger,
    StreamHandler,
    basicConfig,
    getLogger,
)
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from sourcetrace.config_loader import TraceSettings

LOG_FILE = "sourcetrace.log"

_console_handler: "StreamHandler[TextIO] | None" = None


def init_logging(settings: "TraceSettings") -> None:
    """Initialize logging for the application.

    Should be called once when the application starts. Calling it again
    only adjusts the level, it never stacks console handlers.
    """
    global _console_handler  # noqa: PLW0603

    basicConfig(
        level=INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        filename=LOG_FILE,
        filemode="w",
    )

    package_logger = getLogger("sourcetrace")
    if not settings.verbose:
        package_logger.setLevel(INFO)
        return

    # Console output only in verbose mode
    if _console_handler is None:
        _console_handler = StreamHandler()
        _console_handler.setLevel(DEBUG)
        _console_handler.setFormatter(Formatter("%(levelname)s: %(message)s"))
        package_logger.addHandler(_console_handler)
    package_logger.setLevel(DEBUG)
    package_logger.debug("Debug logging enabled.")


def get_logger(name: str) -> Logger:
    """Proxy for logging.getLogger."""
    return getLogger(name)
