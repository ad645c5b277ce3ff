from __future__ import annotations

import logging
from typing import Final

DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOGGER_NAMESPACE: Final[str] = "polyglot_runner"


def configure_logging(level: str = "WARNING", fmt: str | None = None) -> None:
    """Configure root logging for applications embedding the sandbox.

    Example:
        ```python
        configure_logging("DEBUG")
        ```
    """
    logging.basicConfig(level=_normalize_level(level), format=fmt or DEFAULT_LOG_FORMAT)


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the package namespace.

    Example:
        ```python
        logger = get_logger("workspace")
        ```
    """
    if name == LOGGER_NAMESPACE or name.startswith(f"{LOGGER_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


def _normalize_level(level: str) -> int:
    """Map a level name to its numeric value, defaulting to INFO.

    Example:
        ```python
        _normalize_level("debug")
        ```
    """
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO
