"""Logging for the ``card_reconciliation`` package.

Library modules call ``get_logger("card_reconciliation.<module>")`` and never
attach handlers. Entrypoints (the CLI, or a host web app) call
``configure_logging()`` once; until then the package logger carries a
``NullHandler`` so importing the package stays silent.

Environment
-----------
- ``CARD_RECONCILIATION_LOG_LEVEL``: level name or number (default ``INFO``).
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "card_reconciliation"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_configured = False


def resolve_level(level: int | str | None = None) -> int:
    """Turn ``level`` (or the env var when ``None``) into a numeric level.

    Unknown names fall back to ``INFO``.
    """

    if level is None:
        level = os.getenv("CARD_RECONCILIATION_LOG_LEVEL") or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Attach one ``StreamHandler`` to the package logger; later calls are no-ops."""

    global _configured
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if _configured:
        return pkg

    for handler in [h for h in pkg.handlers if isinstance(h, logging.NullHandler)]:
        pkg.removeHandler(handler)

    numeric = resolve_level(level)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    handler.setLevel(numeric)
    pkg.addHandler(handler)
    pkg.setLevel(numeric)
    # Host applications keep their own root handlers; don't log twice.
    pkg.propagate = False

    _configured = True
    return pkg


def get_logger(name: str) -> logging.Logger:
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if not _configured and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level", "PACKAGE_LOGGER"]
