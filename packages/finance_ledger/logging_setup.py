"""Logging for the ``finance_ledger`` package.

Library modules obtain loggers with ``get_logger("finance_ledger.<module>")``
and never attach handlers themselves. Messages are short structured events,
``"<operation>:<event> key=value ..."``, e.g.
``process_due:done user_id=... processed=3``.

Entrypoints (the CLI, a scheduler, a host application) call
:func:`configure_logging` once at startup. Until then the package logger only
carries a ``NullHandler`` and stays silent.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "finance_ledger"
LEVEL_ENV = "FINANCE_LEDGER_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_configured = False


def resolve_level(level: int | str | None) -> int:
    """Map an int, a level name or a numeric string to a logging level.

    ``None`` falls back to ``$FINANCE_LEDGER_LOG_LEVEL``; anything
    unrecognized resolves to ``INFO``.
    """

    if level is None:
        level = os.getenv(LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    return logging.getLevelNamesMapping().get(name, logging.INFO)


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Attach one ``StreamHandler`` to the package logger; later calls are no-ops."""

    global _configured
    if _configured:
        return

    pkg = logging.getLogger(PACKAGE_LOGGER)
    for h in [h for h in pkg.handlers if isinstance(h, logging.NullHandler)]:
        pkg.removeHandler(h)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    pkg.addHandler(handler)
    pkg.setLevel(resolved)
    # Records stop at the package logger; the root logger never sees them twice.
    pkg.propagate = False

    _configured = True


def get_logger(name: str) -> logging.Logger:
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if not _configured and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["LEVEL_ENV", "configure_logging", "get_logger", "resolve_level"]
