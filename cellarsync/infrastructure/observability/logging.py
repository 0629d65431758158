"""Logging setup for cellarsync.

Every message emitted while a sync runs carries the fields bound with
:func:`log_context`, rendered after the message as ``[mode=sweep run_id=3]``.
That keeps one run's lines greppable in a shared stderr stream without
threading identifiers through every call.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Mapping

LOG_LEVEL_ENV_VAR = "CELLARSYNC_LOG_LEVEL"
LINE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access")

_bound_fields: ContextVar[Mapping[str, Any]] = ContextVar("cellarsync_log_fields", default={})
_handler: logging.Handler | None = None


def _render_fields(fields: Mapping[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in fields.items() if value is not None)


class ContextualFormatter(logging.Formatter):
    """Append the fields bound in the current context to each line."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        rendered = _render_fields(_bound_fields.get())
        return f"{line} [{rendered}]" if rendered else line


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Bind ``fields`` to every message logged inside the block.

    Nested blocks add to (and may shadow) the outer fields; the outer set is
    restored on exit. Fields whose value is ``None`` are not rendered.
    """
    token = _bound_fields.set({**_bound_fields.get(), **fields})
    try:
        yield
    finally:
        _bound_fields.reset(token)


def current_log_context() -> dict[str, Any]:
    return dict(_bound_fields.get())


def _level_from_env(default: int) -> int:
    name = os.environ.get(LOG_LEVEL_ENV_VAR, "").strip().upper()
    if not name:
        return default
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else default


def configure_logging(level: int = logging.INFO, third_party_level: int = logging.WARNING) -> None:
    """Route all logging to stderr through :class:`ContextualFormatter`.

    Safe to call more than once: the CLI and the API both call it at start-up.
    ``CELLARSYNC_LOG_LEVEL`` (e.g. ``DEBUG``) overrides ``level``.
    """
    global _handler
    root = logging.getLogger()
    root.setLevel(_level_from_env(level))
    if _handler is not None:
        return
    for existing in list(root.handlers):
        root.removeHandler(existing)
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(ContextualFormatter(LINE_FORMAT))
    root.addHandler(_handler)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_exception(logger: logging.Logger, message: str, exc: BaseException, **fields: Any) -> None:
    """Log ``message`` with the traceback of ``exc`` and any extra ``fields``."""
    with log_context(**fields):
        logger.error("%s: %s", message, exc, exc_info=exc)
