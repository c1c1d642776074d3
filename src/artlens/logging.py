"""Logging utilities.

Every record carries the request id and pipeline stage of the recognition it belongs to.
Structured ``extra={...}`` fields are rendered after the message as ``key=value`` pairs.
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
import sys
from typing import Any, Iterator

from rich.logging import RichHandler


_request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("artlens_request_id", default="-")
_stage_var: contextvars.ContextVar[str] = contextvars.ContextVar("artlens_stage", default="-")

# Attributes present on every LogRecord; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "request_id",
    "stage",
}

# Per-request chatter from client libraries drowns out pipeline stages.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai")


class _ContextFilter(logging.Filter):
    """Inject request context into log records."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.request_id = _request_id_var.get()  # type: ignore[attr-defined]
        record.stage = _stage_var.get()  # type: ignore[attr-defined]
        return True


class _ExtrasFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = {k: v for k, v in vars(record).items() if k not in _RESERVED_ATTRS and not k.startswith("_")}
        if not extras:
            return base
        return base + " " + " ".join(f"{k}={v}" for k, v in extras.items())


@contextlib.contextmanager
def request_context(*, request_id: str, stage: str | None = None) -> Iterator[None]:
    """Bind a request id (and optionally a stage) for the duration of the block."""

    token_request = _request_id_var.set(request_id)
    token_stage = _stage_var.set(stage or _stage_var.get())
    try:
        yield
    finally:
        _request_id_var.reset(token_request)
        _stage_var.reset(token_stage)


def set_stage(stage: str) -> None:
    _stage_var.set(stage)


def configure_logging(level: str = "INFO", *, plain: bool = False) -> None:
    """Configure application logging.

    Args:
        level: Logging level name.
        plain: Log single lines to stderr instead of through rich (for servers and log shippers).
    """

    handler: logging.Handler
    if plain:
        handler = logging.StreamHandler(sys.stderr)
        fmt = "%(asctime)s %(levelname)s req=%(request_id)s stage=%(stage)s %(name)s: %(message)s"
    else:
        handler = RichHandler(rich_tracebacks=True, show_time=True, show_level=True)
        fmt = "req=%(request_id)s stage=%(stage)s %(name)s: %(message)s"
    handler.addFilter(_ContextFilter())
    handler.setFormatter(_ExtrasFormatter(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.setLevel(level)
    # Replace our own handler on repeated calls, leave foreign handlers alone
    for existing in [h for h in root.handlers if getattr(h, "_artlens", False)]:
        root.removeHandler(existing)
    handler._artlens = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""

    return logging.getLogger(name)


def log_exception(logger: logging.Logger, msg: str, **context: Any) -> None:
    """Log an exception with optional structured context."""

    if context:
        logger.exception("%s | context=%s", msg, context)
    else:
        logger.exception("%s", msg)
