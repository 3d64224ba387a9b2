"""Structured logging helpers with correlation IDs.

This module provides a :class:`LoggerAdapter` that injects structured fields
(``correlation_id``, ``operation``, ``status``) into every record, and
module-level loggers with a ``NullHandler`` so the library never configures
handlers on its own. Applications (the CLI, or a host adapter) call
:func:`setup_logging` once at startup.

Examples
--------
>>> from cppcheck_buildstep.logging import get_logger, with_fields
>>> logger = get_logger(__name__)
>>> logger.info("Analyzer started", extra={"operation": "analyze", "status": "started"})
>>> adapter = with_fields(logger, correlation_id="build-42", operation="analyze")
>>> adapter.info("Composed command", extra={"token_count": 5})
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from typing import TYPE_CHECKING, Any, Literal, Self, TypeAlias

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from types import TracebackType

__all__ = [
    "CorrelationContext",
    "JsonFormatter",
    "LoggerAdapter",
    "get_correlation_id",
    "get_logger",
    "set_correlation_id",
    "setup_logging",
    "with_fields",
]

LogValue: TypeAlias = Any

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

# Standard LogRecord attributes never copied into the JSON payload.
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Formats log records as single-line JSON with timestamp, level, logger name,
    message and every JSON-compatible extra field. The correlation id is taken
    from the context when the record does not carry one.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format ``record`` as a JSON document.

        Parameters
        ----------
        record : logging.LogRecord
            Log record to format.

        Returns
        -------
        str
            JSON-encoded log entry.
        """
        data: dict[str, object] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S") + f".{int(record.msecs):03d}Z",
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if getattr(record, "correlation_id", None) is None:
            ctx_correlation_id = _correlation_id.get()
            if ctx_correlation_id is not None:
                data["correlation_id"] = ctx_correlation_id

        for key, value in record.__dict__.items():
            if (
                key not in _RESERVED_ATTRS
                and key not in data
                and not key.startswith("_")
                and value is not None
                and isinstance(value, (str, int, float, bool, list, dict))
            ):
                data[key] = value

        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class LoggerAdapter(logging.LoggerAdapter[logging.Logger]):
    """Logger adapter that injects structured context fields.

    Fields bound at construction are merged into each call's ``extra`` without
    overriding keys supplied by the caller. ``operation`` defaults to
    ``"unknown"`` and ``status`` is inferred from the level when missing.
    """

    def process(
        self, msg: object, kwargs: MutableMapping[str, Any]
    ) -> tuple[object, MutableMapping[str, Any]]:
        """Merge bound fields and the context correlation id into ``extra``."""
        extra = kwargs.get("extra")
        extra = dict(extra) if isinstance(extra, dict) else {}
        if self.extra:
            for key, value in self.extra.items():
                extra.setdefault(key, value)
        if "correlation_id" not in extra:
            ctx_correlation_id = _correlation_id.get()
            if ctx_correlation_id is not None:
                extra["correlation_id"] = ctx_correlation_id
        extra.setdefault("operation", "unknown")
        kwargs["extra"] = extra
        return msg, kwargs

    def log(
        self,
        level: int,
        msg: object,
        *args: object,
        **kwargs: Any,
    ) -> None:
        """Log ``msg`` at ``level``, inferring ``status`` from the level."""
        if not self.isEnabledFor(level):
            return
        msg, kwargs = self.process(msg, kwargs)
        extra = kwargs["extra"]
        if "status" not in extra:
            if level >= logging.ERROR:
                extra["status"] = "error"
            elif level >= logging.WARNING:
                extra["status"] = "warning"
            else:
                extra["status"] = "success"
        self.logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: object, *args: object, **kwargs: Any) -> None:
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: object, *args: object, **kwargs: Any) -> None:
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: object, *args: object, **kwargs: Any) -> None:
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: object, *args: object, **kwargs: Any) -> None:
        self.log(logging.ERROR, msg, *args, **kwargs)

    def exception(
        self, msg: object, *args: object, exc_info: object = True, **kwargs: Any
    ) -> None:
        """Log an error with traceback using structured fields."""
        self.log(logging.ERROR, msg, *args, exc_info=exc_info, **kwargs)

    def critical(self, msg: object, *args: object, **kwargs: Any) -> None:
        self.log(logging.CRITICAL, msg, *args, **kwargs)


def get_logger(name: str) -> LoggerAdapter:
    """Get a logger adapter with structured logging support.

    Module-level loggers get a ``NullHandler`` so the library stays silent
    unless the application configures handlers via :func:`setup_logging`.

    Parameters
    ----------
    name : str
        Logger name (typically ``__name__``).

    Returns
    -------
    LoggerAdapter
        Logger adapter with structured context injection.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return LoggerAdapter(logger, {})


def with_fields(logger: logging.Logger | LoggerAdapter, **fields: LogValue) -> LoggerAdapter:
    """Return a structured adapter bound to ``fields``.

    Parameters
    ----------
    logger : logging.Logger | LoggerAdapter
        Base logger to wrap (may already be an adapter).
    **fields : LogValue
        Structured fields injected into all log entries.

    Returns
    -------
    LoggerAdapter
        Logger adapter with bound fields.
    """
    base_logger = logger.logger if isinstance(logger, LoggerAdapter) else logger
    return LoggerAdapter(base_logger, fields)


def setup_logging(
    level: int | str = logging.INFO,
    fmt: Literal["json", "text"] = "json",
) -> None:
    """Configure the root logger once at application startup.

    Records are written to stderr so they never interleave with analyzer
    output forwarded to stdout.
    """
    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logging.basicConfig(level=level, handlers=[handler], force=True)


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation id injected into subsequent log records."""
    _correlation_id.set(correlation_id)


def get_correlation_id() -> str | None:
    """Return the current correlation id, or ``None`` when unset."""
    return _correlation_id.get()


class CorrelationContext:
    """Context manager binding a correlation id for the duration of a block.

    The previous correlation id is restored when the block exits.

    Examples
    --------
    >>> with CorrelationContext("build-42"):
    ...     assert get_correlation_id() == "build-42"
    """

    def __init__(self, correlation_id: str | None) -> None:
        self.correlation_id = correlation_id
        self._token: contextvars.Token[str | None] | None = None

    def __enter__(self) -> Self:
        self._token = _correlation_id.set(self.correlation_id)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._token is not None:
            _correlation_id.reset(self._token)
            self._token = None
        del exc_type, exc_val, exc_tb
