# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Structured logging for Tribunal.

Every engine operation runs inside an *operation context*: a correlation
ID plus the name of the operation (``vote``, ``resolve``...). Both
formatters stamp records with that context, so the log lines produced
while one call commits or rolls back can be grouped afterwards.

- ``JSONFormatter``: one JSON object per line, for files and pipelines.
- ``StandardFormatter``: ``time - logger - LEVEL - [cid op] message`` for
  terminals.
- ``OperationLogger``: entry/exit records for each service operation.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from typing import Any

_correlation_id: ContextVar[str | None] = ContextVar("tribunal_correlation_id", default=None)
_operation: ContextVar[str | None] = ContextVar("tribunal_operation", default=None)


# =============================================================================
# OPERATION CONTEXT
# =============================================================================


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


def get_operation() -> str | None:
    """Name of the engine operation currently executing, if any."""
    return _operation.get()


def generate_correlation_id() -> str:
    return uuid.uuid4().hex


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
    operation: str | None = None,
) -> Generator[str, None, None]:
    """Scope a correlation ID (and optionally an operation name).

    An existing ID is kept when none is given, so a CLI command that wraps
    several engine calls logs them under one ID. Without an outer ID a new
    one is generated.

    Example:
        with correlation_context(operation="resolve") as cid:
            logger.info("Resolving case")
    """
    cid = correlation_id or get_correlation_id() or generate_correlation_id()
    cid_token = _correlation_id.set(cid)
    op_token = _operation.set(operation) if operation is not None else None
    try:
        yield cid
    finally:
        if op_token is not None:
            _operation.reset(op_token)
        _correlation_id.reset(cid_token)


# =============================================================================
# FORMATTERS
# =============================================================================


class JSONFormatter(logging.Formatter):
    """One JSON object per record, stamped with the operation context."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            entry["correlation_id"] = correlation_id
        operation = get_operation()
        if operation:
            entry["operation"] = operation

        if record.levelno >= logging.WARNING:
            entry["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra_data = getattr(record, "extra_data", None)
        if extra_data is not None:
            entry["extra"] = extra_data

        return json.dumps(entry, default=str)


class StandardFormatter(logging.Formatter):
    """Human-readable lines, colored by level on a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    CONTEXT_COLOR = "\033[90m"
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def _context_prefix(self) -> str:
        parts = []
        correlation_id = get_correlation_id()
        if correlation_id:
            parts.append(correlation_id[:8])
        operation = get_operation()
        if operation:
            parts.append(operation)
        if not parts:
            return ""
        prefix = f"[{' '.join(parts)}]"
        if self.use_colors:
            prefix = f"{self.CONTEXT_COLOR}{prefix}{self.RESET}"
        return prefix + " "

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy; other handlers share the record
        record = logging.makeLogRecord(record.__dict__)
        record.msg = self._context_prefix() + str(record.msg)
        if self.use_colors:
            color = self.LEVEL_COLORS.get(record.levelno, "")
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


# =============================================================================
# SETUP
# =============================================================================


def _resolve_level(level: str | int | None, configured: str) -> int:
    # None defers to TRIBUNAL_LOG_LEVEL
    if level is None:
        level = configured
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.INFO)


def configure_logging(
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Install Tribunal's handlers on the root logger.

    Args:
        level: Log level. None defers to ``TRIBUNAL_LOG_LEVEL``.
        json_format: Force JSON (True) or text (False). When None,
            ``TRIBUNAL_LOG_FORMAT`` decides, falling back to JSON whenever
            stderr is not a terminal.
        log_file: Extra file to log to, always in JSON. Defaults to
            ``TRIBUNAL_LOG_FILE``.
    """
    from .config import get_config

    config = get_config()

    if json_format is None:
        json_format = {"json": True, "text": False}.get(config.log_format.lower(), not sys.stderr.isatty())
    if log_file is None:
        log_file = config.log_file

    root = logging.getLogger()
    root.setLevel(_resolve_level(level, config.log_level))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JSONFormatter() if json_format else StandardFormatter())
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)


# =============================================================================
# OPERATION LOGGING
# =============================================================================


class OperationLogger:
    """Entry and exit records for arbitration service operations.

    Arguments are reduced to JSON-friendly values, with enums logged by
    value and long evidence references truncated.
    """

    MAX_STRING_LENGTH = 128

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("tribunal.operations")

    def log_call(self, operation: str, arguments: dict[str, Any], level: int = logging.DEBUG) -> None:
        self.logger.log(
            level,
            f"Operation: {operation}",
            extra={"extra_data": {"operation": operation, "arguments": self._sanitize(arguments)}},
        )

    def log_result(
        self,
        operation: str,
        success: bool,
        duration_ms: float | None = None,
        error: str | None = None,
        level: int = logging.DEBUG,
    ) -> None:
        """Log whether an operation committed or rolled back.

        Args:
            operation: Name of the engine operation
            success: Whether the call committed
            duration_ms: Call duration in milliseconds
            error: Exception class name when the call rolled back
            level: Log level
        """
        msg = f"Operation result: {operation} -> {'committed' if success else 'rolled back'}"
        if error:
            msg += f" [{error}]"
        if duration_ms is not None:
            msg += f" ({duration_ms:.1f}ms)"
        self.logger.log(
            level,
            msg,
            extra={
                "extra_data": {
                    "operation": operation,
                    "success": success,
                    "error": error,
                    "duration_ms": duration_ms,
                }
            },
        )

    def _sanitize(self, data: Any) -> Any:
        if isinstance(data, dict):
            return {str(key): self._sanitize(value) for key, value in data.items()}
        if isinstance(data, (list, tuple)):
            return [self._sanitize(item) for item in data]
        if isinstance(data, Enum):
            return data.value
        if isinstance(data, str) and len(data) > self.MAX_STRING_LENGTH:
            return data[: self.MAX_STRING_LENGTH] + "..."
        return data


operation_logger = OperationLogger()
