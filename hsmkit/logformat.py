"""Logger setup and structured request/response logging."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .cryptoutils import BytesLike

LOGGER_NAME = "hsmkit"

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}
_SHORT_LEVELS = {
    logging.DEBUG: "DBG",
    logging.INFO: "INF",
    logging.WARNING: "WRN",
    logging.ERROR: "ERR",
    logging.CRITICAL: "FTL",
}


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat()


def _fields(record: logging.LogRecord) -> dict[str, Any]:
    return dict(getattr(record, "fields", {}) or {})


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {"level": _LEVEL_NAMES.get(record.levelno, "info")}
        entry.update(_fields(record))
        entry["time"] = _timestamp(record)
        entry["message"] = record.getMessage()
        return json.dumps(entry)


class _HumanFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        parts = [
            _timestamp(record),
            _SHORT_LEVELS.get(record.levelno, "???"),
            record.getMessage(),
        ]
        parts.extend(f"{key}={value}" for key, value in _fields(record).items())
        return " ".join(parts)


def _logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def init_logger(debug: bool = False, human: bool = False) -> logging.Logger:
    """Configure the package logger on stdout as JSON or human-readable text."""
    logger = _logger()
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_HumanFormatter() if human else _JsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False
    return logger


def log_request(
    client_ip: str,
    command: str,
    description: str,
    request_data: BytesLike,
    active_conns: int,
) -> None:
    """Log a received command with its request bytes as hex."""
    _logger().info(
        "received command",
        extra={
            "fields": {
                "event": "request_received",
                "client_ip": client_ip,
                "command": command,
                "description": description,
                "request_hex": bytes(request_data).hex(),
                "active_connections": active_conns,
            }
        },
    )


def log_response(
    client_ip: str,
    command: str,
    response_command: str,
    response_data: BytesLike,
    error_code: int,
    active_conns: int,
) -> None:
    """Log a sent response with its bytes as hex and its error code."""
    _logger().info(
        "sent response",
        extra={
            "fields": {
                "event": "response_sent",
                "client_ip": client_ip,
                "command": command,
                "response_command": response_command,
                "response_hex": bytes(response_data).hex(),
                "error_code": error_code,
                "active_connections": active_conns,
            }
        },
    )


def format_data(data: BytesLike) -> str:
    """Return data as text if every byte is printable ASCII or newline, else as hex."""
    data = bytes(data)
    if all(32 <= b <= 126 or b == 0x0A for b in data):
        return data.decode("ascii")
    return data.hex()