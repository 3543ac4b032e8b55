"""Structured logging configuration with correlation fields."""
import logging
import json
import sys
import uuid
from datetime import datetime
from typing import Optional, Dict, Any
from contextvars import ContextVar

# Context variables for log correlation
current_request_id: ContextVar[str] = ContextVar("request_id", default="")
current_client_ip: ContextVar[str] = ContextVar("client_ip", default="")
current_user_id: ContextVar[str] = ContextVar("user_id", default="")


def generate_request_id() -> str:
    """Generate a short request ID for log correlation."""
    return uuid.uuid4().hex[:8]


def mask_email(email: str) -> str:
    """Mask the local part of an email for log lines: alice@x.com -> a***@x.com."""
    if not email or "@" not in email:
        return "<invalid>"
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"


def set_user_context(user_id: str) -> None:
    """Attach the authenticated user to the current request's log lines."""
    current_user_id.set(user_id)


class JSONFormatter(logging.Formatter):
    """JSON log formatter with correlation fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add correlation fields if present
        if request_id := current_request_id.get():
            log_data["request_id"] = request_id
        if client_ip := current_client_ip.get():
            log_data["client_ip"] = client_ip
        if user_id := current_user_id.get():
            log_data["user_id"] = user_id

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields from record
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter with correlation fields."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")

        ctx_parts = []
        if request_id := current_request_id.get():
            ctx_parts.append(f"req={request_id}")
        if client_ip := current_client_ip.get():
            ctx_parts.append(f"ip={client_ip}")
        if user_id := current_user_id.get():
            ctx_parts.append(f"user={user_id[:8]}")

        ctx_str = f" [{', '.join(ctx_parts)}]" if ctx_parts else ""

        msg = f"{timestamp} {record.levelname:8s} {record.name}{ctx_str}: {record.getMessage()}"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


def setup_logging(
    level: str = "INFO",
    format_type: str = "text",
    logger_name: Optional[str] = None,
) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: "json" for structured logs, "text" for human-readable
        logger_name: Specific logger name, or None for root logger

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper(), logging.INFO))

    if format_type.lower() == "json":
        formatter = JSONFormatter()
    else:
        formatter = TextFormatter()

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Named loggers stay out of the root handlers
    if logger_name:
        logger.propagate = False

    return logger


class LogContext:
    """
    Correlation fields for one request.

    Sets the request id and client IP and starts with no user; the user is
    attached later by the auth dependency. Everything is restored on exit.
    """

    def __init__(self, request_id: str, client_ip: str = ""):
        self.request_id = request_id
        self.client_ip = client_ip
        self._tokens = []

    def __enter__(self):
        self._tokens = [
            (current_request_id, current_request_id.set(self.request_id)),
            (current_client_ip, current_client_ip.set(self.client_ip)),
            (current_user_id, current_user_id.set("")),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        return False
