"""Structured logging configuration using structlog.

Every log line is a structured event with:
- The service name and ISO timestamp (UTC)
- Request and webhook context bound through contextvars
  (request_id, event_type, reference_code, customer_email)
- Customer emails masked and secrets redacted before rendering
"""

import logging
import os
import sys
from typing import Any, Optional

import structlog
from structlog.typing import EventDict, Processor

SERVICE_NAME = "iyzico-subscriptions"

# Keys whose values are customer email addresses
EMAIL_KEYS = frozenset({"email", "customer_email", "to", "recipient"})

# Keys whose values must never reach the logs
SECRET_KEYS = frozenset({"secret", "secret_key", "iyzico_secret_key", "password", "smtp_password", "api_key"})

REDACTED = "[REDACTED]"


def mask_email(email: Optional[str]) -> Optional[str]:
    """Mask the local part of an email for logs (``a***@x.com``)."""
    if not email or "@" not in email:
        return email
    local, domain = email.split("@", 1)
    return f"{local[:1]}***@{domain}"


def add_service_context(service_name: str) -> Processor:
    """Build a processor stamping every event with the service name."""

    def processor(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("app", service_name)
        return event_dict

    return processor


def scrub_sensitive_fields(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask email fields and redact secrets, wherever they were bound."""
    for key, value in event_dict.items():
        if key in SECRET_KEYS and value:
            event_dict[key] = REDACTED
        elif key in EMAIL_KEYS and isinstance(value, str):
            event_dict[key] = mask_email(value)
    return event_dict


def drop_debug_in_production(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Drop DEBUG logs if not in debug mode."""
    if method_name == "debug" and not is_debug_mode():
        raise structlog.DropEvent
    return event_dict


def is_debug_mode() -> bool:
    return os.getenv("LOG_LEVEL", "INFO").upper() == "DEBUG"


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = True,
    include_timestamp: bool = True,
    service_name: str = SERVICE_NAME,
) -> None:
    """Configure structlog for the service.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: If True, output JSON; if False, use colored console output
        include_timestamp: Include ISO8601 UTC timestamps in logs
        service_name: Value of the ``app`` field on every event
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service_context(service_name),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        scrub_sensitive_fields,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))

    if numeric_level > logging.DEBUG:
        processors.append(drop_debug_in_production)

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stdout.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Get a logger, typically ``get_logger(__name__)``."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables that will be included in all subsequent logs.

    Example:
        bind_context(request_id="abc123", event_type="subscription.started")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
