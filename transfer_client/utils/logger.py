"""
Structured logging for the transfer client, built on structlog.

Entries carry the request method, path and wallet id as bound context.
Nothing is configured at import: the host application opts in with
``configure_logging`` or ``configure_from_settings``.

Every configuration runs ``redact_secrets`` ahead of the renderer, so a
key or signature passed to a logger by mistake is masked before output.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog
from structlog.typing import EventDict, WrappedLogger

if TYPE_CHECKING:
    from transfer_client.utils.config import Settings

REDACTED = "[REDACTED]"

# Event keys whose values are wallet secrets or per-request credentials
SECRET_KEYS = frozenset(
    {
        "private_key",
        "privateKey",
        "signature",
        "Signature",
        "jwk",
        "pkcs8",
        "d",
        "p",
        "q",
        "dp",
        "dq",
        "qi",
    }
)


def redact_secrets(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask the values of secret-bearing keys in an event."""
    for key in SECRET_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    include_timestamps: bool = True,
) -> None:
    """
    Route structlog through stdlib logging on stdout.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: Render JSON lines. If False, render colored console
                    output for local development.
        include_timestamps: Prefix each entry with an ISO timestamp.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
    ]
    if include_timestamps:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_settings(settings: Settings) -> None:
    """Apply ``settings.app.log_level`` and ``settings.app.log_json``."""
    configure_logging(
        level=settings.app.log_level,
        json_output=settings.app.log_json,
    )


def get_logger(
    name: str | None = None, **context: Any
) -> structlog.stdlib.BoundLogger:
    """
    Get a logger, optionally with context bound up front.

    Example:
        >>> log = get_logger(__name__, wallet_id="w1")
        >>> log.info("Wallet registered", currency="USD")
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger
