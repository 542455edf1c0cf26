"""
Logging for suite runs.

structlog renders events as JSON (for CI artifacts) or as console lines.
Output goes to stderr so that scripts can print results on stdout. Events
logged while an authorization flow runs carry its ``flow_id``, and values
under credential-like keys are cut down before rendering.
"""

import logging
import sys
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

import structlog

from fhir_conformance.constants import SECRET_VISIBLE_CHARS


@dataclass
class LoggingConfig:
    # Third-party loggers kept quiet unless they warn
    suppressed_loggers: dict[str, str] = field(
        default_factory=lambda: {
            "aiohttp.access": "WARNING",
            "aiohttp.server": "WARNING",
            "asyncio": "WARNING",
            "playwright": "WARNING",
            "urllib3": "WARNING",
        }
    )
    # Event keys whose values never appear in full
    secret_keys: frozenset[str] = frozenset(
        {"access_token", "refresh_token", "id_token", "client_secret", "password", "code"}
    )
    flow_id_length: int = 8
    colors: bool = True


_logging_config = LoggingConfig()

flow_id_var: ContextVar[str] = ContextVar("flow_id", default="")


def get_flow_id() -> str:
    return flow_id_var.get()


def set_flow_id(flow_id: str | None = None) -> str:
    """Start a new flow correlation ID in the current context and return it."""
    new_id = flow_id or uuid.uuid4().hex[: _logging_config.flow_id_length]
    flow_id_var.set(new_id)
    return new_id


def add_flow_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    flow_id = get_flow_id()
    if flow_id:
        event_dict["flow_id"] = flow_id
    return event_dict


def redact_secrets(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Keep only a short prefix of tokens, codes and passwords."""
    for key in _logging_config.secret_keys.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str) and len(value) > SECRET_VISIBLE_CHARS:
            event_dict[key] = value[:SECRET_VISIBLE_CHARS] + "..."
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
) -> None:
    """
    Set up structlog and the stdlib root logger for a suite run.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        json_format: Render JSON lines instead of console output
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors: list[Callable] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_flow_id,
        redact_secrets,
    ]
    if json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=_logging_config.colors))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # aiohttp and playwright log through the stdlib; send them to the same stream
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)

    for logger_name, logger_level in _logging_config.suppressed_loggers.items():
        logging.getLogger(logger_name).setLevel(getattr(logging, logger_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
