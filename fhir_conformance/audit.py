"""
Audit logging for authorization flow events.

Records each step of the interactive login (start, callback, outcome,
browser lifecycle) as structured events so a failed suite run can be
diagnosed from its logs alone.
"""

import logging
from typing import Any

import structlog

from fhir_conformance.constants import SECRET_VISIBLE_CHARS

_audit_logger = structlog.wrap_logger(
    logging.getLogger("fhir_conformance.audit"),
    wrapper_class=structlog.stdlib.BoundLogger,
)


class AuditEvent:
    """Constants for audit event types."""

    # Authorization flow events
    AUTH_START = "auth.start"
    AUTH_CALLBACK = "auth.callback"
    AUTH_SUCCESS = "auth.success"
    AUTH_FAILURE = "auth.failure"

    # Browser events
    BROWSER_LAUNCH = "browser.launch"
    BROWSER_CLOSE = "browser.close"

    # Security events
    SECURITY_INVALID_STATE = "security.invalid_state"


def truncate_secret(value: str, visible_chars: int = SECRET_VISIBLE_CHARS) -> str:
    """Truncate a code or token for logging while keeping a correlatable prefix."""
    if len(value) > visible_chars:
        return value[:visible_chars] + "..."
    return value


def audit_log(
    event: str,
    *,
    flow_state: str | None = None,
    url: str | None = None,
    success: bool = True,
    error: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """
    Log an audit event.

    Args:
        event: Event type from AuditEvent constants
        flow_state: Optional flow state at the time of the event
        url: Optional URL involved (authorization endpoint, callback)
        success: Whether the step succeeded
        error: Optional error message if failed
        details: Optional additional details
    """
    log_data: dict[str, Any] = {
        "audit_event": event,
        "success": success,
    }

    if flow_state:
        log_data["flow_state"] = flow_state
    if url:
        log_data["url"] = url
    if error:
        log_data["error"] = error
    if details:
        log_data["details"] = details

    if success:
        _audit_logger.info(event, **log_data)
    else:
        _audit_logger.warning(event, **log_data)
