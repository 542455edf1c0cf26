"""
Models for the interactive authorization flow.
"""

import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlencode

from pydantic import BaseModel, Field


def generate_state() -> str:
    """Generate an opaque, unguessable state value for one authorization request."""
    return secrets.token_urlsafe(24)


class FlowState(str, Enum):
    """Lifecycle of a single authorization code flow."""

    IDLE = "idle"
    AUTHORIZATION_URL_BUILT = "authorization_url_built"
    LISTENER_STARTED = "listener_started"
    BROWSER_SUBMITTED = "browser_submitted"
    CODE_RECEIVED = "code_received"
    TOKEN_EXCHANGED = "token_exchanged"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (FlowState.COMPLETE, FlowState.FAILED)


@dataclass(frozen=True)
class AuthorizationRequest:
    """Parameters of one authorization redirect. Built fresh for every flow."""

    client_id: str
    redirect_uri: str
    scope: str
    aud: str
    state: str = field(default_factory=generate_state)
    response_type: str = "code"

    def to_params(self) -> dict[str, str]:
        """Query parameters in the order the authorization server expects."""
        return {
            "response_type": self.response_type,
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "state": self.state,
            "aud": self.aud,
        }

    def to_url(self, authorize_endpoint: str) -> str:
        """Render the full authorization URL."""
        return f"{authorize_endpoint}?{urlencode(self.to_params())}"


class OAuthToken(BaseModel):
    """OAuth token returned by the token endpoint."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    scope: str | None = None
    id_token: str | None = None
    expires_at: float | None = None
    created_at: float = Field(default_factory=time.time)

    def model_post_init(self, __context: Any) -> None:
        """Compute expiration timestamp from expires_in if provided."""
        if self.expires_in is not None and self.expires_at is None:
            self.expires_at = self.created_at + self.expires_in

    def seconds_until_expiry(self) -> float | None:
        """Get seconds remaining until token expires."""
        if self.expires_at is None:
            return None
        return self.expires_at - time.time()
