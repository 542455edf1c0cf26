"""
Interactive OAuth2 authorization for the conformance suite.
"""

from fhir_conformance.auth.browser import (
    BrowserDriver,
    BrowserEngine,
    LoginPage,
    PlaywrightEngine,
)
from fhir_conformance.auth.callback_listener import CallbackListener
from fhir_conformance.auth.flow import (
    AuthorizationCodeFlow,
    AuthSession,
    cleanup_auth_session,
    get_access_token,
    get_auth_session,
    reset_auth_session,
)
from fhir_conformance.auth.token_exchange import TokenExchanger

__all__ = [
    "AuthorizationCodeFlow",
    "AuthSession",
    "BrowserDriver",
    "BrowserEngine",
    "CallbackListener",
    "LoginPage",
    "PlaywrightEngine",
    "TokenExchanger",
    "cleanup_auth_session",
    "get_access_token",
    "get_auth_session",
    "reset_auth_session",
]
