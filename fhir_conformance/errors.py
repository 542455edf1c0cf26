"""
Custom error types for the FHIR conformance suite.

This module provides specific error classes for the authorization flow
and suite configuration, so a failing test run aborts with a clear
diagnostic instead of a bare exception.
"""

from typing import Any


class ConformanceSuiteError(Exception):
    """Base exception for all conformance suite errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# Authentication and Authorization Errors


class AuthenticationError(ConformanceSuiteError):
    """Raised when acquiring an access token fails."""

    pass


class ListenerNotStartedError(AuthenticationError):
    """Raised when waiting for a code on a callback listener that was never started."""

    def __init__(self, message: str = "Callback listener not started. Call start() first."):
        super().__init__(message)


# Short name used by callers that only care about the listener lifecycle
NotStartedError = ListenerNotStartedError


class NoAuthorizationCodeError(AuthenticationError):
    """Raised when the code wait is exhausted without a callback."""

    def __init__(
        self,
        timeout: float | None = None,
        message: str = "No authorization code received",
        details: dict[str, Any] | None = None,
    ):
        self.timeout = timeout
        if timeout is not None:
            message += f" within {timeout:g} seconds"
        super().__init__(message, details={"timeout": timeout, **(details or {})})


class AuthorizationDeniedError(AuthenticationError):
    """Raised when the authorization server redirects back with an error."""

    def __init__(self, error: str, description: str | None = None):
        self.error = error
        self.description = description
        message = f"Authorization failed: {error}"
        if description:
            message += f" - {description}"
        super().__init__(message, details={"error": error, "error_description": description})


class StateMismatchError(NoAuthorizationCodeError):
    """
    Raised when the code wait ends and every callback carried a foreign state.

    A subclass of NoAuthorizationCodeError: no usable code arrived, but the
    listener did see redirects, which usually means a stale browser tab or a
    misconfigured redirect URI.
    """

    def __init__(self, timeout: float | None = None, rejected: int = 1):
        self.rejected = rejected
        super().__init__(
            timeout,
            message="State parameter mismatch: no callback matched the pending request",
            details={"rejected_callbacks": rejected},
        )


class TokenExchangeError(AuthenticationError):
    """Raised when the token endpoint rejects an authorization code."""

    def __init__(self, status_code: int, body: str, message: str | None = None):
        self.status_code = status_code
        self.body = body
        msg = message or f"Token exchange failed with status {status_code}: {body}"
        super().__init__(msg, details={"status_code": status_code, "body": body})


class AuthServerConnectionError(AuthenticationError):
    """Raised when the authorization server cannot be reached."""

    def __init__(self, endpoint: str, original_error: str | None = None):
        self.endpoint = endpoint
        message = f"Failed to connect to authorization server: {endpoint}"
        super().__init__(
            message,
            details={"endpoint": endpoint, "original_error": original_error},
        )


# Browser Automation Errors


class BrowserAutomationError(AuthenticationError):
    """Base exception for failures while driving the login page."""

    def __init__(self, message: str, url: str | None = None, original_error: str | None = None):
        self.url = url
        super().__init__(message, details={"url": url, "original_error": original_error})


class LoginFormNotFoundError(BrowserAutomationError):
    """Raised when the provider's login form never appears."""

    def __init__(self, selector: str, url: str | None = None, original_error: str | None = None):
        self.selector = selector
        super().__init__(
            f"Login form not found (selector: {selector})",
            url=url,
            original_error=original_error,
        )


class NavigationTimeoutError(BrowserAutomationError):
    """Raised when the post-login redirect does not settle in time."""

    def __init__(self, timeout: float, url: str | None = None, original_error: str | None = None):
        self.timeout = timeout
        super().__init__(
            f"Navigation did not complete within {timeout:g} seconds",
            url=url,
            original_error=original_error,
        )


class CredentialSubmissionError(BrowserAutomationError):
    """Raised when typing or submitting credentials fails."""

    pass


# Configuration Errors


class ConfigurationError(ConformanceSuiteError):
    """Raised when there's a configuration error."""

    pass


class MissingConfigurationError(ConfigurationError):
    """Raised when required configuration is missing."""

    def __init__(self, config_key: str, description: str | None = None):
        self.config_key = config_key
        message = f"Missing required configuration: {config_key}"
        if description:
            message += f". {description}"
        super().__init__(
            message,
            details={"config_key": config_key, "description": description},
        )
