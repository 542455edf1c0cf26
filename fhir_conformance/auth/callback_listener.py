"""
Local callback listener for the authorization code redirect.

Runs a short-lived aiohttp web server on a fixed local port. The
authorization server redirects the browser to ``{callback_path}?code=...``
and the listener hands the code to whoever is awaiting ``wait_for_code``.
The pending future resolves at most once per start/stop cycle.
"""

import asyncio
import html

from aiohttp import web

from fhir_conformance.audit import AuditEvent, audit_log, truncate_secret
from fhir_conformance.config.logging import get_logger
from fhir_conformance.constants import (
    CALLBACK_MISSING_CODE_MESSAGE,
    CALLBACK_STATE_MISMATCH_MESSAGE,
    CALLBACK_SUCCESS_MESSAGE,
)
from fhir_conformance.errors import (
    AuthorizationDeniedError,
    ListenerNotStartedError,
    NoAuthorizationCodeError,
    StateMismatchError,
)

logger = get_logger(__name__)


def _html_response(message: str, status: int = 200) -> web.Response:
    return web.Response(
        status=status,
        text=f"<html><body><h2>{html.escape(message)}</h2></body></html>",
        content_type="text/html",
    )


class CallbackListener:
    """
    Ephemeral HTTP listener that captures one authorization code.

    Owns the bound local port exclusively while running. ``stop()`` releases
    the socket and forgets the captured code, so the same instance can be
    started again for a new flow.
    """

    def __init__(self, host: str = "localhost", port: int = 3000, path: str = "/callback"):
        """
        Initialize the listener.

        Args:
            host: Interface to bind
            port: Fixed local port the redirect URI points at
            path: Route that receives the redirect
        """
        self.host = host
        self.port = port
        self.path = path

        self._runner: web.AppRunner | None = None
        self._future: asyncio.Future[str] | None = None
        self._code: str | None = None
        self._expected_state: str | None = None
        self._rejected_states = 0

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    @property
    def code(self) -> str | None:
        """The captured authorization code, if one has arrived."""
        return self._code

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}{self.path}"

    async def start(self, expected_state: str | None = None) -> None:
        """
        Bind the listener and create a fresh pending code future.

        A no-op when already running.

        Args:
            expected_state: When set, callbacks carrying a different
                ``state`` are rejected and never resolve the future
        """
        if self._runner is not None:
            logger.info("Callback listener is already running", url=self.url)
            return

        app = web.Application()
        app.router.add_get(self.path, self._handle_callback)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise

        self._runner = runner
        self._future = asyncio.get_running_loop().create_future()
        self._code = None
        self._expected_state = expected_state
        self._rejected_states = 0

        logger.info("Callback listener started", url=self.url)

    async def _handle_callback(self, request: web.Request) -> web.Response:
        """Capture the code from the redirect. Always answers so the browser tab never hangs."""
        params = request.query
        code = params.get("code")
        error = params.get("error")

        if (code or error) and self._expected_state is not None:
            if params.get("state") != self._expected_state:
                self._rejected_states += 1
                logger.warning(
                    "Rejected callback with unexpected state",
                    path=request.path,
                    rejected=self._rejected_states,
                )
                audit_log(
                    AuditEvent.SECURITY_INVALID_STATE,
                    url=self.url,
                    success=False,
                    error=StateMismatchError(rejected=self._rejected_states).message,
                )
                return _html_response(CALLBACK_STATE_MISMATCH_MESSAGE, status=400)

        if error:
            denied = AuthorizationDeniedError(error, params.get("error_description"))
            if self._future is not None and not self._future.done():
                self._future.set_exception(denied)
            audit_log(AuditEvent.AUTH_CALLBACK, url=self.url, success=False, error=error)
            return _html_response(denied.message)

        if not code:
            logger.warning("Callback received without authorization code")
            return _html_response(CALLBACK_MISSING_CODE_MESSAGE)

        if self._future is not None and not self._future.done():
            self._code = code
            self._future.set_result(code)
            audit_log(
                AuditEvent.AUTH_CALLBACK,
                url=self.url,
                details={"code": truncate_secret(code)},
            )
        else:
            logger.debug("Ignoring repeated callback, code already captured")

        return _html_response(CALLBACK_SUCCESS_MESSAGE)

    async def wait_for_code(self, timeout: float | None = None) -> str:
        """
        Wait for the authorization code.

        Args:
            timeout: Maximum wait in seconds (None waits indefinitely)

        Returns:
            The authorization code

        Raises:
            ListenerNotStartedError: If start() was never called
            StateMismatchError: If only callbacks with a foreign state arrived
                within timeout
            NoAuthorizationCodeError: If no callback arrives within timeout
            AuthorizationDeniedError: If the provider redirected with an error
        """
        if self._code is not None:
            return self._code

        if self._runner is None or self._future is None:
            raise ListenerNotStartedError()

        try:
            # Shielded so a timed-out waiter leaves the future to stop()
            return await asyncio.wait_for(asyncio.shield(self._future), timeout=timeout)
        except asyncio.TimeoutError:
            if self._rejected_states:
                raise StateMismatchError(timeout, self._rejected_states) from None
            raise NoAuthorizationCodeError(timeout) from None

    async def stop(self) -> None:
        """Release the socket and clear all captured state. Safe to call when not running."""
        runner = self._runner
        future = self._future

        self._runner = None
        self._future = None
        self._code = None
        self._expected_state = None
        self._rejected_states = 0

        if future is not None:
            if not future.done():
                future.cancel()
            elif not future.cancelled():
                # Mark a stored AuthorizationDeniedError as retrieved
                future.exception()

        if runner is None:
            return

        await runner.cleanup()
        logger.info("Callback listener stopped", url=self.url)
