"""
Interactive OAuth2 authorization code flow and the session that memoizes it.

``AuthorizationCodeFlow`` performs one login:

1. Build the authorization URL (fresh ``state``, SMART ``aud``).
2. Start the callback listener.
3. Drive the browser through the provider's login form.
4. Await the code, bounded by ``code_timeout_seconds``.
5. Stop the listener and close the browser, on every path.
6. Exchange the code for an access token.

``AuthSession`` owns the resulting token for the rest of the run and makes
sure at most one flow executes per session.
"""

import asyncio
from collections.abc import Callable

from fhir_conformance.audit import AuditEvent, audit_log
from fhir_conformance.auth.browser import BrowserDriver, PlaywrightEngine
from fhir_conformance.auth.callback_listener import CallbackListener
from fhir_conformance.auth.token_exchange import TokenExchanger
from fhir_conformance.config.logging import get_logger, set_flow_id
from fhir_conformance.config.settings import Settings, get_settings
from fhir_conformance.errors import AuthenticationError
from fhir_conformance.models.auth import AuthorizationRequest, FlowState, OAuthToken

logger = get_logger(__name__)

# Default session shared by the suite
_auth_session: "AuthSession | None" = None


class AuthorizationCodeFlow:
    """
    A single-use authorization code flow.

    Tracks its progress in ``state``; any failure moves it to
    ``FlowState.FAILED`` after the listener and browser are released.
    """

    def __init__(
        self,
        settings: Settings,
        listener: CallbackListener,
        browser: BrowserDriver,
        exchanger: TokenExchanger,
    ):
        self.settings = settings
        self.listener = listener
        self.browser = browser
        self.exchanger = exchanger

        self.state = FlowState.IDLE
        self.request: AuthorizationRequest | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthorizationCodeFlow":
        """Wire up a flow with the default listener, Playwright browser and exchanger."""
        redirect_uri = settings.effective_redirect_uri
        listener = CallbackListener(
            host=settings.callback_host,
            port=settings.callback_port,
            path=settings.callback_path,
        )
        browser = BrowserDriver(
            PlaywrightEngine(headless=settings.browser_headless),
            form_selector=settings.login_form_selector,
            form_timeout=settings.login_form_timeout_seconds,
            navigation_timeout=settings.navigation_timeout_seconds,
        )
        exchanger = TokenExchanger(
            auth_server_url=settings.auth_server_url,
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            redirect_uri=redirect_uri,
            timeout=settings.request_timeout,
        )
        return cls(settings, listener, browser, exchanger)

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.settings.auth_server_url.rstrip('/')}/authorize"

    def build_authorization_request(self) -> AuthorizationRequest:
        """Build a fresh authorization request with a new state value."""
        return AuthorizationRequest(
            client_id=self.settings.client_id,
            redirect_uri=self.settings.effective_redirect_uri,
            scope=self.settings.scope,
            aud=self.settings.fhir_server_url,
        )

    def _transition(self, state: FlowState) -> None:
        logger.debug("Authorization flow transition", from_state=self.state.value, to_state=state.value)
        self.state = state

    async def run(self) -> OAuthToken:
        """
        Execute the flow once.

        Returns:
            The access token issued for the captured code

        Raises:
            AuthenticationError: Any listener, browser or exchange failure
                (see ``fhir_conformance.errors``)
        """
        if self.state is not FlowState.IDLE:
            raise AuthenticationError(
                "Authorization code flows are single-use",
                details={"state": self.state.value},
            )

        set_flow_id()

        try:
            self.request = self.build_authorization_request()
            auth_url = self.request.to_url(self.authorize_endpoint)
            self._transition(FlowState.AUTHORIZATION_URL_BUILT)
            audit_log(AuditEvent.AUTH_START, flow_state=self.state.value, url=self.authorize_endpoint)

            try:
                await self.listener.start(expected_state=self.request.state)
                self._transition(FlowState.LISTENER_STARTED)

                await self.browser.open_login(
                    auth_url, self.settings.user_name, self.settings.password
                )
                self._transition(FlowState.BROWSER_SUBMITTED)

                code = await self.listener.wait_for_code(
                    timeout=self.settings.code_timeout_seconds
                )
                self._transition(FlowState.CODE_RECEIVED)
            finally:
                try:
                    await self.listener.stop()
                finally:
                    await self.browser.close_session()

            token = await self.exchanger.exchange(code)
            self._transition(FlowState.TOKEN_EXCHANGED)

        except Exception as e:
            failed_in = self.state
            self._transition(FlowState.FAILED)
            logger.error(
                "Authorization flow failed",
                failed_in=failed_in.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            audit_log(
                AuditEvent.AUTH_FAILURE,
                flow_state=failed_in.value,
                success=False,
                error=str(e),
            )
            raise

        self._transition(FlowState.COMPLETE)
        audit_log(AuditEvent.AUTH_SUCCESS, flow_state=self.state.value)
        return token


class AuthSession:
    """
    Owns the access token for a suite run.

    Lifecycle: ``create`` builds the session, ``acquire`` returns the token
    (running the interactive flow on first use), ``release`` forgets the
    token and makes sure no listener or browser is left behind.
    """

    def __init__(
        self,
        settings: Settings,
        flow_factory: Callable[[], AuthorizationCodeFlow] | None = None,
    ):
        """
        Initialize the session.

        Args:
            settings: Suite settings
            flow_factory: Builds a new flow per acquisition (defaults to
                ``AuthorizationCodeFlow.from_settings``)
        """
        self.settings = settings
        self._flow_factory = flow_factory or (
            lambda: AuthorizationCodeFlow.from_settings(settings)
        )
        self._token: OAuthToken | None = None
        self._lock = asyncio.Lock()
        self._last_flow: AuthorizationCodeFlow | None = None

    @classmethod
    def create(cls, settings: Settings | None = None) -> "AuthSession":
        """Create a session from settings (the cached suite settings by default)."""
        return cls(settings or get_settings())

    @property
    def token(self) -> OAuthToken | None:
        return self._token

    @property
    def last_flow(self) -> AuthorizationCodeFlow | None:
        return self._last_flow

    async def acquire(self) -> str:
        """
        Get the access token, running the interactive flow at most once.

        Returns an empty string when the server under test does not
        require authorization.
        """
        if not self.settings.authorized:
            logger.debug("Server does not require authorization, skipping login")
            return ""

        if self._token is not None:
            return self._token.access_token

        async with self._lock:
            # Another caller may have finished the flow while we waited
            if self._token is not None:
                return self._token.access_token

            flow = self._flow_factory()
            self._last_flow = flow
            token = await flow.run()
            self._token = token

        return token.access_token

    async def release(self) -> None:
        """Forget the cached token and release any listener or browser still held."""
        self._token = None
        flow = self._last_flow
        if flow is None:
            return
        try:
            await flow.listener.stop()
        finally:
            await flow.browser.close_session()


def get_auth_session() -> AuthSession:
    """Get or create the default auth session."""
    global _auth_session

    if _auth_session is None:
        _auth_session = AuthSession.create()

    return _auth_session


def reset_auth_session() -> None:
    """Drop the default session so the next call builds a new one."""
    global _auth_session
    _auth_session = None


async def cleanup_auth_session() -> None:
    """Release and drop the default session."""
    global _auth_session

    if _auth_session is not None:
        await _auth_session.release()
        _auth_session = None


async def get_access_token() -> str:
    """Access token for the server under test ("" when authorization is disabled)."""
    return await get_auth_session().acquire()
