"""
Scripted browser login for the authorization code flow.

The automation engine sits behind two small capability interfaces,
``BrowserEngine`` and ``LoginPage``, so tests can drive the login without
a real browser. ``PlaywrightEngine`` is the production engine.
"""

from abc import ABC, abstractmethod

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from fhir_conformance.audit import AuditEvent, audit_log
from fhir_conformance.config.logging import get_logger
from fhir_conformance.constants import BROWSER_LAUNCH_ARGS, BROWSER_VIEWPORT
from fhir_conformance.errors import (
    CredentialSubmissionError,
    LoginFormNotFoundError,
    NavigationTimeoutError,
)

logger = get_logger(__name__)


class LoginPage(ABC):
    """A single browser tab showing the provider's login form."""

    @abstractmethod
    async def navigate(self, url: str, form_selector: str, timeout: float) -> None:
        """Open url and wait for the login form marker. Raises LoginFormNotFoundError."""

    @abstractmethod
    async def fill_credentials(self, username: str, password: str) -> None:
        """Type credentials into the focused form. Raises CredentialSubmissionError."""

    @abstractmethod
    async def submit(self, timeout: float) -> None:
        """Submit the form and wait for the redirect to settle. Raises NavigationTimeoutError."""

    @abstractmethod
    async def close(self) -> None:
        """Close the tab."""


class BrowserEngine(ABC):
    """A browser process that can open login pages."""

    @property
    @abstractmethod
    def is_running(self) -> bool:
        """Whether a browser process is currently owned."""

    @abstractmethod
    async def launch(self) -> None:
        """Start the browser process."""

    @abstractmethod
    async def new_page(self) -> LoginPage:
        """Open a new tab."""

    @abstractmethod
    async def close(self) -> None:
        """Close every open tab, then the browser process."""


class PlaywrightLoginPage(LoginPage):
    """LoginPage backed by a Playwright page."""

    def __init__(self, page: Page):
        self._page = page

    async def navigate(self, url: str, form_selector: str, timeout: float) -> None:
        timeout_ms = timeout * 1000
        try:
            await self._page.goto(url, timeout=timeout_ms)
            await self._page.wait_for_selector(form_selector, timeout=timeout_ms)
        except PlaywrightError as e:
            raise LoginFormNotFoundError(form_selector, url=url, original_error=str(e)) from e

    async def fill_credentials(self, username: str, password: str) -> None:
        # Focus starts in the username field; Tab walks username -> password -> submit
        keyboard = self._page.keyboard
        try:
            await keyboard.type(username)
            await keyboard.press("Tab")
            await keyboard.type(password)
            await keyboard.press("Tab")
        except PlaywrightError as e:
            raise CredentialSubmissionError(
                "Failed to enter credentials", url=self._page.url, original_error=str(e)
            ) from e

    async def submit(self, timeout: float) -> None:
        try:
            async with self._page.expect_navigation(
                wait_until="networkidle", timeout=timeout * 1000
            ):
                await self._page.keyboard.press("Enter")
        except PlaywrightTimeoutError as e:
            raise NavigationTimeoutError(
                timeout, url=self._page.url, original_error=str(e)
            ) from e
        except PlaywrightError as e:
            raise CredentialSubmissionError(
                "Failed to submit login form", url=self._page.url, original_error=str(e)
            ) from e

    async def close(self) -> None:
        await self._page.close()


class PlaywrightEngine(BrowserEngine):
    """Chromium driven through the Playwright async API."""

    def __init__(self, headless: bool = True):
        self.headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    async def launch(self) -> None:
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=list(BROWSER_LAUNCH_ARGS),
            )
            self._context = await self._browser.new_context(viewport=BROWSER_VIEWPORT)
        except Exception:
            await self.close()
            raise
        logger.info("Browser launched", headless=self.headless)

    async def new_page(self) -> LoginPage:
        if self._context is None:
            raise RuntimeError("Browser not launched. Call launch() first.")
        page = await self._context.new_page()
        return PlaywrightLoginPage(page)

    async def close(self) -> None:
        browser, playwright, context = self._browser, self._playwright, self._context
        self._browser = None
        self._playwright = None
        self._context = None

        try:
            if context is not None:
                for page in list(context.pages):
                    await page.close()
            if browser is not None:
                await browser.close()
        finally:
            if playwright is not None:
                await playwright.stop()


class BrowserDriver:
    """
    Completes the provider's login form on behalf of the test user.

    One browser is launched lazily and reused for the duration of a flow.
    ``close_session()`` releases it; a failing ``open_login`` releases it
    before re-raising.

    Usage:
        async with BrowserDriver(PlaywrightEngine()) as driver:
            await driver.open_login(url, "admin", "password")
    """

    def __init__(
        self,
        engine: BrowserEngine | None = None,
        form_selector: str = "div.login-pf-page",
        form_timeout: float = 30.0,
        navigation_timeout: float = 30.0,
    ):
        """
        Initialize the driver.

        Args:
            engine: Browser engine (defaults to headless Playwright Chromium)
            form_selector: CSS selector that marks the provider's login page
            form_timeout: Seconds to wait for the login form
            navigation_timeout: Seconds to wait for the post-submit redirect
        """
        self.engine = engine or PlaywrightEngine()
        self.form_selector = form_selector
        self.form_timeout = form_timeout
        self.navigation_timeout = navigation_timeout

    async def __aenter__(self) -> "BrowserDriver":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close_session()

    @property
    def is_running(self) -> bool:
        return self.engine.is_running

    async def open_login(self, url: str, username: str, password: str) -> None:
        """
        Log in through the provider's form and wait for the redirect.

        Args:
            url: Authorization URL
            username: Login name typed into the form
            password: Password typed into the form

        Raises:
            LoginFormNotFoundError: If the login form never appears
            CredentialSubmissionError: If typing or submitting fails
            NavigationTimeoutError: If the redirect does not settle in time
        """
        succeeded = False
        try:
            if not self.engine.is_running:
                await self.engine.launch()
                audit_log(AuditEvent.BROWSER_LAUNCH)

            page = await self.engine.new_page()
            try:
                await page.navigate(url, self.form_selector, self.form_timeout)
                await page.fill_credentials(username, password)
                await page.submit(self.navigation_timeout)
            finally:
                await self._close_page(page)

            succeeded = True
            logger.info("Login form submitted")
        finally:
            if not succeeded:
                await self.close_session()

    async def _close_page(self, page: LoginPage) -> None:
        try:
            await page.close()
        except PlaywrightError as e:
            # The browser may already be gone; close_session() still runs
            logger.warning("Failed to close login page", error=str(e))

    async def close_session(self) -> None:
        """Close all pages and the browser. Safe to call when nothing is open."""
        if not self.engine.is_running:
            return
        await self.engine.close()
        audit_log(AuditEvent.BROWSER_CLOSE)
        logger.info("Browser closed")
