"""
Shared pytest fixtures for conformance suite tests.
"""

import os
from typing import Any

import aiohttp
import pytest

# Set test environment variables before importing suite modules so a
# developer's .env cannot switch on interactive login during unit tests
ENV_AUTHORIZED = os.environ.get("FHIR_CONFORMANCE_AUTHORIZED")
os.environ["FHIR_CONFORMANCE_AUTHORIZED"] = "false"

from fhir_conformance.auth.browser import BrowserEngine, LoginPage  # noqa: E402
from fhir_conformance.config.settings import Settings  # noqa: E402


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset cached settings and the default auth session between tests."""
    from fhir_conformance.auth.flow import reset_auth_session
    from fhir_conformance.config.settings import reset_settings

    reset_settings()
    reset_auth_session()
    yield
    reset_auth_session()
    reset_settings()


@pytest.fixture
def env_authorized() -> str | None:
    """FHIR_CONFORMANCE_AUTHORIZED as it was before the test run overrode it."""
    return ENV_AUTHORIZED


@pytest.fixture
def auth_settings(unused_tcp_port: int) -> Settings:
    """Settings for an authorized server, with the callback on a free local port."""
    return Settings(
        fhir_server_url="https://fhir.example.com/r4",
        auth_server_url="https://auth.example.com/oauth2",
        client_id="conformance-client",
        client_secret="s3cret",
        authorized=True,
        user_name="tester",
        password="hunter2",
        callback_host="127.0.0.1",
        callback_port=unused_tcp_port,
        code_timeout_seconds=2.0,
    )


class FakeLoginPage(LoginPage):
    """
    LoginPage that plays the provider's part.

    On submit it follows the redirect by requesting the callback URL with
    the configured query, echoing the authorization request's state.
    """

    def __init__(self, engine: "FakeBrowserEngine"):
        self.engine = engine
        self.url: str | None = None
        self.closed = False

    async def navigate(self, url: str, form_selector: str, timeout: float) -> None:
        self.engine.calls.append(("navigate", url, form_selector))
        self.url = url
        if self.engine.fail_on == "navigate":
            raise self.engine.error

    async def fill_credentials(self, username: str, password: str) -> None:
        self.engine.calls.append(("fill_credentials", username, password))
        if self.engine.fail_on == "fill_credentials":
            raise self.engine.error

    async def submit(self, timeout: float) -> None:
        self.engine.calls.append(("submit",))
        if self.engine.fail_on == "submit":
            raise self.engine.error
        if self.engine.callback_url is None or self.engine.callback_query is None:
            return

        from urllib.parse import parse_qs, urlparse

        params = dict(self.engine.callback_query)
        state = parse_qs(urlparse(self.url).query).get("state", [""])[0]
        params.setdefault("state", state)
        async with aiohttp.ClientSession() as session:
            async with session.get(self.engine.callback_url, params=params) as resp:
                self.engine.callback_responses.append((resp.status, await resp.text()))

    async def close(self) -> None:
        self.closed = True


class FakeBrowserEngine(BrowserEngine):
    """In-memory BrowserEngine recording every call."""

    def __init__(self):
        self.running = False
        self.launch_count = 0
        self.close_count = 0
        self.pages: list[FakeLoginPage] = []
        self.calls: list[tuple[Any, ...]] = []
        self.fail_on: str | None = None
        self.error: Exception = RuntimeError("boom")
        self.callback_url: str | None = None
        self.callback_query: dict[str, str] | None = None
        self.callback_responses: list[tuple[int, str]] = []

    @property
    def is_running(self) -> bool:
        return self.running

    async def launch(self) -> None:
        self.launch_count += 1
        self.running = True

    async def new_page(self) -> LoginPage:
        page = FakeLoginPage(self)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.close_count += 1
        self.running = False


@pytest.fixture
def fake_engine() -> FakeBrowserEngine:
    """Browser engine double that never starts a real browser."""
    return FakeBrowserEngine()


@pytest.fixture
def sample_token_response() -> dict[str, Any]:
    """Token endpoint JSON for a successful exchange."""
    return {
        "access_token": "eyJhbGciOiJSUzI1NiJ9.test-access-token",
        "token_type": "Bearer",
        "expires_in": 300,
        "refresh_token": "test-refresh-token",
        "scope": "patient/*.read patient/*.write launch/patient",
    }


@pytest.fixture
def sample_patient() -> dict[str, Any]:
    """Sample FHIR Patient resource."""
    return {
        "resourceType": "Patient",
        "id": "355",
        "meta": {
            "versionId": "1",
            "lastUpdated": "2024-01-15T10:30:00Z",
        },
        "active": True,
        "name": [
            {
                "use": "official",
                "family": "Smith",
                "given": ["John", "William"],
            }
        ],
        "gender": "male",
        "birthDate": "1970-05-15",
    }
