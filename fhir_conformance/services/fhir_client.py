"""
Authenticated fetch wrapper for conformance tests.

Conformance tests need raw control over method, headers and body, and
must see every status code rather than an exception. ``FHIRFetchClient``
sends the request, attaches a bearer token when asked to, and reports
transport failures as unsuccessful responses.
"""

import asyncio
import json
import time
from urllib.parse import urljoin

import aiohttp

from fhir_conformance.auth.flow import AuthSession, get_auth_session
from fhir_conformance.config.logging import get_logger
from fhir_conformance.config.settings import get_settings
from fhir_conformance.errors import MissingConfigurationError
from fhir_conformance.models.fetch import FetchOptions, FetchResponse, HttpInteraction

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/json"


class FHIRFetchClient:
    """Sends requests to the FHIR server under test and records each interaction."""

    def __init__(
        self,
        base_url: str | None = None,
        auth_session: AuthSession | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: FHIR server base URL (defaults to settings.fhir_server_url)
            auth_session: Session providing bearer tokens (defaults to the suite session)
            timeout: Request timeout in seconds (defaults to settings.request_timeout)
        """
        settings = get_settings()
        self.base_url = base_url if base_url is not None else settings.fhir_server_url
        self.timeout = timeout or settings.request_timeout
        self._auth_session = auth_session
        self.interactions: list[HttpInteraction] = []

    @property
    def auth_session(self) -> AuthSession:
        if self._auth_session is not None:
            return self._auth_session
        return get_auth_session()

    def build_url(self, relative_url: str, override_base_url: str | None = None) -> str:
        """Resolve relative_url against the base URL, treating the base as a directory."""
        base = override_base_url or self.base_url
        if not base:
            raise MissingConfigurationError(
                "FHIR_CONFORMANCE_FHIR_SERVER_URL", "No FHIR server base URL configured"
            )
        if not base.endswith("/"):
            base += "/"
        return urljoin(base, relative_url)

    async def fetch(self, options: FetchOptions) -> FetchResponse:
        """
        Send one request.

        Token acquisition errors propagate; transport errors do not.

        Args:
            options: Request description

        Returns:
            FetchResponse with status, headers and the body as text and,
            when it parses, as JSON
        """
        url = self.build_url(options.relative_url, options.override_base_url)
        method = options.method.upper()

        headers = dict(options.headers)
        if not any(name.lower() == "content-type" for name in headers):
            headers["Content-Type"] = DEFAULT_CONTENT_TYPE
        if options.authorized:
            access_token = await self.auth_session.acquire()
            headers["Authorization"] = f"Bearer {access_token}"

        client_timeout = aiohttp.ClientTimeout(total=self.timeout)
        started = time.perf_counter()

        try:
            async with aiohttp.ClientSession(timeout=client_timeout) as session:
                async with session.request(
                    method, url, headers=headers, data=options.body
                ) as resp:
                    status = resp.status
                    reason = resp.reason or ""
                    response_headers = dict(resp.headers)
                    raw_body = await resp.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            message = str(e) or type(e).__name__
            logger.warning("Request failed", method=method, url=url, error=message)
            self._record(
                method, url, headers, options.body, -1, "Error", {}, message, started
            )
            return FetchResponse(
                success=False,
                status=-1,
                raw_body=message,
                error=e,
            )

        json_body = None
        json_parsed = False
        if raw_body:
            try:
                json_body = json.loads(raw_body)
                json_parsed = True
            except ValueError:
                pass

        self._record(
            method, url, headers, options.body, status, reason, response_headers, raw_body, started
        )
        logger.debug("Request completed", method=method, url=url, status=status)

        return FetchResponse(
            success=200 <= status < 300,
            status=status,
            headers=response_headers,
            json_body=json_body,
            json_parsed=json_parsed,
            raw_body=raw_body,
        )

    def _record(
        self,
        method: str,
        url: str,
        request_headers: dict[str, str],
        request_body: str | bytes | None,
        status: int,
        status_text: str,
        response_headers: dict[str, str],
        response_body: str,
        started: float,
    ) -> None:
        self.interactions.append(
            HttpInteraction(
                method=method,
                url=url,
                request_headers=request_headers,
                request_body=request_body,
                status=status,
                status_text=status_text,
                response_headers=response_headers,
                response_body=response_body,
                duration_ms=(time.perf_counter() - started) * 1000,
            )
        )


async def fetch_wrapper(options: FetchOptions, client: FHIRFetchClient | None = None) -> FetchResponse:
    """
    Send a request with the suite's default client.

    This is the main entry point for conformance tests.
    """
    return await (client or FHIRFetchClient()).fetch(options)
