"""
Authorization code exchange against the authorization server's token endpoint.
"""

import asyncio
import base64
import json

import aiohttp

from fhir_conformance.config.logging import get_logger
from fhir_conformance.constants import ERROR_BODY_LOG_CHARS, TOKEN_EXCHANGE_TIMEOUT_SECONDS
from fhir_conformance.errors import AuthServerConnectionError, TokenExchangeError
from fhir_conformance.models.auth import OAuthToken

logger = get_logger(__name__)


class TokenExchanger:
    """
    Converts one authorization code into one access token.

    Client credentials travel in an HTTP Basic ``Authorization`` header.
    There is no retry: a code is single-use, so a failed exchange needs a
    fresh flow.
    """

    def __init__(
        self,
        auth_server_url: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = TOKEN_EXCHANGE_TIMEOUT_SECONDS,
    ):
        self.auth_server_url = auth_server_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    @property
    def token_endpoint(self) -> str:
        return f"{self.auth_server_url.rstrip('/')}/token"

    def _authorization_header(self) -> str:
        # Client ids may contain ":" (URN style), which aiohttp.BasicAuth rejects
        credentials = f"{self.client_id}:{self.client_secret}".encode()
        return "Basic " + base64.b64encode(credentials).decode("ascii")

    async def exchange(self, code: str) -> OAuthToken:
        """
        Exchange an authorization code for tokens.

        Args:
            code: Authorization code captured by the callback listener

        Returns:
            OAuthToken parsed from the token response

        Raises:
            TokenExchangeError: On a non-2xx status, invalid JSON, or a
                response without ``access_token``
            AuthServerConnectionError: If the token endpoint is unreachable
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
        }
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
            "Authorization": self._authorization_header(),
        }

        client_timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=client_timeout) as session:
                async with session.post(self.token_endpoint, data=data, headers=headers) as resp:
                    status = resp.status
                    body = await resp.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(
                "Token endpoint unreachable",
                endpoint=self.token_endpoint,
                error=str(e) or type(e).__name__,
            )
            raise AuthServerConnectionError(
                self.token_endpoint, str(e) or type(e).__name__
            ) from e

        if not 200 <= status < 300:
            logger.error(
                "Token exchange failed",
                status_code=status,
                error=body[:ERROR_BODY_LOG_CHARS],
            )
            raise TokenExchangeError(status, body)

        try:
            token_data = json.loads(body)
        except ValueError as e:
            logger.error("Invalid JSON in token response", body=body[:ERROR_BODY_LOG_CHARS])
            raise TokenExchangeError(
                status, body, "Token endpoint returned invalid JSON response"
            ) from e

        if not isinstance(token_data, dict) or not token_data.get("access_token"):
            raise TokenExchangeError(status, body, "Token response missing 'access_token' field")

        logger.info("Authorization code exchange successful")

        return OAuthToken(
            access_token=token_data["access_token"],
            token_type=token_data.get("token_type", "Bearer"),
            expires_in=token_data.get("expires_in"),
            refresh_token=token_data.get("refresh_token"),
            scope=token_data.get("scope"),
            id_token=token_data.get("id_token"),
        )
