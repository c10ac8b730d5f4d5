"""eBay OAuth2 access-token manager.

Holds a single application-wide bearer token and refreshes it on demand,
either from the configured refresh token or, when none is configured, with
the client-credentials grant.
"""

import asyncio
import base64
import logging
import time
from collections.abc import Callable

import httpx

from upcrelay.config import API_SCOPE, TOKEN_URL

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
DEFAULT_EXPIRES_IN = 3000  # seconds, used when the issuer omits expires_in
EXPIRY_MARGIN = 60  # seconds shaved off the issuer's expiry for clock skew


class AuthError(Exception):
    """Raised when an access token cannot be obtained.

    ``payload`` carries the upstream error body (or status text) for logging.
    It must never be returned to API callers.
    """

    def __init__(self, message: str, payload: object = None) -> None:
        super().__init__(message)
        self.payload = payload


def _error_payload(response: httpx.Response) -> object:
    try:
        return response.json()
    except ValueError:
        return response.text


class TokenManager:
    """Cache and refresh the eBay bearer token.

    ``access_token`` is usable while ``clock() < expires_at``.  Both fields are
    replaced together on a successful refresh and left untouched on failure.
    Refreshes are serialized: concurrent callers that find the token expired
    wait for the one in-flight refresh instead of starting their own.

    Args:
        client_id:     eBay OAuth client id.
        client_secret: eBay OAuth client secret.
        refresh_token: Long-lived refresh token.  ``None`` selects the
                       client-credentials grant.
        http_client:   Shared ``httpx.AsyncClient`` used for the token call.
        clock:         Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str | None = None,
        *,
        http_client: httpx.AsyncClient,
        token_url: str = TOKEN_URL,
        scope: str = API_SCOPE,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.token_url = token_url
        self.scope = scope
        self.timeout = timeout
        self._http = http_client
        self._clock = clock
        self._refresh_lock = asyncio.Lock()

        self.access_token: str | None = None
        self.expires_at: float = 0.0

    @property
    def grant_type(self) -> str:
        return "refresh_token" if self.refresh_token else "client_credentials"

    def _cached_token(self) -> str | None:
        if self.access_token and self._clock() < self.expires_at:
            return self.access_token
        return None

    async def get_token(self) -> str:
        """Return a usable access token, refreshing it if needed.

        Raises:
            AuthError: the token endpoint could not be reached or refused
                the request, or the credentials are not configured.
        """
        token = self._cached_token()
        if token is not None:
            return token

        async with self._refresh_lock:
            # Another task may have refreshed while we waited.
            token = self._cached_token()
            if token is not None:
                return token
            return await self._refresh()

    def invalidate(self) -> None:
        """Forget the current token so the next call refreshes."""
        self.access_token = None
        self.expires_at = 0.0

    async def _refresh(self) -> str:
        if not self.client_id or not self.client_secret:
            raise AuthError("EBAY_CLIENT_ID / EBAY_CLIENT_SECRET not configured")

        credentials = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode()
        data = {"grant_type": self.grant_type, "scope": self.scope}
        if self.refresh_token:
            data["refresh_token"] = self.refresh_token

        now = self._clock()
        logger.info("Refreshing eBay access token (grant_type=%s)", self.grant_type)
        try:
            response = await self._http.post(
                self.token_url,
                headers={"Authorization": f"Basic {credentials}"},
                data=data,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise AuthError(f"Token request timed out after {self.timeout}s", payload=str(e)) from e
        except httpx.HTTPError as e:
            raise AuthError("Token request failed", payload=str(e)) from e

        if not response.is_success:
            raise AuthError(
                f"Token endpoint returned HTTP {response.status_code}",
                payload=_error_payload(response),
            )

        try:
            body = response.json()
        except ValueError as e:
            raise AuthError("Token endpoint returned invalid JSON", payload=response.text) from e

        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not access_token:
            raise AuthError("Token response has no access_token", payload=body)

        expires_in = body.get("expires_in")
        if expires_in is None:
            expires_in = DEFAULT_EXPIRES_IN

        self.access_token = access_token
        self.expires_at = now + float(expires_in) - EXPIRY_MARGIN
        logger.info("eBay access token refreshed, valid for %.0fs", self.expires_at - now)
        return access_token
