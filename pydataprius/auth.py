"""OAuth client-credentials token exchange for the Dataprius API."""

from __future__ import annotations

import base64
import logging
import threading

import httpx

from .exceptions import DatapriusAuthenticationError, DatapriusConfigError
from .utils import DEFAULT_API_URL

logger = logging.getLogger(__name__)


class TokenProvider:
    """Exchanges client credentials for a bearer token and caches it.

    The token is fetched lazily on the first call to :meth:`get_token` and
    reused until :meth:`invalidate` is called (for example after the API
    rejected it with HTTP 401).
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        if not client_id or not client_secret:
            raise DatapriusConfigError(
                "Client ID and client secret are required to obtain a token"
            )
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._token: str | None = None
        self._lock = threading.Lock()

    def _basic_auth_header(self) -> str:
        credentials = f"{self.client_id}:{self.client_secret}".encode()
        return "Basic " + base64.b64encode(credentials).decode("ascii")

    def get_token(self) -> str:
        """Return a bearer token, requesting one if none is cached.

        Raises:
            DatapriusAuthenticationError: If the credential exchange fails
        """
        with self._lock:
            if self._token is None:
                self._token = self._fetch_token()
            return self._token

    def invalidate(self) -> None:
        """Forget the cached token so the next call fetches a new one."""
        with self._lock:
            self._token = None

    def _fetch_token(self) -> str:
        url = f"{self.api_url}/oauth/token"
        headers = {
            "Authorization": self._basic_auth_header(),
            "Accept": "application/json",
        }
        logger.debug("Requesting access token from %s", url)

        try:
            with httpx.Client(
                timeout=httpx.Timeout(self.timeout), transport=self._transport
            ) as client:
                response = client.get(url, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            detail = e.response.text[:200] if e.response.content else ""
            raise DatapriusAuthenticationError(
                f"Failed to get access token: HTTP {status} {detail}".rstrip()
            ) from e
        except httpx.RequestError as e:
            raise DatapriusAuthenticationError(
                f"Failed to get access token: {e}"
            ) from e
        except ValueError as e:
            raise DatapriusAuthenticationError(
                "Failed to get access token: invalid JSON response"
            ) from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise DatapriusAuthenticationError(
                "Failed to get access token: response has no access_token"
            )
        return str(token)
