"""API client for Dataprius."""

from __future__ import annotations

import logging
import random
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from .auth import TokenProvider
from .exceptions import (
    DatapriusAPIError,
    DatapriusAuthenticationError,
    DatapriusDownloadError,
    DatapriusInvalidResponseError,
    DatapriusNetworkError,
    DatapriusNotFoundError,
    DatapriusPermissionError,
    DatapriusRateLimitError,
)
from .utils import DEFAULT_API_URL, DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY

if TYPE_CHECKING:
    from .config import BackupConfig

logger = logging.getLogger(__name__)


def _segment(value: str) -> str:
    return quote(str(value), safe="")


class DatapriusClient:
    """Client for interacting with the Dataprius REST API."""

    def __init__(
        self,
        token_provider: TokenProvider,
        api_url: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize Dataprius API client.

        Args:
            token_provider: Source of bearer tokens
            api_url: Optional API URL (defaults to the public v2 endpoint)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 60.0)
            transport: Optional httpx transport (used by tests)
        """
        self.token_provider = token_provider
        self.api_url = (api_url or DEFAULT_API_URL).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None

    @classmethod
    def from_config(
        cls, config: BackupConfig, transport: httpx.BaseTransport | None = None
    ) -> DatapriusClient:
        """Create a client and its token provider from a BackupConfig."""
        config.validate()
        provider = TokenProvider(
            client_id=config.client_id,
            client_secret=config.client_secret,
            api_url=config.api_url,
            timeout=config.timeout,
            transport=transport,
        )
        return cls(
            provider,
            api_url=config.api_url,
            timeout=config.timeout,
            transport=transport,
        )

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> DatapriusClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token_provider.get_token()}"}

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False

        # Transient failures
        if isinstance(exception, (DatapriusNetworkError, DatapriusRateLimitError)):
            return True

        if isinstance(exception, httpx.HTTPStatusError):
            return 500 <= exception.response.status_code < 600

        return False

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[Exception, bool]:
        """Map an HTTP error to an exception and decide whether to retry.

        Args:
            e: The HTTP error exception
            attempt: Current attempt number

        Returns:
            Tuple of (exception to raise, should_retry)
        """
        status_code = e.response.status_code

        if status_code == 401:
            raise DatapriusAuthenticationError(
                "Access token rejected or unauthorized access"
            ) from e
        elif status_code == 403:
            raise DatapriusPermissionError(
                "Access forbidden - check your permissions"
            ) from e
        elif status_code == 404:
            raise DatapriusNotFoundError("Resource not found") from e
        elif status_code == 429:
            error = DatapriusRateLimitError(
                "Rate limit exceeded - please try again later"
            )
            return (error, attempt < self.max_retries)

        error_msg = f"API request failed with status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    msg = (
                        error_data.get("message")
                        or error_data.get("error")
                        or error_data.get("detail")
                    )
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Body is not JSON, keep the status-based message
            pass

        should_retry = 500 <= status_code < 600 and attempt < self.max_retries
        return (DatapriusAPIError(error_msg), should_retry)

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an authenticated API request with retry logic.

        A 401 response invalidates the cached token and the request is
        repeated once with a fresh token.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data

        Raises:
            DatapriusAPIError: If the request fails after all retries
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        last_exception: Exception | None = None
        client = self._get_client()
        token_refreshed = False

        attempt = 0
        while attempt <= self.max_retries:
            try:
                response = client.request(
                    method, url, headers=self._auth_headers(), **kwargs
                )
                response.raise_for_status()

                content_type = response.headers.get("Content-Type", "")
                if response.content and "application/json" not in content_type:
                    raise DatapriusInvalidResponseError(
                        f"Unexpected response type: {content_type}"
                    )

                if response.content:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise DatapriusInvalidResponseError(
                            "Invalid JSON response from server"
                        ) from e
                return {}

            except httpx.HTTPStatusError as e:
                if e.response.status_code == 401 and not token_refreshed:
                    logger.debug("Token rejected for %s, requesting a new one", url)
                    self.token_provider.invalidate()
                    token_refreshed = True
                    continue

                error, should_retry = self._handle_http_error(e, attempt)
                last_exception = error

                if should_retry:
                    delay = self._calculate_retry_delay(attempt)
                    if isinstance(error, DatapriusRateLimitError):
                        retry_after = e.response.headers.get("Retry-After")
                        if retry_after and retry_after.isdigit():
                            delay = float(retry_after)
                    logger.debug(
                        "%s %s failed (%s), retrying in %.1fs",
                        method,
                        url,
                        error,
                        delay,
                    )
                    time.sleep(delay)
                    attempt += 1
                    continue
                raise error from e
            except DatapriusAPIError:
                raise
            except httpx.RequestError as e:
                error = DatapriusNetworkError(f"Network error: {e}")
                last_exception = error
                if self._should_retry(error, attempt):
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug("%s %s: %s, retrying in %.1fs", method, url, e, delay)
                    time.sleep(delay)
                    attempt += 1
                    continue
                raise error from e

        if last_exception:
            raise last_exception
        raise DatapriusAPIError("Request failed after all retry attempts")

    # =========================
    # Folder Operations
    # =========================

    def get_folder_path(self, path: str) -> Any:
        """Look up folders matching a remote path.

        Args:
            path: Remote folder path (e.g., "/Archive/2024")

        Returns:
            Response with a 'data' list; each item carries an 'ID'

        Example:
            >>> result = client.get_folder_path("/Archive")
            >>> result["data"][0]["ID"]
            1234
        """
        return self._request("POST", "/folders/getpath", json={"Path": path})

    def list_folders(self, folder_id: str, page: int = 1) -> Any:
        """Get one page of subfolders of a folder.

        Args:
            folder_id: Identity of the parent folder
            page: Page number (1-based)

        Returns:
            Response with 'data' (items with 'ID' and 'Name') and
            'meta.pagination.total_pages'
        """
        endpoint = f"/folders/list/{_segment(folder_id)}"
        return self._request("POST", endpoint, json={"Page": str(page)})

    def list_files(self, folder_id: str, page: int = 1) -> Any:
        """Get one page of files in a folder.

        Args:
            folder_id: Identity of the folder
            page: Page number (1-based)

        Returns:
            Response with 'data' (items with 'ID', 'Name', 'Size', 'Modified')
            and 'meta.pagination.total_pages'
        """
        endpoint = f"/folders/files/{_segment(folder_id)}"
        return self._request("POST", endpoint, json={"Page": str(page)})

    # =========================
    # Download Operations
    # =========================

    def get_file_content(self, file_id: str, timeout: float | None = None) -> bytes:
        """Download the whole body of a file.

        Network errors, 5xx and 429 responses are retried like other API
        calls. A 401 refreshes the token once.

        Args:
            file_id: Identity of the file
            timeout: Request timeout in seconds (defaults to the client timeout)

        Returns:
            File content as bytes

        Raises:
            DatapriusAuthenticationError: If the token is rejected after a refresh
            DatapriusDownloadError: If the server refuses the download
            DatapriusNetworkError: If the connection keeps failing
        """
        url = f"{self.api_url}/files/download/{_segment(file_id)}"
        client = self._get_client()
        request_timeout = timeout if timeout is not None else self.timeout
        token_refreshed = False

        attempt = 0
        while True:
            try:
                with client.stream(
                    "GET", url, headers=self._auth_headers(), timeout=request_timeout
                ) as response:
                    response.raise_for_status()
                    return response.read()
            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code == 401:
                    if token_refreshed:
                        raise DatapriusAuthenticationError(
                            f"Access token rejected while downloading {file_id}"
                        ) from e
                    logger.debug("Token rejected for %s, requesting a new one", url)
                    self.token_provider.invalidate()
                    token_refreshed = True
                    continue

                transient = status_code == 429 or 500 <= status_code < 600
                if not transient or attempt >= self.max_retries:
                    raise DatapriusDownloadError(f"Download failed: {e}") from e
                delay = self._calculate_retry_delay(attempt)
                retry_after = e.response.headers.get("Retry-After")
                if status_code == 429 and retry_after and retry_after.isdigit():
                    delay = float(retry_after)
            except httpx.RequestError as e:
                error = DatapriusNetworkError(f"Network error during download: {e}")
                if not self._should_retry(error, attempt):
                    raise error from e
                delay = self._calculate_retry_delay(attempt)

            logger.debug("Download of %s failed, retrying in %.1fs", url, delay)
            time.sleep(delay)
            attempt += 1
