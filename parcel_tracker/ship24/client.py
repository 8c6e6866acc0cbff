"""Ship24 API client - Direct HTTP communication with Ship24 API."""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..const import SHIP24_API_BASE_URL, SHIP24_API_TRACKERS_TRACK_ENDPOINT
from ..exceptions import NotFound, ParseError, Transient, Unauthorized

_LOGGER = logging.getLogger(__name__)

# Retry configuration
MAX_RETRIES = 3
RETRY_DELAY_BASE = 2  # Base delay in seconds for exponential backoff
REQUEST_TIMEOUT = 30  # Request timeout in seconds

RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


class Ship24Client:
    """Client for interacting with Ship24 API."""

    def __init__(
        self,
        api_key: Optional[str],
        session: Optional[aiohttp.ClientSession] = None,
        retry_delay_base: float = RETRY_DELAY_BASE,
    ):
        """Initialize Ship24 client.

        Args:
            api_key: Ship24 API key
            session: Optional aiohttp session (will create one if not provided)
            retry_delay_base: Base delay for exponential backoff between retries
        """
        self._api_key = api_key
        self._session = session
        self._retry_delay_base = retry_delay_base
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._base_url = SHIP24_API_BASE_URL
        self._timeout = aiohttp.ClientTimeout(
            total=REQUEST_TIMEOUT,
            connect=10,  # Connection timeout (including DNS)
            sock_read=20,
        )

    @staticmethod
    def _is_retryable_error(err: Exception) -> bool:
        """Check if an error is retryable (transient network error).

        Args:
            err: The exception to check

        Returns:
            True if the error is retryable, False otherwise
        """
        if isinstance(err, aiohttp.ClientResponseError):
            return err.status in RETRYABLE_STATUSES
        # DNS/timeout errors are retryable
        if isinstance(
            err, (aiohttp.ClientConnectionError, aiohttp.ServerTimeoutError, asyncio.TimeoutError)
        ):
            return True
        if isinstance(err, aiohttp.ClientError):
            error_str = str(err).lower()
            if any(keyword in error_str for keyword in ["timeout", "dns", "connection", "network", "resolve"]):
                return True
        return False

    @staticmethod
    def _translate_error(err: Exception, tracking_number: str) -> Exception:
        """Map a transport error onto the fetch error taxonomy."""
        if isinstance(err, aiohttp.ContentTypeError):
            return ParseError(f"Ship24 returned a non-JSON body: {err}")
        if isinstance(err, aiohttp.ClientResponseError):
            if err.status == 404:
                return NotFound(f"Ship24 does not know {tracking_number}")
            if err.status in (401, 403):
                return Unauthorized(f"Ship24 rejected the API key (HTTP {err.status})")
            if err.status in RETRYABLE_STATUSES:
                return Transient(f"Ship24 returned HTTP {err.status}")
            return ParseError(f"Unexpected HTTP {err.status} from Ship24: {err.message}")
        return Transient(f"Ship24 request failed: {err}")

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make HTTP request to Ship24 API with retry logic.

        Args:
            method: HTTP method (GET, POST, DELETE, etc.)
            endpoint: API endpoint path
            data: Request body data

        Returns:
            Response JSON data

        Raises:
            aiohttp.ClientError: On HTTP errors after retries exhausted
        """
        url = f"{self._base_url}{endpoint}"
        # Use provided session or create a temporary one
        use_temporary_session = self._session is None
        session = self._session or aiohttp.ClientSession()

        try:
            last_error = None
            for attempt in range(MAX_RETRIES):
                try:
                    async with session.request(
                        method,
                        url,
                        headers=self._headers,
                        json=data,
                        timeout=self._timeout,
                    ) as response:
                        response.raise_for_status()
                        return await response.json()
                except (aiohttp.ClientError, asyncio.TimeoutError) as err:
                    last_error = err
                    if self._is_retryable_error(err) and attempt < MAX_RETRIES - 1:
                        delay = self._retry_delay_base * (2 ** attempt)
                        _LOGGER.warning(
                            "Ship24 API request failed (attempt %d/%d): %s. Retrying in %s seconds...",
                            attempt + 1,
                            MAX_RETRIES,
                            err,
                            delay,
                        )
                        await asyncio.sleep(delay)
                        continue
                    _LOGGER.debug("Ship24 API request failed: %s", err)
                    raise
        finally:
            # Only close session if we created it (not if it was provided)
            if use_temporary_session:
                await session.close()

        # Should never reach here, but just in case
        raise last_error

    async def track(self, tracking_number: str, courier_code: Optional[str] = None) -> Dict[str, Any]:
        """Create (or reuse) a tracker and return its current results.

        Args:
            tracking_number: The tracking number to track
            courier_code: Optional Ship24 courier code (for faster tracking)

        Returns:
            Ship24 API response with tracking results

        Raises:
            FetchError: NotFound, Transient, ParseError or Unauthorized
        """
        if not self._api_key:
            raise Unauthorized("No Ship24 API key configured")

        data = {"trackingNumber": tracking_number}
        if courier_code:
            data["courierCode"] = [courier_code]

        try:
            response = await self._request("POST", SHIP24_API_TRACKERS_TRACK_ENDPOINT, data=data)
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            raise self._translate_error(err, tracking_number) from err
        except ValueError as err:
            # Body claimed JSON but did not decode
            raise ParseError(f"Ship24 returned malformed JSON: {err}") from err

        if not isinstance(response, dict):
            raise ParseError(f"Ship24 response is a {type(response).__name__}, expected an object")
        return response
