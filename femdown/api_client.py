"""Authenticated HTTP client for the Frontend Masters site and API."""

import asyncio
import json
import time
from typing import Any, Dict, Optional

import aiohttp

from femdown.models import AppConfig, Session
from femdown.exceptions import (
    NetworkError, ConnectionError, TimeoutError, RateLimitError,
    ServerError, SessionExpiredError
)
from femdown.logging_config import get_logger, log_api_request

logger = get_logger(__name__)


class RateLimiter:
    """Spaces requests out, backing off after rate limit responses."""

    def __init__(self, delay: float = 0.0, max_delay: float = 60.0, backoff_factor: float = 2.0):
        """Initialize rate limiter.

        Args:
            delay: Base delay between requests in seconds.
            max_delay: Maximum delay between requests in seconds.
            backoff_factor: Factor to multiply delay on rate limit errors.
        """
        self.base_delay = delay
        self.current_delay = delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.last_request_time = 0.0
        self.consecutive_rate_limits = 0

    async def wait(self) -> None:
        """Wait for the appropriate delay before making a request."""
        time_since_last = time.monotonic() - self.last_request_time

        if time_since_last < self.current_delay:
            await asyncio.sleep(self.current_delay - time_since_last)

        self.last_request_time = time.monotonic()

    def on_rate_limit(self) -> None:
        """Handle rate limit response by increasing delay."""
        self.consecutive_rate_limits += 1
        # A zero base delay still needs to back off
        base = self.base_delay or 1.0
        self.current_delay = min(
            base * (self.backoff_factor ** self.consecutive_rate_limits),
            self.max_delay
        )

    def on_success(self) -> None:
        """Handle successful response by resetting delay."""
        self.consecutive_rate_limits = 0
        self.current_delay = self.base_delay


class FemApiClient:
    """Issues authenticated GET requests and returns raw text or parsed JSON.

    Use as an async context manager, or call ``close()`` when done.
    """

    def __init__(self, config: AppConfig, session: Session):
        """Initialize API client.

        Args:
            config: Application configuration.
            session: Authenticated session whose cookies go on every request.
        """
        self.config = config
        self.auth_session = session
        self.rate_limiter = RateLimiter(delay=config.rate_limit_delay)
        self.http: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def open(self) -> None:
        if self.http is None:
            timeout = aiohttp.ClientTimeout(total=60, connect=30)
            self.http = aiohttp.ClientSession(timeout=timeout, headers=self.default_headers)

    @property
    def default_headers(self) -> Dict[str, str]:
        return {
            'Cookie': self.auth_session.get_cookie_header(),
            'Referer': self.config.endpoints['referer'],
            'User-Agent': 'femdown (course downloader)',
        }

    async def _make_request(self, url: str, params: Optional[Dict[str, Any]] = None) -> str:
        """GET a URL and return the body as text.

        Raises:
            SessionExpiredError: On 401/403, the session is not accepted.
            RateLimitError, ServerError, NetworkError: On other bad statuses.
            ConnectionError, TimeoutError: On transport failures.
        """
        if self.http is None:
            await self.open()

        await self.rate_limiter.wait()
        start = time.perf_counter()

        try:
            async with self.http.get(url, params=params) as response:
                body = await response.text()
                status = response.status
        except asyncio.TimeoutError:
            raise TimeoutError("Request timed out", url=url)
        except aiohttp.ClientConnectionError as e:
            raise ConnectionError(f"Connection failed: {str(e)}", url=url)
        except aiohttp.ClientError as e:
            raise NetworkError(f"Request failed: {str(e)}", url=url)

        log_api_request(logger, 'GET', url, status_code=status,
                        duration=time.perf_counter() - start, response_size=len(body))

        if status == 200:
            self.rate_limiter.on_success()
            return body

        if status == 429:
            self.rate_limiter.on_rate_limit()
            raise RateLimitError("Rate limit exceeded", status_code=status, url=url)

        if status in (401, 403):
            raise SessionExpiredError(
                f"Session rejected: {status}",
                url=url,
                details={'status_code': status}
            )

        if status >= 500:
            raise ServerError(f"Server error: {status}", status_code=status, url=url)

        raise NetworkError(f"HTTP error: {status}", status_code=status, url=url)

    async def get_text(self, url: str, params: Optional[Dict[str, Any]] = None) -> str:
        """GET a URL and return the raw body."""
        return await self._make_request(url, params)

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a URL and return the parsed JSON body.

        A body that is not JSON (a maintenance page, a truncated response) is
        treated as a network failure so callers retry it.
        """
        body = await self._make_request(url, params)
        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise NetworkError(f"Invalid JSON response: {e}", url=url, details={'body_sample': body[:200]})

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.http is not None:
            await self.http.close()
            self.http = None
