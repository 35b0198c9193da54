# 📄 File: app/shared/infrastructure/external_apis/api_client.py

# 🧭 Purpose (Layman Explanation):
# This file creates a small HTTP client that knows how to talk to outside services (the card
# processor and the email provider), with timeouts, optional retries and clear errors.

# 🧪 Purpose (Technical Summary):
# Generic async HTTP client over aiohttp. Transient failures (connection errors, timeouts,
# 429 and 5xx) can be retried with tenacity exponential backoff; callers that must never
# repeat a request (card charges) opt out. Other 4xx responses are returned to the caller.

# 🔗 Dependencies:
# - aiohttp: Async HTTP client
# - tenacity: Retry logic and backoff strategies

# 🔄 Connected Modules / Calls From:
# Used by: StripePaymentGateway, SendGridEmailSender

import asyncio
import logging
import time
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import aiohttp
from aiohttp import ClientSession, ClientTimeout
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.shared.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class TransientAPIError(Exception):
    """A failure worth trying again: network trouble, 429 or a 5xx answer."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class APIResponse:
    """Status, headers and decoded body of one HTTP exchange."""

    def __init__(self, status: int, data: Dict[str, Any], headers: Optional[Dict[str, str]] = None):
        self.status = status
        self.data = data
        self.headers = headers or {}

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class APIClient:
    """
    Generic async HTTP client for external API integrations.

    Features:
    - Optional retry with exponential backoff for transient failures
    - JSON or form-encoded request bodies
    - Request logging with timings
    """

    def __init__(
        self,
        base_url: str,
        api_name: str,
        default_headers: Optional[Dict[str, str]] = None,
        timeout: int = 30,
        max_retries: int = 3
    ):
        """Initialize API client with configuration."""
        self.base_url = base_url.rstrip('/') + '/'
        self.api_name = api_name
        self.default_headers = default_headers or {}
        self.timeout = timeout
        self.max_retries = max_retries
        self.session: Optional[ClientSession] = None

    async def initialize(self):
        """Create the underlying aiohttp session."""
        if self.session is None or self.session.closed:
            self.session = ClientSession(
                timeout=ClientTimeout(total=self.timeout),
                headers={
                    'User-Agent': f'EventMarketplace/1.0 ({self.api_name}-client)',
                    'Accept': 'application/json',
                    **self.default_headers,
                },
            )
            logger.info(f"API client initialized for {self.api_name}")

    async def _send(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        json: Optional[Dict] = None,
        form: Optional[Dict] = None,
        headers: Optional[Dict] = None
    ) -> APIResponse:
        """Perform one HTTP exchange."""
        await self.initialize()
        url = urljoin(self.base_url, endpoint.lstrip('/'))
        start_time = time.time()

        try:
            async with self.session.request(
                method,
                url,
                params=params,
                json=json,
                data=form,
                headers=headers,
            ) as response:
                elapsed = time.time() - start_time
                if response.content_type == 'application/json':
                    data = await response.json()
                else:
                    text = await response.text()
                    data = {'raw_response': text} if text else {}
                status = response.status
                response_headers = dict(response.headers)
        except asyncio.TimeoutError as e:
            raise TransientAPIError(f"Timeout calling {self.api_name}: {method} {url}") from e
        except aiohttp.ClientError as e:
            raise TransientAPIError(f"Connection error calling {self.api_name}: {e}") from e

        logger.info(f"{self.api_name} API {method} {url} - {status} - {elapsed:.2f}s")

        if status == 429 or status >= 500:
            raise TransientAPIError(f"{self.api_name} answered {status}", status=status)

        return APIResponse(status, data if isinstance(data, dict) else {'data': data}, response_headers)

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        json: Optional[Dict] = None,
        form: Optional[Dict] = None,
        headers: Optional[Dict] = None,
        retry: bool = True
    ) -> APIResponse:
        """
        Make an HTTP request.

        Args:
            retry: Retry transient failures with backoff. Must be False for
                requests that are unsafe to repeat.

        Returns:
            APIResponse for any 2xx-4xx answer except 429

        Raises:
            ExternalServiceError: If the service stays unreachable or keeps
                answering 429/5xx
        """
        attempts = self.max_retries if retry else 1
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(attempts),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception_type(TransientAPIError),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    return await self._send(method, endpoint, params, json, form, headers)
        except (TransientAPIError, RetryError) as e:
            logger.error(f"{self.api_name} request failed: {method} {endpoint}: {e}")
            raise ExternalServiceError(
                f"{self.api_name} is currently unavailable",
                service_name=self.api_name,
                details={'status': getattr(e, 'status', None)},
            ) from e

    async def get(self, endpoint: str, params: Optional[Dict] = None, **kwargs) -> APIResponse:
        return await self.request('GET', endpoint, params=params, **kwargs)

    async def post(self, endpoint: str, **kwargs) -> APIResponse:
        return await self.request('POST', endpoint, **kwargs)

    async def close(self):
        """Close the client session and cleanup resources."""
        if self.session:
            await self.session.close()
            self.session = None
            logger.info(f"API client closed for {self.api_name}")
