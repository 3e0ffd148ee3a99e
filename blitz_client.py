"""
Blitz API client for employee search and contact enrichment
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from loguru import logger
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from config import Settings, get_settings

SEARCH_ENDPOINT = "/v2/search/employee-finder"
EMAIL_ENDPOINT = "/v2/enrichment/email"
PHONE_ENDPOINT = "/v2/enrichment/phone"

# Statuses that mean "nothing known about this person", not a failure
NO_DATA_STATUSES = (404, 422)


class ProviderAPIError(Exception):
    """Custom exception for Blitz API errors"""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderRateLimitError(ProviderAPIError):
    """Exception for rate limit errors"""
    pass


class BlitzClient:
    """
    Blitz API client with bounded retry and backoff

    Every public call resolves to a dict. Rate limits, timeouts, network errors
    and server errors are retried; once the attempt budget is spent the call
    resolves to an empty dict instead of raising, so one bad call never aborts
    a job.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.blitz_base_url.rstrip("/")
        self.max_attempts = self.settings.max_retries + 1
        self._sleep = sleep

        # HTTP client
        self._client: Optional[httpx.AsyncClient] = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.request_timeout,
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": "Employee-Enrichment-Service/1.0"
                }
            )
        return self._client

    def _handle_api_error(self, response: httpx.Response) -> None:
        """Raise for responses that should be retried"""
        if response.status_code == 429:
            raise ProviderRateLimitError("Rate limit exceeded", 429)
        elif response.status_code >= 500:
            raise ProviderAPIError(f"Server error: {response.status_code}", response.status_code)
        elif not response.is_success:
            raise ProviderAPIError(f"API error: {response.status_code} - {response.text}", response.status_code)

    def backoff_seconds(self, retry_state: RetryCallState) -> float:
        """
        Wait before the next attempt

        Rate limits back off exponentially (1s, 2s, 4s ... capped); every other
        failure backs off linearly (1s, 2s, 3s ...).
        """
        attempt = retry_state.attempt_number - 1
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(error, ProviderRateLimitError):
            return min(float(2 ** attempt), self.settings.rate_limit_backoff_cap)
        return float(attempt + 1)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        if isinstance(error, ProviderRateLimitError):
            logger.warning(f"[429] Rate limited - waiting {wait:.1f}s")
        else:
            logger.warning(
                f"Blitz call failed on attempt {retry_state.attempt_number}/{self.max_attempts}: "
                f"{error} - retrying in {wait:.1f}s"
            )

    def _give_up(self, retry_state: RetryCallState) -> Dict[str, Any]:
        logger.error(
            f"Blitz call failed after {retry_state.attempt_number} attempts: "
            f"{retry_state.outcome.exception()} - continuing without data"
        )
        return {}

    async def _attempt(self, endpoint: str, body: dict, api_key: str) -> Dict[str, Any]:
        """Perform a single HTTP attempt"""
        client = await self._get_client()
        response = await client.post(
            f"{self.base_url}{endpoint}",
            json=body,
            headers={"x-api-key": api_key},
        )

        if response.status_code in NO_DATA_STATUSES:
            logger.debug(f"No data for {endpoint} (status {response.status_code})")
            return {}

        self._handle_api_error(response)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderAPIError(f"Invalid JSON from {endpoint}: {e}", response.status_code)

        if not isinstance(data, dict):
            logger.warning(f"Unexpected response shape from {endpoint}: {type(data).__name__}")
            return {}
        return data

    async def post(self, endpoint: str, body: dict, api_key: str) -> Dict[str, Any]:
        """
        Call a Blitz endpoint with the retry policy applied

        Args:
            endpoint: API path, e.g. "/v2/enrichment/email"
            body: JSON request body
            api_key: Caller's Blitz API key

        Returns:
            Parsed response body, or an empty dict when no data is available
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.backoff_seconds,
            retry=retry_if_exception_type((ProviderAPIError, httpx.HTTPError)),
            before_sleep=self._log_retry,
            retry_error_callback=self._give_up,
            sleep=self._sleep,
        )
        return await retrying(self._attempt, endpoint, body, api_key)

    async def search_employees(
        self, company_url: str, page: int, api_key: str, page_size: Optional[int] = None
    ) -> List[dict]:
        """
        Fetch one page of employees for a company

        Args:
            company_url: Company LinkedIn URL
            page: 1-based page number
            api_key: Caller's Blitz API key
            page_size: Records per page (defaults to settings.page_size)

        Returns:
            Raw employee records on this page
        """
        data = await self.post(
            SEARCH_ENDPOINT,
            {
                "company_linkedin_url": company_url,
                "max_results": page_size or self.settings.page_size,
                "page": page,
            },
            api_key,
        )
        results = data.get("results") or []
        if not isinstance(results, list):
            logger.warning(f"Ignoring non-list results for {company_url} page {page}")
            return []
        return results

    async def find_email(self, person_url: str, api_key: str) -> Dict[str, Any]:
        """Look up a work email and its status for a person"""
        return await self.post(EMAIL_ENDPOINT, {"person_linkedin_url": person_url}, api_key)

    async def find_phone(self, person_url: str, api_key: str) -> Dict[str, Any]:
        """Look up a mobile phone number for a person"""
        return await self.post(PHONE_ENDPOINT, {"person_linkedin_url": person_url}, api_key)

    async def close(self):
        """Close HTTP client connections"""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Blitz client closed")
