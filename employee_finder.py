"""
Paginated employee discovery for a single company
"""
import asyncio
from typing import Any, Awaitable, Callable, List, Optional

from loguru import logger

from blitz_client import BlitzClient
from config import Settings, get_settings


class EmployeeFinder:
    """Collects every employee of a company by walking the search pages"""

    def __init__(
        self,
        client: BlitzClient,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.settings = settings or get_settings()
        self.page_size = self.settings.page_size
        self.request_delay = self.settings.request_delay
        self._sleep = sleep

    async def find_all(self, company_url: str, api_key: str) -> List[dict]:
        """
        Return every employee record for a company, in page order

        A page shorter than the page size ends the walk. A company whose
        headcount is an exact multiple of the page size therefore costs one
        extra, empty page fetch.

        Args:
            company_url: Company LinkedIn URL
            api_key: Caller's Blitz API key

        Returns:
            Raw employee records
        """
        employees: List[dict] = []
        page = 1

        while True:
            results = await self.client.search_employees(
                company_url, page, api_key, page_size=self.page_size
            )
            employees.extend(results)
            logger.debug(f"Page {page} for {company_url}: {len(results)} employees")

            if len(results) < self.page_size:
                break

            page += 1
            await self._sleep(self.request_delay)

        logger.info(f"Found {len(employees)} employees for {company_url} across {page} page(s)")
        return employees
