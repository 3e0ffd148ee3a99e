"""
Employee enrichment service: composes the client, orchestrator and job registry
"""
import asyncio
from typing import Any, AsyncIterator, Awaitable, Callable, List, Mapping, Optional, Sequence

from loguru import logger

from blitz_client import BlitzClient
from column_detector import detect_columns
from config import Settings, get_settings
from job_manager import Job, JobRegistry
from models import InvalidSubmissionError, JobOptions, ResultRow, SubmissionResult
from orchestrator import EnrichmentOrchestrator
from table_io import UploadTooLargeError, parse_csv, results_to_csv


class EnrichmentService:
    """Entry point for submitting tables, following progress and collecting results"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[BlitzClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.client = client or BlitzClient(self.settings, sleep=sleep)
        self.orchestrator = EnrichmentOrchestrator(self.client, self.settings, sleep=sleep)
        self.registry = JobRegistry(self.orchestrator.run, self.settings)

    @staticmethod
    def _require_api_key(api_key: Optional[str]) -> None:
        if not api_key or not api_key.strip():
            raise InvalidSubmissionError("Blitz API key is required")

    async def submit(
        self,
        rows: Sequence[Mapping[str, str]],
        api_key: str,
        options: Optional[JobOptions] = None,
        headers: Optional[Sequence[str]] = None,
    ) -> SubmissionResult:
        """
        Validate a parsed table and start enriching it

        Args:
            rows: Input records sharing one header set
            api_key: Caller's Blitz API key
            options: Job flags
            headers: Header names in table order (defaults to the first row's keys)

        Returns:
            Job id, row count and the detected company URL column

        Raises:
            InvalidSubmissionError: If the key is missing, there are no rows,
                or no company URL column can be found
        """
        if not rows:
            raise InvalidSubmissionError("CSV has no data rows")
        self._require_api_key(api_key)

        mapping = detect_columns(list(headers) if headers is not None else list(rows[0]))
        job = await self.registry.create_job(rows, mapping, api_key.strip(), options)

        return SubmissionResult(
            job_id=job.id,
            total_rows=len(job.rows),
            detected_column=mapping.company_url,
        )

    async def submit_csv(
        self, data: bytes, api_key: str, options: Optional[JobOptions] = None
    ) -> SubmissionResult:
        """Parse raw CSV bytes and submit them"""
        self._require_api_key(api_key)
        if len(data) > self.settings.max_upload_bytes:
            raise UploadTooLargeError(f"File exceeds the {self.settings.max_upload_mb} MB limit")
        table = parse_csv(data)
        return await self.submit(table.rows, api_key, options, headers=table.headers)

    async def get_job(self, job_id: str) -> Job:
        return await self.registry.get_job(job_id)

    async def subscribe(self, job_id: str) -> AsyncIterator[Optional[dict]]:
        """
        Follow a job's progress

        Returns:
            An async iterator of snapshots (current one first), with None for
            keep-alive ticks; it ends after a terminal snapshot

        Raises:
            JobNotFoundError: If the job is unknown or expired
        """
        job = await self.registry.get_job(job_id)
        subscription = job.subscribe()
        return subscription.events(self.settings.keepalive_interval)

    async def get_results(self, job_id: str) -> List[ResultRow]:
        """
        Raises:
            JobNotFoundError: If the job is unknown or expired
            JobNotReadyError: If the job has not finished successfully
        """
        job = await self.registry.get_job(job_id)
        return job.get_results()

    async def export_csv(self, job_id: str) -> str:
        return results_to_csv(await self.get_results(job_id))

    async def close(self):
        """Stop background work and close connections"""
        logger.info("Shutting down enrichment service")
        await self.registry.close()
        await self.client.close()
