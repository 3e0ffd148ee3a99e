"""
Job Manager for Employee Enrichment Service
Owns in-memory jobs, their retention window and their progress channels
"""
# -*- coding: utf-8 -*-
import asyncio
import uuid
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from broadcaster import ProgressBroadcaster, Subscription
from config import Settings, get_settings
from models import ColumnMapping, JobOptions, JobPhase, JobStatus, ResultRow


class JobNotFoundError(KeyError):
    """Job id is unknown or its retention window has elapsed"""
    pass


class JobNotReadyError(Exception):
    """Results were requested before the job finished successfully"""
    pass


class Job:
    """One enrichment run over one submitted table"""

    def __init__(
        self,
        job_id: str,
        rows: Sequence[Mapping[str, str]],
        column_mapping: ColumnMapping,
        api_key: str,
        options: Optional[JobOptions] = None,
        queue_size: int = 100,
    ):
        self.id = job_id
        self.rows = tuple(dict(row) for row in rows)
        self.column_mapping = column_mapping
        self._api_key = api_key
        self.options = options or JobOptions()
        self.status = JobStatus(company_total=len(self.rows))
        self.results: List[ResultRow] = []
        self.broadcaster = ProgressBroadcaster(job_id, queue_size)
        self.task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"Job(id={self.id!r}, phase={self.status.phase.value!r}, rows={len(self.rows)})"

    @property
    def api_key(self) -> str:
        return self._api_key

    @property
    def phase(self) -> JobPhase:
        return self.status.phase

    def snapshot(self) -> dict:
        return self.status.to_payload()

    def publish(self, **delta) -> None:
        """Merge a delta into the status and push the new snapshot to subscribers"""
        self.status.apply(**delta)
        self.broadcaster.publish(self.snapshot())

    def subscribe(self) -> Subscription:
        """Attach a listener that starts from the current snapshot"""
        return self.broadcaster.subscribe(self.snapshot())

    def add_result(self, row: ResultRow) -> None:
        self.results.append(row)

    def get_results(self) -> List[ResultRow]:
        """
        Accumulated result rows

        Raises:
            JobNotReadyError: Unless the job finished in the done phase
        """
        if self.status.phase != JobPhase.DONE:
            raise JobNotReadyError("Enrichment not complete yet")
        return list(self.results)


class JobRegistry:
    """Creates jobs, starts their runs and forgets them after the retention window"""

    def __init__(
        self,
        runner: Callable[[Job], Awaitable[None]],
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self._runner = runner
        self._jobs: Dict[str, Job] = {}
        self._expiry_handles: Dict[str, asyncio.TimerHandle] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._jobs)

    def _generate_job_id(self) -> str:
        """Generate a unique job ID"""
        job_id = str(uuid.uuid4())
        while job_id in self._jobs:
            job_id = str(uuid.uuid4())
        return job_id

    async def create_job(
        self,
        rows: Sequence[Mapping[str, str]],
        column_mapping: ColumnMapping,
        api_key: str,
        options: Optional[JobOptions] = None,
    ) -> Job:
        """
        Register a job and start its run in the background

        Args:
            rows: Parsed input records
            column_mapping: Resolved column roles
            api_key: Caller's Blitz API key
            options: Job flags

        Returns:
            The created job; its run is already scheduled
        """
        loop = asyncio.get_running_loop()

        async with self._lock:
            job_id = self._generate_job_id()
            job = Job(
                job_id,
                rows,
                column_mapping,
                api_key,
                options,
                queue_size=self.settings.subscriber_queue_size,
            )
            self._jobs[job_id] = job
            self._expiry_handles[job_id] = loop.call_later(
                self.settings.job_retention_seconds, self._expire, job_id
            )

        job.task = asyncio.create_task(self._runner(job), name=f"enrich-{job_id}")
        job.task.add_done_callback(self._log_task_result)

        logger.info(
            f"Created job {job_id} with {len(job.rows)} rows "
            f"(url column: {column_mapping.company_url}, skip_phone: {job.options.skip_phone})"
        )
        return job

    async def get_job(self, job_id: str) -> Job:
        """
        Get job by ID

        Raises:
            JobNotFoundError: If the job never existed or has expired
        """
        async with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _expire(self, job_id: str) -> None:
        self._expiry_handles.pop(job_id, None)
        job = self._jobs.pop(job_id, None)
        if job is not None:
            logger.info(f"Expired job {job_id} in phase {job.phase.value}")

    @staticmethod
    def _log_task_result(task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning(f"Task {task.get_name()} was cancelled")
        elif task.exception() is not None:
            logger.error(f"Task {task.get_name()} crashed: {task.exception()!r}")

    async def close(self) -> None:
        """Cancel expiry timers and any runs still in flight (process shutdown)"""
        async with self._lock:
            for handle in self._expiry_handles.values():
                handle.cancel()
            self._expiry_handles.clear()
            tasks = [job.task for job in self._jobs.values() if job.task and not job.task.done()]

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Stopped {len(tasks)} running job(s) on shutdown")
