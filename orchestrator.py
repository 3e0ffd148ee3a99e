"""
Enrichment orchestrator: drives one job from queued to a terminal phase
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from loguru import logger

from blitz_client import BlitzClient
from config import Settings, get_settings
from employee_finder import EmployeeFinder
from experience import resolve_job_title
from job_manager import Job
from models import ColumnMapping, Employee, EmployeeLocation, JobPhase, ResultRow


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def company_fields(row: Mapping[str, str], mapping: ColumnMapping) -> Dict[str, str]:
    """
    Company metadata for a row, keyed like the ResultRow company columns

    Without a name column the URL doubles as the company name; other missing
    columns come out empty.
    """
    company_url = (row.get(mapping.company_url) or "").strip()

    def column(name: Optional[str]) -> str:
        return (row.get(name) or "") if name else ""

    return {
        "company_name": column(mapping.name) if mapping.name else company_url,
        "company_linkedin_url": company_url,
        "company_domain": column(mapping.domain),
        "company_location": column(mapping.location),
        "company_size": column(mapping.size),
    }


class EnrichmentOrchestrator:
    """
    Runs the per-job pipeline

    Rows are handled in input order. For each company the employee search is
    exhausted first, then every employee is enriched one at a time: email
    lookup, then phone lookup unless the job skips phones. Remote failures are
    absorbed by the client; anything else ends the job in the error phase.
    """

    def __init__(
        self,
        client: BlitzClient,
        settings: Optional[Settings] = None,
        finder: Optional[EmployeeFinder] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.client = client
        self.finder = finder or EmployeeFinder(client, self.settings, sleep=sleep)
        self.request_delay = self.settings.request_delay
        self._sleep = sleep

    async def run(self, job: Job) -> None:
        """Run a job to completion; never raises except on cancellation"""
        try:
            await self._process_job(job)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Job {job.id} failed: {e}")
            if job.phase.is_terminal:
                return
            job.publish(phase=JobPhase.ERROR, error=str(e) or type(e).__name__, done=True)

    async def _process_job(self, job: Job) -> None:
        logger.info(f"Starting job {job.id}: {len(job.rows)} companies")
        job.publish(phase=JobPhase.ENRICHING)

        for index, row in enumerate(job.rows, start=1):
            company = company_fields(row, job.column_mapping)
            company_url = company["company_linkedin_url"]

            job.publish(
                company_current=index,
                current_company_name=company["company_name"] or company_url,
            )

            if not company_url:
                logger.debug(f"Job {job.id}: row {index} has no company URL, skipping")
                continue

            records = await self.finder.find_all(company_url, job.api_key)
            job.publish(employees_found=job.status.employees_found + len(records))

            for record in records:
                if not isinstance(record, dict):
                    logger.warning(f"Job {job.id}: ignoring malformed employee record for {company_url}")
                    continue
                employee = Employee.model_validate(record)
                job.add_result(await self._enrich_employee(job, employee, company))

        status = job.status
        job.publish(
            phase=JobPhase.DONE,
            done=True,
            company_current=len(job.rows),
            employees_found=status.employees_found,
            emails_found=status.emails_found,
            phones_found=status.phones_found,
        )

        logger.info("=" * 50)
        logger.info(f"JOB {job.id} COMPLETE")
        logger.info(f"Companies processed: {len(job.rows)}")
        logger.info(f"Employees found: {status.employees_found}")
        logger.info(f"Emails found: {status.emails_found}")
        logger.info(f"Phones found: {status.phones_found}")
        logger.info("=" * 50)

    async def _enrich_employee(self, job: Job, employee: Employee, company: Dict[str, str]) -> ResultRow:
        """Look up contact details for one employee and build the output row"""
        person_url = employee.linkedin_url or ""
        email = ""
        email_status = ""
        phone = ""

        if person_url:
            email_data = await self.client.find_email(person_url, job.api_key)
            email = _text(email_data.get("email"))
            email_status = _text(email_data.get("email_status"))
            if email:
                job.publish(emails_found=job.status.emails_found + 1)

            await self._sleep(self.request_delay)

            if not job.options.skip_phone:
                phone_data = await self.client.find_phone(person_url, job.api_key)
                phone = _text(phone_data.get("phone"))
                if phone:
                    job.publish(phones_found=job.status.phones_found + 1)
                await self._sleep(self.request_delay)

        location = employee.location or EmployeeLocation()

        return ResultRow(
            **company,
            full_name=employee.full_name or "",
            first_name=employee.first_name or "",
            last_name=employee.last_name or "",
            job_title=resolve_job_title(employee, company["company_linkedin_url"]),
            headline=employee.headline or "",
            person_linkedin_url=person_url,
            city=location.city or "",
            state=location.state_code or "",
            country=location.country_code or "",
            email=email,
            email_status=email_status,
            phone_mobile=phone,
            connections_count=_text(employee.connections_count) if employee.connections_count else "",
        )
