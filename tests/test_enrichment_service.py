"""
Tests for submission, subscription and result retrieval through EnrichmentService.
"""
import asyncio

import pytest

from column_detector import ColumnDetectionError
from conftest import ACME_URL, build_client
from enrichment_service import EnrichmentService
from job_manager import JobNotFoundError, JobNotReadyError
from models import InvalidSubmissionError, JobOptions
from table_io import TableParseError, UploadTooLargeError

CSV = f"Company Name,Company LinkedIn Url\nAcme,{ACME_URL}\n".encode("utf-8")


def make_service(settings, api):
    return EnrichmentService(settings, client=build_client(settings, api))


@pytest.mark.unit
class TestSubmission:

    def test_submit_csv_returns_job_summary(self, settings, fake_api):
        async def scenario():
            service = make_service(settings, fake_api)
            result = await service.submit_csv(CSV, " key ", JobOptions(skip_phone=True))
            job = await service.get_job(result.job_id)
            await job.task
            await service.close()
            return result, job

        result, job = asyncio.run(scenario())

        assert result.total_rows == 1
        assert result.detected_column == "Company LinkedIn Url"
        assert job.api_key == "key"
        assert job.options.skip_phone is True
        assert job.column_mapping.name == "Company Name"

    @pytest.mark.parametrize("api_key", ["", "   ", None])
    def test_missing_api_key_rejected(self, settings, fake_api, api_key):
        service = make_service(settings, fake_api)

        with pytest.raises(InvalidSubmissionError, match="API key is required"):
            asyncio.run(service.submit_csv(CSV, api_key))

    def test_missing_url_column_rejected(self, settings, fake_api):
        service = make_service(settings, fake_api)

        with pytest.raises(ColumnDetectionError):
            asyncio.run(service.submit_csv(b"Name,Website\nAcme,acme.com\n", "key"))
        assert len(service.registry) == 0

    def test_empty_table_rejected(self, settings, fake_api):
        service = make_service(settings, fake_api)

        with pytest.raises(TableParseError):
            asyncio.run(service.submit_csv(b"Name,LinkedIn\n", "key"))
        with pytest.raises(InvalidSubmissionError):
            asyncio.run(service.submit([], "key"))

    def test_oversized_upload_rejected(self, settings, fake_api):
        settings.max_upload_mb = 0
        service = make_service(settings, fake_api)

        with pytest.raises(UploadTooLargeError):
            asyncio.run(service.submit_csv(CSV, "key"))

    def test_submit_rows_uses_first_row_headers(self, settings, fake_api):
        async def scenario():
            service = make_service(settings, fake_api)
            result = await service.submit([{"url": ACME_URL}], "key")
            await service.close()
            return result

        assert asyncio.run(scenario()).detected_column == "url"


@pytest.mark.unit
class TestProgressAndResults:

    def test_subscribe_follows_job_to_completion(self, settings, fake_api):
        async def scenario():
            service = make_service(settings, fake_api)
            result = await service.submit_csv(CSV, "key")
            events = await service.subscribe(result.job_id)
            snapshots = [s async for s in events if s is not None]
            csv_text = await service.export_csv(result.job_id)
            await service.close()
            return snapshots, csv_text

        snapshots, csv_text = asyncio.run(scenario())

        assert snapshots[0]["phase"] == "queued"
        assert snapshots[-1]["phase"] == "done"
        assert snapshots[-1]["employeesFound"] == 2
        lines = csv_text.strip().splitlines()
        assert lines[0].startswith("company_name,company_linkedin_url")
        assert len(lines) == 3

    def test_late_subscriber_gets_final_snapshot(self, settings, fake_api):
        async def scenario():
            service = make_service(settings, fake_api)
            result = await service.submit_csv(CSV, "key")
            await (await service.get_job(result.job_id)).task
            events = await service.subscribe(result.job_id)
            snapshots = [s async for s in events]
            await service.close()
            return snapshots

        snapshots = asyncio.run(scenario())

        assert len(snapshots) == 1
        assert snapshots[0]["phase"] == "done"

    def test_results_not_ready_while_running(self, settings, fake_api):
        async def scenario():
            service = make_service(settings, fake_api)
            result = await service.submit_csv(CSV, "key")
            try:
                with pytest.raises(JobNotReadyError):
                    await service.get_results(result.job_id)
            finally:
                await service.close()

        asyncio.run(scenario())

    def test_unknown_job(self, settings, fake_api):
        service = make_service(settings, fake_api)

        with pytest.raises(JobNotFoundError):
            asyncio.run(service.subscribe("nope"))
        with pytest.raises(JobNotFoundError):
            asyncio.run(service.get_results("nope"))
