"""
Shared fixtures for the enrichment service tests.

Puts the project root on sys.path and provides a fake Blitz API served
through httpx.MockTransport, so no test touches the network or real timers.
"""
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

import httpx
import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from blitz_client import EMAIL_ENDPOINT, PHONE_ENDPOINT, SEARCH_ENDPOINT, BlitzClient  # noqa: E402
from config import Settings  # noqa: E402

ACME_URL = "https://www.linkedin.com/company/acme"


class FakeBlitzAPI:
    """In-memory stand-in for the Blitz API that records every call"""

    def __init__(
        self,
        employees: Optional[Dict[str, List[dict]]] = None,
        emails: Optional[Dict[str, dict]] = None,
        phones: Optional[Dict[str, dict]] = None,
    ):
        self.employees = employees or {}
        self.emails = emails or {}
        self.phones = phones or {}
        self.calls: List[tuple] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content.decode("utf-8"))
        path = request.url.path
        self.calls.append((path, body, request.headers.get("x-api-key")))

        if path == SEARCH_ENDPOINT:
            records = self.employees.get(body["company_linkedin_url"], [])
            size = body["max_results"]
            start = (body["page"] - 1) * size
            return httpx.Response(200, json={"results": records[start:start + size]})
        if path == EMAIL_ENDPOINT:
            data = self.emails.get(body["person_linkedin_url"])
            return httpx.Response(200, json=data) if data else httpx.Response(404)
        if path == PHONE_ENDPOINT:
            data = self.phones.get(body["person_linkedin_url"])
            return httpx.Response(200, json=data) if data else httpx.Response(422)
        return httpx.Response(404)

    def calls_to(self, path: str) -> List[dict]:
        return [body for call_path, body, _ in self.calls if call_path == path]


def make_employee(slug: str, company_url: str = ACME_URL, **overrides) -> dict:
    record = {
        "full_name": f"{slug.title()} Person",
        "first_name": slug.title(),
        "last_name": "Person",
        "headline": f"{slug.title()} at Acme",
        "linkedin_url": f"https://www.linkedin.com/in/{slug}",
        "connections_count": 500,
        "location": {"city": "Austin", "state_code": "TX", "country_code": "US"},
        "experiences": [
            {"job_title": "Engineer", "company_linkedin_url": company_url, "job_is_current": True},
        ],
    }
    record.update(overrides)
    return record


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def settings() -> Settings:
    return Settings(
        blitz_base_url="https://blitz.test",
        page_size=2,
        request_delay=0,
        keepalive_interval=60,
        job_retention_seconds=3600,
        log_file_enabled=False,
    )


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def recording_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
    return _sleep


@pytest.fixture
def fake_api() -> FakeBlitzAPI:
    alice = make_employee("alice")
    bob = make_employee("bob")
    return FakeBlitzAPI(
        employees={ACME_URL: [alice, bob]},
        emails={
            alice["linkedin_url"]: {"email": "alice@acme.com", "email_status": "valid"},
            bob["linkedin_url"]: {"email": "bob@acme.com", "email_status": "catch_all"},
        },
        phones={alice["linkedin_url"]: {"phone": "+15125550100"}},
    )


def build_client(settings: Settings, handler, sleep=no_sleep) -> BlitzClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BlitzClient(settings, http_client=http_client, sleep=sleep)
