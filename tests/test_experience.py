"""
Tests for picking the relevant experience entry and job title.
"""
import pytest

from experience import company_slug, resolve_experience, resolve_job_title
from models import Employee, Experience

ACME = "https://www.linkedin.com/company/acme/"


def exp(title, company="", current=False):
    return Experience(job_title=title, company_linkedin_url=company, job_is_current=current)


@pytest.mark.unit
class TestResolveExperience:

    def test_prefers_current_entry_at_target_company(self):
        entries = [
            exp("Advisor", "https://www.linkedin.com/company/other", current=True),
            exp("Former CTO", "https://www.linkedin.com/company/acme", current=False),
            exp("CTO", "https://linkedin.com/company/acme", current=True),
        ]

        assert resolve_experience(entries, ACME).job_title == "CTO"

    def test_falls_back_to_any_current_entry(self):
        entries = [
            exp("Intern", "https://www.linkedin.com/company/past"),
            exp("Advisor", "https://www.linkedin.com/company/other", current=True),
        ]

        assert resolve_experience(entries, ACME).job_title == "Advisor"

    def test_falls_back_to_first_entry(self):
        entries = [exp("First"), exp("Second")]

        assert resolve_experience(entries, ACME).job_title == "First"

    def test_empty_history_gives_placeholder(self):
        placeholder = resolve_experience([], ACME)

        assert placeholder.job_title is None
        assert placeholder.job_is_current is False

    def test_company_slug(self):
        assert company_slug("https://www.linkedin.com/company/acme/") == "acme"
        assert company_slug("https://www.linkedin.com/company/acme-inc") == "acme-inc"
        assert company_slug("acme") == "acme"


@pytest.mark.unit
class TestResolveJobTitle:

    def test_uses_experience_title(self):
        employee = Employee(headline="Builder", experiences=[exp("Engineer", ACME, current=True)])

        assert resolve_job_title(employee, ACME) == "Engineer"

    def test_falls_back_to_headline(self):
        employee = Employee(headline="Builder at Acme", experiences=[exp(None, ACME, current=True)])

        assert resolve_job_title(employee, ACME) == "Builder at Acme"

    def test_null_history_from_provider(self):
        employee = Employee.model_validate({"headline": "Builder", "experiences": None})

        assert resolve_job_title(employee, ACME) == "Builder"

    def test_nothing_known(self):
        assert resolve_job_title(Employee(), ACME) == ""
