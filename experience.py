"""
Pick the work-history entry that belongs to the company being enriched
"""
from typing import List

from models import Employee, Experience


def company_slug(company_url: str) -> str:
    """Return the path segment after "/company/" (the whole URL if there is none)"""
    return company_url.rstrip("/").split("/company/")[-1]


def resolve_experience(experiences: List[Experience], company_url: str) -> Experience:
    """
    Select the most relevant experience entry for a company

    Priority: the current entry at this company, then any current entry, then
    the first entry. An empty history yields an empty placeholder.
    """
    slug = company_slug(company_url)

    for exp in experiences:
        if exp.job_is_current and slug and slug in (exp.company_linkedin_url or ""):
            return exp

    for exp in experiences:
        if exp.job_is_current:
            return exp

    return experiences[0] if experiences else Experience()


def resolve_job_title(employee: Employee, company_url: str) -> str:
    """Job title at the company, falling back to the employee's headline"""
    exp = resolve_experience(employee.experiences, company_url)
    return exp.job_title or employee.headline or ""
