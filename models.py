"""
Pydantic models for Employee Enrichment Service
"""
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, validator


class JobPhase(str, Enum):
    """Coarse lifecycle stage of an enrichment job"""
    QUEUED = "queued"
    ENRICHING = "enriching"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobPhase.DONE, JobPhase.ERROR)

    @property
    def rank(self) -> int:
        return _PHASE_RANK[self]


_PHASE_RANK = {
    JobPhase.QUEUED: 0,
    JobPhase.ENRICHING: 1,
    JobPhase.DONE: 2,
    JobPhase.ERROR: 2,
}


class InvalidPhaseTransition(ValueError):
    """Raised when a status update would move a job backwards"""
    pass


class InvalidSubmissionError(ValueError):
    """A submission that cannot become a job"""
    pass


class ColumnMapping(BaseModel):
    """Input columns resolved per role; only the company URL column is mandatory"""
    company_url: str
    name: Optional[str] = None
    domain: Optional[str] = None
    location: Optional[str] = None
    size: Optional[str] = None


class JobOptions(BaseModel):
    """Caller-supplied flags for a job"""
    skip_phone: bool = False


class JobStatus(BaseModel):
    """Live snapshot of a job, serialized with the camelCase keys the progress feed uses"""
    model_config = ConfigDict(populate_by_name=True)

    phase: JobPhase = JobPhase.QUEUED
    company_current: int = Field(0, alias="companyCurrent")
    company_total: int = Field(0, alias="companyTotal")
    current_company_name: str = Field("", alias="currentCompanyName")
    employees_found: int = Field(0, alias="employeesFound")
    emails_found: int = Field(0, alias="emailsFound")
    phones_found: int = Field(0, alias="phonesFound")
    done: bool = False
    error: Optional[str] = None

    def apply(self, **delta) -> "JobStatus":
        """
        Merge a delta into the snapshot in place

        Fields not named in the delta keep their prior value. Phase changes
        may only move forward and never leave a terminal phase.

        Raises:
            InvalidPhaseTransition: If the delta would move the phase backwards
            KeyError: If the delta names an unknown field
        """
        unknown = set(delta) - set(type(self).model_fields)
        if unknown:
            raise KeyError(f"Unknown status fields: {sorted(unknown)}")

        if "phase" in delta:
            new_phase = JobPhase(delta["phase"])
            if new_phase != self.phase:
                if self.phase.is_terminal or new_phase.rank <= self.phase.rank:
                    raise InvalidPhaseTransition(
                        f"Cannot move job from {self.phase.value} to {new_phase.value}"
                    )
            delta["phase"] = new_phase

        for field, value in delta.items():
            setattr(self, field, value)
        return self

    def to_payload(self) -> dict:
        """Serialize for the progress feed"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _text_or_none(value):
    """Provider scalars as text; structured or missing values become None"""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


class Experience(BaseModel):
    """One entry of an employee's work history"""
    job_title: Optional[str] = None
    company_linkedin_url: Optional[str] = None
    job_is_current: bool = False

    @validator("job_title", "company_linkedin_url", pre=True)
    def coerce_text(cls, v):
        return _text_or_none(v)

    @validator("job_is_current", pre=True)
    def coerce_current(cls, v):
        return bool(v)


class EmployeeLocation(BaseModel):
    city: Optional[str] = None
    state_code: Optional[str] = None
    country_code: Optional[str] = None

    @validator("city", "state_code", "country_code", pre=True)
    def coerce_text(cls, v):
        return _text_or_none(v)


class Employee(BaseModel):
    """
    Employee record returned by the employee finder

    Provider data is accepted leniently: odd shapes degrade to empty values
    instead of failing the record.
    """
    full_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    headline: Optional[str] = None
    linkedin_url: Optional[str] = None
    connections_count: Optional[Union[int, str]] = None
    location: Optional[EmployeeLocation] = None
    experiences: List[Experience] = Field(default_factory=list)

    @validator("full_name", "first_name", "last_name", "headline", "linkedin_url", pre=True)
    def coerce_text(cls, v):
        return _text_or_none(v)

    @validator("connections_count", pre=True)
    def coerce_count(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return v
        return _text_or_none(v)

    @validator("experiences", pre=True)
    def default_experiences(cls, v):
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, (dict, Experience))]

    @validator("location", pre=True)
    def default_location(cls, v):
        if isinstance(v, EmployeeLocation):
            return v
        return v if isinstance(v, dict) and v else None


class ResultRow(BaseModel):
    """One output record; missing enrichment values are empty strings"""
    company_name: str = ""
    company_linkedin_url: str = ""
    company_domain: str = ""
    company_location: str = ""
    company_size: str = ""
    full_name: str = ""
    first_name: str = ""
    last_name: str = ""
    job_title: str = ""
    headline: str = ""
    person_linkedin_url: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    email: str = ""
    email_status: str = ""
    phone_mobile: str = ""
    connections_count: str = ""


RESULT_COLUMNS: List[str] = list(ResultRow.model_fields)


class SubmissionResult(BaseModel):
    """Response to a successful job submission"""
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    total_rows: int = Field(alias="totalRows")
    detected_column: str = Field(alias="detectedColumn")
