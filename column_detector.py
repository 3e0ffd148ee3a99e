"""
Input schema detection from table header names
"""
import re
from typing import List, Optional, Sequence

from loguru import logger

from models import ColumnMapping, InvalidSubmissionError


class ColumnDetectionError(InvalidSubmissionError):
    """No column holding the company LinkedIn URL could be found"""
    def __init__(self, headers: Sequence[str]):
        super().__init__(
            f"No LinkedIn URL column found. Columns detected: {', '.join(headers)}"
        )
        self.headers = list(headers)


# Most to least specific; within a tier the first header in table order wins
COMPANY_URL_PATTERNS: List[re.Pattern] = [
    re.compile(r"^(company.?linkedin|linkedin.?url|linkedin.?profile)", re.IGNORECASE),
    re.compile(r"linkedin", re.IGNORECASE),
    re.compile(r"^url$", re.IGNORECASE),
]

NAME_PATTERN = re.compile(r"^(company.?name|name|company)$", re.IGNORECASE)
DOMAIN_PATTERN = re.compile(r"^(domain|website|company.?domain)$", re.IGNORECASE)
LOCATION_PATTERN = re.compile(r"^(location|city|headquarters)$", re.IGNORECASE)
SIZE_PATTERN = re.compile(r"^(size|employees|company.?size|headcount)$", re.IGNORECASE)


def _first_match(headers: Sequence[str], pattern: re.Pattern) -> Optional[str]:
    for header in headers:
        if pattern.search(header):
            return header
    return None


def detect_company_url_column(headers: Sequence[str]) -> str:
    """
    Find the header holding the company LinkedIn URL

    Raises:
        ColumnDetectionError: If no header matches any pattern
    """
    for pattern in COMPANY_URL_PATTERNS:
        column = _first_match(headers, pattern)
        if column is not None:
            return column
    raise ColumnDetectionError(headers)


def detect_columns(headers: Sequence[str]) -> ColumnMapping:
    """
    Resolve every column role from the header names

    Only the company URL column is required; optional roles that cannot be
    found are left as None.
    """
    mapping = ColumnMapping(
        company_url=detect_company_url_column(headers),
        name=_first_match(headers, NAME_PATTERN),
        domain=_first_match(headers, DOMAIN_PATTERN),
        location=_first_match(headers, LOCATION_PATTERN),
        size=_first_match(headers, SIZE_PATTERN),
    )
    logger.debug(f"Detected columns: {mapping.model_dump(exclude_none=True)}")
    return mapping
