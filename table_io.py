"""
CSV reading and writing at the edge of the enrichment engine
"""
import io
from dataclasses import dataclass
from typing import Dict, Iterable, List

import pandas as pd

from models import RESULT_COLUMNS, InvalidSubmissionError, ResultRow


class TableParseError(InvalidSubmissionError):
    """The uploaded table could not be read or holds no data"""
    pass


class UploadTooLargeError(TableParseError):
    """The uploaded table exceeds the configured size limit"""
    pass


@dataclass
class ParsedTable:
    headers: List[str]
    rows: List[Dict[str, str]]


def parse_csv(data: bytes) -> ParsedTable:
    """
    Read an uploaded CSV into header names and string-valued rows

    A UTF-8 BOM is tolerated, blank lines are skipped and every header and
    cell is whitespace-trimmed. Every value is kept as text. The first line is
    the header: a data row wider than it is rejected, a shorter one is padded
    with empty cells.

    Raises:
        TableParseError: If the data cannot be parsed, has duplicate column
            names or has no data rows
    """
    try:
        df = pd.read_csv(
            io.BytesIO(data),
            header=None,
            index_col=False,
            dtype=str,
            keep_default_na=False,
            encoding="utf-8-sig",
            skip_blank_lines=True,
            on_bad_lines="error",
        )
    except pd.errors.EmptyDataError:
        raise TableParseError("CSV has no data rows")
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise TableParseError(f"Could not parse CSV: {e}")

    if len(df) < 2:
        raise TableParseError("CSV has no data rows")

    df = df.fillna("").apply(lambda column: column.str.strip())
    headers = df.iloc[0].tolist()

    duplicates = sorted({name for name in headers if headers.count(name) > 1})
    if duplicates:
        raise TableParseError(f"Duplicate column names: {', '.join(duplicates)}")

    body = df.iloc[1:].set_axis(headers, axis=1)
    return ParsedTable(headers=headers, rows=body.to_dict(orient="records"))


def results_to_csv(results: Iterable[ResultRow]) -> str:
    """Serialize result rows with the fixed output column order"""
    df = pd.DataFrame([row.model_dump() for row in results], columns=RESULT_COLUMNS)
    return df.to_csv(index=False)
