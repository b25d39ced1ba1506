"""
Input loading — turns a delimited export into validated verification requests.

Header names are matched loosely (case, spacing and punctuation ignored) so
both English and Polish exports work without a fixed template. A row that is
incomplete or malformed is skipped and logged with its line number; one bad
row never aborts the rest of the file.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from pathlib import Path

from pydantic import ValidationError

from .exceptions import InputError, RowError
from .models import DetectedFormat, VerificationRequest, sanitize_field

logger = logging.getLogger(__name__)

# ─── Header Synonyms ─────────────────────────────────────────────────
# Keys are model field names; values are normalized header spellings.

HEADER_SYNONYMS: dict[str, frozenset[str]] = {
    "first_name": frozenset({
        "firstname", "first", "givenname", "imie", "imię",
        "imiepierwsze", "imiępierwsze",
    }),
    "last_name": frozenset({
        "lastname", "last", "surname", "familyname", "nazwisko",
    }),
    "document_number": frozenset({
        "documentnumber", "document", "documentno", "licensenumber",
        "licenseno", "license", "blanknumber", "numerblankietu",
        "seriablankietu", "serianumerblankietu", "serianumerblankietudruku",
        "numerdokumentu", "numerprawajazdy",
    }),
}

_NON_WORD = re.compile(r"[\W_]+", re.UNICODE)


def normalize_header(name: str) -> str:
    """'First Name', 'first_name' and 'FIRST-NAME' all become 'firstname'."""
    return _NON_WORD.sub("", name.replace("\ufeff", "")).lower()


def resolve_columns(header: list[str]) -> dict[str, int]:
    """Map each logical field to the index of the first matching column."""
    columns: dict[str, int] = {}
    for index, name in enumerate(header):
        normalized = normalize_header(name)
        for field_name, synonyms in HEADER_SYNONYMS.items():
            if field_name not in columns and normalized in synonyms:
                columns[field_name] = index
                break
    return columns


# ─── Public API ──────────────────────────────────────────────────────


def load_requests(
    path: str | Path,
    fmt: DetectedFormat,
    rejected: list[RowError] | None = None,
) -> list[VerificationRequest]:
    """Load every usable row of an input file, in file order.

    Args:
        path: The delimited input file.
        fmt: Encoding and delimiter, usually from detect_format().
        rejected: Optional collector for the rows that were skipped.

    Returns:
        The requests, eagerly materialized. Duplicates are kept.

    Raises:
        InputError: The file is missing or unreadable.
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise InputError(f"Cannot read input file {path}: {e}", {"path": str(path)}) from e

    try:
        text = raw.decode(fmt.encoding, errors="replace")
    except LookupError as e:
        raise InputError(f"Unknown encoding {fmt.encoding!r}", {"path": str(path)}) from e

    return parse_requests(text.lstrip("\ufeff"), fmt.delimiter, rejected)


def parse_requests(
    text: str,
    delimiter: str = ",",
    rejected: list[RowError] | None = None,
) -> list[VerificationRequest]:
    """Parse already-decoded delimited text into requests."""
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)

    header = _read_header(reader)
    if header is None:
        logger.warning("Input has no header row; nothing to verify")
        return []

    columns = resolve_columns(header)
    missing = [name for name in HEADER_SYNONYMS if name not in columns]
    if missing:
        logger.warning("Input header %s lacks columns for: %s", header, ", ".join(missing))

    requests: list[VerificationRequest] = []
    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            logger.warning("Skipping malformed row at line %d: %s", reader.line_num, e)
            if rejected is not None:
                rejected.append(RowError(reader.line_num, f"malformed row: {e}"))
            continue

        if not any(cell.strip() for cell in row):
            continue

        try:
            requests.append(_build_request(row, columns, reader.line_num))
        except RowError as e:
            logger.warning("Skipping row at line %d: %s", e.line_number, e)
            if rejected is not None:
                rejected.append(e)

    logger.info("Loaded %d request(s) from input", len(requests))
    return requests


# ─── Internal Helpers ────────────────────────────────────────────────


def _read_header(reader) -> list[str] | None:
    """Return the first non-blank row, or None for an empty file."""
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return None
        except csv.Error as e:
            logger.warning("Skipping malformed header line %d: %s", reader.line_num, e)
            continue
        if any(cell.strip() for cell in row):
            return row


def _build_request(row: list[str], columns: dict[str, int], line_number: int) -> VerificationRequest:
    values: dict[str, str] = {}
    for field_name in HEADER_SYNONYMS:
        index = columns.get(field_name)
        raw = row[index] if index is not None and index < len(row) else ""
        values[field_name] = sanitize_field(raw)

    empty = [name for name, value in values.items() if not value]
    if empty:
        raise RowError(
            line_number,
            f"missing required field(s): {', '.join(empty)}",
            {"missing": empty},
        )

    try:
        return VerificationRequest(**values)
    except ValidationError as e:
        raise RowError(line_number, f"invalid row: {e.errors()[0]['msg']}") from e
