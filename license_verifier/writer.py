"""Streamed delimited report of verified license categories."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable
from datetime import date
from pathlib import Path
from typing import IO, Optional

from .exceptions import OutputWriteError
from .models import CategoryRecord

logger = logging.getLogger(__name__)

OUTPUT_COLUMNS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "license_number",
    "status",
    "category",
    "expiry_date",
    "revocation_reason",
)


class ReportWriter:
    """Writes the header on open, then rows as they come, flushing per request.

    The file is held open for the whole run and always closed on exit, so
    an interrupted run leaves every flushed row on disk.

    Args:
        expiry_sentinel: Written instead of an empty cell when a category has
            no expiry date. None (the default) keeps the cell empty.
    """

    def __init__(
        self,
        path: str | Path,
        delimiter: str = ",",
        encoding: str = "utf-8",
        expiry_sentinel: Optional[date] = None,
    ):
        self.path = Path(path)
        self.delimiter = delimiter
        self.encoding = encoding
        self.expiry_sentinel = expiry_sentinel
        self.rows_written = 0
        self._file: IO[str] | None = None
        self._writer = None

    def open(self) -> ReportWriter:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = self.path.open("w", encoding=self.encoding, newline="")
            self._writer = csv.writer(self._file, delimiter=self.delimiter)
            self._writer.writerow(OUTPUT_COLUMNS)
            self._file.flush()
        except (OSError, UnicodeError, LookupError) as e:
            self.close()
            raise OutputWriteError(f"Cannot open output file {self.path}: {e}") from e
        return self

    def write_records(self, records: Iterable[CategoryRecord]) -> int:
        """Write and flush the records of one request. Returns how many were written."""
        if self._writer is None or self._file is None:
            raise OutputWriteError(f"Output file {self.path} is not open")

        count = 0
        try:
            for record in records:
                self._writer.writerow(self._row(record))
                count += 1
                self.rows_written += 1
            self._file.flush()
        except (OSError, UnicodeError) as e:
            raise OutputWriteError(f"Cannot write to output file {self.path}: {e}") from e

        return count

    def close(self) -> None:
        if self._file is not None:
            try:
                self._file.close()
            except OSError as e:
                logger.error("Closing output file %s failed: %s", self.path, e)
            finally:
                self._file = None
                self._writer = None

    def __enter__(self) -> ReportWriter:
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _row(self, record: CategoryRecord) -> list[str]:
        expiry = record.expiry_date or self.expiry_sentinel
        return [
            record.first_name,
            record.last_name,
            record.license_number,
            record.status_text,
            record.category,
            expiry.isoformat() if expiry else "",
            record.revocation_reason_text or "",
        ]
