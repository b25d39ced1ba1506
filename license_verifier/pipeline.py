"""
Batch pipeline — orchestrates a full verification run.

Flow:
  ┌────────────┐
  │ Input file │
  └─────┬──────┘
        │
  ┌─────▼──────┐
  │  Detect    │   ← Encoding + delimiter heuristics
  │  format    │
  └─────┬──────┘
        │
  ┌─────▼──────┐
  │   Load     │   ← Bad rows skipped and logged, never fatal
  └─────┬──────┘
        │
  ┌─────▼──────┐     ┌─────────────┐
  │  Verify    │ ◄── │  Backoff    │   ← One request at a time, 429 → wait
  │ (registry) │     │ controller  │
  └─────┬──────┘     └─────────────┘
        │
  ┌─────▼──────┐
  │  Flatten   │   ← One row per license category
  └─────┬──────┘
        │
  ┌─────▼──────┐
  │  Stream    │   ← Flushed after every request
  │  report    │
  └────────────┘

Design principles:
  - Requests are issued strictly sequentially, with a random courtesy delay
    between them. The delay adds to any backoff wait; it is not replaced by it.
  - A registry fault or transport failure skips one request, never the run.
  - BackoffExhausted, an unwritable output file and operator cancellation
    abort the run. Rows already written stay on disk.
  - The final status is the worst outcome seen, not the last one.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Sequence
from datetime import date
from pathlib import Path
from typing import Optional

from .backoff import CancellableSleeper, raise_if_cancelled
from .client import VerificationClient
from .exceptions import (
    BackoffExhausted,
    InputError,
    OutputWriteError,
    RegistryFault,
    RowError,
    RunCancelled,
)
from .format_detect import detect_format
from .loader import load_requests
from .models import CategoryRecord, DetectedFormat, RunReport, RunStatus, VerificationRequest
from .reporting import log_request_failure, report_fault
from .writer import ReportWriter

logger = logging.getLogger(__name__)


class BatchVerificationPipeline:
    """Runs every request of an input file through the registry.

    Usage:
        with VerificationClient(transport, backoff) as client:
            pipeline = BatchVerificationPipeline(client)
            report = pipeline.run("drivers.csv", "drivers_results.csv")
        sys.exit(report.status.value)
    """

    def __init__(
        self,
        client: VerificationClient,
        delay_range_ms: tuple[int, int] = (500, 1000),
        sleep: Callable[[float], None] | None = None,
        rng: random.Random | None = None,
        output_delimiter: str = ",",
        output_encoding: str = "utf-8",
        expiry_sentinel: Optional[date] = None,
    ):
        lower, upper = delay_range_ms
        if lower < 0 or upper < lower:
            raise ValueError(f"Invalid courtesy delay window: {delay_range_ms}")

        self.client = client
        self.delay_range_ms = (lower, upper)
        self._sleep = sleep or CancellableSleeper()
        self._rng = rng or random.Random()
        self.output_delimiter = output_delimiter
        self.output_encoding = output_encoding
        self.expiry_sentinel = expiry_sentinel

    def run(
        self,
        input_path: str | Path,
        output_path: str | Path,
        fmt: DetectedFormat | None = None,
    ) -> RunReport:
        """Execute the whole batch.

        Args:
            input_path: Delimited file with first name, last name and document number.
            output_path: Where the report is written (always gets a header row).
            fmt: Input format; detected from the file when omitted.

        Returns:
            RunReport whose status is the process exit status.
        """
        report = RunReport(output_path=str(output_path))

        # ── Step 1: Load requests ───────────────────────────────────
        rejected: list[RowError] = []
        requests: list[VerificationRequest] = []
        try:
            fmt = fmt or detect_format(input_path)
            requests = load_requests(input_path, fmt, rejected)
        except InputError as e:
            logger.error("%s", e)
            report.status = RunStatus.NO_INPUT

        report.requests_total = len(requests)
        report.skipped_rows = len(rejected)
        if not requests:
            logger.info("No requests to verify; writing an empty report")

        # ── Step 2: Verify and stream ───────────────────────────────
        writer = ReportWriter(
            output_path,
            delimiter=self.output_delimiter,
            encoding=self.output_encoding,
            expiry_sentinel=self.expiry_sentinel,
        )
        try:
            with writer:
                self._process(requests, writer, report)
        except OutputWriteError as e:
            logger.error("Output failure, aborting run: %s", e)
            report.status = RunStatus.OUTPUT_ERROR
            report.aborted = True
        except RunCancelled as e:
            logger.warning("%s; %d row(s) kept in %s", e, writer.rows_written, output_path)
            report.status = RunStatus.CANCELLED
            report.aborted = True

        # ── Step 3: Summarize ───────────────────────────────────────
        report.rows_written = writer.rows_written
        logger.info(
            "Finished: %d row(s) written, %d/%d request(s) succeeded, status %s",
            report.rows_written,
            report.requests_succeeded,
            report.requests_total,
            report.status.name,
        )
        return report

    # ─── Request Loop ────────────────────────────────────────────────

    def _process(
        self,
        requests: Sequence[VerificationRequest],
        writer: ReportWriter,
        report: RunReport,
    ) -> None:
        total = len(requests)
        for index, request in enumerate(requests, start=1):
            if index > 1:
                self._courtesy_delay()
            raise_if_cancelled(self._sleep)

            logger.info(
                "[%d/%d] Verifying %s %s (%s)",
                index, total, request.first_name, request.last_name, request.document_number,
            )
            try:
                records = self.client.verify(request)
            except RegistryFault as e:
                report_fault(request, e)
                report.requests_faulted += 1
                report.status = report.status.worst(RunStatus.REGISTRY_FAULT)
                continue
            except BackoffExhausted as e:
                log_request_failure(request, "Backoff exhausted", str(e))
                report.status = report.status.worst(RunStatus.BACKOFF_EXHAUSTED)
                report.aborted = True
                logger.error("Aborting run: %s", e)
                return
            except RunCancelled:
                raise
            except Exception as e:  # TransportFailure or a bug further down
                self._record_failure(request, e, report)
                continue

            writer.write_records(records)
            report.requests_succeeded += 1
            self._log_records(request, records)

        # Cancelled during the last call
        raise_if_cancelled(self._sleep)

    def _record_failure(
        self, request: VerificationRequest, error: Exception, report: RunReport
    ) -> None:
        logger.error("  Call failed: %s", error)
        log_request_failure(request, "Call failed", str(error) or type(error).__name__)
        report.requests_failed += 1
        report.status = report.status.worst(RunStatus.TRANSPORT_FAILURE)

    def _courtesy_delay(self) -> None:
        lower, upper = self.delay_range_ms
        delay_ms = self._rng.uniform(lower, upper)
        logger.debug("Courtesy delay %.0f ms", delay_ms)
        self._sleep(delay_ms / 1000.0)

    @staticmethod
    def _log_records(request: VerificationRequest, records: Sequence[CategoryRecord]) -> None:
        if not records:
            logger.info("  No categories on file for %s", request.document_number)
            return
        for record in records:
            logger.info(
                "  %s | %s | %s | expires %s%s",
                record.license_number,
                record.category,
                record.status_text or "-",
                record.expiry_date.isoformat() if record.expiry_date else "n/a",
                f" | {record.revocation_reason_text}" if record.revocation_reason_text else "",
            )
