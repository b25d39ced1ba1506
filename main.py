#!/usr/bin/env python3
"""
License Verifier — Entry Point
===============================

Verifies every driver license listed in a delimited file against the
registry and writes one report row per license category.

Usage:
    python main.py drivers.csv                        # → drivers_results.csv
    python main.py drivers.csv -o out/report.csv
    LICENSE_VERIFIER_LOG_LEVEL=DEBUG python main.py drivers.csv

Configuration comes from LICENSE_VERIFIER_* environment variables or .env
(endpoint URL, client certificate, delays); see license_verifier/config.py.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from license_verifier.backoff import BackoffController, CancellableSleeper
from license_verifier.client import VerificationClient
from license_verifier.config import Settings, get_settings
from license_verifier.exceptions import ConfigurationError
from license_verifier.logging_setup import configure_logging
from license_verifier.models import RunReport, RunStatus
from license_verifier.pipeline import BatchVerificationPipeline
from license_verifier.transport import SoapRegistryTransport

logger = logging.getLogger("license_verifier")


# ─── ANSI Color Constants ───────────────────────────────────────────

_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_BOLD = "\033[1m"
_RESET = "\033[0m"
_WIDTH = 72


# ─── Pretty Printer ─────────────────────────────────────────────────


def print_summary(report: RunReport) -> int:
    """Print the run summary. Returns the process exit status."""
    if report.status == RunStatus.SUCCESS:
        color = _GREEN
    elif report.aborted or report.status == RunStatus.NO_INPUT:
        color = _RED
    else:
        color = _YELLOW

    print(f"\n{'=' * _WIDTH}")
    print(f"{_BOLD}{_CYAN}  LICENSE VERIFICATION SUMMARY{_RESET}")
    print(f"{'=' * _WIDTH}")
    print(f"  Requests:    {report.requests_total}")
    print(f"  Succeeded:   {report.requests_succeeded}")
    print(f"  Faulted:     {report.requests_faulted}")
    print(f"  Failed:      {report.requests_failed}")
    print(f"  Rows skipped:{report.skipped_rows:>4}")
    print(f"  Rows written:{report.rows_written:>4}  →  {report.output_path}")
    print(f"{'─' * _WIDTH}")
    print(f"  {color}{_BOLD}{report.status.name}{' (run aborted)' if report.aborted else ''}{_RESET}")
    print(f"{'=' * _WIDTH}\n")

    return report.status.value


# ─── Main ────────────────────────────────────────────────────────────


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="license-verifier",
        description="Batch-verify driver licenses against the registry.",
    )
    parser.add_argument("input", help="Delimited file with first name, last name, document number")
    parser.add_argument("-o", "--output", help="Report file (default: <input>_results.csv)")
    parser.add_argument("--log-level", help="Override LICENSE_VERIFIER_LOG_LEVEL")
    return parser.parse_args(argv)


def default_output_path(input_path: Path) -> Path:
    return input_path.with_name(f"{input_path.stem}_results.csv")


def run(args: argparse.Namespace, settings: Settings) -> RunStatus:
    input_path = settings.resolve(args.input)
    output_path = settings.resolve(args.output) if args.output else default_output_path(input_path)

    try:
        transport = SoapRegistryTransport(
            settings.endpoint_url,
            settings.client_cert_path,
            key_path=settings.client_key_path,
            verify=settings.verify_server_certificate,
            timeout=settings.request_timeout_seconds,
            namespace=settings.soap_namespace,
            soap_action=settings.soap_action,
        )
    except ConfigurationError as e:
        logger.error("%s", e)
        return RunStatus.NO_INPUT

    sleeper = CancellableSleeper()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: sleeper.cancel())

    backoff = BackoffController(
        initial_delay=settings.backoff_initial_delay_seconds,
        delay_ceiling=settings.backoff_max_delay_seconds,
        sleep=sleeper,
    )
    try:
        with VerificationClient(transport, backoff) as client:
            pipeline = BatchVerificationPipeline(
                client,
                delay_range_ms=(settings.delay_lower_bound_ms, settings.delay_upper_bound_ms),
                sleep=sleeper,
                output_delimiter=settings.output_delimiter,
                output_encoding=settings.output_encoding,
                expiry_sentinel=settings.expiry_sentinel,
            )
            report = pipeline.run(input_path, output_path)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    return RunStatus(print_summary(report))


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, run the batch and exit with its status."""
    load_dotenv()
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    status = run(args, settings)
    sys.exit(status.value)


if __name__ == "__main__":
    main()
