"""
Custom exception hierarchy for license verification.

Each exception type maps to one failure class of a batch run, so the
pipeline can decide precisely whether to skip a row, skip a request or
abort the whole run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import FaultMessage


class LicenseVerificationError(Exception):
    """Base exception for all license verification failures."""

    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(LicenseVerificationError):
    """The endpoint or the client certificate is missing or unusable."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class InputError(LicenseVerificationError):
    """The input file is missing or cannot be read at all."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("INPUT_ERROR", message, details)


class RowError(LicenseVerificationError):
    """A single input row is incomplete or malformed."""

    def __init__(self, line_number: int, message: str, details: dict | None = None):
        self.line_number = line_number
        super().__init__("ROW_ERROR", message, {"line_number": line_number, **(details or {})})


class RegistryFault(LicenseVerificationError):
    """Structured rejection returned by the registry (a SOAP Fault)."""

    def __init__(
        self,
        fault_code: str,
        reason: str,
        messages: list[FaultMessage] | None = None,
    ):
        self.fault_code = fault_code
        self.reason = reason
        self.messages = list(messages or [])
        super().__init__(
            "REGISTRY_FAULT",
            f"Registry fault {fault_code}: {reason}",
            {"fault_code": fault_code, "reason": reason},
        )


class TransportFailure(LicenseVerificationError):
    """Anything else that went wrong talking to the registry."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("TRANSPORT_FAILURE", message, details)


class BackoffExhausted(LicenseVerificationError):
    """The registry kept throttling beyond the configured backoff ceiling."""

    def __init__(self, attempts: int, delay: float):
        self.attempts = attempts
        self.delay = delay
        super().__init__(
            "BACKOFF_EXHAUSTED",
            (
                f"Server returned HTTP 429 {attempts} times. Next retry delay of "
                f"{delay:g}s exceeds the backoff limit."
            ),
            {"attempts": attempts, "delay_seconds": delay},
        )


class OutputWriteError(LicenseVerificationError):
    """The output artifact could not be opened or written."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("OUTPUT_WRITE_FAILED", message, details)


class RunCancelled(LicenseVerificationError):
    """The operator cancelled the run."""

    def __init__(self, message: str = "Run cancelled by operator", details: dict | None = None):
        super().__init__("RUN_CANCELLED", message, details)
