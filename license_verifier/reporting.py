"""
Diagnostic stream for failed requests.

Each failed request produces exactly one JSON object on the
'license_verifier.failures' logger, separate from the tabular report, so the
failures of a run can be grepped or re-fed as a new input file. Registry
faults additionally get a readable breakdown for the operator.
"""

from __future__ import annotations

import logging

from .exceptions import RegistryFault
from .models import FailureLogEntry, VerificationRequest

logger = logging.getLogger(__name__)
failure_logger = logging.getLogger("license_verifier.failures")


def log_request_failure(
    request: VerificationRequest,
    error_label: str,
    error_details: str | None = None,
) -> FailureLogEntry:
    """Emit one structured entry for a failed request and return it."""
    entry = FailureLogEntry(
        first_name=request.first_name,
        last_name=request.last_name,
        document_number=request.document_number,
        error_label=error_label,
        error_details=error_details,
    )
    failure_logger.error(entry.model_dump_json())
    return entry


def describe_fault(fault: RegistryFault) -> str | None:
    """One line per fault message: '[type] CODE message (detail) id:ID'."""
    lines: list[str] = []
    for message in fault.messages:
        if message is None:
            continue

        line = f"[{message.type}] "
        if message.code and message.code.strip():
            line += f"{message.code.strip()} "
        if message.message and message.message.strip():
            line += message.message.strip()
        if message.detail and message.detail.strip():
            line += f" ({message.detail.strip()})"
        if message.error_id and message.error_id.strip():
            line += f" id:{message.error_id.strip()}"
        lines.append(line.rstrip())

    return "\n".join(lines) if lines else None


def report_fault(request: VerificationRequest, fault: RegistryFault) -> FailureLogEntry:
    """Log a registry fault for the diagnostic stream and for the operator."""
    entry = log_request_failure(request, f"SOAP Fault: {fault.fault_code}", describe_fault(fault))

    logger.warning("  Fault Code: %s", fault.fault_code)
    logger.warning("  Fault Reason: %s", fault.reason)
    for message in fault.messages:
        logger.warning(
            "    Type: %s | Code: %s | Message: %s%s%s",
            message.type,
            message.code or "",
            message.message or "",
            f" | Details: {message.detail}" if message.detail else "",
            f" | Error ID: {message.error_id}" if message.error_id else "",
        )

    return entry
