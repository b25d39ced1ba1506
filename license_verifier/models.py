"""
Pydantic models for license verification — strict typing at every boundary.

Requests are sanitized once, when they are created, and never change
afterwards. Registry responses are modelled loosely (everything Optional)
because the registry omits fields on partial responses; the flattener
decides what absence means.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ─── Sanitization ───────────────────────────────────────────────────

_STRIPPED_CATEGORIES = frozenset({"Cc", "Cf"})  # control, format


def sanitize_field(value: object) -> str:
    """Trim a raw field and drop control/format characters.

    Letters (accented included), digits, spaces, hyphens and apostrophes
    survive; tabs, NULs, zero-width marks and the like do not. Inner
    spacing is left as typed.
    """
    if value is None:
        return ""
    text = "".join(ch for ch in str(value) if unicodedata.category(ch) not in _STRIPPED_CATEGORIES)
    return text.strip()


# ─── Input ──────────────────────────────────────────────────────────


class VerificationRequest(BaseModel):
    """One license to verify. Identity is the (first, last, number) triple."""

    model_config = ConfigDict(frozen=True)

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    document_number: str = Field(min_length=1)

    @field_validator("first_name", "last_name", "document_number", mode="before")
    @classmethod
    def _sanitize(cls, value: object) -> str:
        return sanitize_field(value)


class DetectedFormat(BaseModel):
    """Encoding and delimiter inferred from an input file."""

    model_config = ConfigDict(frozen=True)

    encoding: str = "utf-8"
    delimiter: str = ","


# ─── Registry Response ──────────────────────────────────────────────


class CodedValue(BaseModel):
    """A dictionary entry from the registry: a code and its readable value."""

    code: Optional[str] = None
    value: Optional[str] = None


class LicenseCategory(BaseModel):
    """One category (A, B, C+E, ...) held on a license document."""

    category: Optional[str] = None
    expiry_date: Optional[date] = None
    # The wire format uses a default date when none is set, so only the flag is trusted
    expiry_date_specified: bool = False


class DocumentState(BaseModel):
    status: Optional[CodedValue] = None
    change_reasons: list[Optional[CodedValue]] = Field(default_factory=list)


class LicenseDocument(BaseModel):
    license_number: Optional[str] = None
    state: Optional[DocumentState] = None
    categories: Optional[list[Optional[LicenseCategory]]] = None


class RegistryResponse(BaseModel):
    """Body of a successful registry answer."""

    document: Optional[LicenseDocument] = None


class FaultMessage(BaseModel):
    """One detail message attached to a registry fault."""

    type: str = ""
    code: Optional[str] = None
    message: Optional[str] = None
    detail: Optional[str] = None
    error_id: Optional[str] = None


# ─── Output ─────────────────────────────────────────────────────────


class CategoryRecord(BaseModel):
    """A single output row: one license category of one verified person."""

    first_name: str
    last_name: str
    license_number: str
    status_text: str
    category: str
    expiry_date: Optional[date] = None
    revocation_reason_text: Optional[str] = None


class FailureLogEntry(BaseModel):
    """Diagnostic entry written once per failed request."""

    first_name: str
    last_name: str
    document_number: str
    error_label: str
    error_details: Optional[str] = None


# ─── Backoff ────────────────────────────────────────────────────────


@dataclass
class BackoffState:
    """Throttling pressure observed by one client over its lifetime."""

    current_delay: float
    attempts: int = 0


# ─── Run Outcome ────────────────────────────────────────────────────


class RunStatus(int, Enum):
    """Process exit status of a batch run."""

    SUCCESS = 0
    REGISTRY_FAULT = -1
    TRANSPORT_FAILURE = -2
    OUTPUT_ERROR = -3
    NO_INPUT = -4  # No usable input file or credential
    BACKOFF_EXHAUSTED = -5
    CANCELLED = -6

    @property
    def severity(self) -> int:
        """Ordinal used to keep the worst per-request outcome of a run."""
        return _SEVERITY[self]

    def worst(self, other: RunStatus) -> RunStatus:
        return other if other.severity > self.severity else self


_SEVERITY: dict[RunStatus, int] = {
    RunStatus.SUCCESS: 0,
    RunStatus.REGISTRY_FAULT: 1,
    RunStatus.TRANSPORT_FAILURE: 2,
    RunStatus.BACKOFF_EXHAUSTED: 3,
    RunStatus.NO_INPUT: 4,
    RunStatus.OUTPUT_ERROR: 5,
    RunStatus.CANCELLED: 6,
}


class RunReport(BaseModel):
    """The final outcome of a batch run."""

    status: RunStatus = RunStatus.SUCCESS
    requests_total: int = 0
    requests_succeeded: int = 0
    requests_faulted: int = 0
    requests_failed: int = 0
    rows_written: int = 0
    skipped_rows: int = 0
    aborted: bool = False
    output_path: Optional[str] = None
