"""
Response flattening — one registry document becomes one row per category.

The registry answers with a nested document: a license number, a coded
status, a list of coded change reasons and a list of categories. The report
wants flat rows, so every category is expanded into its own CategoryRecord
carrying the document-level fields alongside.

Rules:
  - No category list (or an empty one) is a valid answer, not an error.
  - Coded values render as "CODE - Value", dropping whichever half is blank.
  - Reasons are joined with "; " and stay None when nothing is left.
  - The license number falls back to the one we asked about.
  - An expiry date counts only when the registry flags it as specified.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .models import (
    CategoryRecord,
    CodedValue,
    RegistryResponse,
    VerificationRequest,
)

logger = logging.getLogger(__name__)

CODE_VALUE_SEPARATOR = " - "
REASON_SEPARATOR = "; "


def join_coded_value(item: CodedValue | None) -> str:
    """Render a coded value as 'CODE - Value'; blank halves are left out."""
    if item is None:
        return ""
    parts = [part.strip() for part in (item.code, item.value) if part and part.strip()]
    return CODE_VALUE_SEPARATOR.join(parts)


def join_coded_values(items: Iterable[CodedValue | None]) -> str | None:
    """Join several coded values with '; '. Returns None when none has content."""
    fragments = [join_coded_value(item) for item in items if item is not None]
    fragments = [fragment for fragment in fragments if fragment]
    return REASON_SEPARATOR.join(fragments) if fragments else None


def flatten(
    request: VerificationRequest,
    response: RegistryResponse | None,
) -> list[CategoryRecord]:
    """Expand a registry response into one CategoryRecord per category.

    Args:
        request: The request the response answers.
        response: Parsed registry answer, possibly partial or None.

    Returns:
        The records in registry order; empty when no categories are on file.
    """
    document = response.document if response is not None else None
    if document is None or not document.categories:
        return []

    state = document.state
    status_text = join_coded_value(state.status) if state is not None else ""
    reason_text = join_coded_values(state.change_reasons) if state is not None else None

    license_number = (document.license_number or "").strip() or request.document_number

    records: list[CategoryRecord] = []
    for category in document.categories:
        if category is None:
            logger.debug("Skipping empty category entry for %s", request.document_number)
            continue

        records.append(
            CategoryRecord(
                first_name=request.first_name,
                last_name=request.last_name,
                license_number=license_number,
                status_text=status_text,
                category=(category.category or "").strip(),
                expiry_date=category.expiry_date if category.expiry_date_specified else None,
                revocation_reason_text=reason_text,
            )
        )

    return records
