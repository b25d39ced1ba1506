"""
SOAP transport to the driver-license registry.

The registry speaks SOAP 1.1 over HTTPS with client-certificate
authentication. We only ever call one operation, so instead of a generated
client we post a small envelope with requests and read the answer back by
local element name (namespace prefixes vary between registry releases).

Outcomes of verify_document():
  - SOAP Fault in the body        → RegistryFault
  - any other HTTP error (e.g. 429) → requests.HTTPError from raise_for_status()
  - success                       → RegistryResponse
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import date
from pathlib import Path
from typing import Optional, Protocol
from xml.sax.saxutils import escape

import requests
from pydantic import ValidationError

from .exceptions import ConfigurationError, RegistryFault
from .models import (
    CodedValue,
    DocumentState,
    FaultMessage,
    LicenseCategory,
    LicenseDocument,
    RegistryResponse,
    VerificationRequest,
)

logger = logging.getLogger(__name__)

SOAP_ENVELOPE_NS = "http://schemas.xmlsoap.org/soap/envelope/"
DEFAULT_NAMESPACE = "urn:driver-license-registry"  # Set per deployment from the WSDL
DEFAULT_SOAP_ACTION = "pytanieOUprawnienia"

_ENVELOPE_TEMPLATE = """\
<?xml version="1.0" encoding="utf-8"?>
<soapenv:Envelope xmlns:soapenv="{envelope_ns}" xmlns:ns="{namespace}">
  <soapenv:Header/>
  <soapenv:Body>
    <ns:pytanieOUprawnienia>
      <ns:daneDokumentuRequest>
        <ns:imiePierwsze>{first_name}</ns:imiePierwsze>
        <ns:nazwisko>{last_name}</ns:nazwisko>
        <ns:seriaNumerBlankietuDruku>{document_number}</ns:seriaNumerBlankietuDruku>
      </ns:daneDokumentuRequest>
    </ns:pytanieOUprawnienia>
  </soapenv:Body>
</soapenv:Envelope>
"""


class RegistryTransport(Protocol):
    """What the verification client needs from the remote side."""

    def verify_document(self, request: VerificationRequest) -> Optional[RegistryResponse]: ...

    def close(self) -> None: ...

    def abort(self) -> None: ...


class SoapRegistryTransport:
    """Certificate-authenticated SOAP client for the registry.

    Holds one requests.Session, and so one connection pool, for its lifetime.
    """

    def __init__(
        self,
        endpoint_url: str,
        cert_path: str | Path | None,
        key_path: str | Path | None = None,
        verify: bool = False,
        timeout: float = 60.0,
        namespace: str = DEFAULT_NAMESPACE,
        soap_action: str = DEFAULT_SOAP_ACTION,
        session: requests.Session | None = None,
    ):
        if not endpoint_url or not endpoint_url.strip():
            raise ConfigurationError("Endpoint URL is required.")
        if cert_path is None or not Path(cert_path).is_file():
            raise ConfigurationError(
                f"Client certificate not found: {cert_path}",
                {"cert_path": str(cert_path)},
            )
        if key_path is not None and not Path(key_path).is_file():
            raise ConfigurationError(
                f"Client key not found: {key_path}", {"key_path": str(key_path)}
            )

        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self.namespace = namespace
        self.soap_action = soap_action

        self._session: requests.Session | None = session or requests.Session()
        self._session.cert = (str(cert_path), str(key_path)) if key_path else str(cert_path)
        self._session.verify = verify
        self._session.headers.update({
            "Content-Type": "text/xml; charset=utf-8",
            "SOAPAction": f'"{soap_action}"',
        })

    def build_envelope(self, request: VerificationRequest) -> str:
        return _ENVELOPE_TEMPLATE.format(
            envelope_ns=SOAP_ENVELOPE_NS,
            namespace=escape(self.namespace, {'"': "&quot;"}),
            first_name=escape(request.first_name),
            last_name=escape(request.last_name),
            document_number=escape(request.document_number),
        )

    def verify_document(self, request: VerificationRequest) -> Optional[RegistryResponse]:
        if self._session is None:
            raise RuntimeError("Transport is closed")

        response = self._session.post(
            self.endpoint_url,
            data=self.build_envelope(request).encode("utf-8"),
            timeout=self.timeout,
        )

        try:
            root = ET.fromstring(response.content)
        except ET.ParseError:
            # Throttling proxies answer 429 with an HTML page
            response.raise_for_status()
            raise

        fault = _find(root, "Fault")
        if fault is not None:
            raise parse_fault(fault)

        response.raise_for_status()
        return parse_response(root)

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def abort(self) -> None:
        """Drop pooled connections without a graceful session shutdown."""
        session, self._session = self._session, None
        if session is not None:
            for adapter in session.adapters.values():
                adapter.poolmanager.clear()


# ─── Response Parsing ────────────────────────────────────────────────


def parse_response(root: ET.Element) -> RegistryResponse:
    """Read a registry answer into the response model."""
    document_el = _find(root, "dokumentPotwierdzajacyUprawnienia")
    if document_el is None:
        return RegistryResponse()

    state = None
    state_el = _child(document_el, "stanDokumentu")
    if state_el is not None:
        state = DocumentState(
            status=_coded_value(_child(state_el, "stanDokumentu")),
            change_reasons=[_coded_value(el) for el in _children(state_el, "powodZmianyStanu")],
        )

    categories_el = _children(document_el, "daneUprawnieniaKategorii")
    categories = [_category(el) for el in categories_el] if categories_el else None

    return RegistryResponse(
        document=LicenseDocument(
            license_number=_text(document_el, "seriaNumerBlankietuDruku"),
            state=state,
            categories=categories,
        )
    )


def parse_fault(fault_el: ET.Element) -> RegistryFault:
    """Turn a SOAP Fault element into a RegistryFault."""
    fault_code = _text(fault_el, "faultcode") or "Unknown"
    # 'soap:Client' → 'Client'
    fault_code = fault_code.rsplit(":", 1)[-1]
    reason = _text(fault_el, "faultstring") or ""

    messages: list[FaultMessage] = []
    detail_el = _child(fault_el, "detail")
    if detail_el is not None:
        for el in detail_el.iter():
            if _local(el.tag) != "komunikaty":
                continue
            messages.append(
                FaultMessage(
                    type=_text(el, "typ") or "",
                    code=_text(el, "kod"),
                    message=_text(el, "komunikat"),
                    detail=_text(el, "szczegoly"),
                    error_id=_text(el, "identyfikatorBledu"),
                )
            )

    return RegistryFault(fault_code, reason, messages)


def _category(el: ET.Element) -> Optional[LicenseCategory]:
    raw_expiry = _text(el, "dataWaznosci")
    try:
        expiry = _parse_date(raw_expiry) if raw_expiry else None
        return LicenseCategory(
            category=_text(el, "kategoria"),
            expiry_date=expiry,
            expiry_date_specified=expiry is not None,
        )
    except (ValueError, ValidationError) as e:
        logger.warning("Ignoring malformed category entry: %s", e)
        return None


def _coded_value(el: ET.Element | None) -> Optional[CodedValue]:
    if el is None:
        return None
    return CodedValue(code=_text(el, "kod"), value=_text(el, "wartosc"))


def _parse_date(raw: str) -> date:
    """Accepts '2031-05-04', '2031-05-04T00:00:00' and '2031-05-04+02:00'."""
    return date.fromisoformat(raw.strip()[:10])


# ─── XML Helpers ─────────────────────────────────────────────────────


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _find(root: ET.Element, name: str) -> ET.Element | None:
    for el in root.iter():
        if _local(el.tag) == name:
            return el
    return None


def _child(parent: ET.Element, name: str) -> ET.Element | None:
    for el in parent:
        if _local(el.tag) == name:
            return el
    return None


def _children(parent: ET.Element, name: str) -> list[ET.Element]:
    return [el for el in parent if _local(el.tag) == name]


def _text(parent: ET.Element, name: str) -> str | None:
    el = _child(parent, name)
    if el is None or el.text is None:
        return None
    return el.text.strip() or None
