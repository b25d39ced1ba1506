"""
Verification client — one registry call, with backoff, flattened to rows.

The client owns the transport for the whole run: it is acquired when the
client is built and released when the `with` block ends, gracefully if
possible and by abort otherwise.

Failure classes surfacing from verify():
  - RegistryFault     the registry rejected the request
  - BackoffExhausted  throttled past the ceiling; the run must stop
  - RunCancelled      the operator interrupted a backoff wait
  - TransportFailure  everything else, chained to the original error
"""

from __future__ import annotations

import logging

from .backoff import BackoffController
from .exceptions import BackoffExhausted, RegistryFault, RunCancelled, TransportFailure
from .flattener import flatten
from .models import BackoffState, CategoryRecord, VerificationRequest
from .throttling import is_rate_limited
from .transport import RegistryTransport

logger = logging.getLogger(__name__)


class VerificationClient:
    """Verifies licenses one at a time against the registry.

    Usage:
        with VerificationClient(transport) as client:
            records = client.verify(request)
    """

    def __init__(
        self,
        transport: RegistryTransport,
        backoff: BackoffController | None = None,
    ):
        self._transport = transport
        self._backoff = backoff or BackoffController()
        self._closed = False

    @property
    def backoff_state(self) -> BackoffState:
        return self._backoff.state

    def verify(self, request: VerificationRequest) -> list[CategoryRecord]:
        if self._closed:
            raise TransportFailure("Verification client is closed")

        try:
            response = self._backoff.call(
                lambda: self._transport.verify_document(request),
                is_rate_limited,
            )
        except (RegistryFault, BackoffExhausted, RunCancelled):
            raise
        except Exception as e:
            raise TransportFailure(
                f"{type(e).__name__}: {e}",
                {"exception_type": type(e).__name__},
            ) from e

        return flatten(request, response)

    def close(self) -> None:
        """Release the transport: close gracefully, abort if that fails."""
        if self._closed:
            return
        self._closed = True
        try:
            self._transport.close()
        except Exception as e:
            logger.warning("Graceful transport close failed (%s); aborting", e)
            self._transport.abort()

    def __enter__(self) -> VerificationClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
