"""
Adaptive backoff for registry throttling (HTTP 429).

The registry enforces an undisclosed rate limit. When it answers 429 we wait
and retry the SAME request, doubling the wait each time. The delay we last
had to use is remembered for the lifetime of the client, so the next request
starts from the latest observed pressure instead of the initial delay:

    429 → wait 30s → 429 → wait 60s → OK
    next request: 429 → wait 60s → 429 → wait 120s → ...

The remembered delay never shrinks. A struggling upstream slows the whole
batch down for good; there is no half-open recovery. Once the delay about to
be used exceeds the ceiling we give up with BackoffExhausted, which aborts
the run.

Every wait goes through a CancellableSleeper so an operator interrupt ends
the run at the next sleep, or before the next call to the registry.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import replace
from typing import TypeVar

from .exceptions import BackoffExhausted, RunCancelled
from .models import BackoffState

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_INITIAL_DELAY = 30.0  # seconds
DEFAULT_DELAY_CEILING = 60 * 60.0  # seconds
GROWTH_FACTOR = 2


class CancellableSleeper:
    """Sleeps that end early, with RunCancelled, once the run is cancelled."""

    def __init__(self, cancel_event: threading.Event | None = None):
        self.cancel_event = cancel_event or threading.Event()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def check(self) -> None:
        """Raise RunCancelled if the run has been cancelled."""
        if self.cancelled:
            raise RunCancelled()

    def __call__(self, seconds: float) -> None:
        if self.cancel_event.wait(max(seconds, 0.0)):
            raise RunCancelled(f"Run cancelled during a {seconds:g}s wait")


def raise_if_cancelled(sleep: Callable[[float], None]) -> None:
    """Cancellation checkpoint for code that only holds the sleep callable.

    Plain callables (test recorders, time.sleep) are never cancelled.
    """
    if isinstance(sleep, CancellableSleeper):
        sleep.check()


class BackoffController:
    """Retries a call while it fails with a rate-limit signal.

    One controller belongs to one client. The state it protects is shared by
    every call issued through that client but never between clients.
    """

    def __init__(
        self,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        delay_ceiling: float = DEFAULT_DELAY_CEILING,
        growth_factor: float = GROWTH_FACTOR,
        sleep: Callable[[float], None] | None = None,
    ):
        if initial_delay <= 0:
            raise ValueError("initial_delay must be positive")
        if growth_factor <= 1:
            raise ValueError("growth_factor must be greater than 1")

        self.initial_delay = initial_delay
        self.delay_ceiling = delay_ceiling
        self.growth_factor = growth_factor
        self._sleep = sleep or CancellableSleeper()
        self._lock = threading.Lock()
        self._state = BackoffState(current_delay=initial_delay)

    @property
    def state(self) -> BackoffState:
        """A snapshot of the shared state."""
        with self._lock:
            return replace(self._state)

    def call(
        self,
        func: Callable[[], T],
        is_rate_limited: Callable[[BaseException], bool],
    ) -> T:
        """Run func, waiting and retrying for as long as it is throttled.

        Failures that are not rate-limit signals propagate immediately.

        Raises:
            BackoffExhausted: the next delay would exceed the ceiling.
            RunCancelled: the run was cancelled before an attempt or while waiting.
        """
        next_delay = self._read_delay()

        while True:
            raise_if_cancelled(self._sleep)
            try:
                return func()
            except Exception as e:
                if not is_rate_limited(e):
                    raise
                attempts = self._record_signal()
                if next_delay > self.delay_ceiling:
                    logger.error(
                        "Rate limited %d time(s); next delay %gs exceeds ceiling %gs",
                        attempts,
                        next_delay,
                        self.delay_ceiling,
                    )
                    raise BackoffExhausted(attempts, next_delay) from e

                self._store_delay(next_delay)
                logger.warning(
                    "Server returned 429 (Too Many Requests). Retrying in %gs", next_delay
                )
                self._sleep(next_delay)
                next_delay *= self.growth_factor

    # ─── State Access ────────────────────────────────────────────────

    def _read_delay(self) -> float:
        with self._lock:
            return self._state.current_delay

    def _store_delay(self, delay: float) -> None:
        with self._lock:
            # Only ever grows for the lifetime of the client
            self._state.current_delay = max(self._state.current_delay, delay)

    def _record_signal(self) -> int:
        with self._lock:
            self._state.attempts += 1
            return self._state.attempts
