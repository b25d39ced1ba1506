"""
Rate-limit classification: does this failure mean "HTTP 429"?

Transport failures arrive wrapped: a requests error chained to a urllib3
error, a parse error raised while handling an HTTP error, an exception group
holding several causes. Some layers keep a structured status code, others
only leave the status in their message. So:

  1. Flatten the failure into a plain list of causes
  2. Any cause carrying a 429 status code → rate limited
  3. Otherwise any cause whose text contains a 429 marker → rate limited

The text fallback is deliberately permissive. Registry faults are domain
answers and never count as throttling.
"""

from __future__ import annotations

from collections.abc import Iterable

from .exceptions import RegistryFault

TOO_MANY_REQUESTS = 429

# Attributes under which HTTP libraries expose a status code, directly or on
# an attached response object.
STATUS_CODE_ATTRIBUTES: tuple[str, ...] = ("status_code", "status", "code")
RESPONSE_ATTRIBUTES: tuple[str, ...] = ("response",)

TEXT_MARKERS: tuple[str, ...] = ("429", "too many requests")


def iter_causes(exc: BaseException) -> list[BaseException]:
    """Flatten an exception, its chain and any grouped exceptions into a list."""
    causes: list[BaseException] = []
    seen: set[int] = set()
    stack: list[BaseException] = [exc]

    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        causes.append(current)

        grouped = getattr(current, "exceptions", None)
        if isinstance(grouped, (list, tuple)):
            stack.extend(e for e in reversed(grouped) if isinstance(e, BaseException))

        for linked in (current.__context__, current.__cause__):
            if linked is not None:
                stack.append(linked)

    return causes


def _status_codes(exc: BaseException) -> Iterable[object]:
    holders: list[object] = [exc]
    for name in RESPONSE_ATTRIBUTES:
        response = getattr(exc, name, None)
        if response is not None:
            holders.append(response)

    for holder in holders:
        for name in STATUS_CODE_ATTRIBUTES:
            yield getattr(holder, name, None)


def has_status_code(exc: BaseException) -> bool:
    """A cause whose own (or whose response's) status code is 429."""
    for code in _status_codes(exc):
        try:
            if int(code) == TOO_MANY_REQUESTS:  # type: ignore[call-overload]
                return True
        except (TypeError, ValueError):
            continue
    return False


def has_text_marker(exc: BaseException) -> bool:
    """A cause whose message mentions 429 or 'Too Many Requests'."""
    text = str(exc).lower()
    return any(marker in text for marker in TEXT_MARKERS)


# Applied in order over every cause
RATE_LIMIT_RULES = (has_status_code, has_text_marker)


def is_rate_limited(exc: BaseException) -> bool:
    """True when any cause of exc signals HTTP 429."""
    causes = [cause for cause in iter_causes(exc) if not isinstance(cause, RegistryFault)]
    return any(rule(cause) for rule in RATE_LIMIT_RULES for cause in causes)
