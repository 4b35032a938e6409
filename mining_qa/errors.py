"""Failure taxonomy raised by the drivers and page models."""

from __future__ import annotations

from typing import Collection, Sequence


class MiningQAError(Exception):
    """Base class for every failure raised by this package."""


class WaitTimeout(MiningQAError, TimeoutError):
    """A wait's condition never became true within its budget."""

    def __init__(self, description: str, elapsed_ms: float, timeout_ms: float | None = None) -> None:
        self.description = description
        self.elapsed_ms = elapsed_ms
        self.timeout_ms = timeout_ms
        budget = f" (budget {timeout_ms:.0f}ms)" if timeout_ms is not None else ""
        super().__init__(f"Timed out after {elapsed_ms:.0f}ms waiting for {description}{budget}")


class ElementNotFound(MiningQAError, LookupError):
    """A required DOM control never appeared."""

    def __init__(self, selectors: Sequence[str], detail: str = "") -> None:
        self.selectors = list(selectors)
        message = f"No element matched any of {self.selectors}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnexpectedStatus(MiningQAError, AssertionError):
    """An HTTP response carried a status outside the expected set."""

    def __init__(self, status: int, expected: Collection[int], url: str = "", what: str = "") -> None:
        self.status = status
        self.expected = sorted(expected)
        self.url = url
        label = what or url or "response"
        wanted = "2xx" if set(expected) == set(range(200, 300)) else str(self.expected)
        super().__init__(f"{label}: expected status in {wanted}, got {status}")


class TransportAbort(MiningQAError):
    """A request was failed on purpose by a network rule."""

    def __init__(self, url: str, rule: str) -> None:
        self.url = url
        self.rule = rule
        super().__init__(f"Request to {url} aborted by {rule}")


SUCCESS_STATUSES = frozenset(range(200, 300))


def ensure_status(status: int, expected: Collection[int] = SUCCESS_STATUSES, *, url: str = "", what: str = "") -> int:
    """Return *status* unchanged or raise :class:`UnexpectedStatus`."""
    if status not in expected:
        raise UnexpectedStatus(status, expected, url=url, what=what)
    return status
