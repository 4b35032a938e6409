"""Bounded waits that coordinate UI actions with asynchronous backend calls.

A response wait subscribes to the session's traffic the moment it is
registered, so the usual pattern is register, act, resolve::

    with waits.expect_response(API_ENDPOINTS["USER_WHO"]) as lookup:
        continue_button.click()
    assert lookup.value.status == 200

Only events observed after registration count.  Once a wait's deadline
passes it is expired: late events are ignored and it cannot be resumed.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Iterable, Sequence

from playwright.sync_api import Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .config import get_logger
from .constants import TIMEOUTS
from .errors import WaitTimeout
from .matching import UrlPattern
from .models import EventKind, RequestEvent, WaitSpec
from .network import NetworkController

logger = get_logger("waits")

DEFAULT_LOADING_SELECTOR = ".loading, .spinner"


class PendingResponse:
    """A registered expectation for the first matching response."""

    def __init__(self, coordinator: "WaitCoordinator", spec: WaitSpec) -> None:
        self.spec = spec
        self._coordinator = coordinator
        self.registered_at = coordinator.now_ms()
        self.event: RequestEvent | None = None
        self.expired = False
        self._subscription = coordinator.network.subscribe(self._observe)

    @property
    def description(self) -> str:
        return f"response matching {self.spec.matcher.describe()}"

    @property
    def deadline(self) -> float:
        return self.registered_at + self.spec.timeout_ms

    @property
    def done(self) -> bool:
        return self.event is not None

    def _observe(self, event: RequestEvent) -> None:
        if self.done or self.expired or event.kind is not EventKind.RESPONSE:
            return
        if self._coordinator.now_ms() > self.deadline:
            return
        if self.spec.matcher.matches(event.url):
            self.event = event
            self._subscription.cancel()

    def poll(self) -> RequestEvent | None:
        """Captured event so far, without waiting."""
        return self.event

    def result(self) -> RequestEvent:
        """Block until the response arrives or the deadline passes."""
        return self._coordinator.settle([self])[0]

    @property
    def value(self) -> RequestEvent:
        return self.result()

    def expire(self) -> WaitTimeout:
        self.expired = True
        self._subscription.cancel()
        elapsed = self._coordinator.now_ms() - self.registered_at
        return WaitTimeout(self.description, elapsed, self.spec.timeout_ms)

    def cancel(self) -> None:
        self.expired = True
        self._subscription.cancel()

    def __enter__(self) -> "PendingResponse":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if exc_type is not None:
            self.cancel()
            return
        self.result()


class PendingGroup:
    """Several response waits registered together and resolved against one shared deadline."""

    def __init__(self, pendings: Sequence[PendingResponse], coordinator: "WaitCoordinator") -> None:
        self.pendings = list(pendings)
        self._coordinator = coordinator

    def result(self) -> list[RequestEvent]:
        return self._coordinator.settle(self.pendings)

    @property
    def value(self) -> list[RequestEvent]:
        return self.result()

    def cancel(self) -> None:
        for pending in self.pendings:
            pending.cancel()

    def __enter__(self) -> "PendingGroup":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if exc_type is not None:
            self.cancel()
            return
        self.result()


class WaitCoordinator:
    """Suspends the calling test step until an asynchronous condition holds.

    Time passes through ``page.wait_for_timeout`` so Playwright keeps
    dispatching network events while a wait is pending; ``pump_interval_ms``
    bounds how far a timed-out wait can overshoot its budget.
    """

    def __init__(
        self,
        page: Page,
        network: NetworkController,
        *,
        clock: Callable[[], float] = time.monotonic,
        pump_interval_ms: float = 50,
    ) -> None:
        self.page = page
        self.network = network
        self._clock = clock
        self.pump_interval_ms = pump_interval_ms

    def now_ms(self) -> float:
        return self._clock() * 1000.0

    # ------------------------------------------------------------------
    # Response waits
    # ------------------------------------------------------------------

    def expect_response(self, pattern: UrlPattern, timeout_ms: float = TIMEOUTS["LONG"]) -> PendingResponse:
        pending = PendingResponse(self, WaitSpec.of(pattern, timeout_ms))
        logger.debug("Waiting for %s (%.0fms)", pending.description, timeout_ms)
        return pending

    def expect_all(self, patterns: Iterable[UrlPattern], timeout_ms: float = TIMEOUTS["LONG"]) -> PendingGroup:
        return PendingGroup([self.expect_response(p, timeout_ms) for p in patterns], self)

    def wait_for(self, pattern: UrlPattern, timeout_ms: float = TIMEOUTS["LONG"]) -> RequestEvent:
        """Wait for the first response matching *pattern* observed from now on."""
        return self.expect_response(pattern, timeout_ms).result()

    def wait_for_all(self, patterns: Iterable[UrlPattern], timeout_ms: float = TIMEOUTS["LONG"]) -> list[RequestEvent]:
        """Wait concurrently for one response per pattern; results keep the pattern order."""
        return self.expect_all(patterns, timeout_ms).result()

    def settle(self, pendings: Sequence[PendingResponse]) -> list[RequestEvent]:
        """Pump events until every wait resolved or reached its own deadline.

        Outstanding waits are never cut short by a sibling's failure; once all
        have finished, the first failure in *pendings* order is raised.
        """
        while True:
            now = self.now_ms()
            outstanding = [p for p in pendings if not p.done and not p.expired and now < p.deadline]
            if not outstanding:
                break
            nearest = min(p.deadline for p in outstanding)
            self.page.wait_for_timeout(max(1.0, min(self.pump_interval_ms, nearest - now)))

        failures = [p.expire() for p in pendings if not p.done]
        if failures:
            for failure in failures:
                logger.info("Wait failed: %s", failure)
            raise failures[0]

        events = [p.event for p in pendings]
        for event in events:
            logger.debug("Observed %s %s -> %s", event.method, event.url, event.status)
        return events

    # ------------------------------------------------------------------
    # Predicate and visibility waits
    # ------------------------------------------------------------------

    def wait_for_condition(
        self,
        predicate: Callable[[], bool],
        timeout_ms: float = 10_000,
        poll_interval_ms: float = 500,
        description: str | None = None,
    ) -> float:
        """Poll *predicate* until it holds; return the elapsed milliseconds."""
        label = description or getattr(predicate, "__name__", "condition")
        started = self.now_ms()
        while True:
            if predicate():
                return self.now_ms() - started
            elapsed = self.now_ms() - started
            if elapsed >= timeout_ms:
                raise WaitTimeout(label, elapsed, timeout_ms)
            self.page.wait_for_timeout(min(poll_interval_ms, timeout_ms - elapsed))

    def wait_for_state(self, selector: str, state: str, timeout_ms: float) -> None:
        started = self.now_ms()
        try:
            self.page.locator(selector).first.wait_for(state=state, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise WaitTimeout(f"'{selector}' to be {state}", self.now_ms() - started, timeout_ms) from exc

    def wait_for_loading_complete(
        self,
        selector: str = DEFAULT_LOADING_SELECTOR,
        appear_timeout_ms: float = 2_000,
        hidden_timeout_ms: float = TIMEOUTS["LONG"],
    ) -> bool:
        """Wait out a loading indicator that may or may not render.

        The indicator is given ``appear_timeout_ms`` to show up; not showing
        up at all is fine.  It must then be hidden within
        ``hidden_timeout_ms``, otherwise :class:`WaitTimeout` is raised.
        Returns whether the indicator was seen.
        """
        try:
            self.page.locator(selector).first.wait_for(state="visible", timeout=appear_timeout_ms)
            appeared = True
        except PlaywrightTimeoutError:
            logger.info("Loading indicator %s did not appear within %.0fms", selector, appear_timeout_ms)
            appeared = False
        self.wait_for_state(selector, "hidden", hidden_timeout_ms)
        return appeared
