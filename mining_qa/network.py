"""Network condition simulation, request interception and traffic recording."""

from __future__ import annotations

import itertools
import random
import time
from typing import Any, Callable, Iterator

from playwright.sync_api import Page, Request, Response, Route

from .config import get_logger
from .errors import TransportAbort
from .matching import UrlMatcher, UrlPattern
from .models import EventKind, NetworkRule, RequestEvent, RuleAction

logger = get_logger("network")

EventCallback = Callable[[RequestEvent], None]

ALL_REQUESTS = "**/*"

# Fulfilled responses are often read cross-origin by the app under test.
FULFILL_HEADERS = {"Access-Control-Allow-Origin": "*", "Access-Control-Allow-Headers": "*"}


class Subscription:
    """Handle returned by :meth:`NetworkController.subscribe`; cancelling is idempotent."""

    def __init__(self, controller: "NetworkController", callback: EventCallback) -> None:
        self._controller = controller
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._controller._unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.cancel()


class Recording:
    """Append-only log of traffic observed since :meth:`NetworkController.record`.

    Iteration is live: a loop over a recording also sees events appended while
    it runs.  A recording never restarts; call ``record()`` again for a fresh one.
    """

    def __init__(self) -> None:
        self._events: list[RequestEvent] = []
        self._subscription: Subscription | None = None

    def _append(self, event: RequestEvent) -> None:
        self._events.append(event)

    def __iter__(self) -> Iterator[RequestEvent]:
        position = 0
        while position < len(self._events):
            yield self._events[position]
            position += 1

    def __len__(self) -> int:
        return len(self._events)

    @property
    def events(self) -> tuple[RequestEvent, ...]:
        return tuple(self._events)

    @property
    def active(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def matching(self, pattern: UrlPattern, kind: EventKind | None = EventKind.RESPONSE) -> list[RequestEvent]:
        matcher = UrlMatcher.of(pattern)
        return [e for e in self._events if (kind is None or e.kind is kind) and matcher.matches(e.url)]

    def first_index(self, pattern: UrlPattern, kind: EventKind | None = EventKind.RESPONSE) -> int | None:
        """Sequence index of the first matching event, or ``None`` when it never happened."""
        found = self.matching(pattern, kind)
        return found[0].index if found else None

    def urls(self, kind: EventKind | None = EventKind.RESPONSE) -> list[str]:
        return [e.url for e in self._events if kind is None or e.kind is kind]

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()


class NetworkController:
    """Session-scoped control over the network seen by one page.

    Rules are evaluated against every request in registration order.  Delay
    rules accumulate; the first abort or fulfill rule that fires ends the
    evaluation; a request no terminal rule claims continues to the backend.
    Routes to an in-process backend (:meth:`route_to`) are evaluated after
    every installed rule.
    """

    def __init__(self, page: Page, *, rng: random.Random | None = None, clock: Callable[[], float] = time.time) -> None:
        self._page = page
        self._rules: list[NetworkRule] = []
        self._backends: list[NetworkRule] = []
        self._subscribers: list[Subscription] = []
        self._sequence = itertools.count()
        self._rng = rng or random.Random()
        self._clock = clock
        self._routed = False
        self._listening = False
        self.offline = False
        self.aborts: list[TransportAbort] = []

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    def set_offline(self, offline: bool) -> None:
        """Suspend (``True``) or restore (``False``) all outbound traffic of the session."""
        self._page.context.set_offline(offline)
        self.offline = offline
        if offline:
            self._ensure_routed()
        logger.info("Network %s", "offline" if offline else "online")

    def go_offline(self) -> None:
        self.set_offline(True)

    def go_online(self) -> None:
        self.set_offline(False)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    @property
    def rules(self) -> tuple[NetworkRule, ...]:
        return tuple(self._rules)

    def install_rule(self, rule: NetworkRule) -> NetworkRule:
        self._rules.append(rule)
        self._ensure_routed()
        logger.info("Installed network rule %s", rule.describe())
        return rule

    def remove_rule(self, rule: NetworkRule) -> None:
        self._rules.remove(rule)

    def clear_rules(self) -> None:
        """Drop the rules installed by the test; backend routes stay in place."""
        self._rules.clear()

    def mock(self, url_pattern: UrlPattern, payload: Any, status: int = 200) -> NetworkRule:
        """Answer matching requests with a canned JSON payload."""
        return self.install_rule(NetworkRule.fulfill(url_pattern, payload, status))

    def block(self, url_pattern: UrlPattern) -> NetworkRule:
        return self.install_rule(NetworkRule.abort(url_pattern, probability=1.0))

    def simulate_slow_network(self, delay_ms: int = 1000, url_pattern: UrlPattern = ALL_REQUESTS) -> NetworkRule:
        return self.install_rule(NetworkRule.delay(url_pattern, delay_ms))

    def simulate_flaky_network(self, failure_rate: float = 0.3, url_pattern: UrlPattern = ALL_REQUESTS) -> NetworkRule:
        return self.install_rule(NetworkRule.abort(url_pattern, probability=failure_rate))

    def route_to(self, backend: Any, url_pattern: UrlPattern) -> NetworkRule:
        """Serve matching requests from an in-process backend exposing ``handle(method, url, body, headers)``.

        Backend routes are evaluated after every installed rule, so a test can
        still mock, delay or abort individual endpoints in front of the backend.
        """
        rule = NetworkRule.respond(url_pattern, backend.handle)
        self._backends.append(rule)
        self._ensure_routed()
        logger.info("Routing %s to %s", rule.matcher.describe(), type(backend).__name__)
        return rule

    def _ensure_routed(self) -> None:
        if not self._routed:
            self._page.route(ALL_REQUESTS, self._dispatch)
            self._routed = True

    def _dispatch(self, route: Route, request: Request) -> None:
        url = request.url
        if self.offline:
            # Requests issued while offline never reach a backend, mocked or real.
            route.abort("internetdisconnected")
            return

        for rule in [*self._rules, *self._backends]:
            if not rule.matcher.matches(url):
                continue
            if rule.action is RuleAction.DELAY:
                self._page.wait_for_timeout(rule.delay_ms)
            elif rule.action is RuleAction.ABORT:
                if rule.probability >= 1.0 or self._rng.random() < rule.probability:
                    self.aborts.append(TransportAbort(url, rule.describe()))
                    logger.info("Aborting %s %s (%s)", request.method, url, rule.describe())
                    route.abort("failed")
                    return
            else:
                status, body = rule.response_for(request.method, url, request.post_data, request.headers)
                route.fulfill(status=status, content_type=rule.content_type, body=body, headers=FULFILL_HEADERS)
                return

        route.continue_()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self, callback: EventCallback) -> Subscription:
        """Invoke *callback* synchronously for every request, response and failure from now on."""
        self._ensure_listening()
        subscription = Subscription(self, callback)
        self._subscribers.append(subscription)
        return subscription

    def record(self) -> Recording:
        """Start a fresh recording of observed traffic."""
        recording = Recording()
        recording._subscription = self.subscribe(recording._append)
        return recording

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def _ensure_listening(self) -> None:
        if self._listening:
            return
        self._page.on("request", self._on_request)
        self._page.on("response", self._on_response)
        self._page.on("requestfailed", self._on_request_failed)
        self._listening = True

    def _emit(self, kind: EventKind, url: str, method: str, **details: Any) -> RequestEvent:
        event = RequestEvent(
            index=next(self._sequence),
            kind=kind,
            url=url,
            method=method,
            timestamp=self._clock(),
            **details,
        )
        for subscription in list(self._subscribers):
            if subscription.active:
                subscription.callback(event)
        return event

    def _on_request(self, request: Request) -> None:
        self._emit(EventKind.REQUEST, request.url, request.method, raw=request)

    def _on_response(self, response: Response) -> None:
        self._emit(EventKind.RESPONSE, response.url, response.request.method, status=response.status, raw=response)

    def _on_request_failed(self, request: Request) -> None:
        self._emit(EventKind.FAILED, request.url, request.method, failure=request.failure, raw=request)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Restore connectivity and drop every rule and listener this controller installed."""
        if self.offline:
            self.set_offline(False)
        if self._routed:
            self._page.unroute(ALL_REQUESTS, self._dispatch)
            self._routed = False
        if self._listening:
            self._page.remove_listener("request", self._on_request)
            self._page.remove_listener("response", self._on_response)
            self._page.remove_listener("requestfailed", self._on_request_failed)
            self._listening = False
        for subscription in list(self._subscribers):
            subscription.cancel()
        self._rules.clear()
        self._backends.clear()
