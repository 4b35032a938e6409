"""Self-healing two-tier element lookup.

Every control is addressed by a stable ``data-testid`` selector first and by
semantic CSS fallbacks second.  ``find()`` waits once, for whichever of the
selectors shows up, then prefers the test identifier when several resolve.
Fallback hits are logged so the canonical selector can be fixed later.
"""

from __future__ import annotations

from typing import Sequence

from playwright.sync_api import Locator, Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .config import get_logger
from .constants import TIMEOUTS
from .errors import ElementNotFound

logger = get_logger("locators")


def testid(name: str) -> str:
    """Selector for the stable test-identifier attribute."""
    return f'[data-testid="{name}"]'


# Not a test function, despite the name.
testid.__test__ = False  # type: ignore[attr-defined]


class SelfHealingFinder:
    """Resolve controls with an identifier-first, semantic-fallback chain."""

    def __init__(self, page: Page, *, timeout: float = TIMEOUTS["SHORT"]) -> None:
        self.page = page
        self.timeout = timeout

    def find(
        self,
        primary: str,
        fallbacks: Sequence[str] = (),
        *,
        timeout: float | None = None,
        state: str = "visible",
    ) -> Locator:
        """Return the first element matching *primary*, else the first matching fallback.

        Parameters
        ----------
        primary:
            Preferred selector, normally built with :func:`testid`.
        fallbacks:
            Semantic selectors tried in order when *primary* does not resolve.
        timeout:
            Milliseconds to wait for any of the selectors to reach *state*.
        state:
            Playwright element state, ``"visible"`` or ``"attached"`` for
            hidden inputs such as file pickers.

        Raises
        ------
        ElementNotFound
            When none of the selectors resolves within *timeout*.
        """
        selectors = [primary, *fallbacks]
        budget = self.timeout if timeout is None else timeout

        combined = self.page.locator(primary)
        for selector in fallbacks:
            combined = combined.or_(self.page.locator(selector))

        try:
            combined.first.wait_for(state=state, timeout=budget)
        except PlaywrightTimeoutError as exc:
            raise ElementNotFound(selectors, f"not {state} within {budget:.0f}ms") from exc

        for selector in selectors:
            candidate = self.page.locator(selector).first
            if self._reached(candidate, state):
                if selector != primary:
                    logger.warning("Self-healed: primary '%s' failed, used fallback '%s'", primary, selector)
                return candidate

        # The element changed between the wait and the lookup.
        raise ElementNotFound(selectors, f"detached after becoming {state}")

    def is_present(self, primary: str, fallbacks: Sequence[str] = (), *, state: str = "visible") -> bool:
        """Non-waiting check whether any of the selectors is currently in *state*."""
        return any(self._reached(self.page.locator(s).first, state) for s in [primary, *fallbacks])

    @staticmethod
    def _reached(candidate: Locator, state: str) -> bool:
        if state == "visible":
            return candidate.is_visible()
        if state == "hidden":
            return candidate.is_hidden()
        return candidate.count() > 0
