"""Capabilities shared by every page model of one browser session."""

from __future__ import annotations

from dataclasses import dataclass

from playwright.sync_api import Locator, Page, expect

from ..auth import AuthDriver
from ..config import get_logger
from ..constants import TIMEOUTS
from ..forms import FormDriver
from ..locators import SelfHealingFinder
from ..network import NetworkController
from ..waits import WaitCoordinator

logger = get_logger("pages")


@dataclass(frozen=True)
class PageContext:
    """References to the drivers a page model is composed from.

    Page models hold one of these instead of inheriting shared behaviour, so
    waiting, filling and network control each have a single implementation.
    """

    page: Page
    base_url: str
    finder: SelfHealingFinder
    waits: WaitCoordinator
    forms: FormDriver
    network: NetworkController
    auth: AuthDriver

    def goto(self, path: str) -> None:
        url = f"{self.base_url.rstrip('/')}{path}"
        logger.info("Navigating to %s", url)
        self.page.goto(url)

    def wait_for_load(self, state: str = "networkidle") -> None:
        self.page.wait_for_load_state(state)

    @property
    def url(self) -> str:
        return self.page.url

    def get_text(self, selector: str) -> str:
        """Return the inner text of the first matching element."""
        return self.page.locator(selector).first.inner_text()

    def screenshot(self, path: str = "screenshot.png") -> bytes:
        """Capture a full-page screenshot."""
        return self.page.screenshot(path=path, full_page=True)

    def expect_text(self, locator: Locator, text: str, *, timeout: float = TIMEOUTS["SHORT"]) -> None:
        expect(locator).to_contain_text(text, timeout=timeout)
