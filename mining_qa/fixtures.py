"""Per-test wiring of drivers and page models, plus the pytest fixtures exposing them.

Register the fixtures with one line in a conftest::

    pytest_plugins = ["mining_qa.fixtures"]

Every browser test gets its own context, page and set of drivers, torn down
after the test whatever its outcome.  Settings are resolved once per process
and never mutated.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import pytest
from playwright.sync_api import Browser, BrowserContext, Page, sync_playwright

from .api import MiningApiClient
from .auth import AuthDriver
from .config import Settings, get_logger, get_settings
from .constants import TEST_USERS
from .forms import FormDriver
from .locators import SelfHealingFinder
from .mock_backend import MockBackend
from .network import NetworkController
from .pages import EquipmentInspectionPage, HazardReportPage, LoginPage, PageContext
from .waits import WaitCoordinator

logger = get_logger("fixtures")

VIEWPORT = {"width": 1920, "height": 1080}


@dataclass
class BrowserSession:
    """One isolated browser context with every driver and page model bound to it."""

    context: BrowserContext | None
    page: Page
    ctx: PageContext
    login_page: LoginPage
    equipment_page: EquipmentInspectionPage
    hazard_page: HazardReportPage

    @property
    def network(self) -> NetworkController:
        return self.ctx.network

    @property
    def waits(self) -> WaitCoordinator:
        return self.ctx.waits

    @property
    def forms(self) -> FormDriver:
        return self.ctx.forms

    @property
    def auth(self) -> AuthDriver:
        return self.ctx.auth

    def close(self) -> None:
        """Release the session; rules and offline state never outlive it."""
        try:
            self.ctx.network.close()
        finally:
            try:
                self.page.close()
            finally:
                if self.context is not None:
                    self.context.close()


class FixtureProvider:
    """Builds browser sessions and API clients from immutable settings."""

    def __init__(self, settings: Settings, mock_backend: MockBackend | None = None) -> None:
        self.settings = settings
        self.mock_backend = mock_backend

    @property
    def mocking(self) -> bool:
        return self.settings.use_mock_backend and self.mock_backend is not None

    def build_session(self, page: Page, context: BrowserContext | None = None) -> BrowserSession:
        """Wire one instance of every driver and page model to *page*."""
        finder = SelfHealingFinder(page)
        network = NetworkController(page)
        waits = WaitCoordinator(page, network)
        ctx = PageContext(
            page=page,
            base_url=self.settings.base_url,
            finder=finder,
            waits=waits,
            forms=FormDriver(page, finder),
            network=network,
            auth=AuthDriver(page, waits, finder),
        )
        if self.mocking:
            network.route_to(self.mock_backend, f"{self.settings.api_base_url}/**")
        return BrowserSession(
            context=context,
            page=page,
            ctx=ctx,
            login_page=LoginPage(ctx),
            equipment_page=EquipmentInspectionPage(ctx),
            hazard_page=HazardReportPage(ctx),
        )

    def open_session(self, browser: Browser) -> BrowserSession:
        context = browser.new_context(viewport=VIEWPORT)
        try:
            page = context.new_page()
            return self.build_session(page, context)
        except Exception:
            context.close()
            raise

    @contextmanager
    def session(self, browser: Browser) -> Iterator[BrowserSession]:
        session = self.open_session(browser)
        try:
            yield session
        finally:
            session.close()

    @contextmanager
    def authenticated(self, browser: Browser) -> Iterator[BrowserSession]:
        """A session that has completed the whole login sequence before it is yielded."""
        with self.session(browser) as session:
            session.login_page.perform_complete_login(self.settings.credentials())
            yield session

    def api_client(self, token: str | None = None) -> MiningApiClient:
        transport = self.mock_backend.transport() if self.mocking else None
        return MiningApiClient(
            self.settings.api_base_url,
            token if token is not None else self.settings.api_token,
            transport=transport,
        )


# ---------------------------------------------------------------------------
# Session-scoped fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def settings() -> Settings:
    return get_settings()


@pytest.fixture(scope="session")
def playwright_browser(settings: Settings) -> Iterator[Browser]:
    """Launch chromium once per test session."""
    with sync_playwright() as p:
        browser = p.chromium.launch(headless=settings.headless)
        yield browser
        browser.close()


# ---------------------------------------------------------------------------
# Function-scoped fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_backend(settings: Settings) -> MockBackend:
    """A fresh backend per test so counters and call logs start empty."""
    return MockBackend(
        users={
            settings.reporter_token: TEST_USERS["VALID_USER"],
            settings.pic_token: TEST_USERS["PIC_USER"],
            settings.supervisor_token: TEST_USERS["SUPERVISOR"],
        }
    )


@pytest.fixture()
def fixture_provider(settings: Settings, mock_backend: MockBackend) -> FixtureProvider:
    return FixtureProvider(settings, mock_backend)


@pytest.fixture()
def mining_session(fixture_provider: FixtureProvider, playwright_browser: Browser) -> Iterator[BrowserSession]:
    with fixture_provider.session(playwright_browser) as session:
        yield session


@pytest.fixture()
def network(mining_session: BrowserSession) -> NetworkController:
    return mining_session.network


@pytest.fixture()
def waits(mining_session: BrowserSession) -> WaitCoordinator:
    return mining_session.waits


@pytest.fixture()
def forms(mining_session: BrowserSession) -> FormDriver:
    return mining_session.forms


@pytest.fixture()
def auth(mining_session: BrowserSession) -> AuthDriver:
    return mining_session.auth


@pytest.fixture()
def login_page(mining_session: BrowserSession) -> LoginPage:
    return mining_session.login_page


@pytest.fixture()
def equipment_page(mining_session: BrowserSession) -> EquipmentInspectionPage:
    return mining_session.equipment_page


@pytest.fixture()
def hazard_page(mining_session: BrowserSession) -> HazardReportPage:
    return mining_session.hazard_page


@pytest.fixture()
def authenticated_session(fixture_provider: FixtureProvider, playwright_browser: Browser) -> Iterator[BrowserSession]:
    """Logged-in session; login failures fail the test during setup."""
    with fixture_provider.authenticated(playwright_browser) as session:
        yield session


@pytest.fixture()
def api_client(fixture_provider: FixtureProvider) -> Iterator[MiningApiClient]:
    with fixture_provider.api_client() as client:
        yield client


@pytest.fixture()
def role_tokens(settings: Settings) -> dict[str, str]:
    return {role: settings.token_for(role) for role in ("reporter", "pic", "supervisor")}
