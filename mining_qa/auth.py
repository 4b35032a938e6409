"""Staged driver for the username -> tenant lookup -> SSO -> master-data login flow.

Each stage is awaited on its own so callers can check the presence, order and
status of every backend call.  The response waits of a stage are registered
before the action that triggers it.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Collection, Iterator

from playwright.sync_api import Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .config import Credentials, get_logger
from .constants import API_ENDPOINTS, MASTER_DATA_ENDPOINTS, SSO_HOST_MARKERS, TIMEOUTS
from .errors import SUCCESS_STATUSES, ElementNotFound, MiningQAError, ensure_status
from .locators import SelfHealingFinder, testid
from .models import EventKind, RequestEvent
from .network import Recording
from .waits import PendingGroup, PendingResponse, WaitCoordinator

logger = get_logger("auth")

AUTH_TOKEN_KEY = "authToken"

USERNAME_INPUT = (testid("username-input"), ("#username", 'input[name="username"]'))
CONTINUE_BUTTON = (testid("continue-btn"), ('button:has-text("Continue")',))
SSO_EMAIL_INPUT = ('input[name="loginfmt"]', ('input[type="email"]',))
SSO_PASSWORD_INPUT = ('input[name="passwd"]', ('input[type="password"]',))
SSO_NEXT_BUTTON = ('input[type="submit"]', ('button[type="submit"]',))
SSO_SIGN_IN_BUTTON = ('input[type="submit"][value*="Sign in"]', ('button:has-text("Sign in")', 'input[type="submit"]'))
SSO_STAY_SIGNED_IN = ('input[type="submit"][value="Yes"]', ('button:has-text("Yes")',))
PROFILE_ICON = (testid("profile-icon"), (".user-profile",))
RESTART_PROMPT = (testid("restart-prompt"), (".restart-notification",))
PROGRESS_BAR = '[data-testid="progress-bar"], .progress-bar'
# Long enough to cover the SSO round trip plus the whole progress-bar budget.
AUXILIARY_WINDOW_MS = 2 * TIMEOUTS["EXTRA_LONG"]

_HAS_TOKEN_JS = (
    "key => Boolean(window.localStorage.getItem(key) || window.sessionStorage.getItem(key))"
)
_CLEAR_STORAGE_JS = "() => { window.localStorage.clear(); window.sessionStorage.clear(); }"


class AuthStage(str, Enum):
    IDLE = "idle"
    USERNAME_ENTERED = "username_entered"
    TENANT_LOOKUP_PENDING = "tenant_lookup_pending"
    SSO_REDIRECT = "sso_redirect"
    SSO_CREDENTIALS_ENTERED = "sso_credentials_entered"
    PROFILE_FETCH_PENDING = "profile_fetch_pending"
    MASTER_DATA_SYNCING = "master_data_syncing"
    READY = "ready"
    FAILED = "failed"


_TRANSITIONS = {
    AuthStage.IDLE: {AuthStage.USERNAME_ENTERED},
    AuthStage.USERNAME_ENTERED: {AuthStage.TENANT_LOOKUP_PENDING},
    AuthStage.TENANT_LOOKUP_PENDING: {AuthStage.SSO_REDIRECT},
    AuthStage.SSO_REDIRECT: {AuthStage.SSO_CREDENTIALS_ENTERED},
    AuthStage.SSO_CREDENTIALS_ENTERED: {AuthStage.PROFILE_FETCH_PENDING},
    AuthStage.PROFILE_FETCH_PENDING: {AuthStage.MASTER_DATA_SYNCING},
    AuthStage.MASTER_DATA_SYNCING: {AuthStage.READY},
    AuthStage.READY: set(),
    AuthStage.FAILED: set(),
}


class AuthSequenceError(MiningQAError):
    """A login stage was awaited out of order."""


@dataclass
class LoginTrace:
    """Responses captured while logging in, one attribute per stage."""

    user_lookup: RequestEvent | None = None
    tenant_info: RequestEvent | None = None
    profile: RequestEvent | None = None
    master_data: RequestEvent | None = None
    auxiliary: dict[str, RequestEvent | None] = field(default_factory=dict)
    sso_performed: bool = False
    progress_seen: bool = False
    requests: Recording | None = field(default=None, repr=False)

    def lookup_precedes_profile(self) -> bool:
        """Whether the user lookup was both sent and answered before the profile fetch.

        Request order is read from :attr:`requests`; a trace without a
        recording can only vouch for the order of the responses.
        """
        if self.user_lookup is None or self.profile is None:
            return False
        if self.user_lookup.index >= self.profile.index:
            return False
        if self.requests is None:
            return True
        lookup_sent = self.requests.first_index(API_ENDPOINTS["USER_WHO"], EventKind.REQUEST)
        profile_sent = self.requests.first_index(API_ENDPOINTS["USER_ME"], EventKind.REQUEST)
        return lookup_sent is not None and profile_sent is not None and lookup_sent < profile_sent

    @property
    def missing_auxiliary(self) -> list[str]:
        return [name for name, event in self.auxiliary.items() if event is None]


class AuthDriver:
    """Drives the multi-step login of one browser session and reports its state."""

    def __init__(
        self,
        page: Page,
        waits: WaitCoordinator,
        finder: SelfHealingFinder | None = None,
        *,
        sso_redirect_timeout_ms: float = 10_000,
        stay_signed_in_timeout_ms: float = TIMEOUTS["SHORT"],
    ) -> None:
        self.page = page
        self.waits = waits
        self.finder = finder or SelfHealingFinder(page)
        self.sso_redirect_timeout_ms = sso_redirect_timeout_ms
        self.stay_signed_in_timeout_ms = stay_signed_in_timeout_ms
        self.stage = AuthStage.IDLE
        self.trace = LoginTrace()
        self._lookup: PendingResponse | None = None
        self._tenant: PendingResponse | None = None
        self._profile: PendingGroup | None = None
        self._auxiliary: dict[str, PendingResponse] = {}
        self._requests: Recording | None = None

    # ------------------------------------------------------------------
    # Stage bookkeeping
    # ------------------------------------------------------------------

    def _advance(self, target: AuthStage) -> None:
        if target not in _TRANSITIONS[self.stage]:
            raise AuthSequenceError(f"Cannot move from {self.stage.value} to {target.value}")
        logger.info("Auth stage %s -> %s", self.stage.value, target.value)
        self.stage = target

    def _fail(self) -> None:
        if self.stage is not AuthStage.FAILED:
            logger.info("Auth stage %s -> failed", self.stage.value)
            self.stage = AuthStage.FAILED
        self._cancel_pending()

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except AuthSequenceError:
            raise
        except Exception:
            self._fail()
            raise

    def _cancel_pending(self) -> None:
        for pending in (self._lookup, self._tenant, self._profile, *self._auxiliary.values()):
            if pending is not None:
                pending.cancel()
        self._auxiliary = {}
        if self._requests is not None:
            self._requests.stop()
            self._requests = None

    def reset(self) -> None:
        self._cancel_pending()
        self._lookup = self._tenant = self._profile = None
        self.stage = AuthStage.IDLE
        self.trace = LoginTrace()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def submit_username(self, username: str) -> None:
        """Enter the local username and press continue (Idle -> UsernameEntered)."""
        with self._guard():
            if self.stage is not AuthStage.IDLE:
                self.reset()
            field_ = self.finder.find(*USERNAME_INPUT, timeout=TIMEOUTS["MEDIUM"])
            field_.fill(username)
            self._requests = self.trace.requests = self.waits.network.record()
            self._lookup = self.waits.expect_response(API_ENDPOINTS["USER_WHO"], TIMEOUTS["LONG"])
            self._tenant = self.waits.expect_response(API_ENDPOINTS["TENANT_INFO"], TIMEOUTS["LONG"])
            self.finder.find(*CONTINUE_BUTTON).click()
            self._advance(AuthStage.USERNAME_ENTERED)

    def await_user_lookup(self, expected: Collection[int] = SUCCESS_STATUSES) -> RequestEvent:
        """Resolve the user lookup; a non-2xx status the caller expected still ends the flow."""
        with self._guard():
            if self._lookup is None:
                raise AuthSequenceError("No username has been submitted")
            if self.stage is AuthStage.USERNAME_ENTERED:
                self._advance(AuthStage.TENANT_LOOKUP_PENDING)
            lookup = self._lookup.result()
            self.trace.user_lookup = lookup
            ensure_status(lookup.status, expected, url=lookup.url, what="user lookup")
        if lookup.status not in SUCCESS_STATUSES:
            self._fail()
        return lookup

    def await_tenant_lookup(self) -> tuple[RequestEvent, RequestEvent]:
        """Require both the user and tenant lookups to succeed (-> SSORedirect)."""
        lookup = self.await_user_lookup()
        with self._guard():
            tenant = self._tenant.result()
            self.trace.tenant_info = tenant
            ensure_status(tenant.status, url=tenant.url, what="tenant info")
            # Everything after the redirect is captured from here on.
            self._profile = self.waits.expect_all(
                [API_ENDPOINTS["USER_ME"], API_ENDPOINTS["TENANT_MASTER"]], TIMEOUTS["EXTRA_LONG"]
            )
            self._auxiliary = {
                name: self.waits.expect_response(API_ENDPOINTS[name], AUXILIARY_WINDOW_MS)
                for name in MASTER_DATA_ENDPOINTS
            }
            self._advance(AuthStage.SSO_REDIRECT)
        return lookup, tenant

    def _reached_identity_provider(self) -> bool:
        try:
            self.page.wait_for_url(
                lambda url: any(marker in url for marker in SSO_HOST_MARKERS),
                timeout=self.sso_redirect_timeout_ms,
            )
        except PlaywrightTimeoutError:
            return False
        return True

    def complete_sso(self, credentials: Credentials) -> bool:
        """Submit the identity-provider login if the browser was redirected there.

        Returns whether the SSO form was used; an application that signs the
        user in without the redirect is not an error.
        """
        with self._guard():
            performed = self._reached_identity_provider()
            if performed:
                self.finder.find(*SSO_EMAIL_INPUT, timeout=10_000).fill(credentials.sso_email)
                self.finder.find(*SSO_NEXT_BUTTON).click()
                self.finder.find(*SSO_PASSWORD_INPUT, timeout=10_000).fill(credentials.sso_password)
                self.finder.find(*SSO_SIGN_IN_BUTTON).click()
                self._confirm_stay_signed_in()
            else:
                logger.info("No redirect to the identity provider within %.0fms", self.sso_redirect_timeout_ms)
            self.trace.sso_performed = performed
            self._advance(AuthStage.SSO_CREDENTIALS_ENTERED)
            return performed

    def _confirm_stay_signed_in(self) -> None:
        try:
            prompt = self.finder.find(*SSO_STAY_SIGNED_IN, timeout=self.stay_signed_in_timeout_ms)
        except ElementNotFound:
            logger.info("Stay-signed-in prompt not shown")
            return
        prompt.click()

    def await_profile(self) -> tuple[RequestEvent, RequestEvent]:
        """Require the profile and master-data bundle calls to succeed (-> MasterDataSyncing)."""
        with self._guard():
            if self._profile is None:
                raise AuthSequenceError("Tenant lookup has not been awaited")
            self._advance(AuthStage.PROFILE_FETCH_PENDING)
            profile, master = self._profile.result()
            self.trace.profile = profile
            self.trace.master_data = master
            ensure_status(profile.status, url=profile.url, what="profile fetch")
            ensure_status(master.status, url=master.url, what="master data")
            self._advance(AuthStage.MASTER_DATA_SYNCING)
        return profile, master

    def await_master_data_sync(
        self,
        appear_timeout_ms: float = TIMEOUTS["MEDIUM"],
        hidden_timeout_ms: float = TIMEOUTS["EXTRA_LONG"],
    ) -> dict[str, RequestEvent | None]:
        """Wait for the sync progress bar to go away (-> Ready).

        The auxiliary endpoints are optional: whichever were not called by the
        time the bar is hidden are logged and reported as ``None``.
        """
        with self._guard():
            self.trace.progress_seen = self.waits.wait_for_loading_complete(
                PROGRESS_BAR, appear_timeout_ms=appear_timeout_ms, hidden_timeout_ms=hidden_timeout_ms
            )
            auxiliary = {}
            for name, pending in self._auxiliary.items():
                auxiliary[name] = pending.poll()
                pending.cancel()
                if auxiliary[name] is None:
                    logger.info("Optional master-data endpoint %s was not called", name)
            self._auxiliary = {}
            self.trace.auxiliary = auxiliary
            self._advance(AuthStage.READY)
            self._requests.stop()
        return auxiliary

    def login(self, credentials: Credentials) -> LoginTrace:
        """Run every stage in order from the login screen and return the captured trace."""
        self.submit_username(credentials.username)
        self.await_tenant_lookup()
        self.complete_sso(credentials)
        self.await_profile()
        self.await_master_data_sync()
        return self.trace

    # ------------------------------------------------------------------
    # Local state
    # ------------------------------------------------------------------

    def is_authenticated(self) -> bool:
        """Whether a token is present in the page's persisted storage; no network calls."""
        return bool(self.page.evaluate(_HAS_TOKEN_JS, AUTH_TOKEN_KEY))

    def clear_auth(self) -> None:
        self.page.context.clear_cookies()
        self.page.evaluate(_CLEAR_STORAGE_JS)
        self.reset()

    def save_auth_state(self, path: str | Path) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        self.page.context.storage_state(path=str(target))
        return target

    def is_login_successful(self, timeout_ms: float = 10_000) -> bool:
        """Whether the profile icon shows up within *timeout_ms*."""
        try:
            self.finder.find(*PROFILE_ICON, timeout=timeout_ms)
        except ElementNotFound:
            return False
        return True

    def check_restart_prompt(self) -> bool:
        """Whether the first-sync restart notice is currently shown."""
        return self.finder.is_present(*RESTART_PROMPT)
