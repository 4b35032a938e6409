"""Login screen: local username entry followed by the staged SSO flow."""

from __future__ import annotations

from ..config import Credentials
from ..errors import ElementNotFound
from ..locators import testid
from ..models import RequestEvent
from .context import PageContext


class LoginPage:
    """Page model for the login screen; the flow itself lives in :class:`AuthDriver`."""

    path = "/login"

    _ERROR_MSG = testid("error-message")
    _ERROR_FALLBACKS = (".error-message", ".alert-error", '[role="alert"]')

    def __init__(self, ctx: PageContext) -> None:
        self.ctx = ctx
        self.auth = ctx.auth

    def navigate(self) -> None:
        self.ctx.goto(self.path)
        self.ctx.wait_for_load("domcontentloaded")

    def start_login(self, username: str) -> None:
        """Open the login screen and submit *username*."""
        self.navigate()
        self.auth.submit_username(username)

    def perform_complete_login(self, credentials: Credentials):
        """Run the whole sign-in sequence and return the captured :class:`LoginTrace`."""
        self.navigate()
        return self.auth.login(credentials)

    def lookup_unknown_user(self, username: str) -> RequestEvent:
        """Submit a username the backend does not know; the lookup must answer 404."""
        self.start_login(username)
        return self.auth.await_user_lookup(expected={404})

    # ------------------------------------------------------------------
    # Assertions
    # ------------------------------------------------------------------

    def error_visible(self, timeout_ms: float = 5_000) -> bool:
        try:
            self.ctx.finder.find(self._ERROR_MSG, self._ERROR_FALLBACKS, timeout=timeout_ms)
        except ElementNotFound:
            return False
        return True

    def expect_error_message(self, text: str) -> None:
        locator = self.ctx.finder.find(self._ERROR_MSG, self._ERROR_FALLBACKS)
        self.ctx.expect_text(locator, text)
