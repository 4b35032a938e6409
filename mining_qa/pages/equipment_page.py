"""Equipment inspection screen: submissions list and the dynamic inspection form."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Collection, Mapping

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..config import get_logger
from ..constants import API_ENDPOINTS, MAX_FORM_FIELDS, MIN_FORM_FIELDS, TIMEOUTS
from ..errors import ElementNotFound, ensure_status
from ..forms import DEFAULT_FORM_ROOT
from ..locators import testid
from ..models import EventKind, FieldDescriptor, RequestEvent
from .context import PageContext

logger = get_logger("pages.equipment")

QUEUED_MARKERS = ("queued", "offline", "pending")


def text_indicates_queued(text: str | None) -> bool:
    """Whether page text reports a submission waiting for connectivity."""
    lowered = (text or "").lower()
    return any(marker in lowered for marker in QUEUED_MARKERS)


def form_definition_pattern(form_code: str) -> re.Pattern:
    return re.compile(rf"/forms/{re.escape(form_code)}(?:[/?#]|$)")


@dataclass(frozen=True)
class OfflineSubmission:
    """What happened around a submit performed without connectivity."""

    leaked_responses: tuple[RequestEvent, ...]
    failed_requests: tuple[RequestEvent, ...]
    synced: RequestEvent

    @property
    def reached_backend_while_offline(self) -> bool:
        return bool(self.leaked_responses)


class EquipmentInspectionPage:
    """Page model for the equipment inspection module."""

    _MENU = testid("equipment-inspection-menu")
    _MENU_FALLBACKS = ('a:has-text("Equipment Inspection")',)

    _SUBMISSIONS_LIST = testid("submissions-list")
    _SUBMISSIONS_LIST_FALLBACKS = (".submissions-list",)
    _SUBMISSION_ITEMS = ".submission-item, li, tr"

    _NEW_SUBMISSION = testid("new-submission-btn")
    _NEW_SUBMISSION_FALLBACKS = ('button:has-text("New Submission")',)

    _FORM_CODE = testid("form-code-select")
    _FORM_CODE_FALLBACKS = ('select[name="formCode"]', "#formCode")

    _SUBMIT = testid("submit-btn")
    _SUBMIT_FALLBACKS = ('button[type="submit"]',)

    _SUCCESS = testid("success-message")
    _SUCCESS_FALLBACKS = (".alert-success", ".success-notification")

    _QUEUED = testid("offline-queue")
    _QUEUED_FALLBACKS = ('[data-sync-state="queued"]', ".queued-indicator", ".offline-banner")

    def __init__(self, ctx: PageContext) -> None:
        self.ctx = ctx
        self.forms = ctx.forms
        self.waits = ctx.waits

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def navigate(self) -> None:
        """Open the module from the main menu."""
        self.ctx.finder.find(self._MENU, self._MENU_FALLBACKS, timeout=TIMEOUTS["MEDIUM"]).click()
        self.ctx.wait_for_load()

    def verify_submissions_list_visible(self) -> bool:
        try:
            self.ctx.finder.find(self._SUBMISSIONS_LIST, self._SUBMISSIONS_LIST_FALLBACKS)
        except ElementNotFound:
            return False
        return True

    def click_new_submission(self) -> None:
        self.ctx.finder.find(self._NEW_SUBMISSION, self._NEW_SUBMISSION_FALLBACKS).click()
        self.ctx.wait_for_load()

    # ------------------------------------------------------------------
    # Dynamic form
    # ------------------------------------------------------------------

    def select_form_code(self, form_code: str) -> RequestEvent:
        """Pick *form_code* and wait for its definition to be fetched."""
        select = self.ctx.finder.find(self._FORM_CODE, self._FORM_CODE_FALLBACKS)
        with self.waits.expect_response(form_definition_pattern(form_code), TIMEOUTS["MEDIUM"]) as fetch:
            select.select_option(form_code)
        ensure_status(fetch.value.status, url=fetch.value.url, what=f"form definition {form_code}")
        return fetch.value

    def wait_for_dynamic_form_load(self) -> None:
        """Wait for the form container and at least one rendered control."""
        self.ctx.finder.find(testid("dynamic-form"), (".dynamic-form-container",), timeout=10_000)
        control = self.ctx.page.locator(DEFAULT_FORM_ROOT).locator("input, select, textarea").first
        try:
            control.wait_for(state="attached", timeout=TIMEOUTS["SHORT"])
        except PlaywrightTimeoutError as exc:
            raise ElementNotFound([DEFAULT_FORM_ROOT], "form rendered without any control") from exc

    def fill_complete_form(
        self, form_code: str, field_map: Mapping[str, FieldDescriptor | Mapping[str, Any] | str]
    ) -> RequestEvent:
        definition = self.select_form_code(form_code)
        self.wait_for_dynamic_form_load()
        self.forms.fill_form(field_map)
        return definition

    def verify_field_count(self, min_count: int = MIN_FORM_FIELDS, max_count: int = MAX_FORM_FIELDS) -> int:
        """Assert the number of rendered controls is within ``[min_count, max_count]``."""
        count = self.forms.count_fields()
        if not min_count <= count <= max_count:
            raise AssertionError(f"Rendered {count} form fields, expected between {min_count} and {max_count}")
        return count

    def count_radio_options(self, field_name: str) -> int:
        return self.forms.count_radio_options(field_name)

    def is_form_code_required(self) -> bool:
        select = self.ctx.finder.find(self._FORM_CODE, self._FORM_CODE_FALLBACKS)
        return bool(select.evaluate("el => el.required || el.getAttribute('aria-required') === 'true'"))

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit_form(self) -> None:
        self.ctx.finder.find(self._SUBMIT, self._SUBMIT_FALLBACKS).click()

    def submit_and_capture(self, expected: Collection[int] = (201,)) -> RequestEvent:
        """Submit and return the inspection submission response."""
        with self.waits.expect_response(API_ENDPOINTS["EQUIPMENT_SUBMISSION"], TIMEOUTS["LONG"]) as submission:
            self.submit_form()
        ensure_status(submission.value.status, expected, url=submission.value.url, what="inspection submission")
        return submission.value

    def wait_for_submission_success(self, timeout_ms: float = TIMEOUTS["MEDIUM"]) -> None:
        self.ctx.finder.find(self._SUCCESS, self._SUCCESS_FALLBACKS, timeout=timeout_ms)

    def verify_submission_in_list(self, form_code: str) -> bool:
        self.navigate()
        listing = self.ctx.finder.find(self._SUBMISSIONS_LIST, self._SUBMISSIONS_LIST_FALLBACKS)
        return form_code in listing.inner_text()

    def get_submission_count(self) -> int:
        listing = self.ctx.finder.find(self._SUBMISSIONS_LIST, self._SUBMISSIONS_LIST_FALLBACKS)
        return listing.locator(self._SUBMISSION_ITEMS).count()

    # ------------------------------------------------------------------
    # Offline submission
    # ------------------------------------------------------------------

    def queued_state_visible(self) -> bool:
        """A queued marker element is shown, or the page text says the submission is waiting."""
        if self.ctx.finder.is_present(self._QUEUED, self._QUEUED_FALLBACKS):
            return True
        return text_indicates_queued(self.ctx.page.locator("body").inner_text())

    def wait_for_queued_state(self, timeout_ms: float = TIMEOUTS["SHORT"]) -> float:
        return self.waits.wait_for_condition(
            self.queued_state_visible, timeout_ms, description="submission to be queued offline"
        )

    def submit_offline(self, sync_timeout_ms: float = TIMEOUTS["LONG"]) -> OfflineSubmission:
        """Submit without connectivity, then reconnect and wait for the queued submission to sync."""
        network = self.ctx.network
        recording = network.record()
        network.go_offline()
        try:
            self.submit_form()
            self.wait_for_queued_state()
            leaked = tuple(recording.matching(lambda url: True, EventKind.RESPONSE))
            failed = tuple(recording.matching(lambda url: True, EventKind.FAILED))
            sync = self.waits.expect_response(API_ENDPOINTS["EQUIPMENT_SUBMISSION"], sync_timeout_ms)
        finally:
            network.go_online()
            recording.stop()
        if leaked:
            logger.warning("%d responses observed while offline", len(leaked))
        return OfflineSubmission(leaked, failed, sync.result())
