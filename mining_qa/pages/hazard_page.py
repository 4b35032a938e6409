"""Safety hazard report screen."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Collection

from ..constants import API_ENDPOINTS, TIMEOUTS, SiteLocation
from ..errors import ensure_status
from ..locators import testid
from ..models import FieldDescriptor, RequestEvent
from .context import PageContext

HAZARD_FORM_ROOT = '[data-testid="hazard-form"], form.hazard-form'


@dataclass(frozen=True)
class HazardReport:
    """Mandatory content of a hazard report."""

    location: str
    sublocation: str
    area: str
    area_description: str
    evidence_path: str
    pic: str

    @classmethod
    def from_site(
        cls,
        site: SiteLocation,
        evidence_path: str,
        pic: str,
        area_description: str = "Near the heavy equipment parking zone",
    ) -> "HazardReport":
        return cls(site.location, site.sublocation, site.area, area_description, str(evidence_path), pic)

    def field_map(self) -> dict[str, FieldDescriptor]:
        return {
            "location": FieldDescriptor.select("location", self.location),
            "sublocation": FieldDescriptor.select("sublocation", self.sublocation),
            "area": FieldDescriptor.select("area", self.area),
            "areaDescription": FieldDescriptor.text("areaDescription", self.area_description),
            "evidence": FieldDescriptor.image("evidence", self.evidence_path),
            "pic": FieldDescriptor.select("pic", self.pic),
        }


class HazardReportPage:
    """Page model for creating safety hazard reports."""

    _MENU = testid("hazard-report-menu")
    _MENU_FALLBACKS = ('a:has-text("Hazard Report")', 'a:has-text("Safety Hazard")')

    _NEW_REPORT = testid("new-hazard-btn")
    _NEW_REPORT_FALLBACKS = ('button:has-text("New Report")', 'button:has-text("Report Hazard")')

    _SUBMIT = testid("submit-btn")
    _SUBMIT_FALLBACKS = ('button[type="submit"]',)

    _SUCCESS = testid("success-message")
    _SUCCESS_FALLBACKS = (".alert-success", ".success-notification")

    def __init__(self, ctx: PageContext) -> None:
        self.ctx = ctx
        self.forms = ctx.forms

    def navigate(self) -> None:
        self.ctx.finder.find(self._MENU, self._MENU_FALLBACKS, timeout=TIMEOUTS["MEDIUM"]).click()
        self.ctx.wait_for_load()

    def click_new_report(self) -> None:
        self.ctx.finder.find(self._NEW_REPORT, self._NEW_REPORT_FALLBACKS).click()

    def fill_report(self, report: HazardReport) -> None:
        self.forms.fill_form(report.field_map())

    def missing_mandatory_fields(self) -> list[str]:
        return self.forms.read_required_unfilled(root=HAZARD_FORM_ROOT)

    def submit_report(self, expected: Collection[int] = (201,)) -> RequestEvent:
        """Submit and return the hazard creation response."""
        with self.ctx.waits.expect_response(API_ENDPOINTS["HAZARD_CREATE"], TIMEOUTS["LONG"]) as created:
            self.ctx.finder.find(self._SUBMIT, self._SUBMIT_FALLBACKS).click()
        ensure_status(created.value.status, expected, url=created.value.url, what="hazard creation")
        return created.value

    def wait_for_submission_success(self, timeout_ms: float = TIMEOUTS["MEDIUM"]) -> None:
        self.ctx.finder.find(self._SUCCESS, self._SUCCESS_FALLBACKS, timeout=timeout_ms)
