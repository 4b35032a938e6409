"""Page models for the screens the suite drives.

Each page model is a thin facade composed from the session's drivers (see
:class:`PageContext`) and exposes screen-level actions instead of raw selectors.
"""

from .context import PageContext
from .equipment_page import EquipmentInspectionPage, OfflineSubmission
from .hazard_page import HazardReport, HazardReportPage
from .login_page import LoginPage

__all__ = [
    "EquipmentInspectionPage",
    "HazardReport",
    "HazardReportPage",
    "LoginPage",
    "OfflineSubmission",
    "PageContext",
]
