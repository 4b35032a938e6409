"""Fixed surface of the application under test: users, sites, forms, endpoints."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass


@dataclass(frozen=True)
class UserAccount:
    username: str
    ms_email: str
    ms_password: str
    role: str


@dataclass(frozen=True)
class SiteLocation:
    location: str
    sublocation: str
    area: str


TEST_USERS = {
    "VALID_USER": UserAccount(
        username="testuser@mining.com",
        ms_email="testuser@mining.com",
        ms_password=os.environ.get("MS_PASSWORD", "TestPassword123!"),
        role="operator",
    ),
    "SUPERVISOR": UserAccount(
        username="supervisor@mining.com",
        ms_email="supervisor@mining.com",
        ms_password=os.environ.get("MS_PASSWORD", "SupervisorPass123!"),
        role="supervisor",
    ),
    "PIC_USER": UserAccount(
        username="pic@mining.com",
        ms_email="pic@mining.com",
        ms_password=os.environ.get("MS_PASSWORD", "PICPass123!"),
        role="pic",
    ),
}

INVALID_USERNAME = "nonexistent@invalid.com"

TEST_LOCATIONS = {
    "MAIN_SITE": SiteLocation("Main Site", "North Section", "Area A1"),
    "SECONDARY_SITE": SiteLocation("Secondary Site", "South Section", "Area B2"),
}

FORM_CODES = {
    "BASIC_INSPECTION": "FORM-001",
    "DETAILED_INSPECTION": "FORM-002",
    "EQUIPMENT_CHECK": "FORM-003",
    "MAX_FIELDS": "FORM-MAX-FIELDS",
}

API_ENDPOINTS = {
    "USER_WHO": re.compile(r"/user/who"),
    "USER_ME": re.compile(r"/user/me"),
    "TENANT_MASTER": re.compile(r"/tenant/master"),
    "TENANT_INFO": re.compile(r"/tenant/info|/tenant/lookup"),
    "LOCATIONS": re.compile(r"(?<!sub)/locations"),
    "SUBLOCATIONS": re.compile(r"/sublocations"),
    "AREAS": re.compile(r"/areas"),
    "EMPLOYEES": re.compile(r"/employees"),
    "FORMS": re.compile(r"/forms"),
    "EQUIPMENT_SUBMISSION": re.compile(r"/equipment/inspection/submit|/equipment/submission"),
    "HAZARD_CREATE": re.compile(r"/safety/hazard|/hazard/create"),
}

# Fetched after the master-data bundle while the progress bar is shown.
MASTER_DATA_ENDPOINTS = ("LOCATIONS", "SUBLOCATIONS", "AREAS", "EMPLOYEES", "FORMS")

# Milliseconds, the unit Playwright uses for every timeout.
TIMEOUTS = {
    "SHORT": 5_000,
    "MEDIUM": 15_000,
    "LONG": 30_000,
    "EXTRA_LONG": 60_000,
}

SUBMISSION_NUMBER_RE = re.compile(r"^INS-\d{4}-\d{3,}$")
HAZARD_NUMBER_RE = re.compile(r"^HZD-\d{4}-\d{3,}$")
TENANT_DOMAIN_RE = re.compile(r"^[a-z0-9-]+$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MIN_FORM_FIELDS = 1
MAX_FORM_FIELDS = 50
MAX_RADIO_OPTIONS = 4

# Hosts that mean the browser has reached the third-party identity provider.
SSO_HOST_MARKERS = ("login.microsoftonline.com", "microsoft")
