"""Deterministic in-process stand-in for the mining operations API.

The same backend serves browser traffic (through a NetworkController
fulfill rule) and API tests (through :meth:`MockBackend.transport`).
"""

from __future__ import annotations

import itertools
import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping
from urllib.parse import parse_qs, urlsplit

import httpx

from .config import get_logger
from .constants import FORM_CODES, TEST_LOCATIONS, TEST_USERS, UserAccount
from .data import build_form_definition

logger = get_logger("mock-backend")

HAZARD_MANDATORY_FIELDS = ("location", "sublocation", "area", "areaDescription", "evidence", "pic")

DEFAULT_TENANT = {"id": "tenant-001", "name": "Mining Co", "domain": "mining-co"}


def default_forms() -> dict[str, dict[str, Any]]:
    basic = build_form_definition(FORM_CODES["BASIC_INSPECTION"], 0, name="Basic Equipment Inspection")
    basic["fields"] = [
        {"id": "f-equipment-id", "name": "equipmentId", "type": "text", "label": "Equipment ID", "required": True, "order": 1},
        {"id": "f-inspection-date", "name": "inspectionDate", "type": "date", "label": "Inspection Date", "required": True, "order": 2},
        {
            "id": "f-equipment-type",
            "name": "equipmentType",
            "type": "select",
            "label": "Equipment Type",
            "required": True,
            "order": 3,
            "options": [{"value": v, "label": v} for v in ("Excavator", "Haul Truck", "Dozer", "Loader")],
        },
    ]
    return {
        basic["code"]: basic,
        FORM_CODES["DETAILED_INSPECTION"]: build_form_definition(
            FORM_CODES["DETAILED_INSPECTION"], 25, name="Detailed Equipment Inspection"
        ),
        FORM_CODES["EQUIPMENT_CHECK"]: build_form_definition(FORM_CODES["EQUIPMENT_CHECK"], 10, name="Equipment Check"),
        FORM_CODES["MAX_FIELDS"]: build_form_definition(FORM_CODES["MAX_FIELDS"], 50, name="Maximum Fields Form"),
    }


@dataclass(frozen=True)
class BackendCall:
    method: str
    path: str
    body: Any = None
    authorized: bool = False


@dataclass
class _Route:
    method: str
    pattern: re.Pattern
    handler: Callable[..., Any]
    auth: bool = True


class MockBackend:
    """Answers the endpoints the suite exercises with fixed, well-formed payloads.

    ``handle(method, url, body, headers)`` returns ``(status, payload)``.
    Any non-empty bearer token is accepted; tokens listed in ``users`` select
    the profile returned by ``/user/me``.
    """

    def __init__(
        self,
        *,
        tenant: Mapping[str, str] | None = None,
        users: Mapping[str, UserAccount] | None = None,
        forms: Mapping[str, Mapping[str, Any]] | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.tenant = dict(tenant or DEFAULT_TENANT)
        self.known_users = {account.username: account for account in TEST_USERS.values()}
        self.users = dict(users or {})
        self.forms = {code: dict(definition) for code, definition in (forms or default_forms()).items()}
        self.calls: list[BackendCall] = []
        self._clock = clock
        self._submission_seq = itertools.count(1)
        self._hazard_seq = itertools.count(1)
        self._routes = [
            _Route("POST", re.compile(r"/user/who$"), self._user_who, auth=False),
            _Route("GET", re.compile(r"/user/who$"), self._user_who, auth=False),
            _Route("GET", re.compile(r"/tenant/(?:info|lookup)$"), self._tenant_info, auth=False),
            _Route("GET", re.compile(r"/user/me$"), self._profile),
            _Route("GET", re.compile(r"/tenant/master$"), self._master),
            _Route("GET", re.compile(r"/(?P<kind>locations|sublocations|areas|employees)$"), self._listing),
            _Route("GET", re.compile(r"/forms$"), self._form_list),
            _Route("GET", re.compile(r"/forms/(?P<code>[^/]+)$"), self._form),
            _Route("POST", re.compile(r"/equipment/(?:inspection/submit|submission)$"), self._submit_inspection),
            _Route("POST", re.compile(r"/(?:safety/hazard|hazard/create)$"), self._create_hazard),
        ]

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def handle(self, method: str, url: str, body: Any = None, headers: Mapping[str, str] | None = None):
        """Serve one request; returns ``(status, payload)``."""
        parts = urlsplit(url)
        method = method.upper()
        payload = self._decode(body)
        token = self._bearer(headers or {})
        self.calls.append(BackendCall(method, parts.path, payload, token is not None))

        if method == "OPTIONS":
            return 204, ""

        path_matched = False
        for route in self._routes:
            match = route.pattern.search(parts.path)
            if not match:
                continue
            path_matched = True
            if route.method != method:
                continue
            if route.auth and token is None:
                return 401, {"error": "unauthorized"}
            query = {key: values[-1] for key, values in parse_qs(parts.query).items()}
            status, reply = route.handler(payload=payload, query=query, token=token, **match.groupdict())
            logger.debug("%s %s -> %s", method, parts.path, status)
            return status, reply

        if path_matched:
            return 405, {"error": "method not allowed"}
        return 404, {"error": "not found"}

    def transport(self) -> httpx.MockTransport:
        """An httpx transport that routes every request to :meth:`handle`."""

        def respond(request: httpx.Request) -> httpx.Response:
            status, payload = self.handle(request.method, str(request.url), request.content, request.headers)
            if isinstance(payload, str):
                return httpx.Response(status, text=payload)
            return httpx.Response(status, json=payload)

        return httpx.MockTransport(respond)

    def calls_to(self, pattern: str) -> list[BackendCall]:
        regex = re.compile(pattern)
        return [call for call in self.calls if regex.search(call.path)]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(body: Any) -> Any:
        if body is None or isinstance(body, (dict, list)):
            return body
        if isinstance(body, bytes):
            body = body.decode()
        if not body:
            return None
        try:
            return json.loads(body)
        except json.JSONDecodeError:
            return body

    @staticmethod
    def _bearer(headers: Mapping[str, str]) -> str | None:
        value = ""
        for key, header in headers.items():
            if key.lower() == "authorization":
                value = header
                break
        scheme, _, token = value.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()

    def _now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _user_who(self, payload: Any, query: Mapping[str, str], **_: Any):
        username = (payload or {}).get("username") if isinstance(payload, dict) else None
        username = username or query.get("username")
        account = self.known_users.get(username or "")
        if account is None:
            return 404, {"error": "user not found"}
        return 200, {"tenant": dict(self.tenant), "userId": f"user-{account.role}"}

    def _tenant_info(self, **_: Any):
        return 200, dict(self.tenant)

    def _profile(self, token: str, **_: Any):
        account = self.users.get(token, TEST_USERS["VALID_USER"])
        return 200, {
            "id": f"user-{account.role}",
            "username": account.username,
            "email": account.ms_email,
            "role": account.role,
            "tenantId": self.tenant["id"],
            "permissions": ["inspection:submit", "hazard:create"],
        }

    def _master(self, **_: Any):
        return 200, {
            "tenantId": self.tenant["id"],
            "version": 1,
            "modules": ["equipment-inspection", "safety-hazard"],
        }

    def _listing(self, kind: str, **_: Any):
        sites = list(TEST_LOCATIONS.values())
        if kind == "employees":
            items = [{"id": f"user-{a.role}", "name": a.username, "role": a.role} for a in TEST_USERS.values()]
        else:
            attribute = {"locations": "location", "sublocations": "sublocation", "areas": "area"}[kind]
            items = [{"id": f"{attribute}-{n}", "name": getattr(site, attribute)} for n, site in enumerate(sites, 1)]
        return 200, {"items": items}

    def _form_list(self, **_: Any):
        return 200, [
            {"id": definition["id"], "code": code, "name": definition["name"], "version": definition["version"]}
            for code, definition in self.forms.items()
        ]

    def _form(self, code: str, **_: Any):
        definition = self.forms.get(code)
        if definition is None:
            return 404, {"error": f"form {code} not found"}
        return 200, definition

    def _submit_inspection(self, payload: Any, **_: Any):
        if not isinstance(payload, dict) or not payload.get("formCode"):
            return 400, {"error": "formCode is required"}
        if payload["formCode"] not in self.forms:
            return 400, {"error": f"unknown form {payload['formCode']}"}
        now = self._now()
        sequence = next(self._submission_seq)
        return 201, {
            "id": f"submission-{sequence}",
            "submissionNumber": f"INS-{now.year}-{sequence:03d}",
            "formCode": payload["formCode"],
            "formId": payload.get("formId"),
            "equipmentId": payload.get("equipmentId"),
            "submittedBy": payload.get("submittedBy"),
            "status": "SUBMITTED",
            "submittedAt": now.isoformat(),
        }

    def _create_hazard(self, payload: Any, **_: Any):
        payload = payload if isinstance(payload, dict) else {}
        missing = [name for name in HAZARD_MANDATORY_FIELDS if not str(payload.get(name) or "").strip()]
        if missing:
            return 400, {"error": "missing mandatory fields", "fields": missing}
        now = self._now()
        sequence = next(self._hazard_seq)
        return 201, {
            "id": f"hazard-{sequence}",
            "hazardNumber": f"HZD-{now.year}-{sequence:03d}",
            "status": "OPEN",
            "followupTaskId": f"task-{sequence}",
            "location": payload["location"],
            "sublocation": payload["sublocation"],
            "area": payload["area"],
            "areaDescription": payload["areaDescription"],
            "pic": payload["pic"],
            "reportedBy": payload.get("reportedBy"),
            "reportedAt": payload.get("reportedAt") or now.isoformat(),
        }
