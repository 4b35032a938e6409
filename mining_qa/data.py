"""Test data generators and request payload builders."""

from __future__ import annotations

import random
import string
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from .constants import MAX_RADIO_OPTIONS, TEST_LOCATIONS, TEST_USERS, SiteLocation

SAMPLE_EVIDENCE = "data:image/jpeg;base64,/9j/4AAQSkZJRg..."

FIELD_TYPE_CYCLE = ("text", "date", "select", "radio", "image")

# Smallest byte sequence browsers accept as a JPEG upload.
_JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00\xff\xd9"


def random_string(length: int = 10, rng: random.Random | None = None) -> str:
    chooser = rng or random
    return "".join(chooser.choice(string.ascii_letters + string.digits) for _ in range(length))


def random_email(rng: random.Random | None = None) -> str:
    return f"test_{random_string(8, rng)}@wemine.com"


def current_date() -> str:
    """Today as ``YYYY-MM-DD``, the format date inputs accept."""
    return datetime.now(timezone.utc).date().isoformat()


def current_datetime() -> str:
    """Now as ``YYYY-MM-DDTHH:MM``, the format datetime-local inputs accept."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M")


def sample_image_path(directory: str | Path | None = None) -> Path:
    """Write a tiny JPEG to upload as inspection or hazard evidence."""
    target_dir = Path(directory) if directory is not None else Path(tempfile.gettempdir())
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / "test-image.jpg"
    path.write_bytes(_JPEG_BYTES)
    return path


def _options_for(field_type: str) -> list[dict[str, str]]:
    if field_type == "radio":
        return [{"value": f"option{n}", "label": f"Option {n}"} for n in range(1, MAX_RADIO_OPTIONS + 1)]
    if field_type == "select":
        return [{"value": f"choice{n}", "label": f"Choice {n}"} for n in range(1, 4)]
    return []


def build_form_definition(
    code: str,
    field_count: int,
    *,
    name: str | None = None,
    field_types: tuple[str, ...] = FIELD_TYPE_CYCLE,
    version: int = 1,
) -> dict[str, Any]:
    """Form definition payload with *field_count* fields cycling through *field_types*."""
    fields = []
    for index in range(field_count):
        field_type = field_types[index % len(field_types)]
        field = {
            "id": f"{code.lower()}-field-{index + 1}",
            "name": f"field{index + 1}",
            "type": field_type,
            "label": f"Field {index + 1}",
            "required": index < 3,
            "order": index + 1,
        }
        options = _options_for(field_type)
        if options:
            field["options"] = options
        fields.append(field)
    return {
        "id": f"form-{code.lower()}",
        "code": code,
        "name": name or f"Form {code}",
        "fields": fields,
        "version": version,
        "active": True,
    }


def value_for_field(field: Mapping[str, Any]) -> str:
    """A valid submission value for one form field, chosen by its type."""
    field_type = field.get("type")
    if field_type == "date":
        return datetime.now(timezone.utc).isoformat()
    if field_type in ("select", "radio"):
        options = field.get("options") or []
        if options:
            first = options[0]
            return first["value"] if isinstance(first, Mapping) else str(first)
        return "option1"
    if field_type == "image":
        return SAMPLE_EVIDENCE
    return f"Test value for {field.get('name')}"


def build_submission_payload(
    form: Mapping[str, Any],
    submitted_by: str = TEST_USERS["VALID_USER"].username,
    equipment_id: str = "EQ-12345",
) -> dict[str, Any]:
    """Inspection submission for *form* with every field filled."""
    return {
        "formCode": form["code"],
        "formId": form["id"],
        "submittedBy": submitted_by,
        "submittedAt": datetime.now(timezone.utc).isoformat(),
        "equipmentId": equipment_id,
        "fields": {field["id"]: value_for_field(field) for field in form["fields"]},
    }


def build_hazard_payload(
    site: SiteLocation = TEST_LOCATIONS["MAIN_SITE"],
    pic: str = TEST_USERS["PIC_USER"].username,
    reported_by: str = TEST_USERS["VALID_USER"].username,
    area_description: str = "Near the heavy equipment parking zone",
    evidence: str = SAMPLE_EVIDENCE,
) -> dict[str, Any]:
    return {
        "location": site.location,
        "sublocation": site.sublocation,
        "area": site.area,
        "areaDescription": area_description,
        "evidence": evidence,
        "pic": pic,
        "reportedBy": reported_by,
        "reportedAt": datetime.now(timezone.utc).isoformat(),
    }
