"""Data model shared by the drivers: form fields, network rules, recorded events."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping

from .constants import MAX_FORM_FIELDS, MIN_FORM_FIELDS
from .matching import UrlMatcher, UrlPattern

RequestHandler = Callable[[str, str, Any, Mapping[str, str]], "tuple[int, Any]"]


# ---------------------------------------------------------------------------
# Dynamic forms
# ---------------------------------------------------------------------------

class FieldKind(str, Enum):
    """Kinds of control a dynamic form can render."""

    TEXT = "text"
    DATE = "date"
    SELECT = "select"
    RADIO = "radio"
    IMAGE = "image"


@dataclass(frozen=True)
class FieldDescriptor:
    """One value to write into a dynamically rendered form.

    ``value`` is the text/date/option value, or a file path for ``image``.
    """

    name: str
    kind: FieldKind
    value: str

    @classmethod
    def text(cls, name: str, value: str) -> "FieldDescriptor":
        return cls(name, FieldKind.TEXT, value)

    @classmethod
    def date(cls, name: str, value: str) -> "FieldDescriptor":
        return cls(name, FieldKind.DATE, value)

    @classmethod
    def select(cls, name: str, value: str) -> "FieldDescriptor":
        return cls(name, FieldKind.SELECT, value)

    @classmethod
    def radio(cls, name: str, value: str) -> "FieldDescriptor":
        return cls(name, FieldKind.RADIO, value)

    @classmethod
    def image(cls, name: str, path: str) -> "FieldDescriptor":
        return cls(name, FieldKind.IMAGE, str(path))

    @classmethod
    def from_spec(cls, name: str, spec: "FieldDescriptor | Mapping[str, Any] | str") -> "FieldDescriptor":
        """Accept a descriptor, a ``{"type": ..., "value": ...}`` mapping or a bare text value."""
        if isinstance(spec, FieldDescriptor):
            return spec
        if isinstance(spec, Mapping):
            return cls(name, FieldKind(spec.get("type", "text")), str(spec["value"]))
        return cls(name, FieldKind.TEXT, str(spec))


@dataclass(frozen=True)
class FormField:
    id: str
    name: str
    type: str
    label: str
    required: bool
    order: int
    options: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FormField":
        options = []
        for option in payload.get("options") or ():
            options.append(option["value"] if isinstance(option, Mapping) else option)
        return cls(
            id=str(payload["id"]),
            name=payload["name"],
            type=payload["type"],
            label=payload["label"],
            required=bool(payload["required"]),
            order=int(payload["order"]),
            options=tuple(options),
        )


@dataclass(frozen=True)
class FormDefinition:
    """Form definition as served by ``/forms/{code}``."""

    id: str
    code: str
    name: str
    fields: tuple[FormField, ...]
    version: int
    active: bool

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FormDefinition":
        missing = [key for key in ("id", "code", "name", "fields", "version", "active") if key not in payload]
        if missing:
            raise ValueError(f"Form definition is missing keys: {missing}")
        return cls(
            id=str(payload["id"]),
            code=payload["code"],
            name=payload["name"],
            fields=tuple(FormField.from_dict(item) for item in payload["fields"]),
            version=payload["version"],
            active=bool(payload["active"]),
        )

    @property
    def field_count(self) -> int:
        return len(self.fields)

    def within_field_bounds(self) -> bool:
        """True when the backend honoured the 1..50 field limit."""
        return MIN_FORM_FIELDS <= self.field_count <= MAX_FORM_FIELDS

    def ordered_fields(self) -> list[FormField]:
        return sorted(self.fields, key=lambda item: item.order)


# ---------------------------------------------------------------------------
# Network rules
# ---------------------------------------------------------------------------

class RuleAction(str, Enum):
    DELAY = "delay"
    ABORT = "abort"
    FULFILL = "fulfill"


@dataclass(frozen=True)
class NetworkRule:
    """An interception rule evaluated against every outgoing request.

    ``delay`` holds a request back by ``delay_ms`` and then lets it continue;
    ``abort`` fails it at transport level with ``probability``; ``fulfill``
    answers with ``status``/``body`` without reaching the backend.
    """

    url_pattern: UrlPattern
    action: RuleAction
    delay_ms: int = 0
    probability: float = 1.0
    status: int = 200
    body: Any = None
    content_type: str = "application/json"
    handler: RequestHandler | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not 0.0 <= self.probability <= 1.0:
            raise ValueError(f"probability must be within [0, 1], got {self.probability}")
        if self.delay_ms < 0:
            raise ValueError(f"delay_ms must be non-negative, got {self.delay_ms}")

    @classmethod
    def delay(cls, url_pattern: UrlPattern, delay_ms: int) -> "NetworkRule":
        return cls(url_pattern, RuleAction.DELAY, delay_ms=delay_ms)

    @classmethod
    def abort(cls, url_pattern: UrlPattern, probability: float = 1.0) -> "NetworkRule":
        return cls(url_pattern, RuleAction.ABORT, probability=probability)

    @classmethod
    def fulfill(cls, url_pattern: UrlPattern, body: Any, status: int = 200) -> "NetworkRule":
        return cls(url_pattern, RuleAction.FULFILL, status=status, body=body)

    @classmethod
    def respond(cls, url_pattern: UrlPattern, handler: RequestHandler) -> "NetworkRule":
        """Fulfill with whatever *handler(method, url, body, headers)* returns as ``(status, payload)``."""
        return cls(url_pattern, RuleAction.FULFILL, handler=handler)

    @property
    def matcher(self) -> UrlMatcher:
        return UrlMatcher.of(self.url_pattern)

    def response_for(
        self, method: str, url: str, body: Any = None, headers: Mapping[str, str] | None = None
    ) -> tuple[int, str]:
        """Status and encoded body to fulfill a matching request with."""
        if self.handler is not None:
            status, payload = self.handler(method, url, body, headers or {})
        else:
            status, payload = self.status, self.body
        if isinstance(payload, bytes):
            return status, payload.decode()
        if isinstance(payload, str):
            return status, payload
        return status, json.dumps(payload)

    def describe(self) -> str:
        if self.action is RuleAction.DELAY:
            detail = f"{self.delay_ms}ms"
        elif self.action is RuleAction.ABORT:
            detail = f"p={self.probability}"
        elif self.handler is not None:
            detail = getattr(self.handler, "__qualname__", "handler")
        else:
            detail = f"status={self.status}"
        return f"{self.action.value}({detail}) on {self.matcher.describe()}"


# ---------------------------------------------------------------------------
# Observed traffic
# ---------------------------------------------------------------------------

class EventKind(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"
    FAILED = "failed"


@dataclass
class RequestEvent:
    """Metadata of one observed request, response or transport failure.

    ``index`` is a per-controller sequence number, so comparing indexes gives
    call order independently of clock resolution.
    """

    index: int
    kind: EventKind
    url: str
    method: str = "GET"
    status: int | None = None
    failure: str | None = None
    timestamp: float = 0.0
    raw: Any = field(default=None, repr=False, compare=False)

    @property
    def ok(self) -> bool:
        return self.status is not None and 200 <= self.status < 300

    def json(self) -> Any:
        """Decode the body of the underlying response."""
        if self.raw is None:
            raise ValueError(f"No response body captured for {self.url}")
        return self.raw.json()


@dataclass(frozen=True)
class WaitSpec:
    """A pending asynchronous expectation: what to match and for how long."""

    matcher: UrlMatcher
    timeout_ms: float

    @classmethod
    def of(cls, pattern: UrlPattern, timeout_ms: float) -> "WaitSpec":
        return cls(UrlMatcher.of(pattern), timeout_ms)
