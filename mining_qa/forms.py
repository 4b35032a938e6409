"""Filling and introspecting dynamically rendered forms.

Fields are unknown until the form definition is fetched, so every write goes
through one dispatch table keyed by :class:`FieldKind`.  Supporting a new
kind means adding a selector builder and a writer here; call sites keep
passing :class:`FieldDescriptor` values.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from playwright.sync_api import Locator, Page

from .config import get_logger
from .constants import TIMEOUTS
from .locators import SelfHealingFinder, testid
from .models import FieldDescriptor, FieldKind

logger = get_logger("forms")

DEFAULT_FORM_ROOT = '[data-testid="dynamic-form"], .dynamic-form-container'
CONTROL_SELECTOR = "input[name], select[name], textarea[name]"
REQUIRED_SELECTOR = "input[required], select[required], textarea[required]"

_NAMES_JS = "els => els.map(e => e.name).filter(Boolean)"
_REQUIRED_JS = """els => els.map(e => ({
    name: e.name || e.id,
    value: (e.type === 'radio' || e.type === 'checkbox') ? (e.checked ? e.value : '') : (e.value || '')
}))"""

Writer = Callable[[Locator, str], None]


def _fill_value(control: Locator, value: str) -> None:
    control.fill(value)


def _choose_option(control: Locator, value: str) -> None:
    control.select_option(value)


def _click_option(control: Locator, value: str) -> None:
    # The option test id often sits on a styled label rather than the input.
    control.click()


def _attach_file(control: Locator, value: str) -> None:
    control.set_input_files(value)


_WRITERS: dict[FieldKind, Writer] = {
    FieldKind.TEXT: _fill_value,
    FieldKind.DATE: _fill_value,
    FieldKind.SELECT: _choose_option,
    FieldKind.RADIO: _click_option,
    FieldKind.IMAGE: _attach_file,
}


def selectors_for(name: str, field: FieldDescriptor) -> tuple[str, tuple[str, ...]]:
    """Primary test-identifier selector and semantic fallbacks for one field."""
    kind = field.kind
    if kind is FieldKind.RADIO:
        return (
            testid(f"{name}-{field.value}"),
            (f'input[type="radio"][name="{name}"][value="{field.value}"]',),
        )
    if kind is FieldKind.IMAGE:
        return testid(f"{name}-image"), (f'input[type="file"][name="{name}"]',)
    if kind is FieldKind.SELECT:
        return testid(name), (f'select[name="{name}"]', f'[id="{name}"]')
    if kind is FieldKind.DATE:
        return testid(f"{name}-date"), (testid(name), f'input[type="date"][name="{name}"]', f'input[name="{name}"]')
    return testid(name), (f'input[name="{name}"]', f'textarea[name="{name}"]', f'[id="{name}"]')


class FormDriver:
    """Writes and reads the controls of one dynamically generated form.

    Introspection reads inside *root* by default; pass another container
    selector to read a different form with the same driver.
    """

    def __init__(
        self,
        page: Page,
        finder: SelfHealingFinder | None = None,
        *,
        root: str = DEFAULT_FORM_ROOT,
        timeout_ms: float = TIMEOUTS["SHORT"],
    ) -> None:
        self.page = page
        self.finder = finder or SelfHealingFinder(page)
        self.root = root
        self.timeout_ms = timeout_ms

    def _scope(self, root: str | None = None) -> Locator:
        return self.page.locator(root or self.root)

    def fill_field(self, name: str, field: FieldDescriptor) -> None:
        """Locate the control for *name* and write *field* with the kind-appropriate action.

        Raises ElementNotFound when the control does not appear within the wait budget.
        """
        primary, fallbacks = selectors_for(name, field)
        # File pickers are usually visually hidden behind a styled button.
        state = "attached" if field.kind is FieldKind.IMAGE else "visible"
        control = self.finder.find(primary, fallbacks, timeout=self.timeout_ms, state=state)
        _WRITERS[field.kind](control, field.value)
        logger.debug("Filled %s field '%s'", field.kind.value, name)

    def fill_form(self, field_map: Mapping[str, FieldDescriptor | Mapping[str, Any] | str]) -> None:
        """Fill every entry independently; the order of application carries no meaning."""
        for name, spec in field_map.items():
            self.fill_field(name, FieldDescriptor.from_spec(name, spec))

    def read_value(self, name: str) -> str:
        control = self.finder.find(testid(name), (f'[name="{name}"]', f'[id="{name}"]'), timeout=self.timeout_ms)
        return control.input_value()

    def read_field_names(self, root: str | None = None) -> set[str]:
        """Names of all input-capable controls currently rendered in the form."""
        return set(self._scope(root).locator(CONTROL_SELECTOR).evaluate_all(_NAMES_JS))

    def count_fields(self, root: str | None = None) -> int:
        return len(self.read_field_names(root))

    def read_required_unfilled(self, root: str | None = None) -> list[str]:
        """Names of mandatory controls whose value is empty or whitespace-only.

        A required radio group counts as filled as soon as one option is checked.
        """
        entries = self._scope(root).locator(REQUIRED_SELECTOR).evaluate_all(_REQUIRED_JS)
        filled: dict[str, bool] = {}
        for entry in entries:
            name = entry.get("name")
            if not name:
                continue
            has_value = bool((entry.get("value") or "").strip())
            filled[name] = filled.get(name, False) or has_value
        return [name for name, is_filled in filled.items() if not is_filled]

    def count_radio_options(self, name: str, root: str | None = None) -> int:
        """Observed option count of one radio group; the caller asserts the UI cap."""
        return self._scope(root).locator(f'input[type="radio"][name="{name}"]').count()

    def radio_groups(self, root: str | None = None) -> dict[str, int]:
        names = self._scope(root).locator('input[type="radio"]').evaluate_all(_NAMES_JS)
        groups: dict[str, int] = {}
        for name in names:
            groups[name] = groups.get(name, 0) + 1
        return groups
