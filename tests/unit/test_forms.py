"""Unit tests for mining_qa.forms – dynamic form filling and introspection."""

from __future__ import annotations

import itertools
from unittest.mock import MagicMock

import pytest

from mining_qa.errors import ElementNotFound
from mining_qa.forms import CONTROL_SELECTOR, DEFAULT_FORM_ROOT, REQUIRED_SELECTOR, FormDriver, selectors_for
from mining_qa.models import FieldDescriptor


class RecordingControl:
    """Control double that keeps whatever was written into it."""

    def __init__(self):
        self.value = None

    def fill(self, value):
        self.value = value

    def select_option(self, value):
        self.value = value

    def click(self):
        self.value = "clicked"

    def set_input_files(self, path):
        self.value = path


class DictFinder:
    """Resolves a control by its primary selector."""

    def __init__(self):
        self.controls: dict[str, RecordingControl] = {}
        self.calls = []

    def find(self, primary, fallbacks=(), *, timeout=None, state="visible"):
        self.calls.append((primary, state))
        return self.controls.setdefault(primary, RecordingControl())


def _driver(page=None, finder=None):
    return FormDriver(page or MagicMock(), finder or MagicMock())


@pytest.mark.unit
class TestSelectors:
    def test_text_prefers_test_id(self):
        primary, fallbacks = selectors_for("equipmentId", FieldDescriptor.text("equipmentId", "EQ-1"))
        assert primary == '[data-testid="equipmentId"]'
        assert 'input[name="equipmentId"]' in fallbacks

    def test_radio_targets_the_option(self):
        primary, fallbacks = selectors_for("condition", FieldDescriptor.radio("condition", "good"))
        assert primary == '[data-testid="condition-good"]'
        assert fallbacks == ('input[type="radio"][name="condition"][value="good"]',)

    def test_image_and_date(self):
        assert selectors_for("photo", FieldDescriptor.image("photo", "/x.jpg"))[0] == '[data-testid="photo-image"]'
        assert selectors_for("when", FieldDescriptor.date("when", "2024-01-01"))[0] == '[data-testid="when-date"]'


@pytest.mark.unit
class TestFillField:
    def test_text_is_filled(self):
        finder = MagicMock()
        driver = _driver(finder=finder)

        driver.fill_field("equipmentId", FieldDescriptor.text("equipmentId", "EQ-12345"))

        finder.find.return_value.fill.assert_called_once_with("EQ-12345")
        assert finder.find.call_args.kwargs["state"] == "visible"

    def test_select_chooses_option_by_value(self):
        finder = MagicMock()
        _driver(finder=finder).fill_field("equipmentType", FieldDescriptor.select("equipmentType", "Excavator"))
        finder.find.return_value.select_option.assert_called_once_with("Excavator")

    def test_radio_clicks_the_option_control(self):
        finder = MagicMock()
        _driver(finder=finder).fill_field("condition", FieldDescriptor.radio("condition", "good"))

        assert finder.find.call_args.args[0] == '[data-testid="condition-good"]'
        finder.find.return_value.click.assert_called_once_with()
        finder.find.return_value.check.assert_not_called()

    def test_image_attaches_hidden_input(self):
        finder = MagicMock()
        _driver(finder=finder).fill_field("evidence", FieldDescriptor.image("evidence", "/tmp/a.jpg"))
        finder.find.return_value.set_input_files.assert_called_once_with("/tmp/a.jpg")
        assert finder.find.call_args.kwargs["state"] == "attached"

    def test_missing_control_propagates(self):
        finder = MagicMock()
        finder.find.side_effect = ElementNotFound(["#x"])
        with pytest.raises(ElementNotFound):
            _driver(finder=finder).fill_field("x", FieldDescriptor.text("x", "1"))


@pytest.mark.unit
class TestFillForm:
    FIELDS = {
        "equipmentId": {"type": "text", "value": "EQ-12345"},
        "inspectionDate": {"type": "date", "value": "2024-05-01"},
        "equipmentType": {"type": "select", "value": "Excavator"},
        "notes": "No leaks found",
    }

    def test_every_field_holds_its_value_in_any_order(self):
        outcomes = []
        for order in itertools.permutations(self.FIELDS):
            finder = DictFinder()
            _driver(finder=finder).fill_form({name: self.FIELDS[name] for name in order})
            outcomes.append({sel: control.value for sel, control in finder.controls.items()})

        expected = {
            '[data-testid="equipmentId"]': "EQ-12345",
            '[data-testid="inspectionDate-date"]': "2024-05-01",
            '[data-testid="equipmentType"]': "Excavator",
            '[data-testid="notes"]': "No leaks found",
        }
        assert all(outcome == expected for outcome in outcomes)

    def test_each_entry_filled_once(self):
        finder = DictFinder()
        _driver(finder=finder).fill_form(self.FIELDS)
        assert len(finder.calls) == len(self.FIELDS)


@pytest.mark.unit
class TestIntrospection:
    def _page(self):
        page = MagicMock()
        scoped = {}

        def inner(selector):
            return scoped.setdefault(selector, MagicMock(name=selector))

        page.locator.return_value.locator.side_effect = inner
        return page, scoped

    def test_read_field_names_scoped_to_form(self):
        page, scoped = self._page()
        driver = _driver(page=page)
        inner = page.locator.return_value.locator(CONTROL_SELECTOR)
        inner.evaluate_all.return_value = ["equipmentId", "condition", "condition"]

        assert driver.read_field_names() == {"equipmentId", "condition"}
        assert driver.count_fields() == 2
        page.locator.assert_called_with(DEFAULT_FORM_ROOT)

    def test_required_unfilled_treats_whitespace_as_empty(self):
        page, scoped = self._page()
        page.locator.return_value.locator(REQUIRED_SELECTOR).evaluate_all.return_value = [
            {"name": "location", "value": ""},
            {"name": "areaDescription", "value": "   "},
            {"name": "area", "value": "Area A1"},
            {"name": "severity", "value": ""},
            {"name": "severity", "value": "high"},
            {"name": "", "value": ""},
        ]

        assert _driver(page=page).read_required_unfilled() == ["location", "areaDescription"]

    def test_radio_option_count_is_reported_not_capped(self):
        page, scoped = self._page()
        page.locator.return_value.locator('input[type="radio"][name="condition"]').count.return_value = 5
        assert _driver(page=page).count_radio_options("condition") == 5

    def test_radio_groups(self):
        page, scoped = self._page()
        page.locator.return_value.locator('input[type="radio"]').evaluate_all.return_value = ["a", "a", "b"]
        assert _driver(page=page).radio_groups() == {"a": 2, "b": 1}

    def test_root_override_reads_another_form(self):
        page, scoped = self._page()
        page.locator.return_value.locator(REQUIRED_SELECTOR).evaluate_all.return_value = [{"name": "pic", "value": ""}]
        driver = _driver(page=page)

        assert driver.read_required_unfilled(root='[data-testid="hazard-form"]') == ["pic"]
        page.locator.assert_called_with('[data-testid="hazard-form"]')
        assert driver.root == DEFAULT_FORM_ROOT
