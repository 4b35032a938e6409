"""Unit tests for mining_qa.waits – response, condition and loading waits.

Time is virtual: the fake page advances its clock inside ``wait_for_timeout``
and fires the responses scheduled for that window.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from mining_qa.errors import WaitTimeout
from mining_qa.network import NetworkController
from mining_qa.waits import WaitCoordinator
from tests.fakes import FakePage


@pytest.fixture()
def page():
    return FakePage()


@pytest.fixture()
def waits(page):
    network = NetworkController(page, clock=page.clock)
    yield WaitCoordinator(page, network, clock=page.clock, pump_interval_ms=50)
    network.close()


@pytest.mark.unit
class TestWaitFor:
    def test_resolves_on_first_matching_response(self, page, waits):
        page.schedule_response(120, "https://api/tenant/info")
        page.schedule_response(300, "https://api/user/who", 200, "POST")

        event = waits.wait_for("/user/who", timeout_ms=1_000)

        assert event.url == "https://api/user/who"
        assert event.status == 200
        assert event.method == "POST"

    def test_events_before_registration_do_not_count(self, page, waits):
        waits.network.subscribe(lambda event: None)
        page.emit_response("https://api/user/me")

        with pytest.raises(WaitTimeout):
            waits.wait_for("/user/me", timeout_ms=500)

    def test_non_2xx_response_still_resolves(self, page, waits):
        page.schedule_response(10, "https://api/user/who", 404)
        assert waits.wait_for("/user/who", timeout_ms=500).status == 404

    def test_failed_requests_do_not_satisfy_wait(self, page, waits):
        page.schedule(10, lambda: page.emit_failure("https://api/forms"))
        with pytest.raises(WaitTimeout):
            waits.wait_for("/forms", timeout_ms=200)

    @pytest.mark.parametrize("timeout_ms", [100, 1_000, 2_525])
    def test_timeout_has_bounded_overshoot(self, page, waits, timeout_ms):
        started = page.clock.ms()

        with pytest.raises(WaitTimeout) as excinfo:
            waits.wait_for("/never", timeout_ms=timeout_ms)

        elapsed = page.clock.ms() - started
        assert timeout_ms - 1e-6 <= elapsed <= timeout_ms + waits.pump_interval_ms
        assert excinfo.value.elapsed_ms >= timeout_ms - 1e-6
        assert "/never" in excinfo.value.description

    def test_late_event_is_discarded(self, page, waits):
        pending = waits.expect_response("/user/me", timeout_ms=100)
        page.schedule_response(150, "https://api/user/me")
        page.wait_for_timeout(200)

        with pytest.raises(WaitTimeout):
            pending.result()
        assert pending.poll() is None

    def test_expired_wait_is_not_resumable(self, page, waits):
        pending = waits.expect_response("/user/me", timeout_ms=100)
        with pytest.raises(WaitTimeout):
            pending.result()
        page.emit_response("https://api/user/me")
        with pytest.raises(WaitTimeout):
            pending.result()

    def test_register_before_action(self, page, waits):
        def click():
            page.emit_response("https://api/equipment/inspection/submit", 201, "POST")

        with waits.expect_response("/equipment/inspection/submit", 1_000) as submission:
            click()

        assert submission.value.status == 201

    def test_context_manager_cancels_on_error(self, page, waits):
        with pytest.raises(RuntimeError):
            with waits.expect_response("/x", 1_000) as pending:
                raise RuntimeError("click failed")
        assert pending.expired


@pytest.mark.unit
class TestWaitForAll:
    def test_results_follow_pattern_order(self, page, waits):
        page.schedule_response(200, "https://api/tenant/master")
        page.schedule_response(50, "https://api/user/me")

        profile, master = waits.wait_for_all(["/user/me", "/tenant/master"], timeout_ms=1_000)

        assert profile.url.endswith("/user/me")
        assert master.url.endswith("/tenant/master")
        assert profile.index < master.index

    def test_interleaved_events_are_not_missed(self, page, waits):
        def burst():
            page.emit_response("https://api/locations")
            page.emit_response("https://api/areas")
            page.emit_response("https://api/employees")

        page.schedule(10, burst)
        events = waits.wait_for_all(["/employees", "/locations", "/areas"], timeout_ms=500)
        assert [e.url.rsplit("/", 1)[-1] for e in events] == ["employees", "locations", "areas"]

    def test_failure_waits_for_full_timeout(self, page, waits):
        page.schedule_response(20, "https://api/user/me")
        started = page.clock.ms()

        with pytest.raises(WaitTimeout) as excinfo:
            waits.wait_for_all(["/user/me", "/tenant/master", "/locations"], timeout_ms=400)

        assert page.clock.ms() - started >= 400 - 1e-6
        assert "/tenant/master" in excinfo.value.description


@pytest.mark.unit
class TestWaitForCondition:
    def test_returns_elapsed_when_true(self, page, waits):
        flags = {"ready": False}
        page.schedule(1_200, lambda: flags.update(ready=True))

        elapsed = waits.wait_for_condition(lambda: flags["ready"], timeout_ms=5_000)

        assert elapsed == pytest.approx(1_500)
        assert page.waited[0] == 500

    def test_immediately_true(self, waits):
        assert waits.wait_for_condition(lambda: True) == 0

    def test_raises_with_elapsed(self, page, waits):
        with pytest.raises(WaitTimeout) as excinfo:
            waits.wait_for_condition(lambda: False, timeout_ms=1_000, poll_interval_ms=300, description="queued banner")

        assert excinfo.value.elapsed_ms == pytest.approx(1_000)
        assert "queued banner" in str(excinfo.value)


@pytest.mark.unit
class TestWaitForLoadingComplete:
    def _indicator(self, page):
        indicator = MagicMock()
        page.locator = MagicMock(return_value=indicator)
        return indicator.first

    def test_indicator_seen_then_hidden(self, page, waits):
        first = self._indicator(page)

        assert waits.wait_for_loading_complete(".spinner", 2_000, 30_000) is True

        assert first.wait_for.call_args_list[0].kwargs == {"state": "visible", "timeout": 2_000}
        assert first.wait_for.call_args_list[1].kwargs == {"state": "hidden", "timeout": 30_000}

    def test_indicator_never_appearing_is_tolerated(self, page, waits):
        first = self._indicator(page)
        first.wait_for.side_effect = [PlaywrightTimeoutError("not visible"), None]

        assert waits.wait_for_loading_complete() is False

    def test_indicator_stuck_visible_fails(self, page, waits):
        first = self._indicator(page)
        first.wait_for.side_effect = [None, PlaywrightTimeoutError("still visible")]

        with pytest.raises(WaitTimeout, match="hidden"):
            waits.wait_for_loading_complete(".progress-bar", hidden_timeout_ms=60_000)
