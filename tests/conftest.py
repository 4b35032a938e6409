"""Test-layer conftest: markers and log routing."""

from __future__ import annotations

from mining_qa.config import get_settings
from mining_qa.logging_utils import configure_json_logging


# ---------------------------------------------------------------------------
# Pytest configuration hook – wire up markers
# ---------------------------------------------------------------------------

def pytest_configure(config):
    """Register custom markers so --strict-markers does not complain."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "api: API tests against the backend or its in-process mock")
    config.addinivalue_line("markers", "e2e: End-to-end Playwright tests")
    config.addinivalue_line("markers", "slow: Slow-running tests")
    config.addinivalue_line("markers", "flaky_network: Tests that inject latency or failures")
    configure_json_logging(get_settings().log_level)
