"""Root conftest: shared fixtures available to all test layers."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from mining_qa.config import get_settings
from mining_qa.data import sample_image_path

pytest_plugins = ["mining_qa.fixtures"]

SETTINGS_ENV_VARS = (
    "BASE_URL",
    "API_BASE_URL",
    "API_AUTH_TOKEN",
    "REPORTER_AUTH_TOKEN",
    "PIC_AUTH_TOKEN",
    "SUPERVISOR_AUTH_TOKEN",
    "TEST_USERNAME",
    "MS_USERNAME",
    "MS_PASSWORD",
    "HEADLESS",
    "USE_MOCK_BACKEND",
    "LOG_LEVEL",
)


def pytest_addoption(parser):
    """Browser tests need a running application, so they only run on request."""
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Run the Playwright end-to-end tests against BASE_URL",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-e2e"):
        return
    skip_e2e = pytest.mark.skip(reason="needs --run-e2e and a running application")
    for item in items:
        if item.get_closest_marker("e2e"):
            item.add_marker(skip_e2e)


@pytest.fixture()
def clean_env():
    """Blank every settings variable and drop the cached settings for isolation."""
    with patch.dict(os.environ, {k: "" for k in SETTINGS_ENV_VARS}, clear=False):
        get_settings.cache_clear()
        yield
    get_settings.cache_clear()


@pytest.fixture()
def evidence_image(tmp_path: Path) -> Path:
    """A small JPEG to attach as inspection or hazard evidence."""
    return sample_image_path(tmp_path)
