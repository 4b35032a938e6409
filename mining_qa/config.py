"""Shared configuration for the mining operations test suite."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping

_TRUTHY = {"1", "true", "yes", "on"}


def get_logger(name: str) -> logging.Logger:
    """Create a namespaced logger for a suite component."""
    return logging.getLogger(f"mining-qa.{name}")


def _env(env: Mapping[str, str], name: str, default: str) -> str:
    value = env.get(name, "").strip()
    return value or default


def _env_flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name, "").strip().lower()
    if not value:
        return default
    return value in _TRUTHY


@dataclass(frozen=True)
class Credentials:
    """Local username plus the identity-provider login used by the SSO step."""

    username: str
    sso_email: str
    sso_password: str


@dataclass(frozen=True)
class Settings:
    """Environment-resolved settings; every field has a literal fallback."""

    base_url: str = "http://localhost:3000"
    api_base_url: str = "https://api-staging.wemine.com"
    api_token: str = "mock-token-for-testing"
    reporter_token: str = "mock-reporter-token"
    pic_token: str = "mock-pic-token"
    supervisor_token: str = "mock-supervisor-token"
    username: str = "testuser@mining.com"
    sso_email: str = "testuser@mining.com"
    sso_password: str = "TestPassword123!"
    headless: bool = True
    use_mock_backend: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if env is None else env
        defaults = cls()
        return cls(
            base_url=_env(env, "BASE_URL", defaults.base_url).rstrip("/"),
            api_base_url=_env(env, "API_BASE_URL", defaults.api_base_url).rstrip("/"),
            api_token=_env(env, "API_AUTH_TOKEN", defaults.api_token),
            reporter_token=_env(env, "REPORTER_AUTH_TOKEN", defaults.reporter_token),
            pic_token=_env(env, "PIC_AUTH_TOKEN", defaults.pic_token),
            supervisor_token=_env(env, "SUPERVISOR_AUTH_TOKEN", defaults.supervisor_token),
            username=_env(env, "TEST_USERNAME", defaults.username),
            sso_email=_env(env, "MS_USERNAME", defaults.sso_email),
            sso_password=_env(env, "MS_PASSWORD", defaults.sso_password),
            headless=_env_flag(env, "HEADLESS", defaults.headless),
            use_mock_backend=_env_flag(env, "USE_MOCK_BACKEND", defaults.use_mock_backend),
            log_level=_env(env, "LOG_LEVEL", defaults.log_level).upper(),
        )

    def credentials(self) -> Credentials:
        return Credentials(self.username, self.sso_email, self.sso_password)

    def token_for(self, role: str) -> str:
        """Return the bearer token configured for ``reporter``, ``pic`` or ``supervisor``."""
        tokens = {
            "reporter": self.reporter_token,
            "pic": self.pic_token,
            "supervisor": self.supervisor_token,
        }
        return tokens[role.lower()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Resolve settings once per process; the result is never mutated."""
    return Settings.from_env()
