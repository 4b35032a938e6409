"""HTTP client for API-only tests of the mining operations backend."""

from __future__ import annotations

from typing import Any

import httpx

from .config import get_logger
from .errors import ensure_status
from .models import FormDefinition

logger = get_logger("api")


class MiningApiClient:
    """Thin synchronous wrapper over :class:`httpx.Client`.

    Every call returns the raw :class:`httpx.Response` so tests assert on
    status and body themselves.  ``token`` overrides the default bearer token
    for a single call, which is how role-specific requests are made.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            transport=transport,
            timeout=timeout,
        )

    def _auth(self, token: str | None) -> dict[str, str]:
        bearer = token if token is not None else self.token
        return {"Authorization": f"Bearer {bearer}"} if bearer else {}

    def _request(self, method: str, path: str, *, token: str | None = None, authenticated: bool = True, **kwargs: Any) -> httpx.Response:
        headers = self._auth(token) if authenticated else {}
        response = self._client.request(method, path, headers=headers, **kwargs)
        logger.debug("%s %s -> %s", method, path, response.status_code)
        return response

    def lookup_user(self, username: str) -> httpx.Response:
        return self._request("POST", "/user/who", json={"username": username}, authenticated=False)

    def get_profile(self, token: str | None = None) -> httpx.Response:
        return self._request("GET", "/user/me", token=token)

    def get_tenant_master(self, token: str | None = None) -> httpx.Response:
        return self._request("GET", "/tenant/master", token=token)

    def get_form(self, form_code: str, token: str | None = None) -> httpx.Response:
        return self._request("GET", f"/forms/{form_code}", token=token)

    def fetch_form_definition(self, form_code: str, token: str | None = None) -> FormDefinition:
        """Fetch and parse a form definition; a non-2xx status raises UnexpectedStatus."""
        response = self.get_form(form_code, token)
        ensure_status(response.status_code, url=str(response.url), what=f"form {form_code}")
        return FormDefinition.from_dict(response.json())

    def submit_inspection(self, payload: dict[str, Any], token: str | None = None) -> httpx.Response:
        return self._request("POST", "/equipment/inspection/submit", json=payload, token=token)

    def create_hazard(self, payload: dict[str, Any], token: str | None = None) -> httpx.Response:
        return self._request("POST", "/safety/hazard", json=payload, token=token)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "MiningApiClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
