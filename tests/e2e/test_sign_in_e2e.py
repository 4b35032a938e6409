"""End-to-end sign-in through username lookup, SSO and master-data sync."""

from __future__ import annotations

import pytest

from mining_qa.auth import AuthStage
from mining_qa.constants import INVALID_USERNAME, TENANT_DOMAIN_RE

pytestmark = pytest.mark.e2e


class TestSignIn:
    def test_complete_login_sequence(self, login_page, auth, settings):
        trace = login_page.perform_complete_login(settings.credentials())

        assert trace.user_lookup.status == 200
        tenant = trace.user_lookup.json()["tenant"]
        assert TENANT_DOMAIN_RE.match(tenant["domain"])
        assert trace.lookup_precedes_profile()
        assert trace.profile.status == 200
        assert trace.master_data.status == 200
        assert auth.stage is AuthStage.READY
        assert auth.is_authenticated()

    def test_unknown_username(self, login_page):
        lookup = login_page.lookup_unknown_user(INVALID_USERNAME)

        assert lookup.status == 404
        assert lookup.json()["error"] == "user not found"
        assert login_page.error_visible()

    def test_auth_state_saved_and_cleared(self, authenticated_session, tmp_path):
        auth = authenticated_session.auth
        path = auth.save_auth_state(tmp_path / "auth" / "state.json")
        assert path.exists()

        auth.clear_auth()

        assert not auth.is_authenticated()
        assert auth.stage is AuthStage.IDLE

    @pytest.mark.slow
    def test_first_login_restart_prompt(self, authenticated_session):
        # The prompt only shows on a first sync; either outcome leaves the user signed in.
        authenticated_session.auth.check_restart_prompt()
        assert authenticated_session.auth.is_login_successful()
