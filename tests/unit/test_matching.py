"""Unit tests for mining_qa.matching – URL matchers."""

from __future__ import annotations

import re

import pytest

from mining_qa.constants import API_ENDPOINTS
from mining_qa.matching import UrlMatcher


@pytest.mark.unit
class TestUrlMatcher:
    def test_regex_searches_anywhere(self):
        matcher = UrlMatcher.of(re.compile(r"/user/who"))
        assert matcher.matches("https://api.example.com/v1/user/who?x=1")
        assert not matcher.matches("https://api.example.com/user/me")

    def test_glob_covers_full_url(self):
        matcher = UrlMatcher.of("https://api.example.com/**")
        assert matcher.matches("https://api.example.com/forms/FORM-001")
        assert not matcher.matches("http://localhost:3000/login")

    def test_plain_string_is_substring(self):
        matcher = UrlMatcher.of("/tenant/master")
        assert matcher.matches("https://api.example.com/api/tenant/master")
        assert not matcher.matches("https://api.example.com/tenant/info")

    def test_callable_predicate(self):
        def is_post_endpoint(url):
            return url.endswith("/submit")

        matcher = UrlMatcher.of(is_post_endpoint)
        assert matcher.matches("https://x/equipment/inspection/submit")
        assert matcher.describe() == "is_post_endpoint"

    def test_of_returns_existing_matcher(self):
        matcher = UrlMatcher.of("/forms")
        assert UrlMatcher.of(matcher) is matcher

    def test_describe_regex(self):
        assert UrlMatcher.of(re.compile(r"/user/me")).describe() == "//user/me/"


@pytest.mark.unit
class TestEndpointPatterns:
    def test_locations_does_not_match_sublocations(self):
        assert API_ENDPOINTS["LOCATIONS"].search("https://api/locations")
        assert not API_ENDPOINTS["LOCATIONS"].search("https://api/sublocations")
        assert API_ENDPOINTS["SUBLOCATIONS"].search("https://api/sublocations")

    @pytest.mark.parametrize("path", ["/tenant/info", "/tenant/lookup"])
    def test_tenant_info_variants(self, path):
        assert API_ENDPOINTS["TENANT_INFO"].search(f"https://api{path}")

    @pytest.mark.parametrize("path", ["/safety/hazard", "/hazard/create"])
    def test_hazard_variants(self, path):
        assert API_ENDPOINTS["HAZARD_CREATE"].search(f"https://api{path}")

    def test_table_holds_only_awaited_endpoints(self):
        assert set(API_ENDPOINTS) == {
            "USER_WHO",
            "USER_ME",
            "TENANT_MASTER",
            "TENANT_INFO",
            "LOCATIONS",
            "SUBLOCATIONS",
            "AREAS",
            "EMPLOYEES",
            "FORMS",
            "EQUIPMENT_SUBMISSION",
            "HAZARD_CREATE",
        }
