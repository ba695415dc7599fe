"""Tests for content_api.services.context."""

from content_api.config import Settings
from content_api.services.context import build_context, determine_program_and_env_ids


class TestDetermineIdsInProduction:
    def test_ids_from_hostname(self):
        ids = determine_program_and_env_ids(
            "production", "https://author-p123-e456.adobeaemcloud.com/pages/abc", {}
        )
        assert ids == ("123", "456")

    def test_headers_are_ignored(self):
        ids = determine_program_and_env_ids(
            "production",
            "https://content.example.com/pages",
            {"X-CONTENT-API-PROGRAM-ID": "1", "X-CONTENT-API-ENV-ID": "2"},
        )
        assert ids == (None, None)

    def test_missing_url(self):
        assert determine_program_and_env_ids("production", None, {}) == (None, None)


class TestDetermineIdsOutsideProduction:
    def test_ids_from_headers_case_insensitive(self):
        ids = determine_program_and_env_ids(
            "development",
            "http://localhost:8000/pages",
            {"x-content-api-program-id": "123", "X-Content-Api-Env-Id": "456"},
        )
        assert ids == ("123", "456")

    def test_missing_headers(self):
        assert determine_program_and_env_ids("development", "http://localhost", {}) == (None, None)

    def test_no_header_mapping(self):
        assert determine_program_and_env_ids("development", "http://localhost", None) == (None, None)


class TestBuildContext:
    def test_hosts_are_derived(self):
        context = build_context(Settings(), "123", "456", "Bearer t")
        assert context.author_host == "author-p123-e456.adobeaemcloud.com"
        assert context.publish_host == "publish-p123-e456.adobeaemcloud.com"
        assert context.auth_header == "Bearer t"

    def test_custom_host_templates(self):
        settings = Settings(author_host_template="cms-{program_id}-{env_id}.local")
        assert build_context(settings, "1", "2", None).author_host == "cms-1-2.local"
