"""Tests for content_api.services.url_parser."""

import pytest

from content_api.services.url_parser import (
    DeliveryReference,
    SiteIdReference,
    parse_delivery_url,
    parse_page_url,
    parse_site_id_url,
)

_SITE_UUID = "1534567d-9937-4e40-85ff-369a8ed45367"


# ---------------------------------------------------------------------------
# Delivery URLs
# ---------------------------------------------------------------------------

class TestParseDeliveryUrl:
    def test_owner_repo_and_path(self):
        ref = parse_delivery_url("https://host/franklin.delivery/acme/site/main/articles/a.html")
        assert ref == DeliveryReference(owner="acme", repo="site", page_path="/articles/a")

    def test_path_without_html_suffix_is_kept(self):
        ref = parse_delivery_url("https://host/franklin.delivery/acme/site/main/articles/a")
        assert ref.page_path == "/articles/a"

    def test_marker_may_follow_other_segments(self):
        ref = parse_delivery_url("https://host/prefix/franklin.delivery/acme/site/main/index.html")
        assert ref == DeliveryReference(owner="acme", repo="site", page_path="/index")

    def test_missing_marker_returns_none(self):
        assert parse_delivery_url("https://host/delivery/acme/site/main/a.html") is None

    def test_missing_branch_returns_none(self):
        assert parse_delivery_url("https://host/franklin.delivery/acme/site/dev/a.html") is None

    @pytest.mark.parametrize(
        "url",
        [
            "https://host/franklin.delivery",
            "https://host/franklin.delivery/acme",
            "https://host/franklin.delivery/acme/site",
            "https://host/franklin.delivery/acme/site/main",
            "https://host/franklin.delivery/acme/site/main/",
        ],
    )
    def test_insufficient_segments_return_none(self, url):
        assert parse_delivery_url(url) is None

    def test_garbage_does_not_raise(self):
        assert parse_delivery_url("not a url at all") is None


# ---------------------------------------------------------------------------
# Site-ID URLs
# ---------------------------------------------------------------------------

class TestParseSiteIdUrl:
    def test_site_id_and_path(self):
        ref = parse_site_id_url(f"https://host/xwalkpages/foo:{_SITE_UUID}/main/articles/a.html")
        assert ref == SiteIdReference(site_id=_SITE_UUID, page_path="articles/a")

    def test_uuid_after_last_colon(self):
        ref = parse_site_id_url(f"https://host/xwalkpages/urn:aem:{_SITE_UUID}/main/a.html")
        assert ref.site_id == _SITE_UUID

    def test_segment_without_colon_is_taken_whole(self):
        ref = parse_site_id_url(f"https://host/xwalkpages/{_SITE_UUID}/main/a.html")
        assert ref.site_id == _SITE_UUID

    def test_extension_stripped_from_last_segment_only(self):
        ref = parse_site_id_url(f"https://host/xwalkpages/foo:{_SITE_UUID}/main/v1.2/page.html")
        assert ref.page_path == "v1.2/page"

    def test_any_branch_name_is_accepted(self):
        ref = parse_site_id_url(f"https://host/xwalkpages/foo:{_SITE_UUID}/feature-x/a.html")
        assert ref.page_path == "a"

    def test_invalid_uuid_returns_none(self):
        assert parse_site_id_url("https://host/xwalkpages/foo:not-a-uuid/main/articles/a.html") is None

    def test_truncated_uuid_returns_none(self):
        assert parse_site_id_url("https://host/xwalkpages/foo:1534567d-9937-4e40-85ff/main/a.html") is None

    def test_missing_branch_returns_none(self):
        assert parse_site_id_url(f"https://host/xwalkpages/foo:{_SITE_UUID}") is None

    def test_missing_path_returns_none(self):
        assert parse_site_id_url(f"https://host/xwalkpages/foo:{_SITE_UUID}/main") is None

    def test_missing_marker_returns_none(self):
        assert parse_site_id_url(f"https://host/pages/foo:{_SITE_UUID}/main/a.html") is None


class TestParsePageUrl:
    def test_prefers_delivery_shape(self):
        assert isinstance(
            parse_page_url("https://host/franklin.delivery/acme/site/main/a.html"), DeliveryReference
        )

    def test_falls_back_to_site_id_shape(self):
        assert isinstance(
            parse_page_url(f"https://host/xwalkpages/foo:{_SITE_UUID}/main/a.html"), SiteIdReference
        )

    def test_unknown_shape_returns_none(self):
        assert parse_page_url("https://example.com/about-us") is None
