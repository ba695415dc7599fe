"""Tests for content_api.services.aem_client.

Outbound HTTP is served by an ``httpx.MockTransport`` so no request leaves
the process.
"""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from content_api.services.aem_client import AEMClient, FetchError, PathCondition, build_query_params
from content_api.services.context import CMSContext

_CONTEXT = CMSContext(
    author_host="author-p1-e2.adobeaemcloud.com",
    publish_host="publish-p1-e2.adobeaemcloud.com",
    auth_header="Bearer secret-token",
)


def _client(handler, requests=None) -> AEMClient:
    def recording_handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return handler(request)

    return AEMClient(_CONTEXT, transport=httpx.MockTransport(recording_handler))


def _query(request: httpx.Request) -> dict:
    return {key: values[0] for key, values in parse_qs(urlparse(str(request.url)).query).items()}


# ---------------------------------------------------------------------------
# fetch_node
# ---------------------------------------------------------------------------

class TestFetchNode:
    @pytest.mark.asyncio
    async def test_fetch_by_uuid(self):
        requests = []
        client = _client(lambda r: httpx.Response(200, json={"jcr:primaryType": "cq:Page"}), requests)

        node = await client.fetch_node("abc-123", depth=2)

        assert node == {"jcr:primaryType": "cq:Page"}
        assert str(requests[0].url) == "https://author-p1-e2.adobeaemcloud.com/_jcr_id/abc-123.2.json"
        assert requests[0].headers["authorization"] == "Bearer secret-token"

    @pytest.mark.asyncio
    async def test_fetch_by_path(self):
        requests = []
        client = _client(lambda r: httpx.Response(200, json={}), requests)

        await client.fetch_node("/content/site/en", depth="infinity")

        assert requests[0].url.path == "/content/site/en.infinity.json"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 404, 500])
    async def test_non_2xx_raises_with_status(self, status):
        client = _client(lambda r: httpx.Response(status))

        with pytest.raises(FetchError) as exc_info:
            await client.fetch_node("abc")

        assert exc_info.value.status == status
        assert exc_info.value.unauthorized is (status == 401)

    @pytest.mark.asyncio
    async def test_transport_failure_raises_without_status(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetchError) as exc_info:
            await _client(handler).fetch_node("abc")

        assert exc_info.value.status is None
        assert not exc_info.value.unauthorized

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self):
        client = _client(lambda r: httpx.Response(200, text="<html>login</html>"))
        with pytest.raises(FetchError):
            await client.fetch_node("abc")

    @pytest.mark.asyncio
    async def test_invalid_utf8_body_raises_fetch_error(self):
        client = _client(lambda r: httpx.Response(200, content=b'{"a": "\xff"}'))
        with pytest.raises(FetchError) as exc_info:
            await client.fetch_node("abc")
        assert exc_info.value.status == 200

    @pytest.mark.asyncio
    async def test_no_retries(self):
        requests = []
        client = _client(lambda r: httpx.Response(503), requests)
        with pytest.raises(FetchError):
            await client.fetch_node("abc")
        assert len(requests) == 1


# ---------------------------------------------------------------------------
# find_id_by_path
# ---------------------------------------------------------------------------

class TestFindIdByPath:
    @pytest.mark.asyncio
    async def test_returns_uuid(self):
        requests = []
        client = _client(lambda r: httpx.Response(200, json={"jcr:uuid": "u-1"}), requests)

        assert await client.find_id_by_path("/content/site") == "u-1"
        assert requests[0].url.path == "/content/site.0.json"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 404, 500])
    async def test_non_2xx_means_not_found(self, status):
        client = _client(lambda r: httpx.Response(status))
        assert await client.find_id_by_path("/content/site") is None

    @pytest.mark.asyncio
    async def test_node_without_uuid(self):
        client = _client(lambda r: httpx.Response(200, json={"jcr:primaryType": "sling:Folder"}))
        assert await client.find_id_by_path("/content/site") is None


# ---------------------------------------------------------------------------
# query
# ---------------------------------------------------------------------------

class TestQuery:
    @pytest.mark.asyncio
    async def test_path_conditions_are_encoded(self):
        requests = []
        envelope = {"success": True, "results": 1, "total": 1, "hits": [{"jcr:path": "/content/site"}]}
        client = _client(lambda r: httpx.Response(200, json=envelope), requests)

        hits = await client.query(
            paths=[PathCondition("/content/site"), PathCondition("/content/site/en")],
            properties=["jcr:uuid", "jcr:title"],
            limit=4,
        )

        assert hits == [{"jcr:path": "/content/site"}]
        assert requests[0].url.path == "/bin/querybuilder.json"
        params = _query(requests[0])
        assert params == {
            "group.p.or": "true",
            "group.1_path": "/content/site",
            "group.1_path.exact": "true",
            "group.2_path": "/content/site/en",
            "group.2_path.exact": "true",
            "p.limit": "4",
            "p.hits": "selective",
            "p.properties": "jcr:path jcr:uuid jcr:title",
        }

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self):
        client = _client(lambda r: httpx.Response(401))
        with pytest.raises(FetchError) as exc_info:
            await client.query(paths=[PathCondition("/content/site")])
        assert exc_info.value.unauthorized

    @pytest.mark.asyncio
    async def test_envelope_without_hits_returns_empty_list(self):
        client = _client(lambda r: httpx.Response(200, json={"success": False}))
        assert await client.query(root="/content") == []


class TestBuildQueryParams:
    def test_property_conditions(self):
        params = build_query_params(
            root="/conf",
            nodename="edge-delivery-service-configuration",
            property_values={"owner": "acme", "repo": "site"},
        )
        assert params["path"] == "/conf"
        assert params["nodename"] == "edge-delivery-service-configuration"
        assert params["1_property"] == "owner"
        assert params["1_property.value"] == "acme"
        assert params["2_property"] == "repo"
        assert params["2_property.value"] == "site"
        assert "group.p.or" not in params

    def test_inexact_path_has_no_exact_flag(self):
        params = build_query_params(paths=[PathCondition("/content/site", exact=False)])
        assert params["group.1_path"] == "/content/site"
        assert "group.1_path.exact" not in params
