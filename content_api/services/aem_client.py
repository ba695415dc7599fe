"""HTTP client for the CMS author tier: direct node fetches and QueryBuilder searches."""

import logging
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Union

import httpx

from content_api.services.context import CMSContext

logger = logging.getLogger(__name__)

MAX_CONTENT_SIZE = 20 * 1024 * 1024  # 20 MB
TIMEOUT = 10  # seconds
QUERY_ENDPOINT = "/bin/querybuilder.json"
ID_LOOKUP_PREFIX = "/_jcr_id/"


class FetchError(RuntimeError):
    """Raised when the CMS answers with a non-2xx status or cannot be reached.

    ``status`` is the upstream HTTP status code, or ``None`` when no response
    was received at all.
    """

    def __init__(self, message: str, status: Optional[int] = None, url: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.url = url

    @property
    def unauthorized(self) -> bool:
        """True when the CMS rejected this service's credential."""
        return self.status == 401


class PathCondition(NamedTuple):
    path: str
    exact: bool = True


class AEMClient:
    """Issues one GET per call against ``https://{author_host}``. Never retries."""

    def __init__(
        self,
        context: CMSContext,
        timeout: float = TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.context = context
        self.timeout = timeout
        self._transport = transport

    @property
    def base_url(self) -> str:
        return f"https://{self.context.author_host}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.context.auth_header:
            headers["Authorization"] = self.context.auth_header
        return headers

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        url = self.base_url + path
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport, follow_redirects=False
            ) as client:
                response = await client.get(url, params=params, headers=self._headers())
        except httpx.RequestError as exc:
            logger.error("CMS request to %s failed: %s", url, exc)
            raise FetchError(f"CMS request failed: {exc}", status=None, url=url) from exc

        if len(response.content) > MAX_CONTENT_SIZE:
            raise FetchError("CMS response exceeds the maximum allowed size.", status=None, url=url)
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(
                "CMS returned a response that is not valid JSON.",
                status=response.status_code,
                url=str(response.url),
            ) from exc

    async def fetch_node(self, ref: str, depth: Union[int, str] = 1) -> Dict[str, Any]:
        """Return the JSON of the node at *ref* (a repository path or a node UUID).

        Raises:
            FetchError: on any non-2xx response or transport failure.
        """
        path = ref if ref.startswith("/") else f"{ID_LOOKUP_PREFIX}{ref}"
        response = await self._get(f"{path}.{depth}.json")
        if not response.is_success:
            logger.error("CMS fetch failed for %s: HTTP %d", path, response.status_code)
            raise FetchError(
                f"CMS fetch failed: {response.status_code} {response.reason_phrase}",
                status=response.status_code,
                url=str(response.url),
            )
        return self._decode(response)

    async def find_id_by_path(self, path: str) -> Optional[str]:
        """Return the ``jcr:uuid`` of the node at *path*, or ``None`` when it does not exist.

        Unlike :meth:`fetch_node`, a non-2xx answer means "not found" here.
        """
        response = await self._get(f"{path}.0.json")
        if not response.is_success:
            logger.info("No node at %s (HTTP %d)", path, response.status_code)
            return None
        node = self._decode(response)
        if not isinstance(node, dict):
            return None
        uuid = node.get("jcr:uuid")
        return uuid if isinstance(uuid, str) and uuid else None

    async def query(
        self,
        paths: Iterable[PathCondition] = (),
        properties: Iterable[str] = (),
        limit: int = 1,
        root: Optional[str] = None,
        nodename: Optional[str] = None,
        property_values: Optional[Dict[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        """Run a QueryBuilder search and return its hits.

        *paths* are OR-combined into one predicate group; *property_values*
        are AND-ed exact property matches.  Each hit is a sparse map holding
        ``jcr:path`` plus whichever requested *properties* the node carries.

        Raises:
            FetchError: on any non-2xx response or transport failure.
        """
        params = build_query_params(
            paths=paths,
            properties=properties,
            limit=limit,
            root=root,
            nodename=nodename,
            property_values=property_values,
        )
        response = await self._get(QUERY_ENDPOINT, params=params)
        if not response.is_success:
            logger.error("CMS query failed: HTTP %d", response.status_code)
            raise FetchError(
                f"CMS query failed: {response.status_code} {response.reason_phrase}",
                status=response.status_code,
                url=str(response.url),
            )

        envelope = self._decode(response)
        hits = envelope.get("hits") if isinstance(envelope, dict) else None
        if not isinstance(hits, list):
            logger.warning("CMS query response has no hit list: %s", envelope)
            return []
        return [hit for hit in hits if isinstance(hit, dict)]


def build_query_params(
    paths: Iterable[PathCondition] = (),
    properties: Iterable[str] = (),
    limit: int = 1,
    root: Optional[str] = None,
    nodename: Optional[str] = None,
    property_values: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """Encode a search as QueryBuilder request parameters."""
    params: Dict[str, str] = {}
    if root:
        params["path"] = root
    if nodename:
        params["nodename"] = nodename
    for index, (name, value) in enumerate((property_values or {}).items(), start=1):
        params[f"{index}_property"] = name
        params[f"{index}_property.value"] = value

    conditions = list(paths)
    if conditions:
        params["group.p.or"] = "true"
        for index, condition in enumerate(conditions, start=1):
            params[f"group.{index}_path"] = condition.path
            if condition.exact:
                params[f"group.{index}_path.exact"] = "true"

    params["p.limit"] = str(limit)
    params["p.hits"] = "selective"
    params["p.properties"] = " ".join(["jcr:path", *[p for p in properties if p != "jcr:path"]])
    return params
