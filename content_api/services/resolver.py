"""Resolve site and page references to durable CMS identifiers.

Sites live under ``/content/<site>``; their delivery configuration lives
under ``/conf/<site>``.  A page is resolved with a single OR-combined
QueryBuilder query over four exact paths: the site root, the page, the
page's ``jcr:content`` child (title, description, audit data) and the
page's parent.  The hits come back unordered and sparse, so each one is
classified by its ``jcr:path``.

"Not found" is reported as ``None``.  Upstream failures propagate as
:class:`~content_api.services.aem_client.FetchError`.
"""

import logging
import posixpath
from typing import Any, Dict, List, Optional, Tuple

from content_api.models.page import AuditStamp, PageRecord
from content_api.services.aem_client import AEMClient, FetchError, PathCondition
from content_api.services.url_parser import (
    DeliveryReference,
    parse_page_url,
)

logger = logging.getLogger(__name__)

CONTENT_ROOT = "/content"
CONF_ROOT = "/conf"
DELIVERY_CONFIG_NODE = "edge-delivery-service-configuration"
METADATA_NODE = "jcr:content"

PAGE_PROPERTIES = (
    "jcr:path",
    "jcr:uuid",
    "jcr:title",
    "jcr:description",
    "jcr:created",
    "jcr:createdBy",
    "cq:lastModified",
    "cq:lastModifiedBy",
    "cq:lastReplicated",
    "cq:lastReplicatedBy",
)
PAGE_QUERY_LIMIT = 4


class InvalidReferenceError(ValueError):
    """A caller-supplied page reference could not be parsed."""


def _optional_text(hit: Optional[Dict[str, Any]], key: str) -> Optional[str]:
    """Return ``hit[key]`` as text, or ``None`` when absent, empty or not a scalar."""
    if hit is None:
        return None
    value = hit.get(key)
    if isinstance(value, (dict, list)) or value is None:
        return None
    text = str(value).strip()
    return text or None


def _audit(hit: Optional[Dict[str, Any]], at_key: str, by_key: str) -> Optional[AuditStamp]:
    at = _optional_text(hit, at_key)
    by = _optional_text(hit, by_key)
    if at is None and by is None:
        return None
    return AuditStamp(at=at, by=by)


def _site_from_path(path: Any, root: str) -> Optional[str]:
    """Return ``<site>`` from ``<root>/<site>/...``, or ``None`` when *path* has another shape."""
    if not isinstance(path, str):
        return None
    segments = path.split("/")
    if len(segments) < 3 or segments[0] != "" or "/" + segments[1] != root or not segments[2]:
        return None
    return segments[2]


def normalize_page_path(page_path: str) -> str:
    return "/" + page_path.lstrip("/")


async def resolve_site_name_by_owner_repo(client: AEMClient, owner: str, repo: str) -> Optional[str]:
    """Find the site whose delivery configuration points at *owner*/*repo*.

    Never raises: upstream failures are logged and reported as ``None``.
    """
    try:
        hits = await client.query(
            root=CONF_ROOT,
            nodename=DELIVERY_CONFIG_NODE,
            property_values={"owner": owner, "repo": repo},
            properties=("jcr:path",),
            limit=1,
        )
    except FetchError as exc:
        logger.warning("Site lookup for %s/%s failed: %s", owner, repo, exc)
        return None

    if not hits:
        logger.info("No site configured for %s/%s", owner, repo)
        return None
    site_name = _site_from_path(hits[0].get("jcr:path"), CONF_ROOT)
    if site_name is None:
        logger.warning("Unexpected configuration path for %s/%s: %s", owner, repo, hits[0].get("jcr:path"))
    return site_name


async def resolve_site_name_by_site_id(client: AEMClient, site_id: str) -> Optional[str]:
    """Find the name of the site whose root node has the UUID *site_id*."""
    hits = await client.query(
        root=CONTENT_ROOT,
        property_values={"jcr:uuid": site_id},
        properties=("jcr:path",),
        limit=1,
    )
    if not hits:
        return None
    site_name = _site_from_path(hits[0].get("jcr:path"), CONTENT_ROOT)
    if site_name is None:
        logger.warning("Unexpected site path for site %s: %s", site_id, hits[0].get("jcr:path"))
    return site_name


def page_query_targets(site_name: str, page_path: str) -> Dict[str, str]:
    """Return the exact paths queried for a page, keyed by role.

    The ``parent`` entry is left out when the page sits directly under the
    site root.
    """
    site_root = f"{CONTENT_ROOT}/{site_name}"
    page = site_root + normalize_page_path(page_path)
    targets = {
        "site": site_root,
        "page": page,
        "metadata": f"{page}/{METADATA_NODE}",
    }
    parent = posixpath.dirname(page)
    if parent != site_root:
        targets["parent"] = parent
    return targets


def _classify_hits(hits: List[Dict[str, Any]], targets: Dict[str, str]) -> Dict[str, Dict[str, Any]]:
    by_path = {path: role for role, path in targets.items()}
    classified: Dict[str, Dict[str, Any]] = {}
    for hit in hits:
        path = hit.get("jcr:path")
        role = by_path.get(path) if isinstance(path, str) else None
        if role is None:
            logger.debug("Ignoring unrelated hit %s", path)
            continue
        classified[role] = hit
    return classified


async def resolve_page_record(client: AEMClient, site_name: str, page_path: str) -> Optional[PageRecord]:
    """Resolve *page_path* within *site_name* to a :class:`PageRecord`.

    Returns ``None`` unless both the site root and the page have an identifier.

    Raises:
        ValueError: when *site_name* or *page_path* is empty.
        FetchError: when the query fails upstream.
    """
    if not site_name:
        raise ValueError("site_name must not be empty")
    if not page_path or not page_path.strip("/"):
        raise ValueError("page_path must not be empty")

    targets = page_query_targets(site_name, page_path)
    hits = await client.query(
        paths=[PathCondition(path) for path in targets.values()],
        properties=PAGE_PROPERTIES,
        limit=PAGE_QUERY_LIMIT,
    )
    found = _classify_hits(hits, targets)

    site_id = _optional_text(found.get("site"), "jcr:uuid")
    page_id = _optional_text(found.get("page"), "jcr:uuid")
    if site_id is None or page_id is None:
        logger.info(
            "Page %s not found in site %s (site id: %s, page id: %s)",
            targets["page"],
            site_name,
            site_id,
            page_id,
        )
        return None

    metadata = found.get("metadata")
    return PageRecord(
        page_id=page_id,
        site_id=site_id,
        parent_page_id=_optional_text(found.get("parent"), "jcr:uuid"),
        title=_optional_text(metadata, "jcr:title"),
        description=_optional_text(metadata, "jcr:description"),
        created=_audit(metadata, "jcr:created", "jcr:createdBy")
        or _audit(found.get("page"), "jcr:created", "jcr:createdBy"),
        modified=_audit(metadata, "cq:lastModified", "cq:lastModifiedBy"),
        published=_audit(metadata, "cq:lastReplicated", "cq:lastReplicatedBy"),
    )


def split_content_path(path: Any) -> Optional[Tuple[str, str]]:
    """Split ``/content/<site>/<page...>`` into ``(site, "/<page...>")``."""
    site_name = _site_from_path(path, CONTENT_ROOT)
    if site_name is None:
        return None
    page_path = path[len(f"{CONTENT_ROOT}/{site_name}") :]
    if not page_path.strip("/"):
        return None
    return site_name, page_path


async def resolve_page_record_by_id(client: AEMClient, page_id: str) -> Optional[PageRecord]:
    hits = await client.query(
        root=CONTENT_ROOT,
        property_values={"jcr:uuid": page_id},
        properties=("jcr:path",),
        limit=1,
    )
    if not hits:
        return None
    parts = split_content_path(hits[0].get("jcr:path"))
    if parts is None:
        logger.warning("Node %s is not a page: %s", page_id, hits[0].get("jcr:path"))
        return None
    return await resolve_page_record(client, *parts)


async def resolve_page_record_by_url(client: AEMClient, url: str) -> Optional[PageRecord]:
    """Resolve a public page URL.

    The site name is always resolved before the page itself is queried.

    Raises:
        InvalidReferenceError: when *url* has no recognised shape.
        FetchError: when a query fails upstream.
    """
    reference = parse_page_url(url)
    if reference is None:
        raise InvalidReferenceError(f"Unrecognised page URL: {url}")

    if isinstance(reference, DeliveryReference):
        site_name = await resolve_site_name_by_owner_repo(client, reference.owner, reference.repo)
    else:
        site_name = await resolve_site_name_by_site_id(client, reference.site_id)

    if site_name is None:
        return None
    return await resolve_page_record(client, site_name, reference.page_path)


async def page_exists(client: AEMClient, page_id: str) -> bool:
    return await client.find_id_by_path(f"/_jcr_id/{page_id}") is not None
