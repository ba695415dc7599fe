"""Extract site/page references from public page URLs.

Two URL shapes are understood:

``https://<host>/franklin.delivery/<owner>/<repo>/main/<path>.html``
    Delivery URL: the site is identified by its code repository.

``https://<host>/xwalkpages/<prefix>:<site-uuid>/<branch>/<path>.html``
    Site-ID URL: the site is identified by the UUID of its content root.

Both parsers are pure and report a structurally invalid URL by returning
``None``.
"""

import re
from typing import List, NamedTuple, Optional, Union
from urllib.parse import unquote, urlparse

DELIVERY_MARKER = "franklin.delivery"
DELIVERY_BRANCH = "main"
SITE_ID_MARKER = "xwalkpages"

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


class DeliveryReference(NamedTuple):
    owner: str
    repo: str
    page_path: str


class SiteIdReference(NamedTuple):
    site_id: str
    page_path: str


PageReference = Union[DeliveryReference, SiteIdReference]


def _segments(url: str) -> List[str]:
    try:
        path = urlparse(url).path
    except ValueError:
        return []
    return [unquote(segment) for segment in path.split("/") if segment]


def parse_delivery_url(url: str) -> Optional[DeliveryReference]:
    segments = _segments(url)
    if DELIVERY_MARKER not in segments:
        return None
    start = segments.index(DELIVERY_MARKER)

    # owner, repo, branch and at least one path segment
    if len(segments) < start + 5:
        return None
    owner, repo, branch = segments[start + 1 : start + 4]
    if branch != DELIVERY_BRANCH:
        return None

    page_path = "/" + "/".join(segments[start + 4 :])
    if page_path.endswith(".html"):
        page_path = page_path[: -len(".html")]
    if page_path == "/":
        return None
    return DeliveryReference(owner=owner, repo=repo, page_path=page_path)


def parse_site_id_url(url: str) -> Optional[SiteIdReference]:
    segments = _segments(url)
    if SITE_ID_MARKER not in segments:
        return None
    start = segments.index(SITE_ID_MARKER)

    # site segment, branch and at least one path segment
    if len(segments) < start + 4:
        return None
    site_segment = segments[start + 1]
    site_id = site_segment.rsplit(":", 1)[-1]
    if not _UUID_RE.match(site_id):
        return None

    path_segments = segments[start + 3 :]
    last = path_segments[-1]
    if "." in last:
        last = last.rsplit(".", 1)[0]
    path_segments = path_segments[:-1] + [last]
    if not all(path_segments):
        return None
    return SiteIdReference(site_id=site_id, page_path="/".join(path_segments))


def parse_page_url(url: str) -> Optional[PageReference]:
    """Try each supported URL shape in turn."""
    return parse_delivery_url(url) or parse_site_id_url(url)
