"""Page endpoints: identifier lookups and rendered content."""

import logging
from typing import Literal, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from content_api.config import Settings, get_settings
from content_api.models.response import PageList
from content_api.services.aem_client import AEMClient, FetchError
from content_api.services.blocks import GroupingError
from content_api.services.context import build_context, determine_program_and_env_ids
from content_api.services.renderer import json_to_html, json_to_markdown
from content_api.services.resolver import (
    InvalidReferenceError,
    page_exists,
    resolve_page_record_by_id,
    resolve_page_record_by_url,
    resolve_site_name_by_site_id,
)

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter(prefix="/pages", tags=["Pages"])

_RATE_LIMIT = get_settings().rate_limit


def get_client(request: Request, settings: Settings = Depends(get_settings)) -> AEMClient:
    """Build the CMS client for the program/environment this request targets."""
    program_id, env_id = determine_program_and_env_ids(
        settings.environment, str(request.url), request.headers
    )
    program_id = program_id or settings.default_program_id
    env_id = env_id or settings.default_env_id
    if not program_id or not env_id:
        raise HTTPException(
            status_code=400,
            detail="Unable to determine the CMS program and environment for this request.",
        )
    context = build_context(settings, program_id, env_id, request.headers.get("authorization"))
    return AEMClient(context, timeout=settings.request_timeout)


@router.get("", response_model=PageList, summary="List Pages")
@limiter.limit(_RATE_LIMIT)
async def list_pages(
    request: Request,
    siteId: Optional[str] = Query(default=None, description="Filter by site identifier"),
    parentPageId: Optional[str] = Query(default=None, description="Filter by parent page identifier"),
    cursor: Optional[str] = Query(default=None, description="Pagination cursor"),
    limit: int = Query(default=50, ge=1, le=500, description="Maximum number of items per page"),
    client: AEMClient = Depends(get_client),
) -> PageList:
    """Lists the Pages of a Site, or the children of a specific Page.

    Listing is not implemented yet: the referenced site or parent page is
    validated and an empty page is returned.
    """
    logger.info("List request received", extra={"site_id": siteId, "parent_page_id": parentPageId})
    if not siteId and not parentPageId:
        raise HTTPException(status_code=400, detail="Either siteId or parentPageId is required.")

    try:
        if siteId and await resolve_site_name_by_site_id(client, siteId) is None:
            raise HTTPException(status_code=404, detail=f"Site with ID {siteId} not found.")
        if parentPageId and not await page_exists(client, parentPageId):
            raise HTTPException(status_code=404, detail=f"Page with ID {parentPageId} not found.")
    except FetchError as exc:
        _raise_upstream(exc)

    return PageList(cursor=None, items=[])


@router.get("/byUrl", summary="Get a Page by URL")
@limiter.limit(_RATE_LIMIT)
async def fetch_page_by_url(
    request: Request,
    url: str = Query(description="The full public URL of the page"),
    client: AEMClient = Depends(get_client),
) -> dict:
    logger.info("Page by URL request received", extra={"page_url": url})
    try:
        record = await resolve_page_record_by_url(client, url)
    except InvalidReferenceError as exc:
        logger.warning("Invalid page URL: %s", url)
        raise HTTPException(status_code=400, detail=str(exc))
    except FetchError as exc:
        _raise_upstream(exc)

    if record is None:
        raise HTTPException(status_code=404, detail=f"Page with URL {url} not found.")
    return record.to_json()


@router.get("/{pageId}", summary="Get a Page by ID")
@limiter.limit(_RATE_LIMIT)
async def fetch_page_by_id(
    request: Request,
    pageId: str,
    client: AEMClient = Depends(get_client),
) -> dict:
    try:
        record = await resolve_page_record_by_id(client, pageId)
    except FetchError as exc:
        _raise_upstream(exc)

    if record is None:
        raise HTTPException(status_code=404, detail=f"Page with ID {pageId} not found.")
    return record.to_json()


@router.get("/{pageId}/content", summary="Get the Content of a Page")
@limiter.limit(_RATE_LIMIT)
async def fetch_page_content(
    request: Request,
    pageId: str,
    format: Literal["json", "html", "markdown"] = Query(
        default="json", description="Output format: 'json', 'html' or 'markdown'."
    ),
    client: AEMClient = Depends(get_client),
):
    """Return the page's content tree as raw JSON, rendered HTML or Markdown."""
    try:
        content = await client.fetch_node(pageId, depth="infinity")
    except FetchError as exc:
        _raise_upstream(exc)

    if format == "json":
        return content

    publish_host = client.context.publish_host
    try:
        if format == "markdown":
            return PlainTextResponse(json_to_markdown(content, publish_host), media_type="text/markdown")
        return HTMLResponse(json_to_html(content, publish_host))
    except GroupingError as exc:
        logger.error("Cannot render page %s: %s", pageId, exc)
        raise HTTPException(status_code=422, detail=str(exc))


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _raise_upstream(exc: FetchError) -> NoReturn:
    """Translate a CMS failure into the HTTP error returned to the caller."""
    if exc.unauthorized:
        logger.error("The content API is not authorized to access the CMS: %s", exc)
        raise HTTPException(status_code=500, detail="The content API is not authorized to access the CMS.")
    if exc.status == 404:
        raise HTTPException(status_code=404, detail="The requested resource was not found.")
    if exc.status is None:
        logger.error("CMS unreachable: %s", exc)
        raise HTTPException(status_code=504, detail="The CMS could not be reached.")
    logger.error("CMS returned HTTP %s: %s", exc.status, exc)
    raise HTTPException(status_code=502, detail=f"The CMS returned HTTP {exc.status}.")
