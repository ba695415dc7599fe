"""CMS connection context derived from the inbound request.

Every request targets one AEM program/environment pair.  In production the
pair is encoded in the hostname the service is reached on
(``author-p<program>-e<env>.adobeaemcloud.com``); elsewhere it is supplied by
the ``X-CONTENT-API-PROGRAM-ID`` / ``X-CONTENT-API-ENV-ID`` headers.
"""

import logging
import re
from typing import Mapping, Optional, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict

from content_api.config import Settings

logger = logging.getLogger(__name__)

PROGRAM_ID_HEADER = "x-content-api-program-id"
ENV_ID_HEADER = "x-content-api-env-id"

_PRODUCTION_HOST_RE = re.compile(r"^author-p(\d+)-e(\d+)\.adobeaemcloud\.com$")


class CMSContext(BaseModel):
    """Hosts and credential used for every CMS call of one request."""

    model_config = ConfigDict(frozen=True)

    author_host: str
    publish_host: str
    auth_header: Optional[str] = None


def determine_program_and_env_ids(
    environment: str,
    request_url: Optional[str],
    headers: Optional[Mapping[str, str]],
) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(program_id, env_id)`` for the request, or ``None`` for each ID not found."""
    program_id: Optional[str] = None
    env_id: Optional[str] = None

    if environment == "production":
        hostname = urlparse(request_url).hostname if request_url else None
        if not hostname:
            logger.warning("Request URL is missing, cannot determine IDs from hostname.")
            return None, None
        match = _PRODUCTION_HOST_RE.match(hostname)
        if match:
            program_id, env_id = match.group(1), match.group(2)
        else:
            logger.warning("Hostname %s did not match the expected production pattern.", hostname)
        return program_id, env_id

    if headers is None:
        logger.warning("No headers provided, cannot determine program and environment IDs.")
        return None, None

    # Header lookups are case-insensitive regardless of the mapping type
    lowered = {str(key).lower(): str(value) for key, value in headers.items()}
    program_id = lowered.get(PROGRAM_ID_HEADER) or None
    env_id = lowered.get(ENV_ID_HEADER) or None
    if not program_id:
        logger.warning("%s header not found or empty.", PROGRAM_ID_HEADER)
    if not env_id:
        logger.warning("%s header not found or empty.", ENV_ID_HEADER)
    return program_id, env_id


def build_context(
    settings: Settings,
    program_id: str,
    env_id: str,
    auth_header: Optional[str],
) -> CMSContext:
    return CMSContext(
        author_host=settings.author_host_template.format(program_id=program_id, env_id=env_id),
        publish_host=settings.publish_host_template.format(program_id=program_id, env_id=env_id),
        auth_header=auth_header,
    )
