"""Service configuration loaded from ``CONTENT_API_*`` environment variables."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuration for the content API.

    Attributes
    ----------

    environment : str
        ``"production"`` derives the CMS program/environment from the request
        hostname; anything else reads them from request headers.
    request_timeout : float
        Timeout in seconds for every outbound CMS request.
    default_program_id, default_env_id : str, optional
        Used outside production when the request carries no ID headers.
    author_host_template, publish_host_template : str
        Host names formatted with ``program_id`` and ``env_id``.
    rate_limit : str
        slowapi limit applied to each page endpoint.
    """

    model_config = SettingsConfigDict(env_prefix="CONTENT_API_")

    environment: str = "development"
    log_level: str = "INFO"
    request_timeout: float = 10.0
    default_program_id: Optional[str] = None
    default_env_id: Optional[str] = None
    author_host_template: str = "author-p{program_id}-e{env_id}.adobeaemcloud.com"
    publish_host_template: str = "publish-p{program_id}-e{env_id}.adobeaemcloud.com"
    rate_limit: str = "60/minute"


@lru_cache
def get_settings() -> Settings:
    return Settings()
