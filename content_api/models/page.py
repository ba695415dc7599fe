from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuditStamp(BaseModel):
    """When and by whom a page was created, modified or published."""

    model_config = ConfigDict(frozen=True)

    at: Optional[str] = None
    by: Optional[str] = None


class PageRecord(BaseModel):
    """Durable identifiers and metadata of one page, as resolved from the CMS."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    page_id: str = Field(min_length=1, serialization_alias="id")
    site_id: str = Field(min_length=1, serialization_alias="siteId")
    parent_page_id: Optional[str] = Field(default=None, serialization_alias="parentPageId")
    title: Optional[str] = None
    description: Optional[str] = None
    created: Optional[AuditStamp] = None
    modified: Optional[AuditStamp] = None
    published: Optional[AuditStamp] = None

    def to_json(self) -> Dict[str, Any]:
        """Public JSON form: absent fields are omitted, ``title`` is always present."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        data.setdefault("title", None)
        return data
