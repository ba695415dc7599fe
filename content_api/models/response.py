from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ProblemDetails(BaseModel):
    title: str
    status: int
    detail: str


class PageList(BaseModel):
    """One page of a page listing.

    ``cursor`` is ``None`` when there are no further items.
    """

    cursor: Optional[str] = None
    items: List[Dict[str, Any]]
