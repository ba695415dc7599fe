from typing import List

from pydantic import BaseModel, Field


class BlockField(BaseModel):
    """One editable block field and the names of its decorated variants."""

    name: str
    collapsed: List[str] = Field(default_factory=list)


class BlockFieldGroup(BaseModel):
    name: str
    fields: List[BlockField] = Field(default_factory=list)
