"""
Canopy Backend: Item Schemas
=============================

Request bodies for create/update/reorder, and the item representation
returned by every item endpoint.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from canopy.schemas.common import CamelModel

ItemType = Literal["folder", "document", "link", "app", "file"]


class ItemCreate(CamelModel):
    name: str = Field(min_length=1, max_length=500)
    type: ItemType = "folder"
    description: Optional[str] = Field(default=None, max_length=5000)
    extra: Dict[str, Any] = Field(default_factory=dict)
    settings: Dict[str, Any] = Field(default_factory=dict)
    lang: str = Field(default="en", max_length=16)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("name must not be blank")
        return stripped


class ItemUpdate(CamelModel):
    """Every field optional; only the ones sent are applied."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = Field(default=None, max_length=5000)
    extra: Optional[Dict[str, Any]] = None
    settings: Optional[Dict[str, Any]] = None
    lang: Optional[str] = Field(default=None, max_length=16)


class ItemReorder(CamelModel):
    previous_item_id: Optional[uuid.UUID] = Field(
        default=None,
        description="Sibling to place the item after; omitted places it first",
    )


class ItemResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    type: str
    path: str
    order: Optional[float] = None
    extra: Dict[str, Any] = Field(default_factory=dict)
    settings: Dict[str, Any] = Field(default_factory=dict)
    lang: str = "en"
    creator_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    permission: Optional[str] = Field(
        default=None,
        description="Effective permission of the caller on this item",
    )

    @classmethod
    def of(cls, item, permission=None) -> "ItemResponse":
        response = cls.model_validate(item)
        if permission is not None:
            response.permission = getattr(permission, "value", permission)
        return response


class ManyItemsResponse(CamelModel):
    """Result of GET /items/many: found items and per-id errors, keyed by id."""

    data: Dict[str, ItemResponse] = Field(default_factory=dict)
    errors: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class ItemListResponse(CamelModel):
    items: List[ItemResponse]
