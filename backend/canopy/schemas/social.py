"""Canopy Backend: Like, Flag, Tag and Publication Schemas."""

import uuid
from datetime import datetime
from typing import Literal, Optional

from canopy.schemas.common import CamelModel
from canopy.schemas.item import ItemResponse

FlagType = Literal[
    "inappropriate-content",
    "hate-speech",
    "fraud-plagiarism",
    "spam",
    "targeted-harassment",
    "false-information",
]


class ItemLikeResponse(CamelModel):
    id: uuid.UUID
    item_id: uuid.UUID
    creator_id: uuid.UUID
    created_at: datetime


class LikedItemResponse(CamelModel):
    id: uuid.UUID
    created_at: datetime
    item: ItemResponse


class FlagCreate(CamelModel):
    type: FlagType


class ItemFlagResponse(CamelModel):
    id: uuid.UUID
    type: str
    item_id: uuid.UUID
    creator_id: uuid.UUID
    created_at: datetime


class ItemTagResponse(CamelModel):
    id: uuid.UUID
    type: str
    item_path: str
    creator_id: Optional[uuid.UUID] = None
    created_at: datetime


class PublishedItemResponse(CamelModel):
    id: uuid.UUID
    item_id: uuid.UUID
    creator_id: Optional[uuid.UUID] = None
    created_at: datetime
    item: Optional[ItemResponse] = None
    total_likes: Optional[int] = None
