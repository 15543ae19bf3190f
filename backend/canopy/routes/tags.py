"""Canopy Backend: Visibility Tag Route Handlers (public / hidden)."""

import uuid
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.context import AppContext
from canopy.dependencies import current_member, get_context, get_session
from canopy.schemas.common import ErrorResponse
from canopy.schemas.social import ItemTagResponse

router = APIRouter(prefix="/api", tags=["Visibility"])

ERRORS = {
    400: {"description": "Unknown tag type", "model": ErrorResponse},
    403: {"description": "Admin permission required", "model": ErrorResponse},
    404: {"description": "Item or tag not found", "model": ErrorResponse},
    409: {"description": "Tag already applies", "model": ErrorResponse},
}


@router.get(
    "/items/{item_id}/tags",
    response_model=List[ItemTagResponse],
    responses=ERRORS,
    summary="Visibility tags applying to an item, inherited ones included",
)
async def list_tags(
    item_id: uuid.UUID,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> List[ItemTagResponse]:
    return await ctx.tags.for_item(db, member_id, item_id)


@router.post(
    "/items/{item_id}/tags/{tag_type}",
    response_model=ItemTagResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
    summary="Tag an item public or hidden",
)
async def add_tag(
    item_id: uuid.UUID,
    tag_type: str,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> ItemTagResponse:
    return await ctx.tags.add(db, member_id, item_id, tag_type)


@router.delete(
    "/items/{item_id}/tags/{tag_type}",
    response_model=ItemTagResponse,
    responses=ERRORS,
    summary="Remove a tag set on the item",
)
async def remove_tag(
    item_id: uuid.UUID,
    tag_type: str,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> ItemTagResponse:
    return await ctx.tags.remove(db, member_id, item_id, tag_type)
