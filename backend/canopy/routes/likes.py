"""Canopy Backend: Like Route Handlers."""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.context import AppContext
from canopy.dependencies import current_member, get_context, get_session, optional_member
from canopy.schemas.common import ErrorResponse
from canopy.schemas.social import ItemLikeResponse, LikedItemResponse

router = APIRouter(prefix="/api", tags=["Likes"])


@router.get(
    "/items/liked",
    response_model=List[LikedItemResponse],
    summary="Items the calling member liked and can still see",
)
async def liked_items(
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> List[LikedItemResponse]:
    return await ctx.likes.liked_by(db, member_id)


@router.get(
    "/items/{item_id}/likes",
    response_model=List[ItemLikeResponse],
    responses={404: {"description": "Item not found", "model": ErrorResponse}},
    summary="Likes of an item",
)
async def item_likes(
    item_id: uuid.UUID,
    member_id: Optional[uuid.UUID] = Depends(optional_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> List[ItemLikeResponse]:
    return await ctx.likes.for_item(db, member_id, item_id)


@router.post(
    "/items/{item_id}/like",
    response_model=ItemLikeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Already liked", "model": ErrorResponse}},
    summary="Like an item",
)
async def like_item(
    item_id: uuid.UUID,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> ItemLikeResponse:
    return await ctx.likes.like(db, member_id, item_id)


@router.delete(
    "/items/{item_id}/like",
    response_model=ItemLikeResponse,
    responses={404: {"description": "Not liked", "model": ErrorResponse}},
    summary="Remove a like",
)
async def unlike_item(
    item_id: uuid.UUID,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> ItemLikeResponse:
    return await ctx.likes.unlike(db, member_id, item_id)
