"""
Canopy Backend: Publication Route Handlers
===========================================

What:  Publishing items as collections, and the public collection listings.
Who:   Library views of the client; listings work without a calling member.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.context import AppContext
from canopy.dependencies import current_member, get_context, get_session, optional_member
from canopy.schemas.common import ErrorResponse
from canopy.schemas.social import PublishedItemResponse

router = APIRouter(prefix="/api", tags=["Collections"])


@router.post(
    "/collections/{item_id}/publish",
    response_model=PublishedItemResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Admin permission required", "model": ErrorResponse},
        409: {"description": "Already published", "model": ErrorResponse},
    },
    summary="Publish an item",
)
async def publish(
    item_id: uuid.UUID,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> PublishedItemResponse:
    return await ctx.publications.publish(db, member_id, item_id)


@router.delete(
    "/collections/{item_id}/unpublish",
    response_model=PublishedItemResponse,
    responses={404: {"description": "Item is not published", "model": ErrorResponse}},
    summary="Unpublish an item",
)
async def unpublish(
    item_id: uuid.UUID,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> PublishedItemResponse:
    return await ctx.publications.unpublish(db, member_id, item_id)


@router.get(
    "/collections/{item_id}/informations",
    response_model=Optional[PublishedItemResponse],
    summary="Publication covering an item (itself or its closest published ancestor)",
)
async def publication_info(
    item_id: uuid.UUID,
    member_id: Optional[uuid.UUID] = Depends(optional_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> Optional[PublishedItemResponse]:
    return await ctx.publications.info(db, member_id, item_id)


@router.get(
    "/collections/members/{creator_id}",
    response_model=List[PublishedItemResponse],
    summary="Collections published by a member",
)
async def member_collections(
    creator_id: uuid.UUID,
    member_id: Optional[uuid.UUID] = Depends(optional_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> List[PublishedItemResponse]:
    return await ctx.publications.for_member(db, member_id, creator_id)


@router.get(
    "/collections/recent",
    response_model=List[PublishedItemResponse],
    summary="Most recently published collections",
)
async def recent_collections(
    limit: int = Query(default=10, ge=1, le=100),
    member_id: Optional[uuid.UUID] = Depends(optional_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> List[PublishedItemResponse]:
    return await ctx.publications.recent(db, member_id, limit)


@router.get(
    "/collections/liked",
    response_model=List[PublishedItemResponse],
    summary="Most liked collections",
)
async def liked_collections(
    limit: int = Query(default=10, ge=1, le=100),
    member_id: Optional[uuid.UUID] = Depends(optional_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> List[PublishedItemResponse]:
    return await ctx.publications.most_liked(db, member_id, limit)
