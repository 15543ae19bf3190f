"""Canopy Backend: Flag Route Handlers."""

import uuid
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.context import AppContext
from canopy.dependencies import current_member, get_context, get_session
from canopy.schemas.common import ErrorResponse
from canopy.schemas.social import FlagCreate, ItemFlagResponse

router = APIRouter(prefix="/api", tags=["Flags"])


@router.get(
    "/items/flags",
    response_model=List[str],
    summary="Flag types a member can report an item with",
)
async def flag_types(ctx: AppContext = Depends(get_context)) -> List[str]:
    return ctx.flags.types()


@router.post(
    "/items/{item_id}/flags",
    response_model=ItemFlagResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Item not readable", "model": ErrorResponse},
        404: {"description": "Item not found", "model": ErrorResponse},
    },
    summary="Report an item",
)
async def flag_item(
    item_id: uuid.UUID,
    data: FlagCreate,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> ItemFlagResponse:
    return await ctx.flags.flag(db, member_id, item_id, data.type)
