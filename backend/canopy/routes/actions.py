"""
Canopy Backend: Action Route Handlers
======================================

What:  Reading the audit log of an item and of the calling member, and
       erasing the calling member's own actions.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.context import AppContext
from canopy.dependencies import current_member, get_context, get_session
from canopy.schemas.action import ActionListResponse, ActionResponse
from canopy.schemas.common import ErrorResponse

router = APIRouter(prefix="/api", tags=["Actions"])


@router.get(
    "/items/{item_id}/actions",
    response_model=ActionListResponse,
    responses={
        400: {"description": "Invalid date window", "model": ErrorResponse},
        403: {"description": "Item not readable", "model": ErrorResponse},
        404: {"description": "Item not found", "model": ErrorResponse},
    },
    summary="Actions on an item and its descendants",
    description=(
        "Admins of the item see every member's actions; other members see their own. "
        "Without startDate the window is the last 30 days."
    ),
)
async def item_actions(
    item_id: uuid.UUID,
    response: Response,
    sample_size: Optional[int] = Query(default=None, alias="sampleSize", ge=1, le=100_000),
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    view: Optional[str] = Query(default=None),
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> ActionListResponse:
    result = await ctx.actions.for_item(
        db, member_id, item_id,
        sample_size=sample_size, start=start_date, end=end_date, view=view,
    )
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.get(
    "/members/actions",
    response_model=List[ActionResponse],
    summary="Actions of the calling member",
)
async def member_actions(
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> List[ActionResponse]:
    return await ctx.actions.for_member(db, member_id, start=start_date, end=end_date)


@router.delete(
    "/members/{target_id}/actions",
    responses={403: {"description": "Not the calling member", "model": ErrorResponse}},
    summary="Delete every action of the calling member",
)
async def delete_member_actions(
    target_id: uuid.UUID,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> dict:
    deleted = await ctx.actions.delete_for_member(db, member_id, target_id)
    return {"deleted": deleted}
