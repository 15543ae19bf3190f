"""
Canopy Backend: Item Membership Route Handlers
===============================================

What:  Sharing an item: list, grant, change and revoke memberships.
Who:   The share dialog of the client.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.context import AppContext
from canopy.dependencies import current_member, get_context, get_session
from canopy.schemas.common import ErrorResponse
from canopy.schemas.membership import (
    MembershipCreate,
    MembershipListResponse,
    MembershipResponse,
    MembershipUpdate,
)

router = APIRouter(prefix="/api", tags=["Memberships"])

ERRORS = {
    400: {"description": "Grant redundant with an inherited one", "model": ErrorResponse},
    403: {"description": "Admin permission required", "model": ErrorResponse},
    404: {"description": "Item, member or membership not found", "model": ErrorResponse},
}


@router.get(
    "/item-memberships",
    response_model=MembershipListResponse,
    responses=ERRORS,
    summary="Memberships on an item, inherited ones included",
)
async def list_memberships(
    item_id: uuid.UUID = Query(alias="itemId"),
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> MembershipListResponse:
    return await ctx.memberships.for_item(db, member_id, item_id)


@router.post(
    "/item-memberships",
    response_model=MembershipResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
    summary="Share an item with a member",
)
async def create_membership(
    data: MembershipCreate,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> MembershipResponse:
    return await ctx.memberships.create(db, member_id, data)


@router.patch(
    "/item-memberships/{membership_id}",
    response_model=MembershipResponse,
    responses=ERRORS,
    summary="Change the permission of a membership",
)
async def update_membership(
    membership_id: uuid.UUID,
    data: MembershipUpdate,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> MembershipResponse:
    return await ctx.memberships.update(db, member_id, membership_id, data.permission)


@router.delete(
    "/item-memberships/{membership_id}",
    response_model=MembershipResponse,
    responses=ERRORS,
    summary="Revoke a membership",
)
async def delete_membership(
    membership_id: uuid.UUID,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> MembershipResponse:
    return await ctx.memberships.delete(db, member_id, membership_id)
