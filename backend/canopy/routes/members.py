"""Canopy Backend: Member Route Handlers."""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.context import AppContext
from canopy.dependencies import current_member, get_context, get_session
from canopy.schemas.common import ErrorResponse
from canopy.schemas.member import MemberCreate, MemberResponse

router = APIRouter(prefix="/api", tags=["Members"])


@router.post(
    "/members",
    response_model=MemberResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Email already registered", "model": ErrorResponse}},
    summary="Register a member",
)
async def create_member(
    data: MemberCreate,
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> MemberResponse:
    member = await ctx.members.create(db, data)
    return MemberResponse.model_validate(member)


@router.get(
    "/members/current",
    response_model=MemberResponse,
    responses={401: {"description": "No calling member", "model": ErrorResponse}},
    summary="The calling member",
)
async def get_current_member(
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> MemberResponse:
    return MemberResponse.model_validate(await ctx.members.get(db, member_id))


@router.get(
    "/members/{member_id}",
    response_model=MemberResponse,
    responses={404: {"description": "Member not found", "model": ErrorResponse}},
    summary="Get a member",
)
async def get_member(
    member_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> MemberResponse:
    return MemberResponse.model_validate(await ctx.members.get(db, member_id))
