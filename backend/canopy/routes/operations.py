"""Canopy Backend: Bulk Operation Status Route."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.context import AppContext
from canopy.dependencies import current_member, get_context, get_session
from canopy.schemas.common import ErrorResponse
from canopy.schemas.operation import OperationResponse

router = APIRouter(prefix="/api", tags=["Operations"])


@router.get(
    "/operations/{operation_id}",
    response_model=OperationResponse,
    responses={
        403: {"description": "Operation started by another member", "model": ErrorResponse},
        404: {"description": "Unknown operation", "model": ErrorResponse},
    },
    summary="Status and per-id outcomes of an asynchronous bulk operation",
)
async def get_operation(
    operation_id: uuid.UUID,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> OperationResponse:
    return await ctx.bulk.status(db, member_id, operation_id)
