"""
Canopy Backend: Route Dependencies
===================================

What:  FastAPI dependencies shared by every router: the application context,
       the request session and the calling member.
How:   The context comes from `app.state`; the session is opened from the
       context's factory and committed when the handler returns normally,
       rolled back when it raises.

Identity:
    Authentication itself is out of scope; the calling member is named by the
    `X-Member-Id` header. `current_member` requires it (401 otherwise) and
    checks the member exists; `optional_member` lets anonymous callers through
    (they can still read public items).
"""

import uuid
from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.context import AppContext
from canopy.exceptions import Unauthenticated
from canopy.models.member import Member

MEMBER_HEADER = "X-Member-Id"


def get_context(request: Request) -> AppContext:
    return request.app.state.context


async def get_session(
    ctx: AppContext = Depends(get_context),
) -> AsyncGenerator[AsyncSession, None]:
    """
    One session per request:
        1. opened from the context's session factory
        2. yielded to the handler (services flush, never commit)
        3. committed on success, rolled back on error
        4. always closed
    """
    async with ctx.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def _parse_member_id(raw: Optional[str]) -> Optional[uuid.UUID]:
    if not raw:
        return None
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise Unauthenticated(f"{MEMBER_HEADER} is not a valid member id")


async def optional_member(
    x_member_id: Optional[str] = Header(default=None, alias=MEMBER_HEADER),
    db: AsyncSession = Depends(get_session),
) -> Optional[uuid.UUID]:
    member_id = _parse_member_id(x_member_id)
    if member_id is not None and await db.get(Member, member_id) is None:
        raise Unauthenticated("Unknown member")
    return member_id


async def current_member(
    member_id: Optional[uuid.UUID] = Depends(optional_member),
) -> uuid.UUID:
    if member_id is None:
        raise Unauthenticated()
    return member_id
