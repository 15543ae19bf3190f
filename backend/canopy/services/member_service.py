"""
Canopy Backend: Member Service
===============================

What:  Member registration and lookup.
Who:   Member routes, and the identity dependency resolving X-Member-Id.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.exceptions import MemberAlreadyExists, MemberNotFound
from canopy.models.member import Member
from canopy.schemas.member import MemberCreate

logger = logging.getLogger(__name__)


class MemberService:
    async def create(self, db: AsyncSession, data: MemberCreate) -> Member:
        existing = await db.execute(select(Member.id).where(Member.email == data.email))
        if existing.scalar_one_or_none() is not None:
            raise MemberAlreadyExists(data.email)

        member = Member(name=data.name, email=data.email, extra=data.extra)
        db.add(member)
        try:
            await db.flush()
        except IntegrityError:
            # Lost a race against a concurrent registration with the same email
            raise MemberAlreadyExists(data.email)
        logger.info("Member registered: %s", member.id)
        return member

    async def get(self, db: AsyncSession, member_id: uuid.UUID) -> Member:
        result = await db.execute(select(Member).where(Member.id == member_id))
        member = result.scalar_one_or_none()
        if member is None:
            raise MemberNotFound(member_id)
        return member
