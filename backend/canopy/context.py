"""
Canopy Backend: Application Context
=====================================

What:  The set of long-lived objects the application runs with: settings,
       session factory, services, planner, bulk coordinator and task queue.
How:   `build_context()` wires them once in the lifespan; the frozen
       AppContext is stored on `app.state.context` and reached by routes
       through the `get_context` dependency. Tests build their own context
       (in-memory database, tight limits) and pass it to `create_app()`.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from canopy.config import Settings
from canopy.services.action_service import ActionService
from canopy.services.authorization import AuthorizationService
from canopy.services.bulk import BulkOperationCoordinator
from canopy.services.flag_service import FlagService
from canopy.services.item_service import ItemService
from canopy.services.like_service import LikeService
from canopy.services.member_service import MemberService
from canopy.services.membership_service import MembershipService
from canopy.services.planner import MutationPlanner
from canopy.services.publication_service import PublicationService
from canopy.services.tag_service import TagService
from canopy.services.task_queue import BulkTaskQueue


@dataclass(frozen=True)
class AppContext:
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    authorization: AuthorizationService
    actions: ActionService
    members: MemberService
    items: ItemService
    planner: MutationPlanner
    memberships: MembershipService
    tags: TagService
    likes: LikeService
    flags: FlagService
    publications: PublicationService
    task_queue: BulkTaskQueue
    bulk: BulkOperationCoordinator
    engine: Optional[AsyncEngine] = None


def build_context(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    engine: Optional[AsyncEngine] = None,
) -> AppContext:
    authorization = AuthorizationService()
    actions = ActionService(settings, authorization)
    items = ItemService(settings, authorization, actions)
    planner = MutationPlanner(settings, authorization, actions, items)
    tags = TagService(authorization, actions)
    task_queue = BulkTaskQueue(
        worker_count=settings.worker_count,
        shutdown_timeout=settings.worker_shutdown_timeout,
    )
    return AppContext(
        settings=settings,
        session_factory=session_factory,
        authorization=authorization,
        actions=actions,
        members=MemberService(),
        items=items,
        planner=planner,
        memberships=MembershipService(authorization),
        tags=tags,
        likes=LikeService(authorization, actions),
        flags=FlagService(authorization),
        publications=PublicationService(authorization, actions, tags),
        task_queue=task_queue,
        bulk=BulkOperationCoordinator(settings, planner, session_factory, task_queue),
        engine=engine,
    )
