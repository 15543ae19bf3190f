"""
Canopy Backend: Services Layer
===============================

What:  Business rules between the routes (HTTP) and the repositories (SQL).
How:   Services are plain classes built once in the application lifespan (see
       context.py) and handed to routes through FastAPI dependencies. Every
       method takes the caller's AsyncSession; services never commit.

Service Inventory:
    - AuthorizationService:      effective permission and visibility of items
    - ActionService:             audit log of mutations
    - MemberService:             member registration and lookup
    - ItemService:               create, read, list and update items
    - MutationPlanner:           move, copy, delete and reorder one item
    - BulkOperationCoordinator:  fan-out of move/copy/delete over many ids
    - BulkTaskQueue:             worker pool running accepted bulk operations
    - MembershipService:         sharing (item memberships)
    - TagService:                public / hidden visibility tags
    - LikeService, FlagService:  likes and reports
    - PublicationService:        published collections
"""
