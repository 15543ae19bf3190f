"""
Canopy Backend: Repositories
=============================

Thin query objects over one AsyncSession. They own every statement that
depends on the materialized path layout (prefix filters, prefix rewrites),
so services never build LIKE patterns themselves.
"""

from canopy.repositories.items import ItemRepository
from canopy.repositories.memberships import MembershipRepository
from canopy.repositories.tags import ItemTagRepository

__all__ = ["ItemRepository", "MembershipRepository", "ItemTagRepository"]
