"""
ORM models. Importing this package registers every table on `Base.metadata`
(Alembic autogenerate and the test suite's `create_all` rely on it).
"""

from canopy.models.action import Action
from canopy.models.bulk_operation import BulkOperation
from canopy.models.item import Item
from canopy.models.item_flag import ItemFlag
from canopy.models.item_like import ItemLike
from canopy.models.item_membership import ItemMembership
from canopy.models.item_published import ItemPublished
from canopy.models.item_tag import ItemTag
from canopy.models.member import Member

__all__ = [
    "Action",
    "BulkOperation",
    "Item",
    "ItemFlag",
    "ItemLike",
    "ItemMembership",
    "ItemPublished",
    "ItemTag",
    "Member",
]
