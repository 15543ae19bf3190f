"""
Canopy Backend: Tree Invariant Checker
=======================================

What:  Structural gatekeeping for every create/move/copy of an item.
How:   Each check is a plain function that raises a StructuralViolation
       subclass and returns nothing on success. Counts passed in must be
       read inside the same transaction as the write they guard.
Who:   Called by the item service and the mutation planner during their
       VALIDATING phase, before any row is written.

Invariants guarded:
    depth(path) ≤ MAX_TREE_LEVELS                   → HierarchyTooDeep
    children(folder) ≤ MAX_NUMBER_OF_CHILDREN       → TooManyChildren
    parent is a folder (or the item is a root)      → ItemNotFolder
    move is neither a cycle nor a no-op             → InvalidMoveTarget
    subtree small enough for the operation          → TooManyDescendants
"""

from typing import Optional

from canopy.exceptions import (
    HierarchyTooDeep,
    InvalidMoveTarget,
    ItemNotFolder,
    TooManyChildren,
    TooManyDescendants,
)
from canopy.tree import paths

FOLDER_TYPE = "folder"


def assert_depth_allowed(prospective_path: str, max_depth: int) -> None:
    level = paths.depth(prospective_path)
    if level > max_depth:
        raise HierarchyTooDeep(depth=level, max_depth=max_depth)


def assert_subtree_depth_allowed(
    destination_parent_path: Optional[str], subtree_height: int, max_depth: int
) -> None:
    """
    Checks that a subtree of `subtree_height` levels (1 = a single item) fits
    below `destination_parent_path` (None = placed at the root).
    """
    base = paths.depth(destination_parent_path) if destination_parent_path else 0
    if base + subtree_height > max_depth:
        raise HierarchyTooDeep(depth=base + subtree_height, max_depth=max_depth)


def assert_child_count_allowed(
    parent_path: Optional[str], current_child_count: int, max_children: int
) -> None:
    """Root level is unbounded; a folder already at the limit accepts nothing."""
    if parent_path is None:
        return
    if current_child_count >= max_children:
        raise TooManyChildren(parent_path=parent_path, max_children=max_children)


def assert_insertable_parent(parent_item_type: Optional[str]) -> None:
    if parent_item_type is not None and parent_item_type != FOLDER_TYPE:
        raise ItemNotFolder()


def assert_no_cycle_or_no_op(
    source_path: str, destination_parent_path: Optional[str]
) -> None:
    """
    Rejects moving an item into itself, into one of its descendants, or to the
    parent it already has (root → root included).
    """
    if destination_parent_path is not None and paths.is_descendant_or_self(
        destination_parent_path, source_path
    ):
        raise InvalidMoveTarget(destination_parent_path)
    if paths.parent_path(source_path) == destination_parent_path:
        raise InvalidMoveTarget(destination_parent_path or "root")


def assert_descendants_allowed(count: int, maximum: int, item_id=None) -> None:
    if count > maximum:
        raise TooManyDescendants(item_id=item_id, maximum=maximum)
