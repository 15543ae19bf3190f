"""
Canopy Backend: Materialized Path Codec
========================================

What:  Maps an ordered chain of item identifiers to one path string and back.
How:   Identifiers are joined with "." which can never appear inside an
       identifier, so a plain string prefix test ("<ancestor>.") selects
       exactly the descendants of an item. The path column is indexed and
       services query subtrees with `LIKE '<path>.%'`.
Who:   Used by the invariant checker, the membership resolver, repositories
       and every service that reasons about the tree.

Example:
    encode(["a1", "b2", "c3"])      → "a1.b2.c3"
    parent_path("a1.b2.c3")         → "a1.b2"
    rebase("a1.b2.c3", "a1.b2", "x9.b2") → "x9.b2.c3"
"""

import re
from typing import Iterable, List, Optional
from uuid import UUID

from canopy.exceptions import InvalidIdentifier, MalformedPath

SEPARATOR = "."

# Item ids are UUID strings; anything else in this charset is accepted too
_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _as_identifier(value) -> str:
    if isinstance(value, UUID):
        return str(value)
    if not isinstance(value, str) or not _IDENTIFIER_RE.match(value):
        raise InvalidIdentifier(value)
    return value


def encode(ids: Iterable) -> str:
    """
    Joins identifiers (root first) into a path.

    Raises:
        InvalidIdentifier: an id is empty, contains the separator or a
                           character outside [A-Za-z0-9_-]
        MalformedPath:     the sequence is empty
    """
    segments = [_as_identifier(i) for i in ids]
    if not segments:
        raise MalformedPath("")
    return SEPARATOR.join(segments)


def decode(path: str) -> List[str]:
    """
    Splits a path back into its identifiers (root first).

    Raises:
        MalformedPath: empty path, empty segment (leading, trailing or doubled
                       separator) or a segment with forbidden characters
    """
    if not isinstance(path, str) or not path:
        raise MalformedPath(path)
    segments = path.split(SEPARATOR)
    for segment in segments:
        if not _IDENTIFIER_RE.match(segment):
            raise MalformedPath(path)
    return segments


def depth(path: str) -> int:
    """Number of identifiers in the path; a root item has depth 1."""
    return len(decode(path))


def parent_path(path: str) -> Optional[str]:
    """Path without its last identifier, or None for a root item."""
    segments = decode(path)
    if len(segments) == 1:
        return None
    return SEPARATOR.join(segments[:-1])


def item_id(path: str) -> str:
    """Identifier of the item the path points at (its last segment)."""
    return decode(path)[-1]


def child_path(parent: Optional[str], identifier) -> str:
    """Path of a new item with the given id placed under `parent` (None = root)."""
    own = _as_identifier(identifier)
    if parent is None:
        return own
    decode(parent)
    return f"{parent}{SEPARATOR}{own}"


def ancestor_paths(path: str, include_self: bool = False) -> List[str]:
    """
    Every ancestor path, root first.

    ancestor_paths("a.b.c")                    → ["a", "a.b"]
    ancestor_paths("a.b.c", include_self=True) → ["a", "a.b", "a.b.c"]
    """
    segments = decode(path)
    stop = len(segments) if include_self else len(segments) - 1
    return [SEPARATOR.join(segments[: i + 1]) for i in range(stop)]


def is_descendant_or_self(candidate: str, ancestor: str) -> bool:
    """True iff `candidate` equals `ancestor` or lies anywhere below it."""
    return candidate == ancestor or candidate.startswith(ancestor + SEPARATOR)


def is_strict_descendant(candidate: str, ancestor: str) -> bool:
    return candidate.startswith(ancestor + SEPARATOR)


def descendant_prefix(path: str) -> str:
    """String every strict descendant path starts with."""
    return path + SEPARATOR


def rebase(path: str, old_prefix: str, new_prefix: str) -> str:
    """
    Replaces the leading `old_prefix` of `path` with `new_prefix`.

    Raises:
        MalformedPath: `path` is not `old_prefix` or one of its descendants
    """
    if not is_descendant_or_self(path, old_prefix):
        raise MalformedPath(path)
    return new_prefix + path[len(old_prefix):]
