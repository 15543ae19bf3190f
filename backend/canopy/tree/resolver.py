"""
Canopy Backend: Membership Resolver
====================================

What:  Effective permission computation and membership reconciliation.
How:   Works on plain `Grant` values (subject, path, level) so it can be fed
       from ORM rows, test fixtures or anything else. The closest covering
       grant wins; the public tag raises the result to at least `read`.
Who:   Item, membership and publication services (permission checks), and the
       mutation planner (move housekeeping).

Minimality invariant:
    For one subject, no grant sits below another grant of that subject whose
    level is greater than or equal to its own. Everything that creates or
    relocates grants in this module preserves it.

Move housekeeping in one picture (S = subject):

    before:  P[S:write] ── X ── X.C[S:write]        after:  X (root)
    inserts: X[S:write]     (inheritance from P is lost at the new place)
    deletes: X.C[S:write]   (now covered by the inserted grant on X)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from canopy.tree import paths

logger = logging.getLogger(__name__)

_RANK = {"read": 1, "write": 2, "admin": 3}


class PermissionLevel(str, Enum):
    """Ordered permission scale: read < write < admin."""

    READ = "read"
    WRITE = "write"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _RANK[self.value]

    @classmethod
    def parse(cls, value) -> "PermissionLevel":
        return value if isinstance(value, cls) else cls(str(value))

    def __lt__(self, other):
        return self.rank < PermissionLevel.parse(other).rank

    def __le__(self, other):
        return self.rank <= PermissionLevel.parse(other).rank

    def __gt__(self, other):
        return self.rank > PermissionLevel.parse(other).rank

    def __ge__(self, other):
        return self.rank >= PermissionLevel.parse(other).rank


@dataclass(frozen=True)
class Grant:
    """One explicit membership: `subject` holds `level` on `path` and below."""

    subject: str
    path: str
    level: PermissionLevel
    id: Optional[str] = None

    @classmethod
    def of(cls, membership) -> "Grant":
        """Builds a grant from anything shaped like an item membership row."""
        return cls(
            subject=str(membership.member_id),
            path=membership.item_path,
            level=PermissionLevel.parse(membership.permission),
            id=str(membership.id) if getattr(membership, "id", None) else None,
        )


@dataclass
class MoveHousekeeping:
    """
    Membership delta of one move.

    `deletes` reference existing rows (ids and pre-move paths); `inserts` carry
    post-move paths. Compute before the subtree is rewritten, apply after.
    """

    actor: Optional[str]
    inserts: List[Grant] = field(default_factory=list)
    deletes: List[Grant] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.inserts and not self.deletes


# ── Effective Permission ──────────────────────────────────────────────────


def _closest(grants: Iterable[Grant], item_path: str, strict: bool) -> Optional[PermissionLevel]:
    """Level of the most specific grant covering `item_path`."""
    best: List[Grant] = []
    best_depth = 0
    for grant in grants:
        covers = (
            paths.is_strict_descendant(item_path, grant.path)
            if strict
            else paths.is_descendant_or_self(item_path, grant.path)
        )
        if not covers:
            continue
        level = paths.depth(grant.path)
        if level > best_depth:
            best, best_depth = [grant], level
        elif level == best_depth:
            best.append(grant)

    if not best:
        return None
    if len(best) > 1:
        logger.warning(
            "Data consistency: %d memberships of %s on %s, using the most permissive",
            len(best),
            best[0].subject,
            best[0].path,
        )
    return max((g.level for g in best), key=lambda lvl: lvl.rank)


def _of_subject(subject, memberships: Iterable[Grant]) -> List[Grant]:
    key = str(subject)
    return [g for g in memberships if g.subject == key]


def effective_permission(
    subject,
    item_path: str,
    memberships: Iterable[Grant],
    public: bool = False,
) -> Optional[PermissionLevel]:
    """
    Permission `subject` holds on `item_path`, or None.

    Closest ancestor-or-self grant wins. A public item grants at least read to
    anyone, including anonymous callers (`subject` None).
    """
    level = None
    if subject is not None:
        level = _closest(_of_subject(subject, memberships), item_path, strict=False)
    if level is None and public:
        return PermissionLevel.READ
    return level


def inherited_permission(
    subject, item_path: str, memberships: Iterable[Grant]
) -> Optional[PermissionLevel]:
    """Permission `subject` gets on `item_path` from strict ancestors only."""
    return _closest(_of_subject(subject, memberships), item_path, strict=True)


def has_at_least(level: Optional[PermissionLevel], required: PermissionLevel) -> bool:
    return level is not None and level.rank >= required.rank


def can_read(subject, item_path: str, memberships: Iterable[Grant], public: bool = False) -> bool:
    return has_at_least(
        effective_permission(subject, item_path, memberships, public), PermissionLevel.READ
    )


def can_write(subject, item_path: str, memberships: Iterable[Grant], public: bool = False) -> bool:
    return has_at_least(
        effective_permission(subject, item_path, memberships, public), PermissionLevel.WRITE
    )


def can_admin(subject, item_path: str, memberships: Iterable[Grant], public: bool = False) -> bool:
    return has_at_least(
        effective_permission(subject, item_path, memberships, public), PermissionLevel.ADMIN
    )


# ── Reconciliation ────────────────────────────────────────────────────────


def _collapse(
    candidates: Sequence[Grant],
    above: Optional[PermissionLevel],
    anchors: Sequence[Grant] = (),
) -> List[Grant]:
    """
    Walks `candidates` (one subject, one subtree) top-down and returns those
    covered by a kept grant above them with an equal or higher level.

    `above` is what the subject inherits from outside the subtree; `anchors`
    are grants that are kept regardless (new or raised grants).
    """
    kept: List[Grant] = list(anchors)
    redundant: List[Grant] = []
    for grant in sorted(candidates, key=lambda g: paths.depth(g.path)):
        nearest = _closest(kept, grant.path, strict=True)
        if nearest is None:
            nearest = above
        if has_at_least(nearest, grant.level):
            redundant.append(grant)
        else:
            kept.append(grant)
    return redundant


def redundant_below(grant: Grant, memberships: Iterable[Grant]) -> List[Grant]:
    """
    Memberships of `grant.subject` strictly below `grant.path` that become
    redundant once `grant` exists (sharing, raising a permission).
    """
    below = [
        g
        for g in _of_subject(grant.subject, memberships)
        if paths.is_strict_descendant(g.path, grant.path)
    ]
    return _collapse(below, above=None, anchors=[grant])


def compute_move_housekeeping(
    before: str,
    after: str,
    actor,
    memberships: Iterable[Grant],
) -> MoveHousekeeping:
    """
    Membership delta for moving the subtree rooted at `before` so that its
    root ends up at `after`.

    `memberships` must hold every grant on strict ancestors of `before`, on
    strict ancestors of `after`, and inside the moved subtree; anything else
    is ignored. Rows inside the subtree are rewritten by the storage layer;
    this only decides which rows to add and which to drop:

      inserts  a subject whose access to the root came purely from the old
               ancestors, and whom the new ancestors grant less, keeps that
               level through a new explicit grant at the root
      deletes  explicit grants in the subtree (root included) that the new
               ancestor chain (plus any insert) already covers
    """
    grants = list(memberships)
    result = MoveHousekeeping(actor=str(actor) if actor is not None else None)

    by_subject: Dict[str, List[Grant]] = {}
    for grant in grants:
        by_subject.setdefault(grant.subject, []).append(grant)

    for subject, own in by_subject.items():
        old_chain = [g for g in own if paths.is_strict_descendant(before, g.path)]
        new_chain = [g for g in own if paths.is_strict_descendant(after, g.path)]
        subtree = [g for g in own if paths.is_descendant_or_self(g.path, before)]

        old_inherited = _closest(old_chain, before, strict=True)
        new_inherited = _closest(new_chain, after, strict=True)
        root_grant = next((g for g in subtree if g.path == before), None)

        anchors: List[Grant] = []
        explicit_deletes: List[Grant] = []
        lost_access = old_inherited is not None and not has_at_least(
            new_inherited, old_inherited
        )
        if lost_access and (root_grant is None or root_grant.level < old_inherited):
            inserted = Grant(subject=subject, path=after, level=old_inherited)
            result.inserts.append(inserted)
            # Anchor in pre-move coordinates so it shadows the subtree grants
            anchors.append(Grant(subject=subject, path=before, level=old_inherited))
            if root_grant is not None:
                explicit_deletes.append(root_grant)
                subtree = [g for g in subtree if g is not root_grant]

        result.deletes.extend(explicit_deletes)
        result.deletes.extend(_collapse(subtree, above=new_inherited, anchors=anchors))

    if not result.is_empty:
        logger.debug(
            "Move housekeeping %s → %s: %d insert(s), %d delete(s)",
            before,
            after,
            len(result.inserts),
            len(result.deletes),
        )
    return result
