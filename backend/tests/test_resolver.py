"""
Canopy Backend: Membership Resolver Tests
==========================================

What we test:
    ✅ closest grant wins, public tag lifts to read, anonymous callers
    ✅ equal-depth duplicates resolve to the most permissive and warn
    ✅ redundant grants below a new grant
    ✅ move housekeeping: inherited access kept, covered grants dropped
"""

import logging

from canopy.tree.resolver import (
    Grant,
    PermissionLevel,
    can_admin,
    can_read,
    can_write,
    compute_move_housekeeping,
    effective_permission,
    inherited_permission,
    redundant_below,
)

READ, WRITE, ADMIN = PermissionLevel.READ, PermissionLevel.WRITE, PermissionLevel.ADMIN


def grant(subject, path, level, id=None):
    return Grant(subject=subject, path=path, level=level, id=id or f"{subject}@{path}")


class TestPermissionLevel:
    def test_ordering(self):
        assert READ < WRITE < ADMIN
        assert ADMIN >= WRITE
        assert not WRITE > ADMIN

    def test_parse_accepts_strings(self):
        assert PermissionLevel.parse("write") is WRITE
        assert PermissionLevel.parse(ADMIN) is ADMIN


class TestEffectivePermission:
    def test_no_grant_means_no_access(self):
        assert effective_permission("s", "a.b", []) is None

    def test_inherited_from_ancestor(self):
        assert effective_permission("s", "a.b.c", [grant("s", "a", WRITE)]) == WRITE

    def test_closest_grant_wins_even_if_lower(self):
        grants = [grant("s", "a", ADMIN), grant("s", "a.b", READ)]
        assert effective_permission("s", "a.b.c", grants) == READ
        assert effective_permission("s", "a", grants) == ADMIN

    def test_other_subjects_are_ignored(self):
        assert effective_permission("s", "a", [grant("t", "a", ADMIN)]) is None

    def test_sibling_prefix_does_not_cover(self):
        assert effective_permission("s", "ab", [grant("s", "a", ADMIN)]) is None

    def test_public_grants_read_to_anyone(self):
        assert effective_permission(None, "a.b", [], public=True) == READ
        assert effective_permission("s", "a.b", [], public=True) == READ

    def test_public_does_not_lower_a_grant(self):
        assert effective_permission("s", "a.b", [grant("s", "a", ADMIN)], public=True) == ADMIN

    def test_duplicate_grants_use_most_permissive(self, caplog):
        grants = [grant("s", "a", READ, id="1"), grant("s", "a", WRITE, id="2")]
        with caplog.at_level(logging.WARNING, logger="canopy.tree.resolver"):
            assert effective_permission("s", "a.b", grants) == WRITE
        assert "Data consistency" in caplog.text

    def test_inherited_ignores_grant_on_item_itself(self):
        grants = [grant("s", "a", READ), grant("s", "a.b", ADMIN)]
        assert inherited_permission("s", "a.b", grants) == READ

    def test_can_helpers(self):
        grants = [grant("s", "a", WRITE)]
        assert can_read("s", "a.b", grants)
        assert can_write("s", "a.b", grants)
        assert not can_admin("s", "a.b", grants)


class TestRedundantBelow:
    def test_lower_or_equal_grants_below_are_redundant(self):
        new = grant("s", "a", WRITE)
        below = [grant("s", "a.b", READ), grant("s", "a.c", WRITE), grant("s", "a.d", ADMIN)]
        redundant = redundant_below(new, below)
        assert {g.path for g in redundant} == {"a.b", "a.c"}

    def test_grants_under_a_stronger_kept_grant(self):
        new = grant("s", "a", READ)
        below = [grant("s", "a.b", ADMIN), grant("s", "a.b.c", WRITE)]
        assert [g.path for g in redundant_below(new, below)] == ["a.b.c"]

    def test_other_subjects_untouched(self):
        new = grant("s", "a", ADMIN)
        assert redundant_below(new, [grant("t", "a.b", READ)]) == []


class TestMoveHousekeeping:
    def test_move_into_admin_folder_drops_covered_grant(self):
        # S has write on X and admin on Y; X moves under Y
        memberships = [
            grant("owner", "p", ADMIN),
            grant("owner", "y", ADMIN),
            grant("s", "p.x", WRITE),
            grant("s", "y", ADMIN),
        ]
        result = compute_move_housekeeping("p.x", "y.x", "owner", memberships)

        assert result.inserts == []
        assert [g.path for g in result.deletes] == ["p.x"]
        remaining = [g for g in memberships if g not in result.deletes]
        assert effective_permission("s", "y.x", remaining) == ADMIN

    def test_move_to_root_keeps_inherited_access(self):
        memberships = [grant("owner", "p", ADMIN), grant("s", "p", WRITE)]
        result = compute_move_housekeeping("p.x", "x", "owner", memberships)

        inserted = {(g.subject, g.path, g.level) for g in result.inserts}
        assert inserted == {("owner", "x", ADMIN), ("s", "x", WRITE)}
        assert result.deletes == []

    def test_weaker_root_grant_is_replaced(self):
        memberships = [grant("s", "p", ADMIN), grant("s", "p.x", READ)]
        result = compute_move_housekeeping("p.x", "x", "s", memberships)

        assert [(g.path, g.level) for g in result.inserts] == [("x", ADMIN)]
        assert [g.path for g in result.deletes] == ["p.x"]

    def test_stronger_root_grant_is_kept(self):
        memberships = [grant("s", "p", WRITE), grant("s", "p.x", ADMIN)]
        result = compute_move_housekeeping("p.x", "x", "s", memberships)
        assert result.is_empty

    def test_grants_inside_subtree_covered_by_insert(self):
        memberships = [grant("s", "p", ADMIN), grant("s", "p.x.c", WRITE)]
        result = compute_move_housekeeping("p.x", "x", "s", memberships)

        assert [(g.path, g.level) for g in result.inserts] == [("x", ADMIN)]
        assert [g.path for g in result.deletes] == ["p.x.c"]

    def test_no_change_when_new_parent_grants_as_much(self):
        memberships = [grant("s", "p", WRITE), grant("s", "q", WRITE)]
        result = compute_move_housekeeping("p.x", "q.x", "s", memberships)
        assert result.is_empty

    def test_result_is_minimal(self):
        memberships = [
            grant("s", "p", ADMIN),
            grant("s", "q", READ),
            grant("s", "p.x", WRITE),
            grant("s", "p.x.c", READ),
            grant("s", "p.x.d", ADMIN),
        ]
        result = compute_move_housekeeping("p.x", "q.x", "s", memberships)

        deleted = {g.id for g in result.deletes}
        survivors = [
            g for g in memberships
            if g.id not in deleted and g.path not in ("p",)
        ]
        relocated = [
            Grant(g.subject, g.path.replace("p.x", "q.x", 1), g.level, g.id)
            if g.path.startswith("p.x") else g
            for g in survivors
        ] + result.inserts
        for lower in relocated:
            for upper in relocated:
                if lower is not upper and lower.path.startswith(upper.path + "."):
                    assert lower.level > upper.level, (lower, upper)
