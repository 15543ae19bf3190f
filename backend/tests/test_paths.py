"""
Canopy Backend: Path Codec Tests
=================================

What we test:
    ✅ encode/decode keep the identifier chain
    ✅ malformed paths and identifiers are rejected
    ✅ depth, parent, ancestors and descendant tests
    ✅ rebase of a path under a new prefix
"""

import uuid

import pytest

from canopy.exceptions import InvalidIdentifier, MalformedPath
from canopy.tree import paths


class TestEncodeDecode:
    def test_encode_joins_root_first(self):
        assert paths.encode(["a1", "b2", "c3"]) == "a1.b2.c3"

    def test_decode_splits_path(self):
        assert paths.decode("a1.b2.c3") == ["a1", "b2", "c3"]

    def test_uuid_identifiers_are_accepted(self):
        first, second = uuid.uuid4(), uuid.uuid4()
        path = paths.encode([first, second])
        assert paths.decode(path) == [str(first), str(second)]

    def test_identifier_with_separator_is_rejected(self):
        with pytest.raises(InvalidIdentifier):
            paths.encode(["a.b"])

    def test_empty_identifier_is_rejected(self):
        with pytest.raises(InvalidIdentifier):
            paths.encode(["a", ""])

    def test_empty_sequence_is_rejected(self):
        with pytest.raises(MalformedPath):
            paths.encode([])

    @pytest.mark.parametrize("bad", ["", ".a", "a.", "a..b", "a.b c", None])
    def test_malformed_paths_are_rejected(self, bad):
        with pytest.raises(MalformedPath):
            paths.decode(bad)


class TestTreeNavigation:
    def test_depth_of_root_is_one(self):
        assert paths.depth("a") == 1
        assert paths.depth("a.b.c") == 3

    def test_parent_path(self):
        assert paths.parent_path("a.b.c") == "a.b"
        assert paths.parent_path("a") is None

    def test_item_id_is_last_segment(self):
        assert paths.item_id("a.b.c") == "c"

    def test_child_path(self):
        assert paths.child_path(None, "a") == "a"
        assert paths.child_path("a.b", "c") == "a.b.c"

    def test_ancestor_paths(self):
        assert paths.ancestor_paths("a.b.c") == ["a", "a.b"]
        assert paths.ancestor_paths("a.b.c", include_self=True) == ["a", "a.b", "a.b.c"]
        assert paths.ancestor_paths("a") == []

    def test_descendant_checks_respect_segment_boundaries(self):
        assert paths.is_descendant_or_self("a.b", "a")
        assert paths.is_descendant_or_self("a", "a")
        assert not paths.is_descendant_or_self("ab", "a")
        assert paths.is_strict_descendant("a.b", "a")
        assert not paths.is_strict_descendant("a", "a")


class TestRebase:
    def test_rebase_descendant(self):
        assert paths.rebase("a.b.c", "a.b", "x.b") == "x.b.c"

    def test_rebase_root_itself(self):
        assert paths.rebase("a.b", "a.b", "b") == "b"

    def test_rebase_outside_prefix_is_rejected(self):
        with pytest.raises(MalformedPath):
            paths.rebase("a.bc", "a.b", "x.b")
