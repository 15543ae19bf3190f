"""
Canopy Backend: Likes, Flags, Tags, Publications and Actions
=============================================================

What we test:
    ✅ likes: once per member, unlike, liked items filtered by visibility
    ✅ flags: idempotent per type
    ✅ tags: inherited tags block duplicates, new tags absorb the ones below
    ✅ publications: publishing makes the subtree public, info walks up
    ✅ actions: recorded per mutation, admins see everyone's, members their own
"""

import pytest

from canopy.exceptions import (
    ItemAlreadyPublished,
    ItemLikeAlreadyExists,
    ItemLikeNotFound,
    ItemTagAlreadyExists,
    ItemTagNotFound,
    MemberCannotAccess,
    MemberCannotAdminItem,
    PermissionDenied,
    ValidationError,
)
from conftest import transaction


class TestLikes:
    @pytest.mark.asyncio
    async def test_like_once(self, context, seed):
        owner = await seed.member("owner")
        item = await seed.item(owner, "X")

        async with transaction(context) as db:
            await context.likes.like(db, owner, item.id)
        with pytest.raises(ItemLikeAlreadyExists):
            async with transaction(context) as db:
                await context.likes.like(db, owner, item.id)

        async with transaction(context) as db:
            likes = await context.likes.for_item(db, owner, item.id)
        assert [(like.item_id, like.creator_id) for like in likes] == [(item.id, owner)]

    @pytest.mark.asyncio
    async def test_unlike(self, context, seed):
        owner = await seed.member("owner")
        item = await seed.item(owner, "X")
        async with transaction(context) as db:
            await context.likes.like(db, owner, item.id)
            await context.likes.unlike(db, owner, item.id)

        with pytest.raises(ItemLikeNotFound):
            async with transaction(context) as db:
                await context.likes.unlike(db, owner, item.id)

    @pytest.mark.asyncio
    async def test_cannot_like_what_you_cannot_read(self, context, seed):
        owner = await seed.member("owner")
        stranger = await seed.member("stranger")
        item = await seed.item(owner, "X")

        with pytest.raises(MemberCannotAccess):
            async with transaction(context) as db:
                await context.likes.like(db, stranger, item.id)

    @pytest.mark.asyncio
    async def test_liked_items_lose_revoked_access(self, context, seed):
        owner = await seed.member("owner")
        fan = await seed.member("fan")
        kept = await seed.item(owner, "kept")
        revoked = await seed.item(owner, "revoked")
        await seed.share(owner, fan, kept.id, "read")
        grant = await seed.share(owner, fan, revoked.id, "read")
        async with transaction(context) as db:
            await context.likes.like(db, fan, kept.id)
            await context.likes.like(db, fan, revoked.id)
        async with transaction(context) as db:
            await context.memberships.delete(db, owner, grant.id)

        async with transaction(context) as db:
            liked = await context.likes.liked_by(db, fan)
        assert [entry.item.id for entry in liked] == [kept.id]


class TestFlags:
    @pytest.mark.asyncio
    async def test_flag_is_idempotent(self, context, seed):
        owner = await seed.member("owner")
        item = await seed.item(owner, "X")

        async with transaction(context) as db:
            first = await context.flags.flag(db, owner, item.id, "spam")
        async with transaction(context) as db:
            second = await context.flags.flag(db, owner, item.id, "spam")
            other = await context.flags.flag(db, owner, item.id, "hate-speech")

        assert first.id == second.id
        assert other.id != first.id

    def test_flag_types(self, context):
        assert "spam" in context.flags.types()


class TestTags:
    @pytest.mark.asyncio
    async def test_inherited_tag_blocks_duplicate(self, context, seed):
        owner = await seed.member("owner")
        root = await seed.item(owner, "root")
        child = await seed.item(owner, "child", parent=root.id)
        async with transaction(context) as db:
            await context.tags.add(db, owner, root.id, "hidden")

        with pytest.raises(ItemTagAlreadyExists):
            async with transaction(context) as db:
                await context.tags.add(db, owner, child.id, "hidden")

        async with transaction(context) as db:
            tags = await context.tags.for_item(db, owner, child.id)
        assert [(t.type, t.item_path) for t in tags] == [("hidden", root.path)]

    @pytest.mark.asyncio
    async def test_tag_absorbs_same_type_below(self, context, seed):
        owner = await seed.member("owner")
        root = await seed.item(owner, "root")
        child = await seed.item(owner, "child", parent=root.id)
        async with transaction(context) as db:
            await context.tags.add(db, owner, child.id, "public")
            await context.tags.add(db, owner, child.id, "hidden")
        async with transaction(context) as db:
            await context.tags.add(db, owner, root.id, "public")

        async with transaction(context) as db:
            tags = await context.tags.for_item(db, owner, child.id)
        assert [(t.type, t.item_path) for t in tags] == [
            ("hidden", child.path),
            ("public", root.path),
        ]

    @pytest.mark.asyncio
    async def test_remove(self, context, seed):
        owner = await seed.member("owner")
        root = await seed.item(owner, "root")
        async with transaction(context) as db:
            await context.tags.add(db, owner, root.id, "hidden")
            await context.tags.remove(db, owner, root.id, "hidden")

        with pytest.raises(ItemTagNotFound):
            async with transaction(context) as db:
                await context.tags.remove(db, owner, root.id, "hidden")

    @pytest.mark.asyncio
    async def test_unknown_type_and_non_admin(self, context, seed):
        owner = await seed.member("owner")
        writer = await seed.member("writer")
        root = await seed.item(owner, "root")
        await seed.share(owner, writer, root.id, "write")

        async with transaction(context) as db:
            with pytest.raises(ValidationError):
                await context.tags.add(db, owner, root.id, "pinned")
            with pytest.raises(MemberCannotAdminItem):
                await context.tags.add(db, writer, root.id, "hidden")


class TestPublications:
    @pytest.mark.asyncio
    async def test_publish_makes_subtree_public(self, context, seed):
        owner = await seed.member("owner")
        root = await seed.item(owner, "collection")
        child = await seed.item(owner, "chapter", parent=root.id)

        async with transaction(context) as db:
            published = await context.publications.publish(db, owner, root.id)
        assert published.item.id == root.id

        async with transaction(context) as db:
            seen = await context.items.get(db, None, child.id)
            info = await context.publications.info(db, None, child.id)
        assert seen.permission == "read"
        assert info.item_id == root.id

    @pytest.mark.asyncio
    async def test_publish_twice(self, context, seed):
        owner = await seed.member("owner")
        root = await seed.item(owner, "collection")
        async with transaction(context) as db:
            await context.publications.publish(db, owner, root.id)

        with pytest.raises(ItemAlreadyPublished):
            async with transaction(context) as db:
                await context.publications.publish(db, owner, root.id)

    @pytest.mark.asyncio
    async def test_unpublish_clears_info(self, context, seed):
        owner = await seed.member("owner")
        root = await seed.item(owner, "collection")
        async with transaction(context) as db:
            await context.publications.publish(db, owner, root.id)
        async with transaction(context) as db:
            await context.publications.unpublish(db, owner, root.id)

        async with transaction(context) as db:
            assert await context.publications.info(db, owner, root.id) is None

    @pytest.mark.asyncio
    async def test_listings(self, context, seed):
        owner = await seed.member("owner")
        fan = await seed.member("fan")
        quiet = await seed.item(owner, "quiet")
        popular = await seed.item(owner, "popular")
        for item in (quiet, popular):
            async with transaction(context) as db:
                await context.publications.publish(db, owner, item.id)
        async with transaction(context) as db:
            await context.likes.like(db, fan, popular.id)
            await context.likes.like(db, owner, popular.id)

        async with transaction(context) as db:
            by_owner = await context.publications.for_member(db, None, owner)
            recent = await context.publications.recent(db, None, limit=1)
            liked = await context.publications.most_liked(db, fan)

        assert {p.item_id for p in by_owner} == {quiet.id, popular.id}
        assert len(recent) == 1
        assert [(p.item_id, p.total_likes) for p in liked] == [
            (popular.id, 2),
            (quiet.id, 0),
        ]


class TestActions:
    @pytest.mark.asyncio
    async def test_admin_sees_everyone_members_see_their_own(self, context, seed):
        owner = await seed.member("owner")
        reader = await seed.member("reader")
        root = await seed.item(owner, "root")
        await seed.share(owner, reader, root.id, "read")
        async with transaction(context) as db:
            await context.likes.like(db, reader, root.id)

        async with transaction(context) as db:
            as_admin = await context.actions.for_item(db, owner, root.id)
            as_reader = await context.actions.for_item(db, reader, root.id)

        assert sorted(a.type for a in as_admin.actions) == ["create", "like"]
        assert as_admin.total_count == 2
        assert [a.type for a in as_reader.actions] == ["like"]

    @pytest.mark.asyncio
    async def test_descendant_actions_are_included(self, context, seed):
        owner = await seed.member("owner")
        root = await seed.item(owner, "root")
        await seed.item(owner, "child", parent=root.id)

        async with transaction(context) as db:
            listing = await context.actions.for_item(db, owner, root.id, sample_size=1)
        assert listing.total_count == 2
        assert len(listing.actions) == 1

    @pytest.mark.asyncio
    async def test_members_delete_only_their_own(self, context, seed):
        owner = await seed.member("owner")
        other = await seed.member("other")
        await seed.item(owner, "root")

        async with transaction(context) as db:
            with pytest.raises(PermissionDenied):
                await context.actions.delete_for_member(db, other, owner)
        async with transaction(context) as db:
            assert await context.actions.delete_for_member(db, owner, owner) == 1
        async with transaction(context) as db:
            assert await context.actions.for_member(db, owner) == []
