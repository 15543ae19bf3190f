"""
Canopy Backend: Item Service Tests
===================================

What:  Item creation and reads against a real (SQLite) database.

What we test:
    ✅ creator gets an admin membership on root items only
    ✅ depth limit: the create past MAX_TREE_LEVELS fails and persists nothing
    ✅ read-only member cannot create inside a folder
    ✅ child limit and non-folder parents
    ✅ sibling ranks, get-many errors, hidden items, own / shared listings
    ✅ update merges settings and records an action
"""

import uuid

import pytest
from sqlalchemy import func, select

from canopy.exceptions import (
    HierarchyTooDeep,
    ItemNotFolder,
    ItemNotFound,
    MemberCannotAccess,
    MemberCannotWriteItem,
    TooManyChildren,
    ValidationError,
)
from canopy.models.action import Action
from canopy.models.item import Item
from canopy.models.item_membership import ItemMembership
from canopy.repositories import ItemRepository
from canopy.schemas.item import ItemCreate, ItemUpdate
from canopy.services.item_service import copy_name
from conftest import transaction


async def count_children(ctx, parent_path):
    async with transaction(ctx) as db:
        return await ItemRepository(db).count_children(parent_path)


class TestCreate:
    @pytest.mark.asyncio
    async def test_root_item_gets_creator_admin_membership(self, context, seed):
        owner = await seed.member("owner")
        root = await seed.item(owner, "root")

        assert root.permission == "admin"
        assert root.order is None
        async with transaction(context) as db:
            rows = (await db.execute(select(ItemMembership))).scalars().all()
        assert [(m.member_id, m.item_path, m.permission) for m in rows] == [
            (owner, root.path, "admin")
        ]

    @pytest.mark.asyncio
    async def test_child_of_admin_folder_needs_no_new_membership(self, context, seed):
        owner = await seed.member("owner")
        root = await seed.item(owner, "root")
        child = await seed.item(owner, "child", parent=root.id)

        assert child.path == f"{root.path}.{child.id}"
        async with transaction(context) as db:
            count = (await db.execute(select(func.count(ItemMembership.id)))).scalar()
        assert count == 1

    @pytest.mark.asyncio
    async def test_writer_becomes_admin_of_what_they_create(self, context, seed):
        owner = await seed.member("owner")
        writer = await seed.member("writer")
        root = await seed.item(owner, "root")
        await seed.share(owner, writer, root.id, "write")

        created = await seed.item(writer, "draft", parent=root.id, type="document")

        async with transaction(context) as db:
            result = await db.execute(
                select(ItemMembership).where(ItemMembership.member_id == writer)
            )
            grants = {m.item_path: m.permission for m in result.scalars().all()}
        assert grants == {root.path: "write", created.path: "admin"}

    @pytest.mark.asyncio
    async def test_create_past_max_depth_fails(self, context, seed):
        owner = await seed.member("owner")
        parent = await seed.item(owner, "P")
        current = await seed.item(owner, "C", parent=parent.id)
        for level in range(3, context.settings.max_tree_levels + 1):
            current = await seed.item(owner, f"level {level}", parent=current.id)

        with pytest.raises(HierarchyTooDeep):
            await seed.item(owner, "too deep", parent=current.id)

        assert await count_children(context, current.path) == 0
        async with transaction(context) as db:
            total = (await db.execute(select(func.count(Item.id)))).scalar()
        assert total == context.settings.max_tree_levels

    @pytest.mark.asyncio
    async def test_read_only_member_cannot_create(self, context, seed):
        owner = await seed.member("owner")
        reader = await seed.member("reader")
        folder = await seed.item(owner, "F")
        await seed.item(owner, "existing", parent=folder.id)
        await seed.share(owner, reader, folder.id, "read")

        with pytest.raises(MemberCannotWriteItem):
            await seed.item(reader, "intrusion", parent=folder.id)

        assert await count_children(context, folder.path) == 1

    @pytest.mark.asyncio
    async def test_stranger_cannot_see_parent(self, seed):
        owner = await seed.member("owner")
        stranger = await seed.member("stranger")
        folder = await seed.item(owner, "F")

        with pytest.raises(MemberCannotWriteItem):
            await seed.item(stranger, "x", parent=folder.id)

    @pytest.mark.asyncio
    async def test_child_limit(self, context, seed):
        owner = await seed.member("owner")
        folder = await seed.item(owner, "F")
        for n in range(context.settings.max_number_of_children):
            await seed.item(owner, f"child {n}", parent=folder.id)

        with pytest.raises(TooManyChildren):
            await seed.item(owner, "one more", parent=folder.id)
        assert await count_children(context, folder.path) == context.settings.max_number_of_children

    @pytest.mark.asyncio
    async def test_document_cannot_have_children(self, seed):
        owner = await seed.member("owner")
        document = await seed.item(owner, "doc", type="document")

        with pytest.raises(ItemNotFolder):
            await seed.item(owner, "x", parent=document.id)

    @pytest.mark.asyncio
    async def test_missing_parent(self, seed):
        owner = await seed.member("owner")
        with pytest.raises(ItemNotFound):
            await seed.item(owner, "x", parent=uuid.uuid4())

    @pytest.mark.asyncio
    async def test_create_records_action(self, context, seed):
        owner = await seed.member("owner")
        root = await seed.item(owner, "root")

        async with transaction(context) as db:
            actions = (await db.execute(select(Action))).scalars().all()
        assert [(a.type, a.item_id, a.member_id) for a in actions] == [
            ("create", root.id, owner)
        ]


class TestOrdering:
    @pytest.mark.asyncio
    async def test_new_children_go_first_unless_placed(self, context, seed):
        owner = await seed.member("owner")
        folder = await seed.item(owner, "F")
        first = await seed.item(owner, "first", parent=folder.id)
        second = await seed.item(owner, "second", parent=folder.id)
        third = await seed.item(owner, "third", parent=folder.id, previous=first.id)

        async with transaction(context) as db:
            children = await context.items.children(db, owner, folder.id)
        assert [c.name for c in children] == ["second", "first", "third"]
        assert second.order < first.order < third.order


class TestReads:
    @pytest.mark.asyncio
    async def test_get_many_reports_errors_per_id(self, context, seed):
        owner = await seed.member("owner")
        other = await seed.member("other")
        mine = await seed.item(owner, "mine")
        theirs = await seed.item(other, "theirs")
        missing = uuid.uuid4()

        async with transaction(context) as db:
            result = await context.items.get_many(db, owner, [mine.id, theirs.id, missing, mine.id])

        assert list(result.data) == [str(mine.id)]
        assert result.errors[str(theirs.id)]["error"] == "member_cannot_access"
        assert result.errors[str(missing)]["error"] == "item_not_found"

    @pytest.mark.asyncio
    async def test_get_many_read_limit(self, context):
        ids = [uuid.uuid4() for _ in range(context.settings.max_targets_for_read_request + 1)]
        async with transaction(context) as db:
            with pytest.raises(ValidationError):
                await context.items.get_many(db, None, ids)

    @pytest.mark.asyncio
    async def test_get_many_read_limit_counts_repeated_ids(self, context, seed):
        owner = await seed.member("owner")
        item = await seed.item(owner, "X")
        ids = [item.id] * (context.settings.max_targets_for_read_request + 1)

        async with transaction(context) as db:
            with pytest.raises(ValidationError) as exc_info:
                await context.items.get_many(db, owner, ids)
        assert exc_info.value.context["requested"] == len(ids)

    @pytest.mark.asyncio
    async def test_hidden_items_invisible_to_readers(self, context, seed):
        owner = await seed.member("owner")
        reader = await seed.member("reader")
        root = await seed.item(owner, "root")
        shown = await seed.item(owner, "shown", parent=root.id)
        secret = await seed.item(owner, "secret", parent=root.id)
        await seed.item(owner, "inside secret", parent=secret.id, type="document")
        await seed.share(owner, reader, root.id, "read")
        async with transaction(context) as db:
            await context.tags.add(db, owner, secret.id, "hidden")

        async with transaction(context) as db:
            seen_by_reader = await context.items.descendants(db, reader, root.id)
            seen_by_owner = await context.items.descendants(db, owner, root.id)
            with pytest.raises(MemberCannotAccess):
                await context.items.get(db, reader, secret.id)

        assert [i.id for i in seen_by_reader] == [shown.id]
        assert len(seen_by_owner) == 3

    @pytest.mark.asyncio
    async def test_public_item_readable_anonymously(self, context, seed):
        owner = await seed.member("owner")
        root = await seed.item(owner, "root")
        child = await seed.item(owner, "child", parent=root.id)
        async with transaction(context) as db:
            await context.tags.add(db, owner, root.id, "public")

        async with transaction(context) as db:
            fetched = await context.items.get(db, None, child.id)
        assert fetched.permission == "read"

    @pytest.mark.asyncio
    async def test_parents_root_first(self, context, seed):
        owner = await seed.member("owner")
        a = await seed.item(owner, "a")
        b = await seed.item(owner, "b", parent=a.id)
        c = await seed.item(owner, "c", parent=b.id)

        async with transaction(context) as db:
            parents = await context.items.parents(db, owner, c.id)
        assert [p.id for p in parents] == [a.id, b.id]

    @pytest.mark.asyncio
    async def test_children_keyword_and_type_filters(self, context, seed):
        owner = await seed.member("owner")
        folder = await seed.item(owner, "F")
        await seed.item(owner, "Quarterly report", parent=folder.id, type="document")
        await seed.item(owner, "Reports archive", parent=folder.id)
        await seed.item(owner, "Photos", parent=folder.id)

        async with transaction(context) as db:
            by_keyword = await context.items.children(db, owner, folder.id, keywords=["report"])
            documents = await context.items.children(db, owner, folder.id, types=["document"])
        assert sorted(c.name for c in by_keyword) == ["Quarterly report", "Reports archive"]
        assert [c.name for c in documents] == ["Quarterly report"]

    @pytest.mark.asyncio
    async def test_own_and_shared_with(self, context, seed):
        owner = await seed.member("owner")
        friend = await seed.member("friend")
        mine = await seed.item(owner, "mine")
        shared = await seed.item(friend, "shared")
        await seed.share(friend, owner, shared.id, "write")

        async with transaction(context) as db:
            own = await context.items.own(db, owner)
            shared_with = await context.items.shared_with(db, owner)
            only_read = await context.items.shared_with(db, owner, permissions=["read"])

        assert [i.id for i in own] == [mine.id]
        assert [(i.id, i.permission) for i in shared_with] == [(shared.id, "write")]
        assert only_read == []


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_merges_settings(self, context, seed):
        owner = await seed.member("owner")
        async with transaction(context) as db:
            created = await context.items.create(
                db, owner, ItemCreate(name="doc", type="document", settings={"a": 1})
            )

        async with transaction(context) as db:
            updated = await context.items.update(
                db, owner, created.id, ItemUpdate(name="renamed", settings={"b": 2})
            )
        assert updated.name == "renamed"
        assert updated.settings == {"a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_reader_cannot_update(self, context, seed):
        owner = await seed.member("owner")
        reader = await seed.member("reader")
        root = await seed.item(owner, "root")
        await seed.share(owner, reader, root.id, "read")

        async with transaction(context) as db:
            with pytest.raises(MemberCannotWriteItem):
                await context.items.update(db, reader, root.id, ItemUpdate(name="mine now"))


def test_copy_name_suffixes():
    assert copy_name("report", ["other"]) == "report"
    assert copy_name("report", ["report"]) == "report (2)"
    assert copy_name("report", ["report", "report (2)"]) == "report (3)"
