"""Create the Canopy schema

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Members, the item tree, memberships, visibility tags, likes, flags,
       publications, the action log and persisted bulk operations.
How:   PostgreSQL server defaults (gen_random_uuid(), now()) so rows inserted
       outside the ORM stay valid. Path columns get text_pattern_ops indexes:
       every subtree query is a `LIKE 'prefix%'` that must use an index under
       any collation.

Rollback: downgrade() drops every table (destructive, all data lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def _member_fk(name: str, nullable: bool, ondelete: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("members.id", ondelete=ondelete),
        nullable=nullable,
    )


def _item_fk(name: str = "item_id") -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
    )


def _path_index(name: str, table: str, column: str) -> None:
    op.create_index(name, table, [column], postgresql_ops={column: "text_pattern_ops"})


def upgrade() -> None:
    op.create_table(
        "members",
        _id(),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("email", sa.String(150), nullable=False),
        sa.Column("type", sa.String(32), server_default="individual", nullable=False),
        sa.Column("extra", sa.JSON(), server_default=sa.text("'{}'"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_members"),
        sa.UniqueConstraint("email", name="uq_members_email"),
    )

    # ── Item tree ─────────────────────────────────────────────────────────
    op.create_table(
        "items",
        _id(),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(32), server_default="folder", nullable=False),
        sa.Column("path", sa.Text(), nullable=False, comment="Materialized path: ancestor ids joined by '.'"),
        sa.Column("order", sa.Float(), nullable=True, comment="Rank among siblings, spaced by 20"),
        sa.Column("extra", sa.JSON(), server_default=sa.text("'{}'"), nullable=False),
        sa.Column("settings", sa.JSON(), server_default=sa.text("'{}'"), nullable=False),
        sa.Column("lang", sa.String(16), server_default="en", nullable=False),
        _member_fk("creator_id", nullable=True, ondelete="SET NULL"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_items"),
        sa.UniqueConstraint("path", name="uq_items_path"),
    )
    _path_index("ix_items_path_pattern", "items", "path")
    op.create_index("ix_items_creator_id", "items", ["creator_id"])

    op.create_table(
        "item_memberships",
        _id(),
        _member_fk("member_id", nullable=False, ondelete="CASCADE"),
        sa.Column("item_path", sa.Text(), nullable=False),
        sa.Column("permission", sa.String(16), nullable=False),
        _member_fk("creator_id", nullable=True, ondelete="SET NULL"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_item_memberships"),
        sa.UniqueConstraint("member_id", "item_path", name="uq_item_memberships_member_path"),
        sa.CheckConstraint(
            "permission IN ('read', 'write', 'admin')",
            name="ck_item_memberships_permission",
        ),
    )
    _path_index("ix_item_memberships_item_path", "item_memberships", "item_path")

    op.create_table(
        "item_tags",
        _id(),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("item_path", sa.Text(), nullable=False),
        _member_fk("creator_id", nullable=True, ondelete="SET NULL"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_item_tags"),
        sa.UniqueConstraint("item_path", "type", name="uq_item_tags_path_type"),
        sa.CheckConstraint("type IN ('public', 'hidden')", name="ck_item_tags_type"),
    )
    _path_index("ix_item_tags_item_path", "item_tags", "item_path")

    # ── Social ────────────────────────────────────────────────────────────
    op.create_table(
        "item_likes",
        _id(),
        _item_fk(),
        _member_fk("creator_id", nullable=False, ondelete="CASCADE"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_item_likes"),
        sa.UniqueConstraint("item_id", "creator_id", name="uq_item_likes_item_creator"),
    )
    op.create_index("ix_item_likes_item_id", "item_likes", ["item_id"])
    op.create_index("ix_item_likes_creator_id", "item_likes", ["creator_id"])

    op.create_table(
        "item_flags",
        _id(),
        sa.Column("type", sa.String(64), nullable=False),
        _item_fk(),
        _member_fk("creator_id", nullable=False, ondelete="CASCADE"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_item_flags"),
        sa.UniqueConstraint(
            "item_id", "creator_id", "type", name="uq_item_flags_item_creator_type"
        ),
    )
    op.create_index("ix_item_flags_item_id", "item_flags", ["item_id"])

    op.create_table(
        "items_published",
        _id(),
        _item_fk(),
        _member_fk("creator_id", nullable=True, ondelete="SET NULL"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_items_published"),
        sa.UniqueConstraint("item_id", name="uq_items_published_item_id"),
    )

    # ── Audit & bulk ──────────────────────────────────────────────────────
    op.create_table(
        "actions",
        _id(),
        _member_fk("member_id", nullable=True, ondelete="CASCADE"),
        sa.Column("item_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("item_path", sa.Text(), nullable=True),
        sa.Column("view", sa.String(32), server_default="unknown", nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("extra", sa.JSON(), server_default=sa.text("'{}'"), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_actions"),
    )
    op.create_index("ix_actions_item_created", "actions", ["item_id", "created_at"])
    op.create_index("ix_actions_member_id", "actions", ["member_id"])

    op.create_table(
        "bulk_operations",
        _id(),
        _member_fk("member_id", nullable=False, ondelete="CASCADE"),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("target_ids", sa.JSON(), server_default=sa.text("'[]'"), nullable=False),
        sa.Column("destination_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("results", sa.JSON(), server_default=sa.text("'{}'"), nullable=False),
        sa.Column("errors", sa.JSON(), server_default=sa.text("'{}'"), nullable=False),
        _timestamp("created_at"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_bulk_operations"),
        sa.CheckConstraint(
            "status IN ('pending', 'running', 'completed')",
            name="ck_bulk_operations_status",
        ),
    )
    op.create_index("ix_bulk_operations_member_id", "bulk_operations", ["member_id"])


def downgrade() -> None:
    for table in (
        "bulk_operations",
        "actions",
        "items_published",
        "item_flags",
        "item_likes",
        "item_tags",
        "item_memberships",
        "items",
        "members",
    ):
        op.drop_table(table)
