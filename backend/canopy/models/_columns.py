"""
Canopy Backend: Shared Column Factories
========================================

Column definitions repeated by every table. Types are the portable SQLAlchemy
ones (`Uuid`, `DateTime(timezone=True)`, `JSON`) so the same models run on
PostgreSQL in production and on SQLite in the test suite; PostgreSQL-only
server defaults (gen_random_uuid()) live in the Alembic migration.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Uuid, text
from sqlalchemy.orm import mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def uuid_pk():
    return mapped_column(Uuid(), primary_key=True, default=uuid.uuid4)


def created_at():
    return mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )


def updated_at():
    return mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
