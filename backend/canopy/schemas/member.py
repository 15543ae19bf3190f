"""Canopy Backend: Member Schemas."""

import uuid
from datetime import datetime
from typing import Any, Dict

from pydantic import Field, field_validator

from canopy.schemas.common import CamelModel


class MemberCreate(CamelModel):
    name: str = Field(min_length=1, max_length=300)
    email: str = Field(min_length=3, max_length=150)
    extra: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("email must look like name@domain")
        return v


class MemberResponse(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    type: str
    extra: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
