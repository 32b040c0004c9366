"""Pydantic schemas describing stored versions."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, field_validator


class VersionResponse(BaseModel):
    id: int
    version_no: int
    subject_id: int
    subject_class: str
    name: str | None = None
    hash: str
    created_at: datetime
    updated_at: datetime
    user_id: str | None = None

    model_config = {"from_attributes": True}


class VersionDetailResponse(VersionResponse):
    data: dict[str, Any]

    @field_validator("data", mode="before")
    @classmethod
    def decode_data(cls, value):
        if isinstance(value, str):
            return json.loads(value)
        return value
