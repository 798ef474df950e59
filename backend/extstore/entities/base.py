"""Base entity shared by every persisted document."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from bson import ObjectId
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def validate_object_id(v: Any) -> str:
    """Validate and convert ObjectId to string."""
    if isinstance(v, ObjectId):
        return str(v)
    if isinstance(v, str) and v:
        return v
    raise ValueError("Invalid ObjectId")


PyObjectIdStr = Annotated[str, BeforeValidator(validate_object_id)]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseEntity(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
        arbitrary_types_allowed=True,
    )

    id: Optional[PyObjectIdStr] = Field(None, alias="_id")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    def to_mongo(self) -> dict:
        """Document ready for insert: no id, enum values, aliases applied."""
        return self.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)
