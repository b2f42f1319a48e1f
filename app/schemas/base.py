"""Base schemas for the application."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Base schema class with common configuration."""
    model_config = ConfigDict(from_attributes=True)


class CamelSchema(BaseSchema):
    """Schema whose wire names are camelCase; accepts snake_case on input too."""
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class BaseModelSchema(BaseSchema):
    """Base schema for database models."""
    id: UUID
    created_at: datetime
    updated_at: datetime


class ResponseSchema(BaseSchema):
    """Standard API response schema."""
    status: str
    message: Optional[str] = None
    data: Optional[dict] = None
