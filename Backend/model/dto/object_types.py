from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class ObjectTypeDTO(BaseModel):
    id: UUID
    owner_id: UUID | None = None
    name: str
    api_name: str
    description: str | None = None
    is_system: bool = False
    is_active: bool = True
    is_archived: bool = False
    is_published: bool = False
    source_object_id: UUID | None = None
    display_field_api_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CreateObjectTypeDTO(BaseModel):
    name: str = Field(min_length=1)
    api_name: str | None = None
    description: str | None = None


class UpdateObjectTypeDTO(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    is_active: bool | None = None
    display_field_api_name: str | None = None


class ObjectFieldDTO(BaseModel):
    id: UUID
    object_type_id: UUID
    name: str
    api_name: str
    data_type: str
    is_required: bool = False
    is_system: bool = False
    default_value: str | None = None
    options: dict[str, Any] = {}
    display_order: int = 0


class CreateObjectFieldDTO(BaseModel):
    name: str = Field(min_length=1)
    api_name: str | None = None
    data_type: str = "text"
    is_required: bool = False
    default_value: str | None = None
    options: dict[str, Any] = {}
    display_order: int | None = None


class UpdateObjectFieldDTO(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    api_name: str | None = None
    data_type: str | None = None
    is_required: bool | None = None
    default_value: str | None = None
    options: dict[str, Any] | None = None
    display_order: int | None = None


class ReorderFieldsDTO(BaseModel):
    field_ids: list[UUID]
