from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from model.dto.base import FieldErrorDTO


class ObjectRecordDTO(BaseModel):
    id: UUID
    object_type_id: UUID
    owner_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RecordDetailDTO(ObjectRecordDTO):
    values: dict[str, str] = {}
    display_name: str
    lookup_display: dict[str, str] = {}


class RecordInputDTO(BaseModel):
    # Raw form input keyed by field api_name
    values: dict[str, Any] = {}


class ValidationResultDTO(BaseModel):
    is_valid: bool
    values: dict[str, Any] = {}
    errors: list[FieldErrorDTO] = []


class LookupResolveDTO(BaseModel):
    target_object_type_id: UUID
    values: list[str]
