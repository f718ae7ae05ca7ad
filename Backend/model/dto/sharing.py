from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from model.dao.enums import MappingState, PermissionLevel


class FieldMappingDTO(BaseModel):
    source_user_id: UUID
    target_user_id: UUID
    source_object_id: UUID
    target_object_id: UUID
    source_field_api_name: str
    target_field_api_name: str | None = None


class MappingEntryDTO(BaseModel):
    source_field_api_name: str
    target_field_api_name: str | None = None


class SetMappingDTO(BaseModel):
    source_user_id: UUID
    source_object_id: UUID
    target_object_id: UUID
    entries: list[MappingEntryDTO]


class MappingStatusDTO(BaseModel):
    is_configured: bool
    mapped_fields: int
    total_fields: int
    percent: int


class TransformDTO(BaseModel):
    source_values: dict[str, str]
    mapping: list[MappingEntryDTO]


class RecordShareDTO(BaseModel):
    id: UUID
    record_id: UUID
    shared_by_user_id: UUID
    shared_with_user_id: UUID
    permission_level: PermissionLevel
    created_at: datetime | None = None
    visible_fields: list[str] = []


class ShareRecordDTO(BaseModel):
    shared_with_user_id: UUID
    permission_level: PermissionLevel = PermissionLevel.READ
    visible_fields: list[str]


class UpdateShareDTO(BaseModel):
    permission_level: PermissionLevel | None = None
    visible_fields: list[str] | None = None


class SharedRecordViewDTO(BaseModel):
    record_id: UUID
    share_id: UUID
    shared_by_user_id: UUID
    source_object_id: UUID
    target_object_id: UUID | None = None
    permission_level: PermissionLevel
    status: MappingState
    values: dict[str, str] = {}
    mapping_status: MappingStatusDTO
