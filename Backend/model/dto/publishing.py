from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from model.dto.object_types import ObjectFieldDTO, ObjectTypeDTO


class PublishedApplicationDTO(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    published_by: UUID
    is_public: bool = False
    version: str = "1.0"
    application_id: UUID | None = None
    created_at: datetime | None = None


class PublishApplicationDTO(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    is_public: bool = False
    version: str | None = None
    application_id: UUID | None = None
    object_type_ids: list[UUID] = []
    action_ids: list[UUID] = []
    # object_type_id -> {field_id -> is_included}
    field_settings: dict[UUID, dict[UUID, bool]] = {}


class PublishedObjectDTO(BaseModel):
    object_type: ObjectTypeDTO
    fields: list[ObjectFieldDTO]


class PublishedApplicationDetailDTO(PublishedApplicationDTO):
    objects: list[PublishedObjectDTO] = []
    action_ids: list[UUID] = []


class ImportObjectTypeDTO(BaseModel):
    source_object_id: UUID


class FieldPublishingDTO(BaseModel):
    is_included: bool
