from uuid import UUID

from fastapi import APIRouter, Depends, status
from dependency_injector.wiring import Provide, inject

from core.di_container import DependencyContainer
from model.dto.base import BaseResponseDTO
from model.dto.object_types import (
    CreateObjectFieldDTO,
    ReorderFieldsDTO,
    UpdateObjectFieldDTO,
)
from model.dto.publishing import FieldPublishingDTO
from service.field_definitions import FieldDefinitionService
from service.publishing import PublishingService


fields_router = APIRouter(tags=["Fields"])

FieldServiceDependency = Depends(Provide[DependencyContainer.field_service_factory])
PublishingServiceDependency = Depends(Provide[DependencyContainer.publishing_service_factory])


@fields_router.get("/object-types/{object_type_id}/fields", status_code=status.HTTP_200_OK)
@inject
async def list_fields(
    object_type_id: UUID, service: FieldDefinitionService = FieldServiceDependency
) -> BaseResponseDTO:
    fields = await service.get_fields(object_type_id)

    return BaseResponseDTO(data=fields, message="Fields retrieved successfully.")


@fields_router.post(
    "/object-types/{object_type_id}/fields", status_code=status.HTTP_201_CREATED
)
@inject
async def create_field(
    object_type_id: UUID,
    dto: CreateObjectFieldDTO,
    service: FieldDefinitionService = FieldServiceDependency,
) -> BaseResponseDTO:
    field = await service.create_field(object_type_id, dto)

    return BaseResponseDTO(data=field, message="Field created successfully.")


@fields_router.post(
    "/object-types/{object_type_id}/fields/batch", status_code=status.HTTP_201_CREATED
)
@inject
async def create_fields(
    object_type_id: UUID,
    dtos: list[CreateObjectFieldDTO],
    service: FieldDefinitionService = FieldServiceDependency,
) -> BaseResponseDTO:
    fields = await service.create_fields(object_type_id, dtos)

    return BaseResponseDTO(data=fields, message="Fields created successfully.")


@fields_router.put(
    "/object-types/{object_type_id}/fields/order", status_code=status.HTTP_200_OK
)
@inject
async def reorder_fields(
    object_type_id: UUID,
    dto: ReorderFieldsDTO,
    service: FieldDefinitionService = FieldServiceDependency,
) -> BaseResponseDTO:
    fields = await service.reorder_fields(object_type_id, dto.field_ids)

    return BaseResponseDTO(data=fields, message="Fields reordered successfully.")


@fields_router.put(
    "/object-types/{object_type_id}/fields/{field_id}/publishing",
    status_code=status.HTTP_200_OK,
)
@inject
async def set_field_publishing(
    object_type_id: UUID,
    field_id: UUID,
    dto: FieldPublishingDTO,
    service: PublishingService = PublishingServiceDependency,
) -> BaseResponseDTO:
    await service.set_field_publishing(object_type_id, field_id, dto.is_included)

    return BaseResponseDTO(message="Field publishing updated.")


@fields_router.get("/fields/{field_id}", status_code=status.HTTP_200_OK)
@inject
async def get_field(
    field_id: UUID, service: FieldDefinitionService = FieldServiceDependency
) -> BaseResponseDTO:
    field = await service.get_field(field_id)

    return BaseResponseDTO(data=field, message="Field retrieved successfully.")


@fields_router.patch("/fields/{field_id}", status_code=status.HTTP_200_OK)
@inject
async def update_field(
    field_id: UUID,
    dto: UpdateObjectFieldDTO,
    service: FieldDefinitionService = FieldServiceDependency,
) -> BaseResponseDTO:
    field = await service.update_field(field_id, dto)

    return BaseResponseDTO(data=field, message="Field updated successfully.")


@fields_router.delete("/fields/{field_id}", status_code=status.HTTP_200_OK)
@inject
async def delete_field(
    field_id: UUID, service: FieldDefinitionService = FieldServiceDependency
) -> BaseResponseDTO:
    await service.delete_field(field_id)

    return BaseResponseDTO(message="Field deleted successfully.")
