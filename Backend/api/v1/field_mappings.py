from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from dependency_injector.wiring import Provide, inject

from core.di_container import DependencyContainer
from model.dto.base import BaseResponseDTO
from model.dto.sharing import SetMappingDTO, TransformDTO
from service.field_mappings import FieldMappingService, transform


field_mappings_router = APIRouter(prefix="/field-mappings", tags=["Field Mappings"])

FieldMappingServiceDependency = Depends(
    Provide[DependencyContainer.field_mapping_service_factory]
)


@field_mappings_router.get("", status_code=status.HTTP_200_OK)
@inject
async def get_mapping(
    request: Request,
    source_user_id: UUID,
    source_object_id: UUID,
    target_object_id: UUID,
    service: FieldMappingService = FieldMappingServiceDependency,
) -> BaseResponseDTO:
    mapping = await service.get_mapping(
        source_object_id, target_object_id, source_user_id, request.state.user_id
    )

    return BaseResponseDTO(data=mapping, message="Field mapping retrieved successfully.")


@field_mappings_router.put("", status_code=status.HTTP_200_OK)
@inject
async def set_mapping(
    request: Request,
    dto: SetMappingDTO,
    service: FieldMappingService = FieldMappingServiceDependency,
) -> BaseResponseDTO:
    mapping = await service.set_mapping(request.state.user_id, dto)

    return BaseResponseDTO(data=mapping, message="Field mapping saved.")


@field_mappings_router.delete("", status_code=status.HTTP_200_OK)
@inject
async def delete_mapping(
    request: Request,
    source_user_id: UUID,
    source_object_id: UUID,
    target_object_id: UUID | None = None,
    service: FieldMappingService = FieldMappingServiceDependency,
) -> BaseResponseDTO:
    await service.delete_mapping(
        source_object_id, target_object_id, source_user_id, request.state.user_id
    )

    return BaseResponseDTO(message="Field mapping deleted.")


@field_mappings_router.get("/status", status_code=status.HTTP_200_OK)
@inject
async def get_mapping_status(
    request: Request,
    source_user_id: UUID,
    source_object_id: UUID,
    target_object_id: UUID,
    service: FieldMappingService = FieldMappingServiceDependency,
) -> BaseResponseDTO:
    mapping_status = await service.get_mapping_status(
        source_object_id, target_object_id, source_user_id, request.state.user_id
    )

    return BaseResponseDTO(data=mapping_status, message="Mapping status retrieved.")


@field_mappings_router.post("/transform", status_code=status.HTTP_200_OK)
async def transform_values(dto: TransformDTO) -> BaseResponseDTO:
    return BaseResponseDTO(
        data=transform(dto.source_values, dto.mapping), message="Values transformed."
    )
