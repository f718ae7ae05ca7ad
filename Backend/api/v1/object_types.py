from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from dependency_injector.wiring import Provide, inject

from core.di_container import DependencyContainer
from model.dto.base import BaseResponseDTO
from model.dto.object_types import CreateObjectTypeDTO, UpdateObjectTypeDTO
from model.dto.publishing import ImportObjectTypeDTO
from service.object_types import ObjectTypeService
from service.publishing import PublishingService


object_types_router = APIRouter(prefix="/object-types", tags=["Object Types"])

ObjectTypeServiceDependency = Depends(
    Provide[DependencyContainer.object_type_service_factory]
)
PublishingServiceDependency = Depends(Provide[DependencyContainer.publishing_service_factory])


@object_types_router.get("", status_code=status.HTTP_200_OK)
@inject
async def list_object_types(
    request: Request,
    include_archived: bool = False,
    service: ObjectTypeService = ObjectTypeServiceDependency,
) -> BaseResponseDTO:
    object_types = await service.list_object_types(
        request.state.user_id, include_archived=include_archived
    )

    return BaseResponseDTO(data=object_types, message="Object types retrieved successfully.")


@object_types_router.post("", status_code=status.HTTP_201_CREATED)
@inject
async def create_object_type(
    request: Request,
    dto: CreateObjectTypeDTO,
    service: ObjectTypeService = ObjectTypeServiceDependency,
) -> BaseResponseDTO:
    object_type = await service.create_object_type(dto, request.state.user_id)

    return BaseResponseDTO(data=object_type, message="Object type created successfully.")


@object_types_router.post("/import", status_code=status.HTTP_201_CREATED)
@inject
async def import_object_type(
    request: Request,
    dto: ImportObjectTypeDTO,
    service: PublishingService = PublishingServiceDependency,
) -> BaseResponseDTO:
    object_type = await service.import_object_type(dto.source_object_id, request.state.user_id)

    return BaseResponseDTO(data=object_type, message="Object type imported successfully.")


@object_types_router.get("/{object_type_id}", status_code=status.HTTP_200_OK)
@inject
async def get_object_type(
    object_type_id: UUID, service: ObjectTypeService = ObjectTypeServiceDependency
) -> BaseResponseDTO:
    object_type = await service.get_object_type(object_type_id)

    return BaseResponseDTO(data=object_type, message="Object type retrieved successfully.")


@object_types_router.patch("/{object_type_id}", status_code=status.HTTP_200_OK)
@inject
async def update_object_type(
    object_type_id: UUID,
    dto: UpdateObjectTypeDTO,
    service: ObjectTypeService = ObjectTypeServiceDependency,
) -> BaseResponseDTO:
    object_type = await service.update_object_type(object_type_id, dto)

    return BaseResponseDTO(data=object_type, message="Object type updated successfully.")


@object_types_router.delete("/{object_type_id}", status_code=status.HTTP_200_OK)
@inject
async def delete_object_type(
    object_type_id: UUID, service: ObjectTypeService = ObjectTypeServiceDependency
) -> BaseResponseDTO:
    await service.delete_object_type(object_type_id)

    return BaseResponseDTO(message="Object type deleted successfully.")


@object_types_router.post("/{object_type_id}/archive", status_code=status.HTTP_200_OK)
@inject
async def archive_object_type(
    object_type_id: UUID, service: ObjectTypeService = ObjectTypeServiceDependency
) -> BaseResponseDTO:
    object_type = await service.archive_object_type(object_type_id)

    return BaseResponseDTO(data=object_type, message="Object type archived.")


@object_types_router.post("/{object_type_id}/restore", status_code=status.HTTP_200_OK)
@inject
async def restore_object_type(
    object_type_id: UUID, service: ObjectTypeService = ObjectTypeServiceDependency
) -> BaseResponseDTO:
    object_type = await service.restore_object_type(object_type_id)

    return BaseResponseDTO(data=object_type, message="Object type restored.")


@object_types_router.post("/{object_type_id}/publish", status_code=status.HTTP_200_OK)
@inject
async def publish_object_type(
    object_type_id: UUID, service: ObjectTypeService = ObjectTypeServiceDependency
) -> BaseResponseDTO:
    object_type = await service.publish_object_type(object_type_id)

    return BaseResponseDTO(data=object_type, message="Object type published.")


@object_types_router.post("/{object_type_id}/unpublish", status_code=status.HTTP_200_OK)
@inject
async def unpublish_object_type(
    object_type_id: UUID, service: ObjectTypeService = ObjectTypeServiceDependency
) -> BaseResponseDTO:
    object_type = await service.unpublish_object_type(object_type_id)

    return BaseResponseDTO(data=object_type, message="Object type unpublished.")
