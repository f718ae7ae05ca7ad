from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from dependency_injector.wiring import Provide, inject

from core.di_container import DependencyContainer
from model.dto.base import BaseResponseDTO
from model.dto.publishing import PublishApplicationDTO
from service.publishing import PublishingService


publishing_router = APIRouter(prefix="/published-applications", tags=["Publishing"])

PublishingServiceDependency = Depends(Provide[DependencyContainer.publishing_service_factory])


@publishing_router.get("", status_code=status.HTTP_200_OK)
@inject
async def list_published_applications(
    request: Request, service: PublishingService = PublishingServiceDependency
) -> BaseResponseDTO:
    applications = await service.list_published_applications(request.state.user_id)

    return BaseResponseDTO(data=applications, message="Applications retrieved successfully.")


@publishing_router.post("", status_code=status.HTTP_201_CREATED)
@inject
async def publish_application(
    request: Request,
    dto: PublishApplicationDTO,
    service: PublishingService = PublishingServiceDependency,
) -> BaseResponseDTO:
    application = await service.publish_application(dto, request.state.user_id)

    return BaseResponseDTO(data=application, message="Application published successfully.")


@publishing_router.put("/{application_id}", status_code=status.HTTP_200_OK)
@inject
async def update_published_application(
    request: Request,
    application_id: UUID,
    dto: PublishApplicationDTO,
    service: PublishingService = PublishingServiceDependency,
) -> BaseResponseDTO:
    application = await service.update_published_application(
        application_id, dto, request.state.user_id
    )

    return BaseResponseDTO(data=application, message="Application updated successfully.")


@publishing_router.get("/{application_id}/fields", status_code=status.HTTP_200_OK)
@inject
async def get_published_fields(
    application_id: UUID, service: PublishingService = PublishingServiceDependency
) -> BaseResponseDTO:
    application = await service.get_published_fields(application_id)

    return BaseResponseDTO(data=application, message="Application retrieved successfully.")
