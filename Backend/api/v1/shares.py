from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from dependency_injector.wiring import Provide, inject

from core.di_container import DependencyContainer
from model.dto.base import BaseResponseDTO
from model.dto.sharing import ShareRecordDTO, UpdateShareDTO
from service.record_shares import RecordShareService


shares_router = APIRouter(tags=["Sharing"])

RecordShareServiceDependency = Depends(
    Provide[DependencyContainer.record_share_service_factory]
)


@shares_router.get("/records/{record_id}/shares", status_code=status.HTTP_200_OK)
@inject
async def list_record_shares(
    request: Request,
    record_id: UUID,
    service: RecordShareService = RecordShareServiceDependency,
) -> BaseResponseDTO:
    shares = await service.list_record_shares(record_id, request.state.user_id)

    return BaseResponseDTO(data=shares, message="Shares retrieved successfully.")


@shares_router.post("/records/{record_id}/shares", status_code=status.HTTP_201_CREATED)
@inject
async def share_record(
    request: Request,
    record_id: UUID,
    dto: ShareRecordDTO,
    service: RecordShareService = RecordShareServiceDependency,
) -> BaseResponseDTO:
    share = await service.share_record(record_id, request.state.user_id, dto)

    return BaseResponseDTO(data=share, message="Record shared successfully.")


@shares_router.patch("/shares/{share_id}", status_code=status.HTTP_200_OK)
@inject
async def update_share(
    request: Request,
    share_id: UUID,
    dto: UpdateShareDTO,
    service: RecordShareService = RecordShareServiceDependency,
) -> BaseResponseDTO:
    share = await service.update_share(share_id, request.state.user_id, dto)

    return BaseResponseDTO(data=share, message="Share updated successfully.")


@shares_router.delete("/shares/{share_id}", status_code=status.HTTP_200_OK)
@inject
async def remove_share(
    request: Request,
    share_id: UUID,
    service: RecordShareService = RecordShareServiceDependency,
) -> BaseResponseDTO:
    await service.remove_share(share_id, request.state.user_id)

    return BaseResponseDTO(message="Share removed.")


@shares_router.get("/shared-records", status_code=status.HTTP_200_OK)
@inject
async def list_shared_with_me(
    request: Request, service: RecordShareService = RecordShareServiceDependency
) -> BaseResponseDTO:
    shares = await service.list_shared_with_me(request.state.user_id)

    return BaseResponseDTO(data=shares, message="Shared records retrieved successfully.")


@shares_router.get("/shared-records/{record_id}", status_code=status.HTTP_200_OK)
@inject
async def get_shared_record(
    request: Request,
    record_id: UUID,
    target_object_id: UUID | None = None,
    service: RecordShareService = RecordShareServiceDependency,
) -> BaseResponseDTO:
    view = await service.get_shared_record_view(
        record_id, request.state.user_id, target_object_id
    )

    return BaseResponseDTO(data=view, message="Shared record retrieved successfully.")
