from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from dependency_injector.wiring import Provide, inject

from core.di_container import DependencyContainer
from model.dto.base import BaseResponseDTO
from model.dto.records import RecordInputDTO
from service.records import RecordService


records_router = APIRouter(tags=["Records"])

RecordServiceDependency = Depends(Provide[DependencyContainer.record_service_factory])


@records_router.post(
    "/object-types/{object_type_id}/validate", status_code=status.HTTP_200_OK
)
@inject
async def validate_record(
    object_type_id: UUID,
    dto: RecordInputDTO,
    service: RecordService = RecordServiceDependency,
) -> BaseResponseDTO:
    result = await service.validate_values(object_type_id, dto.values)

    return BaseResponseDTO(data=result, message="Validation complete.")


@records_router.get(
    "/object-types/{object_type_id}/records", status_code=status.HTTP_200_OK
)
@inject
async def list_records(
    object_type_id: UUID, service: RecordService = RecordServiceDependency
) -> BaseResponseDTO:
    records = await service.list_records(object_type_id)

    return BaseResponseDTO(data=records, message="Records retrieved successfully.")


@records_router.post(
    "/object-types/{object_type_id}/records", status_code=status.HTTP_201_CREATED
)
@inject
async def create_record(
    request: Request,
    object_type_id: UUID,
    dto: RecordInputDTO,
    service: RecordService = RecordServiceDependency,
) -> BaseResponseDTO:
    record = await service.submit_record(
        object_type_id, dto.values, owner_id=request.state.user_id
    )

    return BaseResponseDTO(data=record, message="Record created successfully.")


@records_router.get("/records/{record_id}", status_code=status.HTTP_200_OK)
@inject
async def get_record(
    record_id: UUID, service: RecordService = RecordServiceDependency
) -> BaseResponseDTO:
    record = await service.get_record(record_id)

    return BaseResponseDTO(data=record, message="Record retrieved successfully.")


@records_router.patch("/records/{record_id}", status_code=status.HTTP_200_OK)
@inject
async def update_record(
    record_id: UUID,
    dto: RecordInputDTO,
    service: RecordService = RecordServiceDependency,
) -> BaseResponseDTO:
    current = await service.get_record(record_id)
    record = await service.submit_record(
        current.object_type_id, {**current.values, **dto.values}, record_id=record_id
    )

    return BaseResponseDTO(data=record, message="Record updated successfully.")


@records_router.delete("/records/{record_id}", status_code=status.HTTP_200_OK)
@inject
async def delete_record(
    record_id: UUID, service: RecordService = RecordServiceDependency
) -> BaseResponseDTO:
    await service.delete_record(record_id)

    return BaseResponseDTO(message="Record deleted successfully.")
