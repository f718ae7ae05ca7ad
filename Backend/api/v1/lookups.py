from fastapi import APIRouter, Depends, status
from dependency_injector.wiring import Provide, inject

from core.di_container import DependencyContainer
from model.dto.base import BaseResponseDTO
from model.dto.records import LookupResolveDTO
from service.lookup_resolver import BatchLookupResolver


lookups_router = APIRouter(prefix="/lookups", tags=["Lookups"])

LookupResolverDependency = Depends(Provide[DependencyContainer.lookup_resolver])


@lookups_router.post("/resolve", status_code=status.HTTP_200_OK)
@inject
async def resolve_lookups(
    dto: LookupResolveDTO, resolver: BatchLookupResolver = LookupResolverDependency
) -> BaseResponseDTO:
    display_values = await resolver.resolve(dto.target_object_type_id, dto.values)

    return BaseResponseDTO(data=display_values, message="Lookups resolved.")
