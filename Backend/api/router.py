from fastapi import APIRouter, Depends
from core.auth import verify_access_token
from api.v1.field_mappings import field_mappings_router
from api.v1.fields import fields_router
from api.v1.health import health_router
from api.v1.lookups import lookups_router
from api.v1.object_types import object_types_router
from api.v1.publishing import publishing_router
from api.v1.records import records_router
from api.v1.shares import shares_router

v1_router = APIRouter(prefix="/api/v1")


authenticated_v1_router = APIRouter(dependencies=[Depends(verify_access_token)])

# Add routes that need authentication
for router in (
    object_types_router,
    fields_router,
    records_router,
    lookups_router,
    field_mappings_router,
    shares_router,
    publishing_router,
):
    authenticated_v1_router.include_router(router)


v1_router.include_router(authenticated_v1_router)
v1_router.include_router(health_router)

__all__ = ["v1_router"]
