from fastapi import APIRouter, status
from pydantic import BaseModel

from core.constants import APP_NAME, APP_VERSION


health_router = APIRouter(tags=["Health"])


class HealthCheck(BaseModel):
    name: str = APP_NAME
    version: str = APP_VERSION
    description: str = (
        "User-defined object types with typed fields and validated records, "
        "shared across users through field mappings and published applications"
    )
    status: str


@health_router.get("/status", status_code=status.HTTP_200_OK)
async def health_check() -> HealthCheck:
    return HealthCheck(status="ok")
