from typing import Any
from pydantic import BaseModel


class FieldErrorDTO(BaseModel):
    field: str
    code: str
    message: str


class BaseResponseDTO(BaseModel):
    data: Any | None = None
    errors: list[Any] | None = None
    message: str
