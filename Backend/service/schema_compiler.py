"""Compiles runtime field definitions into form validators.

Every field's `data_type` selects one parser; the parsers are assembled into a
pydantic model built with `create_model`, aliased by each field's `api_name`.
Validation never fails as a whole: it yields normalized values or a list of
per-field errors so callers can highlight individual inputs.
"""

from dataclasses import dataclass, field as dataclass_field
from logging import Logger
import math
from typing import Annotated, Any, Awaitable, Callable, Mapping
from uuid import UUID

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    create_model,
)
from pydantic_core import PydanticCustomError

from core.events import SchemaChanged, SchemaEventBus
from core.logger import app_logger
from model.dao.enums import FieldDataType
from model.dto.base import FieldErrorDTO
from model.dto.object_types import ObjectFieldDTO


REQUIRED_FIELD_MISSING = "required_field_missing"

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


def format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(float(value))


def parse_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    if isinstance(value, str):
        return value
    raise PydanticCustomError("invalid_text", "Enter a text value")


def parse_number(value: Any) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise PydanticCustomError("invalid_number", "Enter a valid number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise PydanticCustomError("invalid_number", "Enter a valid number")
    else:
        raise PydanticCustomError("invalid_number", "Enter a valid number")

    if not math.isfinite(number):
        raise PydanticCustomError("invalid_number", "Enter a valid number")

    return number


def parse_boolean(value: Any) -> bool | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    raise PydanticCustomError("invalid_boolean", "Choose yes or no")


# (python type, parser) per tag; everything not listed is treated as text
_RULES: dict[FieldDataType, tuple[Any, Callable[[Any], Any]]] = {
    FieldDataType.NUMBER: (float | None, parse_number),
    FieldDataType.BOOLEAN: (bool | None, parse_boolean),
}
_TEXT_RULE = (str | None, parse_text)


def to_storage_value(field: ObjectFieldDTO, value: Any) -> str | None:
    """Typed value -> the string persisted in the value store."""
    if value is None:
        return None

    data_type = FieldDataType.coerce(field.data_type)
    if data_type == FieldDataType.BOOLEAN:
        return "true" if value else "false"
    if data_type == FieldDataType.NUMBER:
        return format_number(value)
    return str(value)


def from_storage_value(field: ObjectFieldDTO, raw: str | None) -> Any:
    """Stored string -> typed value; unparsable stored data reads as unset."""
    if raw is None:
        return None

    data_type = FieldDataType.coerce(field.data_type)
    try:
        if data_type == FieldDataType.BOOLEAN:
            return parse_boolean(raw)
        if data_type == FieldDataType.NUMBER:
            return parse_number(raw)
    except PydanticCustomError:
        return None
    return raw


def _required(field: ObjectFieldDTO) -> Callable[[Any], Any]:
    def check(value: Any) -> Any:
        if value is None or value == "":
            raise PydanticCustomError(
                REQUIRED_FIELD_MISSING, "{name} is required", {"name": field.name}
            )
        return value

    return check


@dataclass
class ValidationResult:
    values: dict[str, Any] = dataclass_field(default_factory=dict)
    errors: list[FieldErrorDTO] = dataclass_field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class CompiledSchema:
    def __init__(self, fields: list[ObjectFieldDTO], model: type[BaseModel]):
        self.fields = fields
        self._model = model
        self._by_api_name = {field.api_name: field for field in fields}
        self._positions = {field.api_name: index for index, field in enumerate(fields)}

    def validate(self, raw: Mapping[str, Any]) -> ValidationResult:
        try:
            instance = self._model.model_validate(dict(raw))
        except ValidationError as exc:
            return ValidationResult(errors=self._collect_errors(exc))

        return ValidationResult(values=instance.model_dump(by_alias=True, exclude_none=True))

    def to_storage(self, values: Mapping[str, Any]) -> dict[str, str | None]:
        return {
            api_name: to_storage_value(self._by_api_name[api_name], value)
            for api_name, value in values.items()
            if api_name in self._by_api_name
        }

    def _collect_errors(self, exc: ValidationError) -> list[FieldErrorDTO]:
        errors: dict[str, FieldErrorDTO] = {}

        for error in exc.errors():
            location = error.get("loc") or ("",)
            api_name = str(location[0])
            if api_name in errors:
                continue

            field = self._by_api_name.get(api_name)
            if error["type"] in ("missing", REQUIRED_FIELD_MISSING):
                name = field.name if field else api_name
                errors[api_name] = FieldErrorDTO(
                    field=api_name, code=REQUIRED_FIELD_MISSING, message=f"{name} is required"
                )
            else:
                errors[api_name] = FieldErrorDTO(
                    field=api_name, code=error["type"], message=error["msg"]
                )

        return sorted(
            errors.values(), key=lambda item: self._positions.get(item.field, len(self._positions))
        )


class SchemaCompiler:
    """Builds validators and keeps one per object type until its schema changes."""

    def __init__(self, event_bus: SchemaEventBus, logger: Logger = app_logger):
        self._logger = logger
        self._compiled: dict[UUID, CompiledSchema] = {}
        self._generations: dict[UUID, int] = {}
        event_bus.subscribe(SchemaChanged, self._on_schema_changed)

    def compile(self, fields: list[ObjectFieldDTO]) -> CompiledSchema:
        definitions: dict[str, Any] = {}

        for index, field in enumerate(fields):
            data_type = FieldDataType.coerce(field.data_type)
            if data_type != field.data_type:
                self._logger.warning(
                    f"Unknown data type `{field.data_type}` on `{field.api_name}`, validating as text"
                )

            python_type, parser = _RULES.get(data_type, _TEXT_RULE)
            validators: list[Any] = [BeforeValidator(parser)]
            if field.is_required:
                validators.append(AfterValidator(_required(field)))

            annotated = Annotated[python_type, *validators]
            default = self._default_for(field, parser)

            if field.is_required and default is None:
                definitions[f"field_{index}"] = (annotated, Field(alias=field.api_name))
            else:
                definitions[f"field_{index}"] = (
                    annotated,
                    Field(default=default, alias=field.api_name),
                )

        model = create_model(
            "CompiledRecordForm",
            __config__=ConfigDict(extra="ignore", populate_by_name=False),
            **definitions,
        )

        return CompiledSchema(list(fields), model)

    async def get_validator(
        self,
        object_type_id: UUID,
        load_fields: Callable[[UUID], Awaitable[list[ObjectFieldDTO]]],
    ) -> CompiledSchema:
        compiled = self._compiled.get(object_type_id)
        if compiled is not None:
            return compiled

        generation = self._generations.get(object_type_id, 0)
        compiled = self.compile(await load_fields(object_type_id))

        if generation == self._generations.get(object_type_id, 0):
            self._compiled[object_type_id] = compiled

        return compiled

    def _default_for(self, field: ObjectFieldDTO, parser: Callable[[Any], Any]) -> Any:
        if field.default_value is None or field.default_value == "":
            return None

        try:
            return parser(field.default_value)
        except PydanticCustomError:
            self._logger.warning(
                f"Ignoring invalid default `{field.default_value}` on `{field.api_name}`"
            )
            return None

    def _on_schema_changed(self, event: SchemaChanged) -> None:
        self._generations[event.object_type_id] = (
            self._generations.get(event.object_type_id, 0) + 1
        )
        self._compiled.pop(event.object_type_id, None)
