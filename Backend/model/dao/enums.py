from enum import StrEnum


class FieldDataType(StrEnum):
    TEXT = "text"
    EMAIL = "email"
    URL = "url"
    PHONE = "phone"
    LOOKUP = "lookup"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    TEXTAREA = "textarea"
    PICKLIST = "picklist"

    @classmethod
    def coerce(cls, value: str | None) -> "FieldDataType":
        """Unknown tags degrade to `text`."""
        try:
            return cls(value)
        except ValueError:
            return cls.TEXT


class PermissionLevel(StrEnum):
    READ = "read"
    EDIT = "edit"


class MappingState(StrEnum):
    OK = "ok"
    MAPPING_NOT_CONFIGURED = "mapping_not_configured"
