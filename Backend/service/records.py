import asyncio
from logging import Logger
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import delete, select

from core.database import SQLDatabase
from core.events import RecordsChanged, SchemaEventBus
from core.exceptions import (
    NotFoundException,
    RecordValidationException,
    UnknownFieldException,
)
from core.logger import app_logger
from core.utils import naive_utc_now
from model.dao.enums import FieldDataType
from model.dao.records import FieldValueDAO, ObjectRecordDAO
from model.dao.sharing import RecordShareDAO, RecordShareFieldDAO
from model.dto.object_types import ObjectFieldDTO
from model.dto.records import ObjectRecordDTO, RecordDetailDTO, ValidationResultDTO
from service.field_definitions import FieldDefinitionService
from service.lookup_resolver import BatchLookupResolver, record_display_name
from service.object_types import fetch_object_type
from service.schema_compiler import SchemaCompiler


class RecordService:
    def __init__(
        self,
        pg_database: SQLDatabase,
        event_bus: SchemaEventBus,
        field_service: FieldDefinitionService,
        schema_compiler: SchemaCompiler,
        lookup_resolver: BatchLookupResolver,
        logger: Logger = app_logger,
    ):
        self._db = pg_database
        self._events = event_bus
        self._fields = field_service
        self._compiler = schema_compiler
        self._resolver = lookup_resolver
        self._logger = logger

    async def get_values(self, record_id: UUID) -> dict[str, str]:
        record = await self._fetch_record(record_id)
        known = {field.api_name for field in await self._fields.get_fields(record.object_type_id)}

        # Values of deleted fields are inert and never returned
        return {
            row.field_api_name: row.value
            for row in await FieldValueDAO.filter(record_id=record_id, db_resource=self._db)
            if row.field_api_name in known
        }

    async def set_values(self, record_id: UUID, values: Mapping[str, str | None]) -> None:
        """Writes every value or none of them. `None` unsets a field."""
        record = await self._fetch_record(record_id)
        await self._check_known_fields(record.object_type_id, values)

        async with self._db.session() as session:
            existing = {
                row.field_api_name: row
                for row in await session.scalars(
                    select(FieldValueDAO).where(FieldValueDAO.record_id == record_id)
                )
            }

            for api_name, value in values.items():
                await self._apply_value(session, record_id, existing.get(api_name), api_name, value)

            record.updated_at = naive_utc_now()
            session.add(record)
            await session.commit()

        self._logger.debug(f"Updated {len(values)} value(s) on record `{record_id}`")
        self._events.publish(RecordsChanged(record.object_type_id))

    async def create_record(
        self,
        object_type_id: UUID,
        values: Mapping[str, str | None] | None = None,
        owner_id: UUID | None = None,
    ) -> ObjectRecordDTO:
        values = values or {}
        await fetch_object_type(object_type_id, self._db)
        await self._check_known_fields(object_type_id, values)

        record = ObjectRecordDAO(object_type_id=object_type_id, owner_id=owner_id)

        async with self._db.session() as session:
            session.add(record)
            await session.flush()

            for api_name, value in values.items():
                await self._apply_value(session, record.id, None, api_name, value)

            await session.commit()
            await session.refresh(record)

        self._logger.info(f"Created record `{record.id}` of `{object_type_id}`")
        self._events.publish(RecordsChanged(object_type_id))

        return record.to_dto()

    async def delete_record(self, record_id: UUID) -> None:
        record = await self._fetch_record(record_id)

        async with self._db.session() as session:
            share_ids = select(RecordShareDAO.id).where(RecordShareDAO.record_id == record_id)
            await session.execute(
                delete(RecordShareFieldDAO).where(
                    RecordShareFieldDAO.record_share_id.in_(share_ids)
                )
            )
            await session.execute(delete(RecordShareDAO).where(RecordShareDAO.record_id == record_id))
            await session.execute(delete(FieldValueDAO).where(FieldValueDAO.record_id == record_id))
            await session.execute(delete(ObjectRecordDAO).where(ObjectRecordDAO.id == record_id))
            await session.commit()

        self._logger.info(f"Deleted record `{record_id}`")
        self._events.publish(RecordsChanged(record.object_type_id))

    async def submit_record(
        self,
        object_type_id: UUID,
        raw: Mapping[str, Any],
        record_id: UUID | None = None,
        owner_id: UUID | None = None,
    ) -> RecordDetailDTO:
        """Form path: validate raw input, then create or update the record."""
        await fetch_object_type(object_type_id, self._db)
        await self._check_known_fields(object_type_id, raw)

        validator = await self._compiler.get_validator(object_type_id, self._fields.get_fields)
        result = validator.validate(raw)

        if not result.is_valid:
            raise RecordValidationException([error.model_dump() for error in result.errors])

        values = validator.to_storage(result.values)

        if record_id is None:
            record = await self.create_record(object_type_id, values, owner_id=owner_id)
            record_id = record.id
        else:
            record = await self._fetch_record(record_id)
            if record.object_type_id != object_type_id:
                raise NotFoundException("Record not found")

            # Submitted fields that normalized to "unset" are cleared
            values.update(
                {api_name: None for api_name in raw if api_name not in values}
            )
            await self.set_values(record_id, values)

        return await self.get_record(record_id)

    async def validate_values(
        self, object_type_id: UUID, raw: Mapping[str, Any]
    ) -> ValidationResultDTO:
        """Dry run of the form path; nothing is written."""
        await fetch_object_type(object_type_id, self._db)

        validator = await self._compiler.get_validator(object_type_id, self._fields.get_fields)
        result = validator.validate(raw)

        return ValidationResultDTO(
            is_valid=result.is_valid, values=result.values, errors=result.errors
        )

    async def get_record(self, record_id: UUID) -> RecordDetailDTO:
        record = await self._fetch_record(record_id)

        return (await self._describe(record.object_type_id, [record]))[0]

    async def list_records(self, object_type_id: UUID) -> list[RecordDetailDTO]:
        await fetch_object_type(object_type_id, self._db)
        records = list(
            await ObjectRecordDAO.filter(object_type_id=object_type_id, db_resource=self._db)
        )

        return await self._describe(object_type_id, records)

    async def _describe(
        self, object_type_id: UUID, records: list[ObjectRecordDAO]
    ) -> list[RecordDetailDTO]:
        if not records:
            return []

        object_type = await fetch_object_type(object_type_id, self._db)
        fields = await self._fields.get_fields(object_type_id)
        ordered_api_names = [field.api_name for field in fields]
        known = set(ordered_api_names)

        values_by_record: dict[UUID, dict[str, str]] = {record.id: {} for record in records}
        for row in await FieldValueDAO.filter(
            record_id_in=list(values_by_record), db_resource=self._db
        ):
            if row.field_api_name in known:
                values_by_record[row.record_id][row.field_api_name] = row.value

        lookup_display = await self._resolve_lookups(fields, values_by_record.values())

        details = []
        for record in records:
            values = values_by_record[record.id]
            details.append(
                RecordDetailDTO(
                    **record.to_dto().model_dump(),
                    values=values,
                    display_name=record_display_name(
                        values, ordered_api_names, object_type.display_field_api_name
                    ),
                    lookup_display={
                        field.api_name: lookup_display[field.api_name][values[field.api_name]]
                        for field in fields
                        if field.api_name in lookup_display and values.get(field.api_name)
                    },
                )
            )

        return details

    async def _resolve_lookups(
        self, fields: list[ObjectFieldDTO], all_values
    ) -> dict[str, dict[str, str]]:
        """One resolver call per target type, issued concurrently."""
        all_values = list(all_values)
        wanted: dict[UUID, set[str]] = {}
        targets: dict[str, UUID] = {}

        for field in fields:
            if FieldDataType.coerce(field.data_type) != FieldDataType.LOOKUP:
                continue
            target = field.options.get("target_object_type_id")
            if not target:
                continue
            targets[field.api_name] = UUID(str(target))
            wanted.setdefault(targets[field.api_name], set()).update(
                values[field.api_name] for values in all_values if values.get(field.api_name)
            )

        wanted = {target: raw for target, raw in wanted.items() if raw}
        resolved = dict(
            zip(
                wanted,
                await asyncio.gather(
                    *(self._resolver.resolve(target, raw) for target, raw in wanted.items())
                ),
            )
        )

        return {
            api_name: resolved.get(target, {})
            for api_name, target in targets.items()
            if target in resolved
        }

    async def _apply_value(
        self,
        session,
        record_id: UUID,
        existing: FieldValueDAO | None,
        api_name: str,
        value: str | None,
    ) -> None:
        if value is None:
            if existing is not None:
                await session.delete(existing)
            return

        if existing is None:
            session.add(
                FieldValueDAO(record_id=record_id, field_api_name=api_name, value=str(value))
            )
        else:
            existing.value = str(value)
            session.add(existing)

    async def _check_known_fields(self, object_type_id: UUID, values: Mapping[str, Any]) -> None:
        known = {field.api_name for field in await self._fields.get_fields(object_type_id)}
        unknown = [api_name for api_name in values if api_name not in known]

        if unknown:
            raise UnknownFieldException(unknown)

    async def _fetch_record(self, record_id: UUID) -> ObjectRecordDAO:
        record = await ObjectRecordDAO.get(record_id, db_resource=self._db)

        if record is None:
            raise NotFoundException("Record not found")

        return record
