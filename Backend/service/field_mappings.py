from logging import Logger
from typing import Iterable, Mapping, Protocol
from uuid import UUID

from sqlalchemy import delete, select

from core.database import SQLDatabase
from core.exceptions import UnknownFieldException
from core.logger import app_logger
from model.dao.sharing import UserFieldMappingDAO
from model.dto.sharing import (
    FieldMappingDTO,
    MappingEntryDTO,
    MappingStatusDTO,
    SetMappingDTO,
)
from service.field_definitions import FieldDefinitionService


class MappingEntry(Protocol):
    source_field_api_name: str
    target_field_api_name: str | None


def transform(
    source_values: Mapping[str, str], mapping: Iterable[MappingEntry]
) -> dict[str, str]:
    """Re-keys source values by their mapped target field; unmapped fields are dropped."""
    target_values = {}

    for entry in mapping:
        if entry.target_field_api_name is None:
            continue
        if entry.source_field_api_name in source_values:
            target_values[entry.target_field_api_name] = source_values[
                entry.source_field_api_name
            ]

    return target_values


def mapping_status(
    mapping: Iterable[MappingEntry], source_field_api_names: Iterable[str]
) -> MappingStatusDTO:
    source_fields = set(source_field_api_names)
    mapped = {
        entry.source_field_api_name
        for entry in mapping
        if entry.target_field_api_name is not None
        and entry.source_field_api_name in source_fields
    }
    total = len(source_fields)

    return MappingStatusDTO(
        is_configured=bool(mapped),
        mapped_fields=len(mapped),
        total_fields=total,
        percent=(len(mapped) * 100) // total if total else 0,
    )


class FieldMappingService:
    def __init__(
        self,
        pg_database: SQLDatabase,
        field_service: FieldDefinitionService,
        logger: Logger = app_logger,
    ):
        self._db = pg_database
        self._fields = field_service
        self._logger = logger

    async def get_mapping(
        self,
        source_object_id: UUID,
        target_object_id: UUID,
        source_user_id: UUID,
        target_user_id: UUID,
    ) -> list[FieldMappingDTO]:
        rows = await UserFieldMappingDAO.filter(
            source_user_id=source_user_id,
            target_user_id=target_user_id,
            source_object_id=source_object_id,
            target_object_id=target_object_id,
            db_resource=self._db,
        )

        return [row.to_dto() for row in rows]

    async def set_mapping(
        self, target_user_id: UUID, dto: SetMappingDTO
    ) -> list[FieldMappingDTO]:
        """Upserts entries per source field.

        A target field receives at most one source field: the latest write for
        a target leaves whichever source field held it before unmapped.
        """
        entries = self._latest_entries(dto.entries)
        await self._check_fields(dto.source_object_id, dto.target_object_id, entries)

        async with self._db.session() as session:
            rows = list(
                await session.scalars(
                    select(UserFieldMappingDAO)
                    .where(UserFieldMappingDAO.source_user_id == dto.source_user_id)
                    .where(UserFieldMappingDAO.target_user_id == target_user_id)
                    .where(UserFieldMappingDAO.source_object_id == dto.source_object_id)
                    .where(UserFieldMappingDAO.target_object_id == dto.target_object_id)
                )
            )
            by_source = {row.source_field_api_name: row for row in rows}

            for entry in entries:
                if entry.target_field_api_name is not None:
                    for row in rows:
                        if (
                            row.target_field_api_name == entry.target_field_api_name
                            and row.source_field_api_name != entry.source_field_api_name
                        ):
                            self._logger.debug(
                                f"`{row.source_field_api_name}` loses target "
                                f"`{row.target_field_api_name}` to `{entry.source_field_api_name}`"
                            )
                            row.target_field_api_name = None
                            session.add(row)

                row = by_source.get(entry.source_field_api_name)
                if row is None:
                    row = UserFieldMappingDAO(
                        source_user_id=dto.source_user_id,
                        target_user_id=target_user_id,
                        source_object_id=dto.source_object_id,
                        target_object_id=dto.target_object_id,
                        source_field_api_name=entry.source_field_api_name,
                    )
                    by_source[entry.source_field_api_name] = row
                    rows.append(row)

                row.target_field_api_name = entry.target_field_api_name
                session.add(row)

            await session.commit()

        self._logger.info(
            f"Saved {len(entries)} mapping(s) from `{dto.source_object_id}` to `{dto.target_object_id}`"
        )

        return await self.get_mapping(
            dto.source_object_id, dto.target_object_id, dto.source_user_id, target_user_id
        )

    async def delete_mapping(
        self,
        source_object_id: UUID,
        target_object_id: UUID | None,
        source_user_id: UUID,
        target_user_id: UUID,
    ) -> None:
        """Deletes the pair's rows; without a target object, every target of the source."""
        async with self._db.session() as session:
            query = (
                delete(UserFieldMappingDAO)
                .where(UserFieldMappingDAO.source_user_id == source_user_id)
                .where(UserFieldMappingDAO.target_user_id == target_user_id)
                .where(UserFieldMappingDAO.source_object_id == source_object_id)
            )
            if target_object_id is not None:
                query = query.where(UserFieldMappingDAO.target_object_id == target_object_id)

            await session.execute(query)
            await session.commit()

    async def get_mapping_status(
        self,
        source_object_id: UUID,
        target_object_id: UUID,
        source_user_id: UUID,
        target_user_id: UUID,
        source_field_api_names: list[str] | None = None,
    ) -> MappingStatusDTO:
        mapping = await self.get_mapping(
            source_object_id, target_object_id, source_user_id, target_user_id
        )

        if source_field_api_names is None:
            source_field_api_names = [
                field.api_name for field in await self._fields.get_fields(source_object_id)
            ]

        return mapping_status(mapping, source_field_api_names)

    @staticmethod
    def _latest_entries(entries: list[MappingEntryDTO]) -> list[MappingEntryDTO]:
        by_source: dict[str, MappingEntryDTO] = {}
        for entry in entries:
            by_source.pop(entry.source_field_api_name, None)
            by_source[entry.source_field_api_name] = entry

        # Within one call the later entry for a target wins as well
        by_target: dict[str, str] = {}
        for entry in by_source.values():
            if entry.target_field_api_name is not None:
                by_target[entry.target_field_api_name] = entry.source_field_api_name

        return [
            entry
            for entry in by_source.values()
            if entry.target_field_api_name is None
            or by_target[entry.target_field_api_name] == entry.source_field_api_name
        ]

    async def _check_fields(
        self,
        source_object_id: UUID,
        target_object_id: UUID,
        entries: list[MappingEntryDTO],
    ) -> None:
        source_fields = {
            field.api_name for field in await self._fields.get_fields(source_object_id)
        }
        target_fields = {
            field.api_name for field in await self._fields.get_fields(target_object_id)
        }

        unknown = [
            entry.source_field_api_name
            for entry in entries
            if entry.source_field_api_name not in source_fields
        ] + [
            entry.target_field_api_name
            for entry in entries
            if entry.target_field_api_name is not None
            and entry.target_field_api_name not in target_fields
        ]

        if unknown:
            raise UnknownFieldException(unknown)
