from logging import Logger
from uuid import UUID

from sqlalchemy import delete, func, select

from core.database import SQLDatabase
from core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    UnknownFieldException,
)
from core.logger import app_logger
from model.dao.enums import MappingState
from model.dao.records import ObjectRecordDAO
from model.dao.sharing import RecordShareDAO, RecordShareFieldDAO, UserFieldMappingDAO
from model.dto.sharing import (
    RecordShareDTO,
    SharedRecordViewDTO,
    ShareRecordDTO,
    UpdateShareDTO,
)
from service.field_definitions import FieldDefinitionService
from service.field_mappings import mapping_status, transform
from service.records import RecordService


class RecordShareService:
    def __init__(
        self,
        pg_database: SQLDatabase,
        field_service: FieldDefinitionService,
        record_service: RecordService,
        logger: Logger = app_logger,
    ):
        self._db = pg_database
        self._fields = field_service
        self._records = record_service
        self._logger = logger

    async def share_record(
        self, record_id: UUID, shared_by_user_id: UUID, dto: ShareRecordDTO
    ) -> RecordShareDTO:
        record = await self._fetch_record(record_id)

        if record.owner_id != shared_by_user_id:
            raise ForbiddenException("Only the record owner can share it.")

        if dto.shared_with_user_id == shared_by_user_id:
            raise BadRequestException("A record cannot be shared with its owner.")

        visible_fields = await self._checked_fields(record.object_type_id, dto.visible_fields)

        existing = (
            await RecordShareDAO.filter(
                record_id=record_id,
                shared_with_user_id=dto.shared_with_user_id,
                db_resource=self._db,
            )
        ).first()

        if existing is not None:
            raise ConflictException("This record is already shared with that user.")

        share = RecordShareDAO(
            record_id=record_id,
            shared_by_user_id=shared_by_user_id,
            shared_with_user_id=dto.shared_with_user_id,
            permission_level=dto.permission_level,
        )

        async with self._db.session() as session:
            session.add(share)
            await session.flush()
            session.add_all(
                RecordShareFieldDAO(record_share_id=share.id, field_api_name=api_name)
                for api_name in visible_fields
            )
            await session.commit()
            await session.refresh(share)

        self._logger.info(
            f"Record `{record_id}` shared with `{dto.shared_with_user_id}` "
            f"({len(visible_fields)} visible field(s))"
        )

        return self._to_dto(share, visible_fields)

    async def update_share(
        self, share_id: UUID, user_id: UUID, dto: UpdateShareDTO
    ) -> RecordShareDTO:
        share = await self._fetch_share(share_id)

        if share.shared_by_user_id != user_id:
            raise ForbiddenException("Only the user who shared the record can change the share.")

        visible_fields = None
        if dto.visible_fields is not None:
            record = await self._fetch_record(share.record_id)
            visible_fields = await self._checked_fields(record.object_type_id, dto.visible_fields)

        async with self._db.session() as session:
            if dto.permission_level is not None:
                share.permission_level = dto.permission_level
                session.add(share)

            if visible_fields is not None:
                await session.execute(
                    delete(RecordShareFieldDAO).where(
                        RecordShareFieldDAO.record_share_id == share_id
                    )
                )
                session.add_all(
                    RecordShareFieldDAO(record_share_id=share_id, field_api_name=api_name)
                    for api_name in visible_fields
                )

            await session.commit()

        return self._to_dto(share, await self._visible_fields(share_id))

    async def remove_share(self, share_id: UUID, user_id: UUID) -> None:
        """Either side may revoke. The last share between two users for an
        object type also takes the pair's field mappings with it."""
        share = await self._fetch_share(share_id)

        if user_id not in (share.shared_by_user_id, share.shared_with_user_id):
            raise ForbiddenException("You are not part of this share.")

        record = await self._fetch_record(share.record_id)

        async with self._db.session() as session:
            await session.execute(
                delete(RecordShareFieldDAO).where(RecordShareFieldDAO.record_share_id == share_id)
            )
            await session.execute(delete(RecordShareDAO).where(RecordShareDAO.id == share_id))

            remaining = await session.scalar(
                select(func.count())
                .select_from(RecordShareDAO)
                .join(ObjectRecordDAO, ObjectRecordDAO.id == RecordShareDAO.record_id)
                .where(RecordShareDAO.shared_by_user_id == share.shared_by_user_id)
                .where(RecordShareDAO.shared_with_user_id == share.shared_with_user_id)
                .where(ObjectRecordDAO.object_type_id == record.object_type_id)
            )

            if not remaining:
                await session.execute(
                    delete(UserFieldMappingDAO)
                    .where(UserFieldMappingDAO.source_user_id == share.shared_by_user_id)
                    .where(UserFieldMappingDAO.target_user_id == share.shared_with_user_id)
                    .where(UserFieldMappingDAO.source_object_id == record.object_type_id)
                )

            await session.commit()

        self._logger.info(f"Removed share `{share_id}` of record `{share.record_id}`")

    async def list_record_shares(self, record_id: UUID, user_id: UUID) -> list[RecordShareDTO]:
        record = await self._fetch_record(record_id)

        if record.owner_id != user_id:
            raise ForbiddenException("Only the record owner can see its shares.")

        shares = await RecordShareDAO.filter(record_id=record_id, db_resource=self._db)

        return [
            self._to_dto(share, await self._visible_fields(share.id)) for share in shares
        ]

    async def list_shared_with_me(self, user_id: UUID) -> list[RecordShareDTO]:
        shares = await RecordShareDAO.filter(shared_with_user_id=user_id, db_resource=self._db)

        return [
            self._to_dto(share, await self._visible_fields(share.id)) for share in shares
        ]

    async def get_shared_record_view(
        self,
        record_id: UUID,
        viewer_id: UUID,
        target_object_id: UUID | None = None,
    ) -> SharedRecordViewDTO:
        """Values the viewer may see: visible share fields that are also mapped."""
        share = (
            await RecordShareDAO.filter(
                record_id=record_id, shared_with_user_id=viewer_id, db_resource=self._db
            )
        ).first()

        if share is None:
            raise NotFoundException("Share not found")

        record = await self._fetch_record(record_id)
        visible_fields = await self._visible_fields(share.id)

        rows = list(
            await UserFieldMappingDAO.filter(
                source_user_id=share.shared_by_user_id,
                target_user_id=viewer_id,
                source_object_id=record.object_type_id,
                target_object_id=target_object_id,
                db_resource=self._db,
            )
        )
        if target_object_id is None and rows:
            target_object_id = rows[0].target_object_id
            rows = [row for row in rows if row.target_object_id == target_object_id]

        status = mapping_status(rows, visible_fields)
        visible = set(visible_fields)
        source_values = {
            api_name: value
            for api_name, value in (await self._records.get_values(record_id)).items()
            if api_name in visible
        }

        return SharedRecordViewDTO(
            record_id=record_id,
            share_id=share.id,
            shared_by_user_id=share.shared_by_user_id,
            source_object_id=record.object_type_id,
            target_object_id=target_object_id,
            permission_level=share.permission_level,
            status=MappingState.OK if rows else MappingState.MAPPING_NOT_CONFIGURED,
            values=transform(source_values, rows),
            mapping_status=status,
        )

    async def _checked_fields(self, object_type_id: UUID, api_names: list[str]) -> list[str]:
        known = {field.api_name for field in await self._fields.get_fields(object_type_id)}
        unknown = [api_name for api_name in api_names if api_name not in known]

        if unknown:
            raise UnknownFieldException(unknown)

        return list(dict.fromkeys(api_names))

    async def _visible_fields(self, share_id: UUID) -> list[str]:
        rows = await RecordShareFieldDAO.filter(
            record_share_id=share_id, is_visible=True, db_resource=self._db
        )

        return [row.field_api_name for row in rows]

    async def _fetch_share(self, share_id: UUID) -> RecordShareDAO:
        share = await RecordShareDAO.get(share_id, db_resource=self._db)

        if share is None:
            raise NotFoundException("Share not found")

        return share

    async def _fetch_record(self, record_id: UUID) -> ObjectRecordDAO:
        record = await ObjectRecordDAO.get(record_id, db_resource=self._db)

        if record is None:
            raise NotFoundException("Record not found")

        return record

    @staticmethod
    def _to_dto(share: RecordShareDAO, visible_fields: list[str]) -> RecordShareDTO:
        return RecordShareDTO(
            id=share.id,
            record_id=share.record_id,
            shared_by_user_id=share.shared_by_user_id,
            shared_with_user_id=share.shared_with_user_id,
            permission_level=share.permission_level,
            created_at=share.created_at,
            visible_fields=visible_fields,
        )
