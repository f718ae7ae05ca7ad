from logging import Logger
from uuid import UUID

from sqlalchemy import delete, func, or_, select

from core.database import SQLDatabase
from core.events import SchemaChanged, SchemaEventBus
from core.exceptions import (
    ConflictException,
    DuplicateApiNameException,
    InvalidApiNameException,
    NotFoundException,
    UnknownFieldException,
)
from core.logger import app_logger
from core.utils import ApiNameHelper
from model.dao.object_types import ObjectFieldDAO, ObjectTypeDAO
from model.dao.publishing import ObjectFieldPublishingDAO
from model.dao.records import ObjectRecordDAO
from model.dao.sharing import UserFieldMappingDAO
from model.dto.object_types import (
    CreateObjectTypeDTO,
    ObjectTypeDTO,
    UpdateObjectTypeDTO,
)


async def fetch_object_type(object_type_id: UUID, db_resource: SQLDatabase) -> ObjectTypeDAO:
    object_type = await ObjectTypeDAO.get(object_type_id, db_resource=db_resource)

    if object_type is None:
        raise NotFoundException("Object type not found")

    return object_type


class ObjectTypeService:
    def __init__(
        self,
        pg_database: SQLDatabase,
        event_bus: SchemaEventBus,
        logger: Logger = app_logger,
    ):
        self._db = pg_database
        self._events = event_bus
        self._logger = logger

    async def create_object_type(
        self, dto: CreateObjectTypeDTO, owner_id: UUID | None
    ) -> ObjectTypeDTO:
        if dto.api_name is not None:
            api_name = dto.api_name
            if not ApiNameHelper.is_valid(api_name):
                raise InvalidApiNameException(api_name)
        else:
            api_name = ApiNameHelper.derive(dto.name)
            if not api_name:
                raise InvalidApiNameException(dto.name)

        existing = (
            await ObjectTypeDAO.filter(
                owner_id=owner_id, api_name=api_name, db_resource=self._db
            )
        ).first()

        if existing is not None:
            raise DuplicateApiNameException(api_name)

        object_type = ObjectTypeDAO(
            owner_id=owner_id,
            name=dto.name,
            api_name=api_name,
            description=dto.description,
        )
        await object_type.save(self._db)

        self._logger.info(f"Created object type `{object_type.id}` ({api_name})")

        return object_type.to_dto()

    async def update_object_type(
        self, object_type_id: UUID, dto: UpdateObjectTypeDTO
    ) -> ObjectTypeDTO:
        object_type = await fetch_object_type(object_type_id, self._db)
        patch = dto.model_dump(exclude_unset=True)

        display_field = patch.get("display_field_api_name")
        if display_field is not None:
            field = (
                await ObjectFieldDAO.filter(
                    object_type_id=object_type_id,
                    api_name=display_field,
                    db_resource=self._db,
                )
            ).first()
            if field is None:
                raise UnknownFieldException([display_field])

        for key, value in patch.items():
            setattr(object_type, key, value)

        await object_type.save(self._db)

        return object_type.to_dto()

    async def list_object_types(
        self, owner_id: UUID | None = None, include_archived: bool = False
    ) -> list[ObjectTypeDTO]:
        object_types = await ObjectTypeDAO.filter(
            owner_id=owner_id,
            is_archived=None if include_archived else False,
            db_resource=self._db,
        )

        return [object_type.to_dto() for object_type in object_types]

    async def get_object_type(self, object_type_id: UUID) -> ObjectTypeDTO:
        return (await fetch_object_type(object_type_id, self._db)).to_dto()

    async def archive_object_type(self, object_type_id: UUID) -> ObjectTypeDTO:
        return await self._set_flag(object_type_id, "is_archived", True)

    async def restore_object_type(self, object_type_id: UUID) -> ObjectTypeDTO:
        return await self._set_flag(object_type_id, "is_archived", False)

    async def publish_object_type(self, object_type_id: UUID) -> ObjectTypeDTO:
        return await self._set_flag(object_type_id, "is_published", True)

    async def unpublish_object_type(self, object_type_id: UUID) -> ObjectTypeDTO:
        return await self._set_flag(object_type_id, "is_published", False)

    async def _set_flag(self, object_type_id: UUID, flag: str, value: bool) -> ObjectTypeDTO:
        object_type = await fetch_object_type(object_type_id, self._db)

        setattr(object_type, flag, value)
        await object_type.save(self._db)

        self._logger.debug(f"Set {flag}={value} on object type `{object_type_id}`")

        return object_type.to_dto()

    async def delete_object_type(self, object_type_id: UUID) -> None:
        """Hard delete; only allowed while no record or mapping references the type."""
        await fetch_object_type(object_type_id, self._db)

        async with self._db.session() as session:
            record_count = await session.scalar(
                select(func.count())
                .select_from(ObjectRecordDAO)
                .where(ObjectRecordDAO.object_type_id == object_type_id)
            )
            mapping_count = await session.scalar(
                select(func.count())
                .select_from(UserFieldMappingDAO)
                .where(
                    or_(
                        UserFieldMappingDAO.source_object_id == object_type_id,
                        UserFieldMappingDAO.target_object_id == object_type_id,
                    )
                )
            )

            if record_count or mapping_count:
                raise ConflictException(
                    "Object type is still referenced by records or field mappings. "
                    "Archive it instead."
                )

            await session.execute(
                delete(ObjectFieldPublishingDAO).where(
                    ObjectFieldPublishingDAO.object_type_id == object_type_id
                )
            )
            await session.execute(
                delete(ObjectFieldDAO).where(ObjectFieldDAO.object_type_id == object_type_id)
            )
            await session.execute(
                delete(ObjectTypeDAO).where(ObjectTypeDAO.id == object_type_id)
            )
            await session.commit()

        self._logger.info(f"Deleted object type `{object_type_id}`")
        self._events.publish(SchemaChanged(object_type_id))
