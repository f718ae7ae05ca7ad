from logging import Logger
from uuid import UUID

from sqlalchemy import delete, select

from core.database import SQLDatabase
from core.events import SchemaChanged, SchemaEventBus
from core.exceptions import (
    BadRequestException,
    ForbiddenException,
    NotFoundException,
    SourceNotFoundException,
)
from core.logger import app_logger
from core.utils import ApiNameHelper
from model.dao.object_types import ObjectFieldDAO, ObjectTypeDAO
from model.dao.publishing import (
    ObjectFieldPublishingDAO,
    PublishedApplicationActionDAO,
    PublishedApplicationDAO,
    PublishedApplicationObjectDAO,
)
from model.dto.object_types import ObjectFieldDTO, ObjectTypeDTO
from model.dto.publishing import (
    PublishApplicationDTO,
    PublishedApplicationDetailDTO,
    PublishedApplicationDTO,
    PublishedObjectDTO,
)
from service.field_definitions import FieldDefinitionService
from service.object_types import fetch_object_type


class PublishingService:
    def __init__(
        self,
        pg_database: SQLDatabase,
        event_bus: SchemaEventBus,
        field_service: FieldDefinitionService,
        logger: Logger = app_logger,
    ):
        self._db = pg_database
        self._events = event_bus
        self._fields = field_service
        self._logger = logger

    async def import_object_type(
        self, source_object_type_id: UUID, new_owner_id: UUID | None
    ) -> ObjectTypeDTO:
        """Clones a type and its included fields into a new, independent type."""
        source = await ObjectTypeDAO.get(source_object_type_id, db_resource=self._db)

        if source is None or source.is_archived:
            raise SourceNotFoundException()

        excluded = await self._excluded_field_ids([source.id])
        source_fields = [
            field
            for field in await ObjectFieldDAO.filter(
                object_type_id=source.id, db_resource=self._db
            )
            if field.id not in excluded
        ]

        taken = {
            object_type.api_name
            for object_type in await ObjectTypeDAO.filter(
                owner_id=new_owner_id, db_resource=self._db
            )
        }
        api_name = ApiNameHelper.next_available(source.api_name, taken)

        object_type = ObjectTypeDAO(
            owner_id=new_owner_id,
            name=source.name,
            api_name=api_name,
            description=source.description,
            source_object_id=source.id,
            display_field_api_name=source.display_field_api_name,
        )

        async with self._db.session() as session:
            session.add(object_type)
            await session.flush()

            session.add_all(
                ObjectFieldDAO(
                    object_type_id=object_type.id,
                    name=field.name,
                    api_name=field.api_name,
                    data_type=field.data_type,
                    is_required=field.is_required,
                    is_system=field.is_system,
                    default_value=field.default_value,
                    options=dict(field.options or {}),
                    display_order=field.display_order,
                    insertion_seq=field.insertion_seq,
                )
                for field in source_fields
            )

            if object_type.display_field_api_name not in {
                field.api_name for field in source_fields
            }:
                object_type.display_field_api_name = None

            await session.commit()
            await session.refresh(object_type)

        self._logger.info(
            f"Imported `{source.id}` as `{object_type.id}` with {len(source_fields)} field(s)"
        )
        self._events.publish(SchemaChanged(object_type.id))

        return object_type.to_dto()

    async def publish_application(
        self, dto: PublishApplicationDTO, published_by: UUID
    ) -> PublishedApplicationDetailDTO:
        await self._check_object_types(dto.object_type_ids)

        application = PublishedApplicationDAO(
            name=dto.name,
            description=dto.description,
            published_by=published_by,
            is_public=dto.is_public,
            version=dto.version or "1.0",
            application_id=dto.application_id,
        )

        async with self._db.session() as session:
            session.add(application)
            await session.flush()
            await self._write_contents(session, application.id, dto)
            await session.commit()
            await session.refresh(application)

        self._logger.info(
            f"Published application `{application.id}` with "
            f"{len(dto.object_type_ids)} object type(s)"
        )

        return await self.get_published_fields(application.id)

    async def update_published_application(
        self, application_id: UUID, dto: PublishApplicationDTO, user_id: UUID
    ) -> PublishedApplicationDetailDTO:
        application = await self._fetch_application(application_id)

        if application.published_by != user_id:
            raise ForbiddenException("Only the publisher can update this application.")

        await self._check_object_types(dto.object_type_ids)

        application.name = dto.name
        application.description = dto.description
        application.is_public = dto.is_public
        if dto.version is not None:
            application.version = dto.version
        if dto.application_id is not None:
            application.application_id = dto.application_id

        async with self._db.session() as session:
            session.add(application)
            await session.execute(
                delete(PublishedApplicationObjectDAO).where(
                    PublishedApplicationObjectDAO.published_application_id == application_id
                )
            )
            await session.execute(
                delete(PublishedApplicationActionDAO).where(
                    PublishedApplicationActionDAO.published_application_id == application_id
                )
            )
            await self._write_contents(session, application_id, dto)
            await session.commit()

        return await self.get_published_fields(application_id)

    async def list_published_applications(
        self, user_id: UUID | None = None
    ) -> list[PublishedApplicationDTO]:
        applications = await PublishedApplicationDAO.filter(
            visible_to=user_id, db_resource=self._db
        )

        if user_id is None:
            return [app.to_dto() for app in applications if app.is_public]

        return [app.to_dto() for app in applications]

    async def get_published_fields(self, application_id: UUID) -> PublishedApplicationDetailDTO:
        """Included object types of an application, each with its included fields."""
        application = await self._fetch_application(application_id)

        object_type_ids = [
            row.object_type_id
            for row in await PublishedApplicationObjectDAO.filter(
                published_application_id=application_id,
                is_included=True,
                db_resource=self._db,
            )
        ]
        excluded = await self._excluded_field_ids(object_type_ids)

        objects = []
        for object_type_id in object_type_ids:
            object_type = await ObjectTypeDAO.get(object_type_id, db_resource=self._db)
            if object_type is None:
                continue

            fields: list[ObjectFieldDTO] = [
                field
                for field in await self._fields.get_fields(object_type_id)
                if field.id not in excluded
            ]
            objects.append(PublishedObjectDTO(object_type=object_type.to_dto(), fields=fields))

        action_ids = [
            row.action_id
            for row in await PublishedApplicationActionDAO.filter(
                published_application_id=application_id, db_resource=self._db
            )
            if row.is_included
        ]

        return PublishedApplicationDetailDTO(
            **application.to_dto().model_dump(), objects=objects, action_ids=action_ids
        )

    async def set_field_publishing(
        self, object_type_id: UUID, field_id: UUID, is_included: bool
    ) -> None:
        field = await ObjectFieldDAO.get(field_id, db_resource=self._db)

        if field is None or field.object_type_id != object_type_id:
            raise NotFoundException("Field not found")

        async with self._db.session() as session:
            await self._upsert_flag(session, object_type_id, field_id, is_included)
            await session.commit()

        self._logger.debug(
            f"Field `{field.api_name}` of `{object_type_id}` included={is_included}"
        )

    async def _write_contents(
        self, session, application_id: UUID, dto: PublishApplicationDTO
    ) -> None:
        session.add_all(
            PublishedApplicationObjectDAO(
                published_application_id=application_id, object_type_id=object_type_id
            )
            for object_type_id in dict.fromkeys(dto.object_type_ids)
        )
        session.add_all(
            PublishedApplicationActionDAO(
                published_application_id=application_id, action_id=action_id
            )
            for action_id in dict.fromkeys(dto.action_ids)
        )

        for object_type_id, settings in dto.field_settings.items():
            if object_type_id not in dto.object_type_ids:
                raise BadRequestException(
                    f"Field settings given for unpublished object type `{object_type_id}`"
                )
            for field_id, is_included in settings.items():
                await self._upsert_flag(session, object_type_id, field_id, is_included)

    @staticmethod
    async def _upsert_flag(
        session, object_type_id: UUID, field_id: UUID, is_included: bool
    ) -> None:
        flag = await session.scalar(
            select(ObjectFieldPublishingDAO)
            .where(ObjectFieldPublishingDAO.object_type_id == object_type_id)
            .where(ObjectFieldPublishingDAO.field_id == field_id)
        )

        if flag is None:
            flag = ObjectFieldPublishingDAO(object_type_id=object_type_id, field_id=field_id)

        flag.is_included = is_included
        session.add(flag)

    async def _excluded_field_ids(self, object_type_ids: list[UUID]) -> set[UUID]:
        if not object_type_ids:
            return set()

        flags = await ObjectFieldPublishingDAO.filter(
            object_type_id_in=object_type_ids, is_included=False, db_resource=self._db
        )

        return {flag.field_id for flag in flags}

    async def _check_object_types(self, object_type_ids: list[UUID]) -> None:
        for object_type_id in object_type_ids:
            await fetch_object_type(object_type_id, self._db)

    async def _fetch_application(self, application_id: UUID) -> PublishedApplicationDAO:
        application = await PublishedApplicationDAO.get(application_id, db_resource=self._db)

        if application is None:
            raise NotFoundException("Published application not found")

        return application
