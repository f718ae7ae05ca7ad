from logging import Logger
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from core.database import SQLDatabase
from core.events import SchemaChanged, SchemaEventBus
from core.exceptions import (
    BadRequestException,
    DuplicateApiNameException,
    InvalidApiNameException,
    NotFoundException,
)
from core.logger import app_logger
from core.utils import ApiNameHelper
from model.dao.enums import FieldDataType
from model.dao.object_types import ObjectFieldDAO, ObjectTypeDAO
from model.dao.publishing import ObjectFieldPublishingDAO
from model.dao.records import FieldValueDAO, ObjectRecordDAO
from model.dto.object_types import (
    CreateObjectFieldDTO,
    ObjectFieldDTO,
    UpdateObjectFieldDTO,
)
from service.object_types import fetch_object_type


class FieldListCache:
    """Process-wide cache of ordered field lists, keyed by object type id."""

    def __init__(self, event_bus: SchemaEventBus, logger: Logger = app_logger):
        self._logger = logger
        self._fields: dict[UUID, list[ObjectFieldDTO]] = {}
        self._generations: dict[UUID, int] = {}
        event_bus.subscribe(SchemaChanged, self._on_schema_changed)

    def get(self, object_type_id: UUID) -> list[ObjectFieldDTO] | None:
        return self._fields.get(object_type_id)

    def generation(self, object_type_id: UUID) -> int:
        return self._generations.get(object_type_id, 0)

    def put(
        self, object_type_id: UUID, fields: list[ObjectFieldDTO], generation: int
    ) -> None:
        # A change that landed while the list was loading makes it stale already
        if generation == self.generation(object_type_id):
            self._fields[object_type_id] = fields

    def _on_schema_changed(self, event: SchemaChanged) -> None:
        self._generations[event.object_type_id] = self.generation(event.object_type_id) + 1
        if self._fields.pop(event.object_type_id, None) is not None:
            self._logger.debug(f"Dropped cached fields for `{event.object_type_id}`")


class FieldDefinitionService:
    def __init__(
        self,
        pg_database: SQLDatabase,
        event_bus: SchemaEventBus,
        field_cache: FieldListCache,
        logger: Logger = app_logger,
    ):
        self._db = pg_database
        self._events = event_bus
        self._cache = field_cache
        self._logger = logger

    async def get_fields(self, object_type_id: UUID) -> list[ObjectFieldDTO]:
        cached = self._cache.get(object_type_id)
        if cached is not None:
            return list(cached)

        generation = self._cache.generation(object_type_id)
        fields = [
            field.to_dto()
            for field in await ObjectFieldDAO.filter(
                object_type_id=object_type_id, db_resource=self._db
            )
        ]
        self._cache.put(object_type_id, fields, generation)

        return list(fields)

    async def get_field(self, field_id: UUID) -> ObjectFieldDTO:
        return (await self._fetch_field(field_id)).to_dto()

    async def create_field(
        self,
        object_type_id: UUID,
        dto: CreateObjectFieldDTO,
        deduplicate_api_name: bool = False,
    ) -> ObjectFieldDTO:
        await fetch_object_type(object_type_id, self._db)

        taken = await self._taken_api_names(object_type_id)
        api_name = self._resolve_api_name(dto, taken, deduplicate_api_name)
        self._check_options(dto.data_type, dto.options)

        display_order, insertion_seq = await ObjectFieldDAO.next_positions(
            object_type_id, db_resource=self._db
        )

        field = self._build_field(
            object_type_id,
            dto,
            api_name,
            display_order if dto.display_order is None else dto.display_order,
            insertion_seq,
        )

        try:
            await field.save(self._db)
        except IntegrityError:
            raise DuplicateApiNameException(api_name)

        self._logger.info(f"Created field `{api_name}` on object type `{object_type_id}`")
        self._events.publish(SchemaChanged(object_type_id))

        return field.to_dto()

    async def create_fields(
        self, object_type_id: UUID, dtos: list[CreateObjectFieldDTO]
    ) -> list[ObjectFieldDTO]:
        """Creates several fields at once; derived API names are de-duplicated."""
        await fetch_object_type(object_type_id, self._db)

        taken = await self._taken_api_names(object_type_id)
        display_order, insertion_seq = await ObjectFieldDAO.next_positions(
            object_type_id, db_resource=self._db
        )

        fields = []
        for offset, dto in enumerate(dtos):
            api_name = self._resolve_api_name(dto, taken, deduplicate=True)
            self._check_options(dto.data_type, dto.options)
            taken.add(api_name)

            fields.append(
                self._build_field(
                    object_type_id,
                    dto,
                    api_name,
                    display_order + offset if dto.display_order is None else dto.display_order,
                    insertion_seq + offset,
                )
            )

        async with self._db.session() as session:
            session.add_all(fields)
            await session.commit()

        self._logger.info(f"Created {len(fields)} fields on object type `{object_type_id}`")
        self._events.publish(SchemaChanged(object_type_id))

        return [field.to_dto() for field in fields]

    async def update_field(
        self, field_id: UUID, dto: UpdateObjectFieldDTO
    ) -> ObjectFieldDTO:
        field = await self._fetch_field(field_id)
        patch = dto.model_dump(exclude_unset=True)

        if field.is_system and (
            patch.get("api_name", field.api_name) != field.api_name
            or patch.get("data_type", field.data_type) != field.data_type
        ):
            raise BadRequestException(
                "The API name and data type of a system field cannot be changed."
            )

        old_api_name = field.api_name
        new_api_name = patch.get("api_name")

        if new_api_name is not None and new_api_name != old_api_name:
            if not ApiNameHelper.is_valid(new_api_name):
                raise InvalidApiNameException(new_api_name)
            if new_api_name in await self._taken_api_names(field.object_type_id):
                raise DuplicateApiNameException(new_api_name)

        self._check_options(
            patch.get("data_type", field.data_type), patch.get("options", field.options)
        )

        for key, value in patch.items():
            setattr(field, key, value)

        async with self._db.session() as session:
            session.add(field)

            if new_api_name is not None and new_api_name != old_api_name:
                # Stored values follow the field to its new API name
                record_ids = select(ObjectRecordDAO.id).where(
                    ObjectRecordDAO.object_type_id == field.object_type_id
                )
                await session.execute(
                    update(FieldValueDAO)
                    .where(FieldValueDAO.record_id.in_(record_ids))
                    .where(FieldValueDAO.field_api_name == old_api_name)
                    .values(field_api_name=new_api_name)
                )
                await session.execute(
                    update(ObjectTypeDAO)
                    .where(ObjectTypeDAO.id == field.object_type_id)
                    .where(ObjectTypeDAO.display_field_api_name == old_api_name)
                    .values(display_field_api_name=new_api_name)
                )

            try:
                await session.commit()
            except IntegrityError:
                raise DuplicateApiNameException(new_api_name or old_api_name)

            await session.refresh(field)

        self._events.publish(SchemaChanged(field.object_type_id))

        return field.to_dto()

    async def reorder_fields(
        self, object_type_id: UUID, field_ids: list[UUID]
    ) -> list[ObjectFieldDTO]:
        """Listed fields take positions in the given order, the rest follow."""
        fields = list(
            await ObjectFieldDAO.filter(object_type_id=object_type_id, db_resource=self._db)
        )
        by_id = {field.id: field for field in fields}

        unknown = [str(field_id) for field_id in field_ids if field_id not in by_id]
        if unknown:
            raise BadRequestException(
                f"Fields do not belong to this object type: {', '.join(unknown)}"
            )

        listed = list(dict.fromkeys(field_ids))
        listed_ids = set(listed)
        ordered = [by_id[field_id] for field_id in listed] + [
            field for field in fields if field.id not in listed_ids
        ]

        async with self._db.session() as session:
            for position, field in enumerate(ordered):
                field.display_order = position
                session.add(field)
            await session.commit()

        self._events.publish(SchemaChanged(object_type_id))

        return await self.get_fields(object_type_id)

    async def delete_field(self, field_id: UUID) -> None:
        field = await self._fetch_field(field_id)

        if field.is_system:
            raise BadRequestException("System fields cannot be deleted.")

        async with self._db.session() as session:
            await session.execute(
                delete(ObjectFieldPublishingDAO).where(
                    ObjectFieldPublishingDAO.field_id == field.id
                )
            )
            # Values go with the field so a later field of the same API name starts empty
            record_ids = select(ObjectRecordDAO.id).where(
                ObjectRecordDAO.object_type_id == field.object_type_id
            )
            await session.execute(
                delete(FieldValueDAO)
                .where(FieldValueDAO.record_id.in_(record_ids))
                .where(FieldValueDAO.field_api_name == field.api_name)
            )
            await session.delete(await session.merge(field))
            await session.commit()

        self._logger.info(f"Deleted field `{field.api_name}` from `{field.object_type_id}`")
        self._events.publish(SchemaChanged(field.object_type_id))

    async def _fetch_field(self, field_id: UUID) -> ObjectFieldDAO:
        field = await ObjectFieldDAO.get(field_id, db_resource=self._db)

        if field is None:
            raise NotFoundException("Field not found")

        return field

    async def _taken_api_names(self, object_type_id: UUID) -> set[str]:
        fields = await ObjectFieldDAO.filter(
            object_type_id=object_type_id, db_resource=self._db
        )
        return {field.api_name for field in fields}

    @staticmethod
    def _resolve_api_name(
        dto: CreateObjectFieldDTO, taken: set[str], deduplicate: bool
    ) -> str:
        if dto.api_name is not None:
            if not ApiNameHelper.is_valid(dto.api_name):
                raise InvalidApiNameException(dto.api_name)
            if dto.api_name in taken:
                raise DuplicateApiNameException(dto.api_name)
            return dto.api_name

        api_name = ApiNameHelper.derive(dto.name)
        if not api_name:
            raise InvalidApiNameException(dto.name)

        if api_name in taken:
            if not deduplicate:
                raise DuplicateApiNameException(api_name)
            api_name = ApiNameHelper.next_available(api_name, taken)

        return api_name

    @staticmethod
    def _check_options(data_type: str, options: dict | None) -> None:
        options = options or {}

        if data_type == FieldDataType.LOOKUP:
            target = options.get("target_object_type_id")
            try:
                UUID(str(target))
            except ValueError:
                raise BadRequestException(
                    "Lookup fields need `options.target_object_type_id`."
                )

        if data_type == FieldDataType.PICKLIST and "values" in options:
            values = options["values"]
            if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
                raise BadRequestException("Picklist `options.values` must be a list of strings.")

    @staticmethod
    def _build_field(
        object_type_id: UUID,
        dto: CreateObjectFieldDTO,
        api_name: str,
        display_order: int,
        insertion_seq: int,
    ) -> ObjectFieldDAO:
        return ObjectFieldDAO(
            object_type_id=object_type_id,
            name=dto.name,
            api_name=api_name,
            data_type=dto.data_type,
            is_required=dto.is_required,
            default_value=dto.default_value,
            options=dict(dto.options),
            display_order=display_order,
            insertion_seq=insertion_seq,
        )
