from typing import Self
from uuid import UUID

from sqlalchemy import ScalarResult, UniqueConstraint
from sqlmodel import Field, asc, select
from core.database import SQLDatabase
from model.dao.base import TimestampDAO, UuidDAO
from model.dto.records import ObjectRecordDTO


class ObjectRecordDAO(UuidDAO, TimestampDAO, table=True):
    # model config
    __tablename__ = "object_records"
    __dto_class__ = ObjectRecordDTO

    object_type_id: UUID = Field(foreign_key="object_types.id", index=True)
    owner_id: UUID | None = Field(default=None, nullable=True)

    @classmethod
    async def filter(
        cls,
        *,
        db_resource: SQLDatabase,
        object_type_id: UUID | None = None,
        owner_id: UUID | None = None,
    ) -> ScalarResult[Self]:
        """Filter records by object type and owner."""
        async with db_resource.session() as session:
            query = select(ObjectRecordDAO)
            if object_type_id is not None:
                query = query.where(ObjectRecordDAO.object_type_id == object_type_id)
            if owner_id is not None:
                query = query.where(ObjectRecordDAO.owner_id == owner_id)

            query = query.order_by(asc(ObjectRecordDAO.created_at))

            return await session.scalars(query)


class FieldValueDAO(UuidDAO, table=True):
    # model config
    __tablename__ = "object_field_values"
    __table_args__ = (UniqueConstraint("record_id", "field_api_name"),)

    record_id: UUID = Field(foreign_key="object_records.id", ondelete="CASCADE", index=True)
    field_api_name: str = Field(nullable=False)
    value: str = Field(nullable=False, default="")

    @classmethod
    async def filter(
        cls,
        *,
        db_resource: SQLDatabase,
        record_id: UUID | None = None,
        record_id_in: list[UUID] | None = None,
    ) -> ScalarResult[Self]:
        """Filter field values by record(s)."""
        async with db_resource.session() as session:
            query = select(FieldValueDAO)
            if record_id is not None:
                query = query.where(FieldValueDAO.record_id == record_id)
            if record_id_in is not None:
                query = query.where(FieldValueDAO.record_id.in_(record_id_in))

            return await session.scalars(query)
