from typing import Self
from uuid import UUID

from sqlalchemy import ScalarResult, UniqueConstraint, func
from sqlmodel import Column, Field, asc, select
from core.database import SQLDatabase
from model.dao.base import JSONType, TimestampDAO, UuidDAO
from model.dto.object_types import ObjectFieldDTO, ObjectTypeDTO


class ObjectTypeDAO(UuidDAO, TimestampDAO, table=True):
    # model config
    __tablename__ = "object_types"
    __dto_class__ = ObjectTypeDTO

    owner_id: UUID | None = Field(default=None, index=True)
    name: str
    api_name: str = Field(index=True)
    description: str | None = None
    is_system: bool = Field(nullable=False, default=False)
    is_active: bool = Field(nullable=False, default=True)
    is_archived: bool = Field(nullable=False, default=False)
    is_published: bool = Field(nullable=False, default=False)
    # Weak back-reference to the type this one was imported from
    source_object_id: UUID | None = Field(default=None, nullable=True)
    display_field_api_name: str | None = None

    @classmethod
    async def filter(
        cls,
        *,
        db_resource: SQLDatabase,
        owner_id: UUID | None = None,
        api_name: str | None = None,
        is_archived: bool | None = None,
    ) -> ScalarResult[Self]:
        """Filter object types by owner, api_name and archive state."""
        async with db_resource.session() as session:
            query = select(ObjectTypeDAO)
            if owner_id is not None:
                query = query.where(ObjectTypeDAO.owner_id == owner_id)
            if api_name is not None:
                query = query.where(ObjectTypeDAO.api_name == api_name)
            if is_archived is not None:
                query = query.where(ObjectTypeDAO.is_archived == is_archived)

            query = query.order_by(asc(ObjectTypeDAO.name))

            return await session.scalars(query)


class ObjectFieldDAO(UuidDAO, TimestampDAO, table=True):
    # model config
    __tablename__ = "object_fields"
    __table_args__ = (UniqueConstraint("object_type_id", "api_name"),)
    __dto_class__ = ObjectFieldDTO

    object_type_id: UUID = Field(foreign_key="object_types.id", ondelete="CASCADE")
    name: str
    api_name: str
    # Kept as a plain string so tags this version does not know survive a round trip
    data_type: str = Field(nullable=False, default="text")
    is_required: bool = Field(nullable=False, default=False)
    is_system: bool = Field(nullable=False, default=False)
    default_value: str | None = None
    options: dict = Field(default_factory=dict, sa_column=Column(JSONType, nullable=True))
    display_order: int = Field(nullable=False, default=0)
    insertion_seq: int = Field(nullable=False, default=0)

    @classmethod
    async def filter(
        cls,
        *,
        db_resource: SQLDatabase,
        object_type_id: UUID | None = None,
        api_name: str | None = None,
    ) -> ScalarResult[Self]:
        """Filter fields by object type and api_name, in presentation order."""
        async with db_resource.session() as session:
            query = select(ObjectFieldDAO)
            if object_type_id is not None:
                query = query.where(ObjectFieldDAO.object_type_id == object_type_id)
            if api_name is not None:
                query = query.where(ObjectFieldDAO.api_name == api_name)

            query = query.order_by(
                asc(ObjectFieldDAO.display_order), asc(ObjectFieldDAO.insertion_seq)
            )

            return await session.scalars(query)

    @classmethod
    async def next_positions(
        cls, object_type_id: UUID, db_resource: SQLDatabase
    ) -> tuple[int, int]:
        """Returns the next (display_order, insertion_seq) for a new field."""
        async with db_resource.session() as session:
            query = select(
                func.max(ObjectFieldDAO.display_order),
                func.max(ObjectFieldDAO.insertion_seq),
            ).where(ObjectFieldDAO.object_type_id == object_type_id)
            max_order, max_seq = (await session.execute(query)).one()

        return (
            0 if max_order is None else max_order + 1,
            0 if max_seq is None else max_seq + 1,
        )
