from typing import Self
from uuid import UUID

from sqlalchemy import ScalarResult, UniqueConstraint
from sqlmodel import Column, Enum, Field, asc, select
from core.database import SQLDatabase
from model.dao.base import TimestampDAO, UuidDAO
from model.dao.enums import PermissionLevel
from model.dto.sharing import FieldMappingDTO, RecordShareDTO


class UserFieldMappingDAO(UuidDAO, TimestampDAO, table=True):
    # model config
    __tablename__ = "user_field_mappings"
    __table_args__ = (
        UniqueConstraint(
            "source_user_id",
            "target_user_id",
            "source_object_id",
            "target_object_id",
            "source_field_api_name",
        ),
    )
    __dto_class__ = FieldMappingDTO

    source_user_id: UUID = Field(nullable=False, index=True)
    target_user_id: UUID = Field(nullable=False, index=True)
    source_object_id: UUID = Field(nullable=False)
    target_object_id: UUID = Field(nullable=False)
    source_field_api_name: str = Field(nullable=False)
    # NULL marks a source field the target user chose not to map
    target_field_api_name: str | None = Field(default=None, nullable=True)

    @classmethod
    async def filter(
        cls,
        *,
        db_resource: SQLDatabase,
        source_user_id: UUID | None = None,
        target_user_id: UUID | None = None,
        source_object_id: UUID | None = None,
        target_object_id: UUID | None = None,
    ) -> ScalarResult[Self]:
        """Filter field mappings by user pair and object pair."""
        async with db_resource.session() as session:
            query = select(UserFieldMappingDAO)
            if source_user_id is not None:
                query = query.where(UserFieldMappingDAO.source_user_id == source_user_id)
            if target_user_id is not None:
                query = query.where(UserFieldMappingDAO.target_user_id == target_user_id)
            if source_object_id is not None:
                query = query.where(
                    UserFieldMappingDAO.source_object_id == source_object_id
                )
            if target_object_id is not None:
                query = query.where(
                    UserFieldMappingDAO.target_object_id == target_object_id
                )

            query = query.order_by(asc(UserFieldMappingDAO.created_at))

            return await session.scalars(query)


class RecordShareDAO(UuidDAO, TimestampDAO, table=True):
    # model config
    __tablename__ = "record_shares"
    __table_args__ = (UniqueConstraint("record_id", "shared_with_user_id"),)
    __dto_class__ = RecordShareDTO

    record_id: UUID = Field(foreign_key="object_records.id", ondelete="CASCADE", index=True)
    shared_by_user_id: UUID = Field(nullable=False)
    shared_with_user_id: UUID = Field(nullable=False, index=True)
    permission_level: PermissionLevel = Field(
        sa_column=Column(Enum(PermissionLevel)), default=PermissionLevel.READ
    )

    @classmethod
    async def filter(
        cls,
        *,
        db_resource: SQLDatabase,
        record_id: UUID | None = None,
        shared_with_user_id: UUID | None = None,
    ) -> ScalarResult[Self]:
        """Filter record shares by record and recipient."""
        async with db_resource.session() as session:
            query = select(RecordShareDAO)
            if record_id is not None:
                query = query.where(RecordShareDAO.record_id == record_id)
            if shared_with_user_id is not None:
                query = query.where(
                    RecordShareDAO.shared_with_user_id == shared_with_user_id
                )

            query = query.order_by(asc(RecordShareDAO.created_at))

            return await session.scalars(query)


class RecordShareFieldDAO(UuidDAO, table=True):
    # model config
    __tablename__ = "record_share_fields"
    __table_args__ = (UniqueConstraint("record_share_id", "field_api_name"),)

    record_share_id: UUID = Field(
        foreign_key="record_shares.id", ondelete="CASCADE", index=True
    )
    field_api_name: str = Field(nullable=False)
    is_visible: bool = Field(nullable=False, default=True)

    @classmethod
    async def filter(
        cls,
        *,
        db_resource: SQLDatabase,
        record_share_id: UUID | None = None,
        is_visible: bool | None = None,
    ) -> ScalarResult[Self]:
        """Filter share field flags by share and visibility."""
        async with db_resource.session() as session:
            query = select(RecordShareFieldDAO)
            if record_share_id is not None:
                query = query.where(RecordShareFieldDAO.record_share_id == record_share_id)
            if is_visible is not None:
                query = query.where(RecordShareFieldDAO.is_visible == is_visible)

            return await session.scalars(query)
