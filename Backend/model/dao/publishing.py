from typing import Self
from uuid import UUID

from sqlalchemy import ScalarResult, UniqueConstraint
from sqlmodel import Field, desc, or_, select
from core.database import SQLDatabase
from model.dao.base import TimestampDAO, UuidDAO
from model.dto.publishing import PublishedApplicationDTO


class PublishedApplicationDAO(UuidDAO, TimestampDAO, table=True):
    # model config
    __tablename__ = "published_applications"
    __dto_class__ = PublishedApplicationDTO

    name: str
    description: str | None = None
    published_by: UUID = Field(nullable=False, index=True)
    is_public: bool = Field(nullable=False, default=False)
    version: str = Field(nullable=False, default="1.0")
    application_id: UUID | None = Field(default=None, nullable=True)

    @classmethod
    async def filter(
        cls,
        *,
        db_resource: SQLDatabase,
        visible_to: UUID | None = None,
    ) -> ScalarResult[Self]:
        """Published applications, newest first.

        `visible_to` keeps public applications plus the ones that user published.
        """
        async with db_resource.session() as session:
            query = select(PublishedApplicationDAO)
            if visible_to is not None:
                query = query.where(
                    or_(
                        PublishedApplicationDAO.is_public.is_(True),
                        PublishedApplicationDAO.published_by == visible_to,
                    )
                )

            query = query.order_by(desc(PublishedApplicationDAO.created_at))

            return await session.scalars(query)


class PublishedApplicationObjectDAO(UuidDAO, table=True):
    # model config
    __tablename__ = "published_application_objects"

    published_application_id: UUID = Field(
        foreign_key="published_applications.id", ondelete="CASCADE", index=True
    )
    object_type_id: UUID = Field(nullable=False)
    is_included: bool = Field(nullable=False, default=True)

    @classmethod
    async def filter(
        cls,
        *,
        db_resource: SQLDatabase,
        published_application_id: UUID | None = None,
        is_included: bool | None = None,
    ) -> ScalarResult[Self]:
        async with db_resource.session() as session:
            query = select(PublishedApplicationObjectDAO)
            if published_application_id is not None:
                query = query.where(
                    PublishedApplicationObjectDAO.published_application_id
                    == published_application_id
                )
            if is_included is not None:
                query = query.where(PublishedApplicationObjectDAO.is_included == is_included)

            return await session.scalars(query)


class PublishedApplicationActionDAO(UuidDAO, table=True):
    # model config
    __tablename__ = "published_application_actions"

    published_application_id: UUID = Field(
        foreign_key="published_applications.id", ondelete="CASCADE", index=True
    )
    action_id: UUID = Field(nullable=False)
    is_included: bool = Field(nullable=False, default=True)

    @classmethod
    async def filter(
        cls,
        *,
        db_resource: SQLDatabase,
        published_application_id: UUID | None = None,
    ) -> ScalarResult[Self]:
        async with db_resource.session() as session:
            query = select(PublishedApplicationActionDAO)
            if published_application_id is not None:
                query = query.where(
                    PublishedApplicationActionDAO.published_application_id
                    == published_application_id
                )

            return await session.scalars(query)


class ObjectFieldPublishingDAO(UuidDAO, table=True):
    # model config
    __tablename__ = "object_field_publishing"
    __table_args__ = (UniqueConstraint("object_type_id", "field_id"),)

    object_type_id: UUID = Field(nullable=False, index=True)
    field_id: UUID = Field(foreign_key="object_fields.id", ondelete="CASCADE")
    is_included: bool = Field(nullable=False, default=True)

    @classmethod
    async def filter(
        cls,
        *,
        db_resource: SQLDatabase,
        object_type_id_in: list[UUID] | None = None,
        is_included: bool | None = None,
    ) -> ScalarResult[Self]:
        """Filter field publishing flags by object types and inclusion."""
        async with db_resource.session() as session:
            query = select(ObjectFieldPublishingDAO)
            if object_type_id_in is not None:
                query = query.where(
                    ObjectFieldPublishingDAO.object_type_id.in_(object_type_id_in)
                )
            if is_included is not None:
                query = query.where(ObjectFieldPublishingDAO.is_included == is_included)

            return await session.scalars(query)
