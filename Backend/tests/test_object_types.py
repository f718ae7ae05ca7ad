import uuid

import pytest

from core.exceptions import (
    ConflictException,
    DuplicateApiNameException,
    InvalidApiNameException,
    NotFoundException,
    UnknownFieldException,
)
from model.dto.object_types import (
    CreateObjectFieldDTO,
    CreateObjectTypeDTO,
    UpdateObjectTypeDTO,
)


@pytest.mark.asyncio
async def test_create_derives_api_name(services, owner_id) -> None:
    object_type = await services.object_types.create_object_type(
        CreateObjectTypeDTO(name="Sales Lead"), owner_id
    )

    assert object_type.api_name == "sales_lead"
    assert object_type.is_active and not object_type.is_archived
    assert object_type.source_object_id is None
    assert object_type.created_at is not None
    assert object_type.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_api_name_is_unique_per_owner(services, owner_id) -> None:
    await services.object_types.create_object_type(CreateObjectTypeDTO(name="Lead"), owner_id)

    with pytest.raises(DuplicateApiNameException):
        await services.object_types.create_object_type(
            CreateObjectTypeDTO(name="Lead"), owner_id
        )

    other = await services.object_types.create_object_type(
        CreateObjectTypeDTO(name="Lead"), uuid.uuid4()
    )
    assert other.api_name == "lead"


@pytest.mark.asyncio
async def test_explicit_api_name_is_validated(services, owner_id) -> None:
    with pytest.raises(InvalidApiNameException):
        await services.object_types.create_object_type(
            CreateObjectTypeDTO(name="Lead", api_name="Lead-Type"), owner_id
        )


@pytest.mark.asyncio
async def test_archived_type_hidden_from_active_listing(services, owner_id) -> None:
    kept = await services.object_types.create_object_type(
        CreateObjectTypeDTO(name="Kept"), owner_id
    )
    archived = await services.object_types.create_object_type(
        CreateObjectTypeDTO(name="Old"), owner_id
    )
    await services.object_types.archive_object_type(archived.id)

    active = await services.object_types.list_object_types(owner_id)
    assert [object_type.id for object_type in active] == [kept.id]

    everything = await services.object_types.list_object_types(owner_id, include_archived=True)
    assert {object_type.id for object_type in everything} == {kept.id, archived.id}

    fetched = await services.object_types.get_object_type(archived.id)
    assert fetched.is_archived

    restored = await services.object_types.restore_object_type(archived.id)
    assert not restored.is_archived


@pytest.mark.asyncio
async def test_display_field_must_exist(services, contact_type) -> None:
    with pytest.raises(UnknownFieldException):
        await services.object_types.update_object_type(
            contact_type.id, UpdateObjectTypeDTO(display_field_api_name="nickname")
        )

    updated = await services.object_types.update_object_type(
        contact_type.id, UpdateObjectTypeDTO(display_field_api_name="email")
    )
    assert updated.display_field_api_name == "email"


@pytest.mark.asyncio
async def test_delete_refused_while_records_exist(services, contact_type) -> None:
    record = await services.records.create_record(contact_type.id, {"full_name": "Ada"})

    with pytest.raises(ConflictException):
        await services.object_types.delete_object_type(contact_type.id)

    await services.records.delete_record(record.id)
    await services.object_types.delete_object_type(contact_type.id)

    with pytest.raises(NotFoundException):
        await services.object_types.get_object_type(contact_type.id)
    assert await services.fields.get_fields(contact_type.id) == []


@pytest.mark.asyncio
async def test_archived_type_keeps_fields_and_records(services, owner_id) -> None:
    archived = await services.object_types.create_object_type(
        CreateObjectTypeDTO(name="Old"), owner_id
    )
    field = await services.fields.create_field(archived.id, CreateObjectFieldDTO(name="Title"))
    record = await services.records.create_record(archived.id, {"title": "Legacy"})

    await services.object_types.archive_object_type(archived.id)

    assert [f.id for f in await services.fields.get_fields(archived.id)] == [field.id]
    assert (await services.records.get_record(record.id)).values == {"title": "Legacy"}
    assert [r.id for r in await services.records.list_records(archived.id)] == [record.id]
