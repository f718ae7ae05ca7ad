import uuid

import pytest

from core.events import SchemaChanged
from model.dao.object_types import ObjectFieldDAO
from core.exceptions import (
    BadRequestException,
    DuplicateApiNameException,
    InvalidApiNameException,
)
from model.dto.object_types import (
    CreateObjectFieldDTO,
    CreateObjectTypeDTO,
    UpdateObjectFieldDTO,
    UpdateObjectTypeDTO,
)


@pytest.fixture
async def lead_type(services, owner_id):
    return await services.object_types.create_object_type(
        CreateObjectTypeDTO(name="Lead"), owner_id
    )


@pytest.mark.asyncio
async def test_derived_api_name_and_duplicate(services, lead_type) -> None:
    field = await services.fields.create_field(
        lead_type.id, CreateObjectFieldDTO(name="Phone Number", data_type="phone")
    )
    assert field.api_name == "phone_number"

    with pytest.raises(DuplicateApiNameException):
        await services.fields.create_field(
            lead_type.id, CreateObjectFieldDTO(name="Phone Number")
        )


@pytest.mark.asyncio
async def test_deduplicated_creation_appends_suffix(services, lead_type) -> None:
    await services.fields.create_field(lead_type.id, CreateObjectFieldDTO(name="Phone"))

    second = await services.fields.create_field(
        lead_type.id, CreateObjectFieldDTO(name="Phone"), deduplicate_api_name=True
    )
    assert second.api_name == "phone_2"

    batch = await services.fields.create_fields(
        lead_type.id,
        [CreateObjectFieldDTO(name="Phone"), CreateObjectFieldDTO(name="Phone")],
    )
    assert [field.api_name for field in batch] == ["phone_3", "phone_4"]


@pytest.mark.asyncio
async def test_invalid_names_are_rejected(services, lead_type) -> None:
    with pytest.raises(InvalidApiNameException):
        await services.fields.create_field(
            lead_type.id, CreateObjectFieldDTO(name="Phone", api_name="Phone")
        )

    with pytest.raises(InvalidApiNameException):
        await services.fields.create_field(lead_type.id, CreateObjectFieldDTO(name="!!!"))

    with pytest.raises(InvalidApiNameException):
        await services.fields.create_field(
            lead_type.id, CreateObjectFieldDTO(name="Phone", api_name="phone\n")
        )


@pytest.mark.asyncio
async def test_lookup_needs_target_type(services, lead_type) -> None:
    with pytest.raises(BadRequestException):
        await services.fields.create_field(
            lead_type.id, CreateObjectFieldDTO(name="Account", data_type="lookup")
        )

    field = await services.fields.create_field(
        lead_type.id,
        CreateObjectFieldDTO(
            name="Account",
            data_type="lookup",
            options={"target_object_type_id": str(uuid.uuid4())},
        ),
    )
    assert field.data_type == "lookup"


@pytest.mark.asyncio
async def test_fields_are_listed_in_display_order(services, lead_type) -> None:
    first = await services.fields.create_field(lead_type.id, CreateObjectFieldDTO(name="First"))
    second = await services.fields.create_field(lead_type.id, CreateObjectFieldDTO(name="Second"))
    third = await services.fields.create_field(lead_type.id, CreateObjectFieldDTO(name="Third"))
    assert [f.display_order for f in (first, second, third)] == [0, 1, 2]

    reordered = await services.fields.reorder_fields(lead_type.id, [third.id, first.id])
    assert [field.id for field in reordered] == [third.id, first.id, second.id]

    with pytest.raises(BadRequestException):
        await services.fields.reorder_fields(lead_type.id, [uuid.uuid4()])


@pytest.mark.asyncio
async def test_mutations_publish_schema_changed(services, lead_type) -> None:
    events = []
    services.event_bus.subscribe(SchemaChanged, events.append)

    field = await services.fields.create_field(lead_type.id, CreateObjectFieldDTO(name="Stage"))
    await services.fields.update_field(field.id, UpdateObjectFieldDTO(is_required=True))
    await services.fields.delete_field(field.id)

    assert events == [SchemaChanged(lead_type.id)] * 3


@pytest.mark.asyncio
async def test_field_cache_follows_changes(services, lead_type) -> None:
    assert await services.fields.get_fields(lead_type.id) == []

    field = await services.fields.create_field(lead_type.id, CreateObjectFieldDTO(name="Stage"))
    assert [f.api_name for f in await services.fields.get_fields(lead_type.id)] == ["stage"]

    await services.fields.update_field(field.id, UpdateObjectFieldDTO(name="Pipeline Stage"))
    assert (await services.fields.get_fields(lead_type.id))[0].name == "Pipeline Stage"


@pytest.mark.asyncio
async def test_rename_carries_values_and_display_field(services, contact_type) -> None:
    record = await services.records.create_record(
        contact_type.id, {"full_name": "Ada", "email": "ada@example.com"}
    )
    await services.object_types.update_object_type(
        contact_type.id, UpdateObjectTypeDTO(display_field_api_name="email")
    )
    email = next(
        field for field in await services.fields.get_fields(contact_type.id)
        if field.api_name == "email"
    )

    await services.fields.update_field(email.id, UpdateObjectFieldDTO(api_name="work_email"))

    values = await services.records.get_values(record.id)
    assert values == {"full_name": "Ada", "work_email": "ada@example.com"}
    object_type = await services.object_types.get_object_type(contact_type.id)
    assert object_type.display_field_api_name == "work_email"


@pytest.mark.asyncio
async def test_rename_to_taken_name_is_refused(services, contact_type) -> None:
    email = next(
        field for field in await services.fields.get_fields(contact_type.id)
        if field.api_name == "email"
    )

    with pytest.raises(DuplicateApiNameException):
        await services.fields.update_field(email.id, UpdateObjectFieldDTO(api_name="age"))


@pytest.mark.asyncio
async def test_deleted_field_values_become_inert(services, contact_type) -> None:
    record = await services.records.create_record(
        contact_type.id, {"full_name": "Ada", "age": "36"}
    )
    age = next(
        field for field in await services.fields.get_fields(contact_type.id)
        if field.api_name == "age"
    )

    await services.fields.delete_field(age.id)

    assert await services.records.get_values(record.id) == {"full_name": "Ada"}


@pytest.mark.asyncio
async def test_recreated_field_starts_empty(services, contact_type) -> None:
    record = await services.records.create_record(
        contact_type.id, {"full_name": "Ada", "age": "36"}
    )
    age = next(
        field for field in await services.fields.get_fields(contact_type.id)
        if field.api_name == "age"
    )

    await services.fields.delete_field(age.id)
    await services.fields.create_field(
        contact_type.id, CreateObjectFieldDTO(name="Age", data_type="number")
    )

    assert await services.records.get_values(record.id) == {"full_name": "Ada"}


@pytest.fixture
async def system_field(database, lead_type):
    field = ObjectFieldDAO(
        object_type_id=lead_type.id, name="Created By", api_name="created_by", is_system=True
    )
    await field.save(database)

    return field


@pytest.mark.asyncio
async def test_system_field_keeps_api_name_and_type(services, system_field) -> None:
    with pytest.raises(BadRequestException):
        await services.fields.update_field(
            system_field.id, UpdateObjectFieldDTO(api_name="author")
        )

    with pytest.raises(BadRequestException):
        await services.fields.update_field(
            system_field.id, UpdateObjectFieldDTO(data_type="number")
        )

    # Labels are still editable
    renamed = await services.fields.update_field(
        system_field.id, UpdateObjectFieldDTO(name="Author")
    )
    assert (renamed.name, renamed.api_name, renamed.data_type) == ("Author", "created_by", "text")


@pytest.mark.asyncio
async def test_system_field_cannot_be_deleted(services, lead_type, system_field) -> None:
    with pytest.raises(BadRequestException):
        await services.fields.delete_field(system_field.id)

    assert [field.api_name for field in await services.fields.get_fields(lead_type.id)] == [
        "created_by"
    ]
