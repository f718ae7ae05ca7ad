import uuid

import pytest

from core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    UnknownFieldException,
)
from model.dao.enums import MappingState, PermissionLevel
from model.dto.object_types import CreateObjectFieldDTO, CreateObjectTypeDTO
from model.dto.sharing import (
    MappingEntryDTO,
    SetMappingDTO,
    ShareRecordDTO,
    UpdateShareDTO,
)


@pytest.fixture
async def shared_setup(services, contact_type, owner_id):
    viewer_id = uuid.uuid4()
    person_type = await services.object_types.create_object_type(
        CreateObjectTypeDTO(name="Person"), viewer_id
    )
    await services.fields.create_fields(
        person_type.id, [CreateObjectFieldDTO(name="Name"), CreateObjectFieldDTO(name="Mail")]
    )
    record = await services.records.create_record(
        contact_type.id,
        {"full_name": "Ada", "email": "ada@example.com", "age": "36"},
        owner_id=owner_id,
    )

    return record, person_type, viewer_id


async def map_fields(services, contact_type, person_type, owner_id, viewer_id, pairs):
    await services.mappings.set_mapping(
        viewer_id,
        SetMappingDTO(
            source_user_id=owner_id,
            source_object_id=contact_type.id,
            target_object_id=person_type.id,
            entries=[
                MappingEntryDTO(source_field_api_name=source, target_field_api_name=target)
                for source, target in pairs
            ],
        ),
    )


@pytest.mark.asyncio
async def test_only_owner_can_share(services, shared_setup, owner_id) -> None:
    record, _, viewer_id = shared_setup

    with pytest.raises(ForbiddenException):
        await services.shares.share_record(
            record.id, viewer_id, ShareRecordDTO(shared_with_user_id=owner_id, visible_fields=[])
        )
    with pytest.raises(BadRequestException):
        await services.shares.share_record(
            record.id, owner_id, ShareRecordDTO(shared_with_user_id=owner_id, visible_fields=[])
        )
    with pytest.raises(UnknownFieldException):
        await services.shares.share_record(
            record.id,
            owner_id,
            ShareRecordDTO(shared_with_user_id=viewer_id, visible_fields=["salary"]),
        )


@pytest.mark.asyncio
async def test_duplicate_share_conflicts(services, shared_setup, owner_id) -> None:
    record, _, viewer_id = shared_setup
    dto = ShareRecordDTO(shared_with_user_id=viewer_id, visible_fields=["full_name"])

    share = await services.shares.share_record(record.id, owner_id, dto)
    assert share.visible_fields == ["full_name"]
    assert share.permission_level == PermissionLevel.READ

    with pytest.raises(ConflictException):
        await services.shares.share_record(record.id, owner_id, dto)

    assert [s.id for s in await services.shares.list_shared_with_me(viewer_id)] == [share.id]
    assert [s.id for s in await services.shares.list_record_shares(record.id, owner_id)] == [
        share.id
    ]


@pytest.mark.asyncio
async def test_view_without_mapping_is_not_configured(services, shared_setup, owner_id) -> None:
    record, _, viewer_id = shared_setup
    await services.shares.share_record(
        record.id,
        owner_id,
        ShareRecordDTO(shared_with_user_id=viewer_id, visible_fields=["full_name", "email"]),
    )

    view = await services.shares.get_shared_record_view(record.id, viewer_id)

    assert view.status == MappingState.MAPPING_NOT_CONFIGURED
    assert view.values == {}
    assert view.target_object_id is None


@pytest.mark.asyncio
async def test_view_shows_visible_and_mapped_fields_only(
    services, contact_type, shared_setup, owner_id
) -> None:
    record, person_type, viewer_id = shared_setup
    await services.shares.share_record(
        record.id,
        owner_id,
        ShareRecordDTO(shared_with_user_id=viewer_id, visible_fields=["full_name", "age"]),
    )
    await map_fields(
        services,
        contact_type,
        person_type,
        owner_id,
        viewer_id,
        [("full_name", "name"), ("email", "mail")],
    )

    view = await services.shares.get_shared_record_view(record.id, viewer_id)

    # email is mapped but hidden; age is visible but unmapped
    assert view.status == MappingState.OK
    assert view.values == {"name": "Ada"}
    assert view.target_object_id == person_type.id
    assert (view.mapping_status.mapped_fields, view.mapping_status.total_fields) == (1, 2)


@pytest.mark.asyncio
async def test_mapping_outside_visible_fields_is_an_empty_view(
    services, contact_type, shared_setup, owner_id
) -> None:
    record, person_type, viewer_id = shared_setup
    await services.shares.share_record(
        record.id, owner_id, ShareRecordDTO(shared_with_user_id=viewer_id, visible_fields=["age"])
    )
    await map_fields(
        services, contact_type, person_type, owner_id, viewer_id, [("full_name", "name")]
    )

    view = await services.shares.get_shared_record_view(record.id, viewer_id)

    assert view.status == MappingState.OK
    assert view.values == {}
    assert view.target_object_id == person_type.id
    assert (view.mapping_status.mapped_fields, view.mapping_status.total_fields) == (0, 1)


@pytest.mark.asyncio
async def test_only_sharer_updates_share(services, shared_setup, owner_id) -> None:
    record, _, viewer_id = shared_setup
    share = await services.shares.share_record(
        record.id, owner_id, ShareRecordDTO(shared_with_user_id=viewer_id, visible_fields=[])
    )

    with pytest.raises(ForbiddenException):
        await services.shares.update_share(
            share.id, viewer_id, UpdateShareDTO(permission_level=PermissionLevel.EDIT)
        )

    updated = await services.shares.update_share(
        share.id,
        owner_id,
        UpdateShareDTO(permission_level=PermissionLevel.EDIT, visible_fields=["email"]),
    )
    assert updated.permission_level == PermissionLevel.EDIT
    assert updated.visible_fields == ["email"]


@pytest.mark.asyncio
async def test_removing_last_share_drops_mappings(
    services, contact_type, shared_setup, owner_id
) -> None:
    record, person_type, viewer_id = shared_setup
    share = await services.shares.share_record(
        record.id,
        owner_id,
        ShareRecordDTO(shared_with_user_id=viewer_id, visible_fields=["full_name"]),
    )
    await map_fields(
        services, contact_type, person_type, owner_id, viewer_id, [("full_name", "name")]
    )

    with pytest.raises(ForbiddenException):
        await services.shares.remove_share(share.id, uuid.uuid4())

    await services.shares.remove_share(share.id, viewer_id)

    with pytest.raises(NotFoundException):
        await services.shares.get_shared_record_view(record.id, viewer_id)
    assert await services.mappings.get_mapping(
        contact_type.id, person_type.id, owner_id, viewer_id
    ) == []


@pytest.mark.asyncio
async def test_deleting_record_removes_its_shares(services, shared_setup, owner_id) -> None:
    record, _, viewer_id = shared_setup
    await services.shares.share_record(
        record.id, owner_id, ShareRecordDTO(shared_with_user_id=viewer_id, visible_fields=[])
    )

    await services.records.delete_record(record.id)

    assert await services.shares.list_shared_with_me(viewer_id) == []
