import uuid

import pytest

from core.constants import UNNAMED_RECORD
from core.events import RecordsChanged
from core.exceptions import RecordValidationException, UnknownFieldException
from model.dto.object_types import CreateObjectFieldDTO, CreateObjectTypeDTO
from service.records import RecordService


@pytest.mark.asyncio
async def test_submit_normalizes_and_stores(services, contact_type, owner_id) -> None:
    record = await services.records.submit_record(
        contact_type.id, {"full_name": "Ada", "age": "36.0"}, owner_id=owner_id
    )

    assert record.values == {"full_name": "Ada", "age": "36"}
    assert record.owner_id == owner_id
    assert record.display_name == "Ada"


@pytest.mark.asyncio
async def test_submit_reports_field_errors(services, contact_type) -> None:
    with pytest.raises(RecordValidationException) as exc_info:
        await services.records.submit_record(contact_type.id, {"age": "old"})

    errors = {error["field"]: error["code"] for error in exc_info.value.errors}
    assert errors == {"full_name": "required_field_missing", "age": "invalid_number"}
    assert await services.records.list_records(contact_type.id) == []


@pytest.mark.asyncio
async def test_update_clears_values_submitted_empty(services, contact_type) -> None:
    record = await services.records.submit_record(
        contact_type.id, {"full_name": "Ada", "age": "36"}
    )

    updated = await services.records.submit_record(
        contact_type.id, {"full_name": "Ada L.", "age": ""}, record_id=record.id
    )

    assert updated.values == {"full_name": "Ada L."}


@pytest.mark.asyncio
async def test_unknown_fields_rejected_before_writing(services, contact_type) -> None:
    record = await services.records.create_record(contact_type.id, {"full_name": "Ada"})

    with pytest.raises(UnknownFieldException):
        await services.records.set_values(record.id, {"full_name": "Eve", "nickname": "E"})

    assert await services.records.get_values(record.id) == {"full_name": "Ada"}


@pytest.mark.asyncio
async def test_set_values_is_atomic(services, contact_type, monkeypatch) -> None:
    record = await services.records.create_record(contact_type.id, {"full_name": "Ada"})
    original = RecordService._apply_value
    calls = []

    async def failing_apply(self, session, record_id, existing, api_name, value):
        calls.append(api_name)
        if len(calls) == 2:
            raise RuntimeError("disk full")
        await original(self, session, record_id, existing, api_name, value)

    monkeypatch.setattr(RecordService, "_apply_value", failing_apply)

    with pytest.raises(RuntimeError):
        await services.records.set_values(
            record.id, {"full_name": "Eve", "email": "eve@example.com", "age": "30"}
        )

    monkeypatch.undo()
    assert await services.records.get_values(record.id) == {"full_name": "Ada"}


@pytest.mark.asyncio
async def test_none_unsets_a_value(services, contact_type) -> None:
    record = await services.records.create_record(
        contact_type.id, {"full_name": "Ada", "email": "ada@example.com"}
    )

    await services.records.set_values(record.id, {"email": None})

    assert await services.records.get_values(record.id) == {"full_name": "Ada"}


@pytest.mark.asyncio
async def test_writes_publish_records_changed(services, contact_type) -> None:
    events = []
    services.event_bus.subscribe(RecordsChanged, events.append)

    record = await services.records.create_record(contact_type.id)
    await services.records.set_values(record.id, {"full_name": "Ada"})
    await services.records.delete_record(record.id)

    assert events == [RecordsChanged(contact_type.id)] * 3


@pytest.mark.asyncio
async def test_display_name_falls_back(services, contact_type) -> None:
    empty = await services.records.create_record(contact_type.id)
    email_only = await services.records.create_record(
        contact_type.id, {"email": "ada@example.com"}
    )

    records = {record.id: record for record in await services.records.list_records(contact_type.id)}

    assert records[empty.id].display_name == UNNAMED_RECORD
    assert records[email_only.id].display_name == "ada@example.com"


@pytest.mark.asyncio
async def test_lookup_values_resolve_to_display_names(services, contact_type, owner_id) -> None:
    contact = await services.records.create_record(contact_type.id, {"full_name": "Ada"})
    deal_type = await services.object_types.create_object_type(
        CreateObjectTypeDTO(name="Deal"), owner_id
    )
    await services.fields.create_field(
        deal_type.id,
        CreateObjectFieldDTO(
            name="Contact",
            data_type="lookup",
            options={"target_object_type_id": str(contact_type.id)},
        ),
    )
    missing = str(uuid.uuid4())
    linked = await services.records.submit_record(deal_type.id, {"contact": str(contact.id)})
    dangling = await services.records.submit_record(deal_type.id, {"contact": missing})

    assert linked.lookup_display == {"contact": "Ada"}
    assert dangling.lookup_display == {"contact": missing}

    # Renaming the target record shows up on the next read
    await services.records.set_values(contact.id, {"full_name": "Ada Lovelace"})
    assert (await services.records.get_record(linked.id)).lookup_display == {
        "contact": "Ada Lovelace"
    }
