import pytest
from httpx import ASGITransport, AsyncClient

from main import app


@pytest.mark.asyncio
async def test_status_is_public() -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        response = await c.get("/api/v1/status")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["name"] == "Objects API"


@pytest.mark.asyncio
async def test_routes_require_a_valid_token(client) -> None:
    response = await client.get(
        "/api/v1/object-types", headers={"Authorization": "Bearer not-a-token"}
    )

    assert response.status_code == 401
    assert response.json()["message"] == "Unauthorized"


@pytest.mark.asyncio
async def test_object_type_to_record_flow(client) -> None:
    response = await client.post("/api/v1/object-types", json={"name": "Contact"})
    assert response.status_code == 201
    object_type = response.json()["data"]
    assert object_type["api_name"] == "contact"

    response = await client.post(
        f"/api/v1/object-types/{object_type['id']}/fields/batch",
        json=[
            {"name": "Full Name", "is_required": True},
            {"name": "Age", "data_type": "number"},
        ],
    )
    assert response.status_code == 201
    assert [f["api_name"] for f in response.json()["data"]] == ["full_name", "age"]

    response = await client.post(
        f"/api/v1/object-types/{object_type['id']}/records",
        json={"values": {"age": "abc"}},
    )
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation Error"
    assert {e["field"] for e in body["errors"]} == {"full_name", "age"}

    response = await client.post(
        f"/api/v1/object-types/{object_type['id']}/records",
        json={"values": {"full_name": "Ada", "age": "36"}},
    )
    assert response.status_code == 201
    record = response.json()["data"]
    assert record["display_name"] == "Ada"

    response = await client.patch(
        f"/api/v1/records/{record['id']}", json={"values": {"age": "37"}}
    )
    assert response.status_code == 200
    assert response.json()["data"]["values"] == {"full_name": "Ada", "age": "37"}

    response = await client.get(f"/api/v1/object-types/{object_type['id']}/records")
    assert [r["id"] for r in response.json()["data"]] == [record["id"]]


@pytest.mark.asyncio
async def test_dry_run_validation(client) -> None:
    object_type = (await client.post("/api/v1/object-types", json={"name": "Lead"})).json()[
        "data"
    ]
    await client.post(
        f"/api/v1/object-types/{object_type['id']}/fields",
        json={"name": "Active", "data_type": "boolean"},
    )

    response = await client.post(
        f"/api/v1/object-types/{object_type['id']}/validate",
        json={"values": {"active": "yes"}},
    )

    assert response.status_code == 200
    assert response.json()["data"] == {"is_valid": True, "values": {"active": True}, "errors": []}


@pytest.mark.asyncio
async def test_duplicate_field_is_a_conflict(client) -> None:
    object_type = (await client.post("/api/v1/object-types", json={"name": "Lead"})).json()[
        "data"
    ]
    url = f"/api/v1/object-types/{object_type['id']}/fields"

    assert (await client.post(url, json={"name": "Phone Number"})).status_code == 201
    response = await client.post(url, json={"name": "Phone Number"})

    assert response.status_code == 409
    assert "phone_number" in response.json()["message"]


@pytest.mark.asyncio
async def test_transform_endpoint(client) -> None:
    response = await client.post(
        "/api/v1/field-mappings/transform",
        json={
            "source_values": {"a": "1", "b": "2", "c": "3"},
            "mapping": [
                {"source_field_api_name": "a", "target_field_api_name": "x"},
                {"source_field_api_name": "b", "target_field_api_name": "y"},
            ],
        },
    )

    assert response.json()["data"] == {"x": "1", "y": "2"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path", ["/api/v1/object-types", "/api/v1/shared-records", "/api/v1/published-applications"]
)
async def test_listing_routes_receive_their_services(client, path: str) -> None:
    response = await client.get(path)

    assert response.status_code == 200
    assert response.json()["data"] == []
