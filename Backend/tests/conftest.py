"""
Test configuration and fixtures.

Provides:
- A SQLite file database per test with every table created
- Service objects wired to one shared invalidation channel
- HTTPX AsyncClient over the app, with a minted bearer token
"""
import os
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator

# Settings are read once at import, so the environment goes first
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-secret")
os.environ.setdefault("DB_DRIVER", "sqlite+aiosqlite")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from dependency_injector import providers
from httpx import ASGITransport, AsyncClient

from core.auth import create_access_token
from core.database import SQLDatabase
from core.environment import SQLConfig
from core.events import SchemaEventBus
from model.dto.object_types import CreateObjectFieldDTO, CreateObjectTypeDTO
from service.field_definitions import FieldDefinitionService, FieldListCache
from service.field_mappings import FieldMappingService
from service.lookup_resolver import BatchLookupResolver, RecordDisplayBackend
from service.object_types import ObjectTypeService
from service.publishing import PublishingService
from service.record_shares import RecordShareService
from service.records import RecordService
from service.schema_compiler import SchemaCompiler


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def database(tmp_path) -> AsyncGenerator[SQLDatabase, None]:
    db = SQLDatabase()
    await db.init(
        SQLConfig(driver="sqlite+aiosqlite", database=str(tmp_path / "objects.db")),
        create_tables=True,
    )

    yield db

    await db.shutdown(None)


# =============================================================================
# Service Fixtures
# =============================================================================

@dataclass
class Services:
    event_bus: SchemaEventBus
    compiler: SchemaCompiler
    resolver: BatchLookupResolver
    object_types: ObjectTypeService
    fields: FieldDefinitionService
    records: RecordService
    mappings: FieldMappingService
    shares: RecordShareService
    publishing: PublishingService


@pytest.fixture(scope="function")
def services(database: SQLDatabase) -> Services:
    event_bus = SchemaEventBus()
    compiler = SchemaCompiler(event_bus)
    resolver = BatchLookupResolver(RecordDisplayBackend(database), event_bus)
    fields = FieldDefinitionService(database, event_bus, FieldListCache(event_bus))
    records = RecordService(database, event_bus, fields, compiler, resolver)

    return Services(
        event_bus=event_bus,
        compiler=compiler,
        resolver=resolver,
        object_types=ObjectTypeService(database, event_bus),
        fields=fields,
        records=records,
        mappings=FieldMappingService(database, fields),
        shares=RecordShareService(database, fields, records),
        publishing=PublishingService(database, event_bus, fields),
    )


@pytest.fixture(scope="function")
def owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture(scope="function")
async def contact_type(services: Services, owner_id: uuid.UUID):
    """A `contact` object type with a required name, an email and an age."""
    object_type = await services.object_types.create_object_type(
        CreateObjectTypeDTO(name="Contact"), owner_id
    )
    await services.fields.create_fields(
        object_type.id,
        [
            CreateObjectFieldDTO(name="Full Name", is_required=True),
            CreateObjectFieldDTO(name="Email", data_type="email"),
            CreateObjectFieldDTO(name="Age", data_type="number"),
        ],
    )

    return object_type


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(
    database: SQLDatabase, owner_id: uuid.UUID
) -> AsyncGenerator[AsyncClient, None]:
    """Authenticated AsyncClient; the container's database is the test database."""
    from core.di_container import DependencyContainer
    from main import app

    container = DependencyContainer()
    container.pg_database.override(providers.Object(database))

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {create_access_token(owner_id)}"},
    ) as c:
        yield c

    container.pg_database.reset_override()
    container.unwire()
