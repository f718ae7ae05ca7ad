from logging import Logger

from dependency_injector import containers, providers

from core.environment import settings
from core.database import SQLDatabase
from core.events import SchemaEventBus
from core.logger import app_logger
from service.field_definitions import FieldDefinitionService, FieldListCache
from service.field_mappings import FieldMappingService
from service.lookup_resolver import BatchLookupResolver, RecordDisplayBackend
from service.object_types import ObjectTypeService
from service.publishing import PublishingService
from service.record_shares import RecordShareService
from service.records import RecordService
from service.schema_compiler import SchemaCompiler


class DependencyContainer(containers.DeclarativeContainer):
    # Dependency wiring
    wiring_config = containers.WiringConfiguration(
        modules=[
            "api.v1.object_types",
            "api.v1.fields",
            "api.v1.records",
            "api.v1.lookups",
            "api.v1.field_mappings",
            "api.v1.shares",
            "api.v1.publishing",
        ]
    )

    # Resources/Singletons
    logger: Logger = providers.Object(app_logger)
    pg_database = providers.Resource(
        SQLDatabase,
        db_config=settings.PG_DB_CONFIG,
        logger=logger,
        create_tables=settings.DB_CREATE_TABLES,
    )

    # Process-wide caches share one invalidation channel
    event_bus = providers.Singleton(SchemaEventBus, logger=logger)
    field_cache = providers.Singleton(FieldListCache, event_bus=event_bus, logger=logger)
    schema_compiler = providers.Singleton(SchemaCompiler, event_bus=event_bus, logger=logger)
    lookup_backend = providers.Singleton(
        RecordDisplayBackend, pg_database=pg_database, logger=logger
    )
    lookup_resolver = providers.Singleton(
        BatchLookupResolver, backend=lookup_backend, event_bus=event_bus, logger=logger
    )

    # Factories
    object_type_service_factory = providers.Factory(
        ObjectTypeService,
        pg_database=pg_database,
        event_bus=event_bus,
        logger=logger,
    )

    field_service_factory = providers.Factory(
        FieldDefinitionService,
        pg_database=pg_database,
        event_bus=event_bus,
        field_cache=field_cache,
        logger=logger,
    )

    record_service_factory = providers.Factory(
        RecordService,
        pg_database=pg_database,
        event_bus=event_bus,
        field_service=field_service_factory,
        schema_compiler=schema_compiler,
        lookup_resolver=lookup_resolver,
        logger=logger,
    )

    field_mapping_service_factory = providers.Factory(
        FieldMappingService,
        pg_database=pg_database,
        field_service=field_service_factory,
        logger=logger,
    )

    record_share_service_factory = providers.Factory(
        RecordShareService,
        pg_database=pg_database,
        field_service=field_service_factory,
        record_service=record_service_factory,
        logger=logger,
    )

    publishing_service_factory = providers.Factory(
        PublishingService,
        pg_database=pg_database,
        event_bus=event_bus,
        field_service=field_service_factory,
        logger=logger,
    )
