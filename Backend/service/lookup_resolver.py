"""Bulk resolution of lookup values (record ids) to display strings.

One drain task per target object type owns the outstanding backend request
for that type. Callers that arrive while a request is running either wait on
the futures of values already in flight or queue their values for the next
batch, so a value is never requested twice concurrently and a target type
never has more than one request outstanding. Values in flight when the
target is invalidated are not joined; they are asked for again.
"""

import asyncio
from logging import Logger
from typing import Iterable, Mapping, Protocol
from uuid import UUID

from sqlalchemy import asc, select
from sqlalchemy.exc import SQLAlchemyError

from core.constants import UNNAMED_RECORD
from core.database import SQLDatabase
from core.events import RecordsChanged, SchemaChanged, SchemaEventBus
from core.exceptions import ResolutionFailure
from core.logger import app_logger
from model.dao.object_types import ObjectFieldDAO, ObjectTypeDAO
from model.dao.records import FieldValueDAO, ObjectRecordDAO


def record_display_name(
    values: Mapping[str, str],
    ordered_api_names: list[str],
    display_field_api_name: str | None = None,
) -> str:
    """Display field if populated, else the first populated field in display order."""
    if display_field_api_name and values.get(display_field_api_name):
        return values[display_field_api_name]

    for api_name in ordered_api_names:
        if values.get(api_name):
            return values[api_name]

    return UNNAMED_RECORD


class LookupBackend(Protocol):
    async def resolve_display_values(
        self, target_object_type_id: UUID, values: list[str]
    ) -> dict[str, str]:
        """Maps each resolvable value to its display string; omits the rest."""
        ...


class RecordDisplayBackend:
    """Resolves record ids of one object type from the value store in one round trip."""

    def __init__(self, pg_database: SQLDatabase, logger: Logger = app_logger):
        self._db = pg_database
        self._logger = logger

    async def resolve_display_values(
        self, target_object_type_id: UUID, values: list[str]
    ) -> dict[str, str]:
        record_ids: dict[UUID, str] = {}
        for value in values:
            try:
                record_ids[UUID(value)] = value
            except ValueError:
                continue

        if not record_ids:
            return {}

        try:
            async with self._db.session() as session:
                object_type = await session.get(ObjectTypeDAO, target_object_type_id)
                existing = set(
                    await session.scalars(
                        select(ObjectRecordDAO.id)
                        .where(ObjectRecordDAO.object_type_id == target_object_type_id)
                        .where(ObjectRecordDAO.id.in_(list(record_ids)))
                    )
                )
                fields = await session.scalars(
                    select(ObjectFieldDAO.api_name)
                    .where(ObjectFieldDAO.object_type_id == target_object_type_id)
                    .order_by(
                        asc(ObjectFieldDAO.display_order), asc(ObjectFieldDAO.insertion_seq)
                    )
                )
                ordered_api_names = list(fields)
                rows = await session.scalars(
                    select(FieldValueDAO).where(FieldValueDAO.record_id.in_(list(existing)))
                )
                stored = list(rows)
        except SQLAlchemyError as exc:
            raise ResolutionFailure(f"Lookup query failed: {exc}") from exc

        display_field = object_type.display_field_api_name if object_type else None
        values_by_record: dict[UUID, dict[str, str]] = {record_id: {} for record_id in existing}
        for row in stored:
            values_by_record[row.record_id][row.field_api_name] = row.value

        return {
            record_ids[record_id]: record_display_name(
                record_values, ordered_api_names, display_field
            )
            for record_id, record_values in values_by_record.items()
        }


class BatchLookupResolver:
    def __init__(
        self,
        backend: LookupBackend,
        event_bus: SchemaEventBus,
        logger: Logger = app_logger,
    ):
        self._backend = backend
        self._logger = logger
        self._cache: dict[UUID, dict[str, str]] = {}
        self._generations: dict[UUID, int] = {}
        self._in_flight: dict[UUID, tuple[int, dict[str, asyncio.Future]]] = {}
        self._queued: dict[UUID, dict[str, asyncio.Future]] = {}
        self._drainers: dict[UUID, asyncio.Task] = {}

        event_bus.subscribe(SchemaChanged, self._on_change)
        event_bus.subscribe(RecordsChanged, self._on_change)

    async def resolve(
        self, target_object_type_id: UUID, values: Iterable[str]
    ) -> dict[str, str]:
        """Display value for every requested value; the raw value when unresolved."""
        requested = list(dict.fromkeys(value for value in values if value))
        cached = self._cache.get(target_object_type_id, {})

        results: dict[str, str] = {}
        waiting: dict[str, asyncio.Future] = {}
        for value in requested:
            if value in cached:
                results[value] = cached[value]
            else:
                waiting[value] = self._future_for(target_object_type_id, value)

        for value, future in waiting.items():
            # Shielded so a cancelled caller never cancels a shared future
            display = await asyncio.shield(future)
            results[value] = display or value

        return {value: results[value] for value in requested}

    def invalidate(self, target_object_type_id: UUID) -> None:
        self._generations[target_object_type_id] = (
            self._generations.get(target_object_type_id, 0) + 1
        )
        if self._cache.pop(target_object_type_id, None):
            self._logger.debug(f"Dropped lookup cache for `{target_object_type_id}`")

    def _future_for(self, target_object_type_id: UUID, value: str) -> asyncio.Future:
        # Only a batch started after the last invalidation may be joined
        generation, in_flight = self._in_flight.get(target_object_type_id, (None, {}))
        if value in in_flight and generation == self._generations.get(target_object_type_id, 0):
            return in_flight[value]

        queued = self._queued.setdefault(target_object_type_id, {})
        if value not in queued:
            queued[value] = asyncio.get_running_loop().create_future()

        if target_object_type_id not in self._drainers:
            self._drainers[target_object_type_id] = asyncio.create_task(
                self._drain(target_object_type_id)
            )

        return queued[value]

    async def _drain(self, target_object_type_id: UUID) -> None:
        # Yield once so callers in the same tick land in the first batch
        await asyncio.sleep(0)

        try:
            while self._queued.get(target_object_type_id):
                batch = self._queued.pop(target_object_type_id)
                generation = self._generations.get(target_object_type_id, 0)
                self._in_flight[target_object_type_id] = (generation, batch)
                try:
                    await self._run_batch(target_object_type_id, batch, generation)
                finally:
                    self._in_flight.pop(target_object_type_id, None)
                    for future in batch.values():
                        if not future.done():
                            future.set_result(None)
        finally:
            self._drainers.pop(target_object_type_id, None)
            for future in self._queued.pop(target_object_type_id, {}).values():
                if not future.done():
                    future.set_result(None)

    async def _run_batch(
        self, target_object_type_id: UUID, batch: dict[str, asyncio.Future], generation: int
    ) -> None:
        self._logger.debug(
            f"Resolving {len(batch)} lookup value(s) for `{target_object_type_id}`"
        )

        try:
            resolved = await self._backend.resolve_display_values(
                target_object_type_id, list(batch)
            )
        except Exception as exc:
            # Failures degrade to the raw value; they never reach the caller
            self._logger.warning(
                f"Lookup resolution failed for `{target_object_type_id}`: {exc}"
            )
            resolved = {}

        resolved = {
            value: display
            for value, display in resolved.items()
            if value in batch and display
        }

        # Results computed before an invalidation are handed out but not cached
        if generation == self._generations.get(target_object_type_id, 0):
            self._cache.setdefault(target_object_type_id, {}).update(resolved)

        for value, future in batch.items():
            if not future.done():
                future.set_result(resolved.get(value))

    def _on_change(self, event: SchemaChanged | RecordsChanged) -> None:
        self.invalidate(event.object_type_id)


__all__ = [
    "BatchLookupResolver",
    "LookupBackend",
    "RecordDisplayBackend",
    "record_display_name",
]
