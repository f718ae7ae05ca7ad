"""Typed invalidation channel for schema and record changes."""

from dataclasses import dataclass
from logging import Logger
from typing import Callable
from uuid import UUID

from core.logger import app_logger


@dataclass(frozen=True)
class SchemaChanged:
    object_type_id: UUID


@dataclass(frozen=True)
class RecordsChanged:
    object_type_id: UUID


ChangeEvent = SchemaChanged | RecordsChanged
Handler = Callable[[ChangeEvent], None]


class SchemaEventBus:
    """In-process publish/subscribe for cache invalidation.

    Handlers run synchronously inside `publish`, so a cache is stale-free
    before the mutating call returns to its caller.
    """

    def __init__(self, logger: Logger = app_logger):
        self._logger = logger
        self._handlers: dict[type, list[Handler]] = {}

    def subscribe(self, event_type: type, handler: Handler) -> None:
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    def publish(self, event: ChangeEvent) -> None:
        self._logger.debug(f"Publishing {type(event).__name__} for `{event.object_type_id}`")
        for handler in list(self._handlers.get(type(event), [])):
            handler(event)


__all__ = ["ChangeEvent", "RecordsChanged", "SchemaChanged", "SchemaEventBus"]
