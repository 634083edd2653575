"""Generic stage runner: load entity, apply stage, persist and publish atomically."""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

from countryflow.database import Database
from countryflow.domain.models import EntityAccessor
from countryflow.events import Event, EventPublisher, Handler

logger = logging.getLogger(__name__)

E = TypeVar("E")


@dataclass(frozen=True)
class StageOutcome(Generic[E]):
    """What a stage wants done: entity to save and/or next event to publish.

    An empty outcome is a final, non-erroneous result (rejection, skip, or
    terminal stage); the triggering publication still completes.
    """

    entity: E | None = None
    next_event: Event | None = None


Stage = Callable[[E, Event], Awaitable[StageOutcome[E]]]


class StageRunner(Generic[E]):
    """Turns stages into event handlers.

    A missing entity is treated as handled: it will never appear, so a retry
    cannot help. Exceptions raised by a stage propagate to the dispatcher
    and leave the publication incomplete.
    """

    def __init__(
        self,
        db: Database,
        accessor: EntityAccessor[E],
        publisher: EventPublisher,
    ) -> None:
        self._db = db
        self._accessor = accessor
        self._publisher = publisher

    def handler(self, name: str, stage: Stage[E]) -> Handler:
        async def handle(event: Event) -> None:
            await self.run(name, stage, event)

        handle.__name__ = name
        return handle

    async def run(self, name: str, stage: Stage[E], event: Event) -> None:
        logger.debug("%s: received %s for %s", name, event.event_type, event.correlation_key)
        entity = await self._accessor.find(event.correlation_key)
        if entity is None:
            logger.error("%s: entity not found with id %s", name, event.correlation_key)
            return

        outcome = await stage(entity, event)
        if outcome.entity is None and outcome.next_event is None:
            return

        async with self._db.transaction():
            if outcome.entity is not None:
                await self._accessor.save(outcome.entity)
            if outcome.next_event is not None:
                await self._publisher.publish(outcome.next_event)
        if outcome.next_event is not None:
            logger.info(
                "%s: published %s for %s",
                name,
                outcome.next_event.event_type,
                event.correlation_key,
            )
