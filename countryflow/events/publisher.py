"""Outbox recorder: append publication records inside the producer's transaction."""

import logging
from dataclasses import replace

from countryflow.database import Database
from countryflow.events.dispatcher import Dispatcher
from countryflow.events.ledger import PublicationLedger
from countryflow.events.models import Event, PublicationRecord
from countryflow.events.registry import HandlerRegistry

logger = logging.getLogger(__name__)


class EventPublisher:
    """Record an event for every registered handler, then dispatch it after commit.

    publish() joins the caller's transaction, so the records exist exactly
    when the business write that raised the event commits. The first
    delivery attempt runs right after that commit on the caller's task;
    when the caller is itself a handler, the attempt is queued behind it.
    """

    def __init__(
        self,
        db: Database,
        ledger: PublicationLedger,
        registry: HandlerRegistry,
        dispatcher: Dispatcher,
        inline_dispatch: bool = True,
    ) -> None:
        self._db = db
        self._ledger = ledger
        self._registry = registry
        self._dispatcher = dispatcher
        self._inline_dispatch = inline_dispatch

    async def publish(self, event: Event) -> list[PublicationRecord]:
        """Append one record per handler of event.event_type. Returns the stored records."""
        handler_ids = self._registry.handler_ids(event.event_type)
        if not handler_ids:
            logger.debug("No handlers for %s, nothing recorded", event.event_type)
            return []

        async with self._db.transaction():
            published_at = self._ledger.now()
            payload = event.serialize_payload()
            records: list[PublicationRecord] = []
            for handler_id in handler_ids:
                record = PublicationRecord(
                    event_type=event.event_type,
                    serialized_payload=payload,
                    correlation_key=event.correlation_key,
                    handler_id=handler_id,
                    published_at=published_at,
                )
                record_id = await self._ledger.append(record)
                records.append(replace(record, id=record_id))
            logger.debug(
                "Recorded %s for %s (%d handler(s))",
                event.event_type,
                event.correlation_key,
                len(records),
            )
            if self._inline_dispatch:
                self._db.after_commit(lambda: self._dispatch_inline(records))
        return records

    async def _dispatch_inline(self, records: list[PublicationRecord]) -> None:
        """First attempt for a top-level producer; failures propagate to it."""
        if self._dispatcher.defer(records):
            return
        first_error: Exception | None = None
        for record in records:
            try:
                await self._dispatcher.dispatch(record, propagate=True)
            except Exception as e:
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
