"""Dispatcher: deliver one publication record to its handler and mark it complete."""

import logging
import time
from contextvars import ContextVar
from typing import Callable

from countryflow.errors import HandlerNotFoundError
from countryflow.events.ledger import PublicationLedger
from countryflow.events.models import PublicationRecord
from countryflow.events.registry import HandlerRegistry

logger = logging.getLogger(__name__)

# Records published by the handler currently running in this task
_followups: ContextVar[list[PublicationRecord] | None] = ContextVar(
    "countryflow_followups", default=None
)


class Dispatcher:
    """Pending -> Completed on handler success; Pending stays Pending on failure.

    In isolated mode (the default) a failing handler is logged and the
    record is left for the retry sweep. With propagate=True the exception
    is re-raised after bookkeeping so an inline producer can observe it.

    Events a handler publishes while it runs are deferred until the
    handler's own record has been settled, then dispatched in isolated
    mode: a downstream failure never un-completes an upstream stage.
    """

    def __init__(
        self,
        ledger: PublicationLedger,
        registry: HandlerRegistry,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ledger = ledger
        self._registry = registry
        self._clock = clock
        self._in_flight: set[int] = set()

    def defer(self, records: list[PublicationRecord]) -> bool:
        """Queue records behind the handler running in this task. False if none is running."""
        followups = _followups.get()
        if followups is None:
            return False
        followups.extend(records)
        return True

    async def dispatch(self, record: PublicationRecord, propagate: bool = False) -> bool:
        """Invoke the record's handler. Returns True if the record is complete afterwards."""
        if record.id is None:
            raise ValueError("Cannot dispatch a record that was never appended")
        if record.id in self._in_flight:
            logger.debug("Publication %s already in flight, skipping", record.id)
            return False

        self._in_flight.add(record.id)
        try:
            return await self._dispatch(record.id, propagate)
        finally:
            self._in_flight.discard(record.id)

    async def _dispatch(self, record_id: int, propagate: bool) -> bool:
        current = await self._ledger.get(record_id)
        if current is None:
            logger.warning("Publication %s no longer in ledger, skipping", record_id)
            return False
        if current.is_complete:
            logger.debug("Publication %s already complete, skipping", record_id)
            return True

        followups: list[PublicationRecord] = []
        error: Exception | None = None
        token = _followups.set(followups)
        try:
            handler = self._registry.get(current.event_type, current.handler_id)
            await handler(current.to_event())
        except Exception as e:
            error = e
        finally:
            _followups.reset(token)

        if error is None:
            completed = await self._complete(current)
        else:
            await self._on_failure(current, error)
            completed = False

        for followup in followups:
            await self.dispatch(followup)

        if error is not None and propagate:
            raise error
        return completed

    async def _complete(self, record: PublicationRecord) -> bool:
        assert record.id is not None
        try:
            await self._ledger.mark_complete(record.id, self._clock())
        except Exception as e:
            # Left incomplete; the sweep re-checks and the handler runs again.
            logger.exception(
                "Failed to mark publication %s complete (handler %s): %s",
                record.id,
                record.handler_id,
                e,
            )
            return False
        logger.debug(
            "Publication %s (%s -> %s) complete",
            record.id,
            record.event_type,
            record.handler_id,
        )
        return True

    async def _on_failure(self, record: PublicationRecord, error: Exception) -> None:
        assert record.id is not None
        if isinstance(error, HandlerNotFoundError):
            logger.error("Publication %s: %s", record.id, error)
        else:
            logger.error(
                "Handler %s failed for publication %s (%s/%s): %s",
                record.handler_id,
                record.id,
                record.event_type,
                record.correlation_key,
                error,
                exc_info=error,
            )
        try:
            await self._ledger.record_failure(record.id, f"{type(error).__name__}: {error}")
        except Exception as e:
            logger.warning("Could not record failure of publication %s: %s", record.id, e)
