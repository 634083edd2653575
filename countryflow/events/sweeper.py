"""Retry sweeper: periodically resubmit incomplete publications past their grace period."""

import asyncio
import logging
from dataclasses import dataclass

from countryflow.events.dispatcher import Dispatcher
from countryflow.events.ledger import PublicationLedger
from countryflow.events.models import PublicationRecord

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 300.0
DEFAULT_GRACE_PERIOD = 60.0


@dataclass(frozen=True)
class SweepResult:
    attempted: int
    completed: int


class RetrySweeper:
    """Fixed-interval background task driving at-least-once delivery.

    Retries are unbounded: a record is resubmitted on every run until its
    handler succeeds or an operator purges it.
    """

    def __init__(
        self,
        ledger: PublicationLedger,
        dispatcher: Dispatcher,
        interval: float = DEFAULT_INTERVAL,
        grace_period: float = DEFAULT_GRACE_PERIOD,
    ) -> None:
        self._ledger = ledger
        self._dispatcher = dispatcher
        self._interval = interval
        self._grace_period = grace_period
        self._run_lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep loop as an asyncio Task."""
        if self.running:
            return
        self._stopped = False
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Retry sweeper started (interval=%ss, grace=%ss)",
            self._interval,
            self._grace_period,
        )

    async def stop(self) -> None:
        """Let a run in progress finish, then cancel the loop while it sleeps."""
        self._stopped = True
        if self._task:
            # Holding the run lock: the loop is asleep or any sweep it starts returns at once
            async with self._run_lock:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            self._task = None
        logger.info("Retry sweeper stopped")

    async def _loop(self) -> None:
        while not self._stopped:
            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break
            if self._stopped:
                break
            try:
                await self.sweep()
            except Exception as e:
                logger.exception("Error during scheduled event retry: %s", e)

    async def sweep(self) -> SweepResult | None:
        """Run one pass. Returns None when a previous pass is still running."""
        if self._run_lock.locked():
            logger.info("Previous sweep still running, skipping this one")
            return None
        async with self._run_lock:
            records = await self._ledger.find_incomplete_older_than(self._grace_period)
            return await self._resubmit(records, "sweep")

    async def resubmit_all(self) -> SweepResult | None:
        """Resubmit every incomplete record regardless of age. Used once at startup."""
        if self._run_lock.locked():
            logger.info("Sweep in progress, skipping full resubmission")
            return None
        async with self._run_lock:
            records = await self._ledger.find_incomplete()
            return await self._resubmit(records, "restart resubmission")

    async def _resubmit(self, records: list[PublicationRecord], label: str) -> SweepResult:
        if not records:
            logger.debug("%s: no incomplete publications", label)
            return SweepResult(attempted=0, completed=0)

        completed = 0
        for record in records:
            try:
                if await self._dispatcher.dispatch(record):
                    completed += 1
            except Exception as e:
                logger.exception("%s: dispatch of publication %s failed: %s", label, record.id, e)

        logger.info(
            "%s: attempted %d incomplete publication(s), %d now complete",
            label,
            len(records),
            completed,
        )
        return SweepResult(attempted=len(records), completed=completed)
