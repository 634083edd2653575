"""Assemble database, ledger, dispatcher, sweeper and stages into one application."""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from countryflow.database import Database
from countryflow.domain import CountryRepository, CountryService
from countryflow.events import (
    Dispatcher,
    EventPublisher,
    HandlerRegistry,
    PublicationLedger,
    RetrySweeper,
)
from countryflow.events.sweeper import DEFAULT_GRACE_PERIOD, DEFAULT_INTERVAL
from countryflow.integrations import BusClient, CountryDataSource
from countryflow.pipeline import register_pipeline


@dataclass
class App:
    db: Database
    ledger: PublicationLedger
    registry: HandlerRegistry
    dispatcher: Dispatcher
    publisher: EventPublisher
    sweeper: RetrySweeper
    countries: CountryRepository
    service: CountryService

    async def close(self) -> None:
        await self.sweeper.stop()
        await self.db.close()


async def create_app(
    db_path: Path,
    data_source: CountryDataSource,
    bus: BusClient,
    *,
    busy_timeout: int = 5000,
    clock: Callable[[], float] = time.time,
    inline_dispatch: bool = True,
    sweep_interval: float = DEFAULT_INTERVAL,
    grace_period: float = DEFAULT_GRACE_PERIOD,
) -> App:
    """Open the database, create schemas and register the country pipeline. Sweeper not started."""
    db = Database(db_path, busy_timeout=busy_timeout)
    ledger = PublicationLedger(db, clock=clock)
    countries = CountryRepository(db)
    await ledger.initialize()
    await countries.initialize()

    registry = HandlerRegistry()
    dispatcher = Dispatcher(ledger, registry, clock=clock)
    publisher = EventPublisher(db, ledger, registry, dispatcher, inline_dispatch=inline_dispatch)
    sweeper = RetrySweeper(ledger, dispatcher, interval=sweep_interval, grace_period=grace_period)
    register_pipeline(registry, db, countries, publisher, data_source, bus)

    return App(
        db=db,
        ledger=ledger,
        registry=registry,
        dispatcher=dispatcher,
        publisher=publisher,
        sweeper=sweeper,
        countries=countries,
        service=CountryService(db, countries, publisher),
    )
