"""Shared fixtures: temp SQLite database, fake clock, fake external collaborators."""

from pathlib import Path
from typing import Any

import pytest

from countryflow.app import App, create_app
from countryflow.database import Database
from countryflow.domain import CountryRepository
from countryflow.errors import EnrichmentError, SinkError
from countryflow.events import (
    Dispatcher,
    EventPublisher,
    HandlerRegistry,
    PublicationLedger,
    RetrySweeper,
)
from countryflow.integrations import EnrichmentData

T0 = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock (epoch seconds)."""

    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDataSource:
    """CountryDataSource that fails the first `failures` calls."""

    def __init__(self, data: EnrichmentData | None = None, failures: int = 0) -> None:
        self.data = data or EnrichmentData(population=67000000, currency="GBP", language="English")
        self.failures = failures
        self.calls: list[str] = []

    async def fetch(self, code: str) -> EnrichmentData:
        self.calls.append(code)
        if self.failures > 0:
            self.failures -= 1
            raise EnrichmentError(f"Failed to fetch country data for code: {code}")
        return self.data


class FakeBus:
    """BusClient that records sends and fails the first `failures` calls."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.sent: list[tuple[str, dict[str, Any]]] = []

    async def send(self, key: str, payload: dict[str, Any]) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise SinkError(f"Failed to send country event {key}")
        self.sent.append((key, payload))


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "countryflow.db"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def db(db_path: Path) -> Database:
    database = Database(db_path)
    yield database
    await database.close()


@pytest.fixture
async def ledger(db: Database, clock: FakeClock) -> PublicationLedger:
    ledger = PublicationLedger(db, clock=clock)
    await ledger.initialize()
    return ledger


@pytest.fixture
async def countries(db: Database) -> CountryRepository:
    repo = CountryRepository(db)
    await repo.initialize()
    return repo


@pytest.fixture
def registry() -> HandlerRegistry:
    return HandlerRegistry()


@pytest.fixture
def dispatcher(
    ledger: PublicationLedger, registry: HandlerRegistry, clock: FakeClock
) -> Dispatcher:
    return Dispatcher(ledger, registry, clock=clock)


@pytest.fixture
def publisher(
    db: Database,
    ledger: PublicationLedger,
    registry: HandlerRegistry,
    dispatcher: Dispatcher,
) -> EventPublisher:
    return EventPublisher(db, ledger, registry, dispatcher)


@pytest.fixture
async def sweeper(ledger: PublicationLedger, dispatcher: Dispatcher) -> RetrySweeper:
    sweeper = RetrySweeper(ledger, dispatcher, interval=0.05, grace_period=60.0)
    yield sweeper
    await sweeper.stop()


@pytest.fixture
def data_source() -> FakeDataSource:
    return FakeDataSource()


@pytest.fixture
def bus() -> FakeBus:
    return FakeBus()


@pytest.fixture
async def app(
    db_path: Path, clock: FakeClock, data_source: FakeDataSource, bus: FakeBus
) -> App:
    app = await create_app(db_path, data_source, bus, clock=clock, grace_period=60.0)
    yield app
    await app.close()
