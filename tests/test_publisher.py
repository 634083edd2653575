"""Tests for EventPublisher: outbox atomicity, per-handler records, inline first attempt."""

import pytest

from countryflow.database import Database
from countryflow.domain import Country, CountryRepository
from countryflow.errors import LedgerError
from countryflow.events import (
    Dispatcher,
    Event,
    EventPublisher,
    HandlerRegistry,
    PublicationLedger,
)


async def _count(db: Database, table: str) -> int:
    async with db.connection() as conn:
        cursor = await conn.execute(f"SELECT COUNT(*) FROM {table}")
        row = await cursor.fetchone()
    return row[0]


async def _noop(event: Event) -> None:
    return None


class TestAtomicity:
    @pytest.mark.asyncio
    async def test_rollback_leaves_no_country_and_no_record(
        self,
        db: Database,
        countries: CountryRepository,
        publisher: EventPublisher,
        registry: HandlerRegistry,
    ) -> None:
        registry.register("country.created", "h", _noop)

        with pytest.raises(RuntimeError):
            async with db.transaction():
                country = await countries.save(Country(name="UK", code="GB"))
                await publisher.publish(Event("country.created", country.id, {"country_id": country.id}))
                raise RuntimeError("crash before commit")

        assert await _count(db, "country") == 0
        assert await _count(db, "event_publication") == 0

    @pytest.mark.asyncio
    async def test_commit_persists_country_and_record(
        self,
        db: Database,
        countries: CountryRepository,
        ledger: PublicationLedger,
        dispatcher: Dispatcher,
        registry: HandlerRegistry,
    ) -> None:
        registry.register("country.created", "h", _noop)
        # crash between commit and dispatch: nothing runs after the commit
        publisher = EventPublisher(db, ledger, registry, dispatcher, inline_dispatch=False)

        async with db.transaction():
            country = await countries.save(Country(name="UK", code="GB"))
            await publisher.publish(Event("country.created", country.id, {"country_id": country.id}))

        assert await countries.find(country.id) is not None
        records = await ledger.find_incomplete()
        assert [r.correlation_key for r in records] == [country.id]

    @pytest.mark.asyncio
    async def test_append_failure_aborts_business_write(
        self,
        db: Database,
        countries: CountryRepository,
        ledger: PublicationLedger,
        publisher: EventPublisher,
        registry: HandlerRegistry,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def failing_append(record) -> int:
            raise LedgerError("ledger unavailable")

        registry.register("country.created", "h", _noop)
        monkeypatch.setattr(ledger, "append", failing_append)

        with pytest.raises(LedgerError):
            async with db.transaction():
                country = await countries.save(Country(name="UK", code="GB"))
                await publisher.publish(Event("country.created", country.id, {"country_id": country.id}))

        assert await _count(db, "country") == 0


class TestRecording:
    @pytest.mark.asyncio
    async def test_one_record_per_handler_in_registration_order(
        self, publisher: EventPublisher, registry: HandlerRegistry, ledger: PublicationLedger
    ) -> None:
        calls: list[str] = []

        async def audit(event: Event) -> None:
            calls.append("audit")

        async def notify(event: Event) -> None:
            calls.append("notify")

        registry.register("country.created", "audit", audit)
        registry.register("country.created", "notify", notify)

        records = await publisher.publish(Event("country.created", "c-1", {"country_id": "c-1"}))

        assert [r.handler_id for r in records] == ["audit", "notify"]
        assert calls == ["audit", "notify"]
        stored = await ledger.find_by_correlation_key("c-1")
        assert all(r.completed_at is not None for r in stored)

    @pytest.mark.asyncio
    async def test_no_handlers_records_nothing(
        self, db: Database, publisher: EventPublisher
    ) -> None:
        records = await publisher.publish(Event("orphan.event", "c-1"))
        assert records == []
        assert await _count(db, "event_publication") == 0

    @pytest.mark.asyncio
    async def test_duplicate_handler_id_rejected(self, registry: HandlerRegistry) -> None:
        registry.register("country.created", "h", _noop)
        with pytest.raises(ValueError):
            registry.register("country.created", "h", _noop)


class TestInlineDispatch:
    @pytest.mark.asyncio
    async def test_first_attempt_failure_reaches_producer(
        self,
        db: Database,
        countries: CountryRepository,
        publisher: EventPublisher,
        registry: HandlerRegistry,
        ledger: PublicationLedger,
    ) -> None:
        async def failing(event: Event) -> None:
            raise RuntimeError("validation service down")

        registry.register("country.created", "h", failing)

        with pytest.raises(RuntimeError, match="validation service down"):
            async with db.transaction():
                country = await countries.save(Country(name="UK", code="GB"))
                await publisher.publish(Event("country.created", country.id, {"country_id": country.id}))

        # committed before the attempt: state and pending record both survive
        assert await countries.find(country.id) is not None
        (record,) = await ledger.find_incomplete()
        assert record.attempts == 1

    @pytest.mark.asyncio
    async def test_all_handlers_attempted_before_raising(
        self, publisher: EventPublisher, registry: HandlerRegistry, ledger: PublicationLedger
    ) -> None:
        async def failing(event: Event) -> None:
            raise RuntimeError("first handler down")

        second_calls: list[Event] = []

        async def second(event: Event) -> None:
            second_calls.append(event)

        registry.register("country.created", "first", failing)
        registry.register("country.created", "second", second)

        with pytest.raises(RuntimeError):
            await publisher.publish(Event("country.created", "c-1"))

        assert len(second_calls) == 1
        pending = await ledger.find_incomplete()
        assert [r.handler_id for r in pending] == ["first"]

    @pytest.mark.asyncio
    async def test_second_event_dispatched_when_first_fails(
        self, db: Database, publisher: EventPublisher, registry: HandlerRegistry, ledger: PublicationLedger
    ) -> None:
        received: list[str] = []

        async def failing(event: Event) -> None:
            raise RuntimeError("first event handler down")

        async def healthy(event: Event) -> None:
            received.append(event.correlation_key)

        registry.register("test.first", "failing", failing)
        registry.register("test.second", "healthy", healthy)

        with pytest.raises(RuntimeError, match="first event handler down"):
            async with db.transaction():
                await publisher.publish(Event("test.first", "k-1"))
                await publisher.publish(Event("test.second", "k-2"))

        assert received == ["k-2"]
        pending = await ledger.find_incomplete()
        assert [r.handler_id for r in pending] == ["failing"]
