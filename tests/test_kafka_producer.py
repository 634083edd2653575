"""Tests for KafkaCountryProducer with the aiokafka producer mocked out."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from aiokafka.errors import KafkaConnectionError, KafkaError

from countryflow.errors import SinkError
from countryflow.integrations import kafka as kafka_module
from countryflow.integrations.kafka import KafkaCountryProducer


def _client(start_error: Exception | None = None) -> MagicMock:
    inner = MagicMock()
    inner.start = AsyncMock(side_effect=start_error)
    inner.stop = AsyncMock()
    inner.send_and_wait = AsyncMock(return_value=MagicMock(partition=0, offset=42))
    return inner


@pytest.mark.asyncio
async def test_send_waits_for_ack() -> None:
    producer = KafkaCountryProducer("localhost:9092", topic="countries")
    inner = _client()
    producer._producer = inner

    await producer.send("c-1", {"id": "c-1", "population": 67000000})

    inner.send_and_wait.assert_awaited_once_with(
        "countries", value={"id": "c-1", "population": 67000000}, key="c-1"
    )


@pytest.mark.asyncio
async def test_kafka_error_becomes_sink_error() -> None:
    producer = KafkaCountryProducer("localhost:9092")
    inner = _client()
    inner.send_and_wait = AsyncMock(side_effect=KafkaError())
    producer._producer = inner

    with pytest.raises(SinkError) as exc_info:
        await producer.send("c-1", {"id": "c-1"})
    assert isinstance(exc_info.value.__cause__, KafkaError)


@pytest.mark.asyncio
async def test_start_and_stop(monkeypatch: pytest.MonkeyPatch) -> None:
    """start() builds and starts one client; stop() shuts it down and resets."""
    inner = _client()
    factory = MagicMock(return_value=inner)
    monkeypatch.setattr(kafka_module, "AIOKafkaProducer", factory)

    producer = KafkaCountryProducer("broker:9092", request_timeout_ms=5000)
    await producer.start()
    await producer.start()

    factory.assert_called_once()
    assert factory.call_args.kwargs["bootstrap_servers"] == "broker:9092"
    assert factory.call_args.kwargs["request_timeout_ms"] == 5000
    serialize = factory.call_args.kwargs["value_serializer"]
    assert serialize({"name": "Åland"}) == '{"name": "Åland"}'.encode("utf-8")
    inner.start.assert_awaited_once()

    await producer.stop()
    inner.stop.assert_awaited_once()
    assert producer._producer is None


@pytest.mark.asyncio
async def test_start_with_broker_down_does_not_raise(monkeypatch: pytest.MonkeyPatch) -> None:
    down = _client(start_error=KafkaConnectionError("Unable to bootstrap from 127.0.0.1:1"))
    monkeypatch.setattr(kafka_module, "AIOKafkaProducer", MagicMock(return_value=down))

    producer = KafkaCountryProducer("127.0.0.1:1")
    await producer.start()

    # failed client is closed so nothing leaks
    down.stop.assert_awaited_once()
    assert producer._producer is None


@pytest.mark.asyncio
async def test_send_connects_on_first_use_after_outage(monkeypatch: pytest.MonkeyPatch) -> None:
    down = _client(start_error=KafkaConnectionError("Unable to bootstrap"))
    up = _client()
    factory = MagicMock(side_effect=[down, down, up])
    monkeypatch.setattr(kafka_module, "AIOKafkaProducer", factory)

    producer = KafkaCountryProducer("broker:9092")
    await producer.start()

    with pytest.raises(SinkError, match="unreachable"):
        await producer.send("c-1", {"id": "c-1"})

    await producer.send("c-1", {"id": "c-1"})

    assert factory.call_count == 3
    up.send_and_wait.assert_awaited_once()
    await producer.stop()
    up.stop.assert_awaited_once()
