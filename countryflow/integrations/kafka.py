"""Kafka bus client for the sink stage: country snapshots keyed by country id."""

import asyncio
import json
import logging
from typing import Any

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from countryflow.errors import SinkError

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "country-events"


def _serialize(value: dict[str, Any]) -> bytes:
    return json.dumps(value, ensure_ascii=False).encode("utf-8")


class KafkaCountryProducer:
    """BusClient over aiokafka. send() waits for the broker ack so failures reach the caller.

    The broker connection is opened on first use when start() could not
    reach it, so an outage at boot only delays the sink stage.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        topic: str = DEFAULT_TOPIC,
        request_timeout_ms: int = 30000,
    ) -> None:
        self._bootstrap_servers = bootstrap_servers
        self._topic = topic
        self._request_timeout_ms = request_timeout_ms
        self._producer: AIOKafkaProducer | None = None
        self._connect_lock = asyncio.Lock()

    async def start(self) -> None:
        """Connect eagerly. An unreachable broker is logged, not raised."""
        try:
            await self._connected()
        except SinkError as e:
            logger.warning("%s; will retry on first send", e)

    async def _connected(self) -> AIOKafkaProducer:
        async with self._connect_lock:
            if self._producer is not None:
                return self._producer
            producer = AIOKafkaProducer(
                bootstrap_servers=self._bootstrap_servers,
                request_timeout_ms=self._request_timeout_ms,
                key_serializer=lambda k: k.encode("utf-8"),
                value_serializer=_serialize,
            )
            try:
                await producer.start()
            except KafkaError as e:
                await producer.stop()
                raise SinkError(f"Kafka unreachable at {self._bootstrap_servers}") from e
            self._producer = producer
            logger.info(
                "Kafka producer connected to %s (topic %s)", self._bootstrap_servers, self._topic
            )
            return producer

    async def stop(self) -> None:
        if self._producer is not None:
            await self._producer.stop()
            self._producer = None
            logger.info("Kafka producer stopped")

    async def send(self, key: str, payload: dict[str, Any]) -> None:
        """Publish payload under key. Raises SinkError on any delivery failure."""
        producer = await self._connected()
        try:
            metadata = await producer.send_and_wait(self._topic, value=payload, key=key)
        except KafkaError as e:
            logger.error("Failed to send country event %s to Kafka: %s", key, e)
            raise SinkError(f"Failed to send country event {key} to Kafka") from e
        logger.info(
            "Sent country event %s to %s - partition: %s, offset: %s",
            key,
            self._topic,
            metadata.partition,
            metadata.offset,
        )
