"""Event and publication record models."""

import json
from dataclasses import dataclass, field
from typing import Any

__all__ = ["Event", "PublicationRecord"]


@dataclass(frozen=True)
class Event:
    """Immutable fact passed to handlers. Equal by value."""

    event_type: str
    correlation_key: str
    payload: dict[str, Any] = field(default_factory=dict, hash=False)

    def serialize_payload(self) -> str:
        return json.dumps(self.payload, ensure_ascii=False, sort_keys=True)


@dataclass(frozen=True)
class PublicationRecord:
    """One ledger row per (event, handler). completed_at None means not yet handled."""

    event_type: str
    serialized_payload: str
    correlation_key: str
    handler_id: str
    published_at: float
    id: int | None = None
    completed_at: float | None = None
    attempts: int = 0
    last_error: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None

    def to_event(self) -> Event:
        """Deserialize the stored payload. Raises ValueError on malformed JSON."""
        payload = json.loads(self.serialized_payload)
        if not isinstance(payload, dict):
            raise ValueError(f"Payload of record {self.id} is not an object")
        return Event(
            event_type=self.event_type,
            correlation_key=self.correlation_key,
            payload=payload,
        )
