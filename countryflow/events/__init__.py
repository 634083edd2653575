"""Event publication: ledger, outbox recorder, dispatcher and retry sweeper."""

from countryflow.events.dispatcher import Dispatcher
from countryflow.events.ledger import PublicationLedger
from countryflow.events.models import Event, PublicationRecord
from countryflow.events.publisher import EventPublisher
from countryflow.events.registry import Handler, HandlerRegistry
from countryflow.events.sweeper import RetrySweeper, SweepResult
from countryflow.events.topics import EventTypes

__all__ = [
    "Dispatcher",
    "Event",
    "EventPublisher",
    "EventTypes",
    "Handler",
    "HandlerRegistry",
    "PublicationLedger",
    "PublicationRecord",
    "RetrySweeper",
    "SweepResult",
]
