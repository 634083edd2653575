"""Explicit handler registry: event type -> ordered handlers, populated at startup."""

import logging
from collections import defaultdict
from typing import Awaitable, Callable

from countryflow.errors import HandlerNotFoundError
from countryflow.events.models import Event

logger = logging.getLogger(__name__)

Handler = Callable[[Event], Awaitable[None]]


class HandlerRegistry:
    """Maps event types to (handler_id, handler) pairs in registration order."""

    def __init__(self) -> None:
        self._handlers: dict[str, dict[str, Handler]] = defaultdict(dict)

    def register(self, event_type: str, handler_id: str, handler: Handler) -> None:
        """Register handler for event_type. handler_id must be unique per type."""
        if handler_id in self._handlers[event_type]:
            raise ValueError(
                f"Handler {handler_id!r} already registered for {event_type!r}"
            )
        self._handlers[event_type][handler_id] = handler
        logger.debug("Registered handler %s for %s", handler_id, event_type)

    def handler_ids(self, event_type: str) -> list[str]:
        return list(self._handlers.get(event_type, {}))

    def get(self, event_type: str, handler_id: str) -> Handler:
        try:
            return self._handlers[event_type][handler_id]
        except KeyError:
            raise HandlerNotFoundError(event_type, handler_id) from None
