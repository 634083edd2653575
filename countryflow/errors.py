"""Exception hierarchy. Transient failures leave publication records incomplete."""


class CountryflowError(Exception):
    """Base for all countryflow errors."""


class LedgerError(CountryflowError):
    """Publication ledger could not read or write a record."""


class HandlerNotFoundError(CountryflowError):
    """A publication record targets a handler that is not registered."""

    def __init__(self, event_type: str, handler_id: str) -> None:
        super().__init__(f"No handler {handler_id!r} registered for {event_type!r}")
        self.event_type = event_type
        self.handler_id = handler_id


class EnrichmentError(CountryflowError):
    """External country data could not be fetched or was incomplete."""


class SinkError(CountryflowError):
    """Country snapshot could not be delivered to the message bus."""
