"""External collaborators of the pipeline stages: data source and message bus."""

from typing import Any, Protocol

from countryflow.integrations.restcountries import EnrichmentData


class CountryDataSource(Protocol):
    """Accepts an alpha-2 code, returns population, currency and language."""

    async def fetch(self, code: str) -> EnrichmentData:
        """Raise EnrichmentError on missing or malformed data."""
        ...


class BusClient(Protocol):
    """Delivers a payload to the external bus under a key."""

    async def send(self, key: str, payload: dict[str, Any]) -> None:
        """Raise SinkError when delivery fails."""
        ...


__all__ = ["BusClient", "CountryDataSource", "EnrichmentData"]
