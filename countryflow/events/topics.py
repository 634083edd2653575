"""Pipeline event vocabulary. Each stage consumes one type and may emit the next.

All three types share one payload shape, {"country_id": <str>}, and use the
country id as correlation key.
"""

from countryflow.events.models import Event


class EventTypes:
    """Event types of the country pipeline, in stage order."""

    # Country saved by CountryService.create; consumed by validation
    COUNTRY_CREATED = "country.created"

    # Country passed validation; consumed by enrichment
    COUNTRY_VALIDATED = "country.validated"

    # Country enriched with external data; consumed by the bus sink
    COUNTRY_ENRICHED = "country.enriched"


def country_created(country_id: str) -> Event:
    return Event(EventTypes.COUNTRY_CREATED, country_id, {"country_id": country_id})


def country_validated(country_id: str) -> Event:
    return Event(EventTypes.COUNTRY_VALIDATED, country_id, {"country_id": country_id})


def country_enriched(country_id: str) -> Event:
    return Event(EventTypes.COUNTRY_ENRICHED, country_id, {"country_id": country_id})
