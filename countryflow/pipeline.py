"""Wire the country stages into the handler registry. Called once at startup."""

from countryflow.database import Database
from countryflow.domain.models import Country
from countryflow.domain.repository import CountryRepository
from countryflow.events import EventPublisher, EventTypes, HandlerRegistry
from countryflow.integrations import BusClient, CountryDataSource
from countryflow.stages import (
    StageRunner,
    make_enrichment_stage,
    make_sink_stage,
    validate_country,
)

VALIDATION_HANDLER = "validation.country_created"
ENRICHMENT_HANDLER = "enrichment.country_validated"
SINK_HANDLER = "sink.country_enriched"


def register_pipeline(
    registry: HandlerRegistry,
    db: Database,
    countries: CountryRepository,
    publisher: EventPublisher,
    data_source: CountryDataSource,
    bus: BusClient,
) -> None:
    runner: StageRunner[Country] = StageRunner(db, countries, publisher)
    registry.register(
        EventTypes.COUNTRY_CREATED,
        VALIDATION_HANDLER,
        runner.handler(VALIDATION_HANDLER, validate_country),
    )
    registry.register(
        EventTypes.COUNTRY_VALIDATED,
        ENRICHMENT_HANDLER,
        runner.handler(ENRICHMENT_HANDLER, make_enrichment_stage(data_source)),
    )
    registry.register(
        EventTypes.COUNTRY_ENRICHED,
        SINK_HANDLER,
        runner.handler(SINK_HANDLER, make_sink_stage(bus)),
    )
