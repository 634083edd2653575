"""Sink stage: country.enriched -> snapshot on the external bus. Terminal."""

import logging

from countryflow.domain.models import Country
from countryflow.events import Event
from countryflow.integrations import BusClient
from countryflow.stages.runner import Stage, StageOutcome

logger = logging.getLogger(__name__)


def make_sink_stage(bus: BusClient) -> Stage[Country]:
    async def publish_country(country: Country, event: Event) -> StageOutcome[Country]:
        assert country.id is not None
        logger.info("Sending enriched country to bus: %s (%s)", country.name, country.code)
        await bus.send(country.id, country.to_dict())
        return StageOutcome()

    return publish_country
