"""Enrichment stage: country.validated -> country.enriched."""

import logging

from countryflow.domain.models import Country
from countryflow.events import Event
from countryflow.events.topics import country_enriched
from countryflow.integrations import CountryDataSource
from countryflow.stages.runner import Stage, StageOutcome

logger = logging.getLogger(__name__)


def make_enrichment_stage(source: CountryDataSource) -> Stage[Country]:
    """Build the stage around a data source. Source errors propagate as transient failures."""

    async def enrich_country(country: Country, event: Event) -> StageOutcome[Country]:
        if not country.valid_country:
            logger.warning(
                "Country %s (%s) is not valid, skipping enrichment",
                country.name,
                country.code,
            )
            return StageOutcome()

        logger.info("Enriching valid country: %s (%s)", country.name, country.code)
        data = await source.fetch(country.code or "")
        country.population = data.population
        country.currency = data.currency
        country.language = data.language
        logger.info(
            "Enriched country %s with population=%s, currency=%s, language=%s",
            country.name,
            data.population,
            data.currency,
            data.language,
        )
        assert country.id is not None
        return StageOutcome(entity=country, next_event=country_enriched(country.id))

    return enrich_country
