"""Validation stage: country.created -> country.validated."""

import logging

from countryflow.domain.models import Country
from countryflow.events import Event
from countryflow.events.topics import country_validated
from countryflow.stages.runner import StageOutcome

logger = logging.getLogger(__name__)


def is_valid_country(country: Country | None) -> bool:
    """Name and code must both be present and non-blank."""
    if country is None:
        return False
    if not country.name or not country.name.strip():
        return False
    if not country.code or not country.code.strip():
        return False
    return True


async def validate_country(country: Country, event: Event) -> StageOutcome[Country]:
    if not is_valid_country(country):
        # Permanent rejection: nothing saved, nothing emitted, publication completes
        logger.warning(
            "Country validation failed for id %s - name: %r, code: %r",
            country.id,
            country.name,
            country.code,
        )
        return StageOutcome()

    country.valid_country = True
    logger.info("Country validated successfully: %s (%s)", country.name, country.code)
    assert country.id is not None
    return StageOutcome(entity=country, next_event=country_validated(country.id))
