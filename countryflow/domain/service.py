"""Country service: the producing side of the pipeline."""

import logging

from countryflow.database import Database
from countryflow.domain.models import Country
from countryflow.domain.repository import CountryRepository
from countryflow.events import EventPublisher
from countryflow.events.topics import country_created

logger = logging.getLogger(__name__)


class CountryService:
    def __init__(
        self,
        db: Database,
        countries: CountryRepository,
        publisher: EventPublisher,
    ) -> None:
        self._db = db
        self._countries = countries
        self._publisher = publisher

    async def create(self, name: str | None, code: str | None) -> Country:
        """Save a new country and record country.created in the same transaction.

        The first validation attempt runs right after the commit; if it
        raises, the exception reaches the caller, but the country and its
        pending publication are already durable and the sweep retries it.
        """
        async with self._db.transaction():
            country = await self._countries.save(Country(name=name, code=code))
            assert country.id is not None
            await self._publisher.publish(country_created(country.id))
        logger.info("Created country %s (%s) as %s", name, code, country.id)
        return country

    async def update(self, country: Country) -> Country:
        if country.id is None:
            raise ValueError("Country id cannot be None for update")
        if not await self._countries.exists(country.id):
            raise ValueError(f"Country with id {country.id} does not exist")
        return await self._countries.save(country)

    async def find(self, country_id: str) -> Country | None:
        return await self._countries.find(country_id)
