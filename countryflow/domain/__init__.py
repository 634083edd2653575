"""Country domain: entity, repository, service."""

from countryflow.domain.models import Country, EntityAccessor
from countryflow.domain.repository import CountryRepository
from countryflow.domain.service import CountryService

__all__ = ["Country", "CountryRepository", "CountryService", "EntityAccessor"]
