"""REST Countries API client (https://restcountries.com) used by the enrichment stage."""

import logging

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from countryflow.errors import EnrichmentError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://restcountries.com/v3.1"
DEFAULT_TIMEOUT = 10.0


class EnrichmentData(BaseModel):
    """Fields merged into a country by the enrichment stage."""

    population: int
    currency: str
    language: str


class CurrencyInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    symbol: str | None = None


class RestCountriesResponse(BaseModel):
    """One element of the /alpha/{code} response. Unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore")

    population: int = 0
    currencies: dict[str, CurrencyInfo] | None = None
    languages: dict[str, str] | None = None

    def first_currency_code(self) -> str | None:
        return next(iter(self.currencies), None) if self.currencies else None

    def first_language_name(self) -> str | None:
        return next(iter(self.languages.values()), None) if self.languages else None

    def to_enrichment_data(self) -> EnrichmentData:
        currency = self.first_currency_code()
        language = self.first_language_name()
        if self.population == 0:
            raise EnrichmentError("Population data is missing or zero")
        if not currency or not currency.strip():
            raise EnrichmentError("No currency data found")
        if not language or not language.strip():
            raise EnrichmentError("No language data found")
        return EnrichmentData(population=self.population, currency=currency, language=language)


class RestCountriesClient:
    """CountryDataSource backed by the REST Countries v3.1 API."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def fetch(self, code: str) -> EnrichmentData:
        """Fetch population, first currency code and first language for an alpha-2 code."""
        logger.debug("Fetching country data for code: %s", code)
        url = f"{self._base_url}/alpha/{code}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url, headers={"Accept": "application/json"})
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to fetch country data for code %s: %s", code, e)
            raise EnrichmentError(f"Failed to fetch country data for code: {code}") from e

        # /alpha/{code} answers with a one-element list
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list) or not data:
            raise EnrichmentError(f"No data returned for country code: {code}")

        try:
            enrichment = RestCountriesResponse.model_validate(data[0]).to_enrichment_data()
        except ValidationError as e:
            raise EnrichmentError(f"Malformed country data for code: {code}") from e

        logger.debug(
            "Fetched data for %s: population=%s, currency=%s, language=%s",
            code,
            enrichment.population,
            enrichment.currency,
            enrichment.language,
        )
        return enrichment
