"""SQLite country repository. Shares the database with the publication ledger."""

import uuid

import aiosqlite

from countryflow.database import Database
from countryflow.domain.models import Country

_SCHEMA = """
CREATE TABLE IF NOT EXISTS country (
    id            TEXT    PRIMARY KEY,
    name          TEXT,
    code          TEXT,
    currency      TEXT,
    language      TEXT,
    population    INTEGER,
    valid_country INTEGER NOT NULL DEFAULT 0
);
"""


def _row_to_country(row: aiosqlite.Row) -> Country:
    return Country(
        id=row["id"],
        name=row["name"],
        code=row["code"],
        currency=row["currency"],
        language=row["language"],
        population=row["population"],
        valid_country=bool(row["valid_country"]),
    )


class CountryRepository:
    """EntityAccessor for Country. Writes join the ambient transaction if any."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def initialize(self) -> None:
        await self._db.execute_script(_SCHEMA)

    async def find(self, key: str) -> Country | None:
        async with self._db.connection() as conn:
            cursor = await conn.execute(
                "SELECT id, name, code, currency, language, population, valid_country "
                "FROM country WHERE id = ?",
                (key,),
            )
            row = await cursor.fetchone()
        return _row_to_country(row) if row else None

    async def exists(self, key: str) -> bool:
        async with self._db.connection() as conn:
            cursor = await conn.execute("SELECT 1 FROM country WHERE id = ?", (key,))
            row = await cursor.fetchone()
        return row is not None

    async def save(self, country: Country) -> Country:
        """Insert or replace. Assigns a uuid4 id to new countries."""
        if country.id is None:
            country.id = str(uuid.uuid4())
        async with self._db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO country (id, name, code, currency, language, population, valid_country)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    code = excluded.code,
                    currency = excluded.currency,
                    language = excluded.language,
                    population = excluded.population,
                    valid_country = excluded.valid_country
                """,
                (
                    country.id,
                    country.name,
                    country.code,
                    country.currency,
                    country.language,
                    country.population,
                    1 if country.valid_country else 0,
                ),
            )
        return country
