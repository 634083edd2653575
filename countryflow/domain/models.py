"""Country entity and the accessor protocol stages use to load and save it."""

from dataclasses import asdict, dataclass
from typing import Any, Protocol, TypeVar

__all__ = ["Country", "EntityAccessor"]


@dataclass
class Country:
    """Country moving through the pipeline. id is the correlation key."""

    name: str | None
    code: str | None  # ISO 3166-1 alpha-2
    id: str | None = None
    currency: str | None = None
    language: str | None = None
    population: int | None = None
    valid_country: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


E = TypeVar("E")


class EntityAccessor(Protocol[E]):
    """Loads and saves the entity an event refers to. save() is atomic per entity."""

    async def find(self, key: str) -> E | None: ...

    async def save(self, entity: E) -> E: ...
