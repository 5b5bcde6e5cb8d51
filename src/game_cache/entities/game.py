"""Game domain entity."""

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class Game:
    """Canonical game record, independent of the provider it came from.

    Provider payloads are mapped onto this shape by one normalization
    function per provider; nothing downstream inspects raw payloads.

    Attributes:
        id: Canonical id, prefixed with the provider (``igdb_1942``)
        name: Display name
        source: Provider id that produced this record
        source_id: The provider's own id
        slug: URL-friendly name
        summary: Short description
        cover_url: Cover image URL
        rating: Aggregate rating on a 0-100 scale
        release_date: ISO date (``YYYY-MM-DD``)
        genres: Genre names
        platforms: Platform names
        detailed: True when fetched from a detail endpoint, False for
            search/listing rows that carry only a subset of fields
    """

    id: str
    name: str
    source: str
    source_id: str
    slug: str | None = None
    summary: str | None = None
    cover_url: str | None = None
    rating: float | None = None
    release_date: str | None = None
    genres: tuple[str, ...] = field(default_factory=tuple)
    platforms: tuple[str, ...] = field(default_factory=tuple)
    detailed: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["genres"] = list(self.genres)
        data["platforms"] = list(self.platforms)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Game":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            source=str(data["source"]),
            source_id=str(data.get("source_id") or data["id"]),
            slug=data.get("slug"),
            summary=data.get("summary"),
            cover_url=data.get("cover_url"),
            rating=data.get("rating"),
            release_date=data.get("release_date"),
            genres=tuple(data.get("genres") or ()),
            platforms=tuple(data.get("platforms") or ()),
            detailed=bool(data.get("detailed", False)),
        )
