"""Data models for contacts, resolved places, search results and the map viewport."""

from dataclasses import dataclass, field
from enum import Enum


class Scope(str, Enum):
    """How far a geocoding lookup may search."""

    LOCAL = "local"  # contact data only, no network
    REGION_RESTRICTED = "region_restricted"  # country allow-list, widens once
    GLOBAL = "global"  # no country restriction


@dataclass
class Contact:
    id: str
    first_name: str = ""
    last_name: str = ""
    account_name: str | None = None  # organization
    title: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    country: str | None = None
    phone: str | None = None
    email: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    def full_name(self) -> str:
        parts = [self.first_name, self.last_name]
        return " ".join(p for p in parts if p)

    @property
    def is_geocoded(self) -> bool:
        """True only when both coordinates are present."""
        return self.latitude is not None and self.longitude is not None

    @property
    def coordinates(self) -> tuple[float, float] | None:
        """(lon, lat) pair, or None for ungeocoded and half-set contacts."""
        if not self.is_geocoded:
            return None
        return (self.longitude, self.latitude)  # type: ignore[return-value]

    def format_address(self) -> str:
        parts = []
        if self.street:
            parts.append(self.street)
        if self.city:
            city_part = self.city
            if self.state:
                city_part += f", {self.state}"
            if self.zip:
                city_part += f" {self.zip}"
            parts.append(city_part)
        if self.country and self.country not in parts:
            parts.append(self.country)
        return ", ".join(parts)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name(),
            "account_name": self.account_name,
            "title": self.title,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
            "country": self.country,
            "phone": self.phone,
            "email": self.email,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "address": self.format_address(),
        }

    def to_summary(self) -> dict:
        """Short summary for list views."""
        return {
            "id": self.id,
            "name": self.full_name(),
            "account_name": self.account_name,
            "city": self.city,
            "state": self.state,
        }


@dataclass(frozen=True)
class GeocodedLocation:
    """A resolved place. Coordinates are (longitude, latitude)."""

    name: str  # canonical place name, case preserved
    coordinates: tuple[float, float]
    query: str = ""  # text that was resolved
    is_region: bool = False
    scope: Scope = Scope.REGION_RESTRICTED
    source: str = "provider"  # "provider" | "local"

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]

    @property
    def lat_lon(self) -> tuple[float, float]:
        return (self.coordinates[1], self.coordinates[0])

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "query": self.query,
            "longitude": self.longitude,
            "latitude": self.latitude,
            "is_region": self.is_region,
            "scope": self.scope.value,
            "source": self.source,
        }


@dataclass
class SearchResult:
    query: str = ""
    contacts: list[Contact] = field(default_factory=list)
    cities: list[str] = field(default_factory=list)
    states: list[str] = field(default_factory=list)
    anchor: GeocodedLocation | None = None
    annotations: dict[str, str] = field(default_factory=dict)  # city -> "near X"
    geocode_failed: bool = False

    def is_empty(self) -> bool:
        return not (self.contacts or self.cities or self.states)

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "contacts": [c.to_summary() for c in self.contacts],
            "cities": [
                {"name": city, "note": self.annotations.get(city)} for city in self.cities
            ],
            "states": self.states,
            "anchor": self.anchor.to_dict() if self.anchor else None,
            "geocode_failed": self.geocode_failed,
        }


@dataclass(frozen=True)
class ViewportBounds:
    """Axis-aligned map rectangle given by its south-west and north-east corners."""

    west: float
    south: float
    east: float
    north: float

    @classmethod
    def from_corners(
        cls, south_west: tuple[float, float], north_east: tuple[float, float]
    ) -> "ViewportBounds":
        """Build from (lon, lat) corner pairs."""
        return cls(
            west=south_west[0], south=south_west[1], east=north_east[0], north=north_east[1]
        )

    def contains(self, lon: float, lat: float) -> bool:
        return self.west <= lon <= self.east and self.south <= lat <= self.north

    @property
    def center(self) -> tuple[float, float]:
        return ((self.west + self.east) / 2, (self.south + self.north) / 2)

    def to_dict(self) -> dict:
        return {"west": self.west, "south": self.south, "east": self.east, "north": self.north}


@dataclass
class SelectionState:
    """The single highlighted entity: a contact or a place, never both."""

    active_contact_id: str | None = None
    active_place: str | None = None

    def select_contact(self, contact_id: str) -> None:
        self.active_contact_id = contact_id
        self.active_place = None

    def select_place(self, place: str) -> None:
        self.active_place = place
        self.active_contact_id = None

    def clear(self) -> None:
        self.active_contact_id = None
        self.active_place = None

    def to_dict(self) -> dict:
        return {
            "active_contact_id": self.active_contact_id,
            "active_place": self.active_place,
        }
