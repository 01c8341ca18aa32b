"""Contact store queries and place data derived from contacts."""

from collections import Counter, defaultdict

from . import state
from .helpers import format_location_name, is_region_name
from .models import Contact, GeocodedLocation, Scope


def _all_contacts() -> list[Contact]:
    return list(state.contacts.values())


def _query_contacts(city: str | None = None) -> list[Contact]:
    """All contacts, optionally filtered by case-insensitive city substring."""
    if not city or not city.strip():
        return _all_contacts()
    needle = city.strip().lower()
    return [c for c in state.contacts.values() if c.city and needle in c.city.lower()]


def _get_contacts(city: str | None = None) -> list[dict]:
    return [c.to_summary() for c in _query_contacts(city)]


def _get_contact(contact_id: str) -> dict | None:
    contact = state.contacts.get(contact_id.strip())
    return contact.to_dict() if contact else None


def _known_cities(contacts: list[Contact] | None = None) -> list[str]:
    """Sorted unique city names from the contact collection."""
    source = contacts if contacts is not None else _all_contacts()
    return sorted({c.city for c in source if c.city})


def _known_states(contacts: list[Contact] | None = None) -> list[str]:
    """Sorted unique state names from the contact collection."""
    source = contacts if contacts is not None else _all_contacts()
    return sorted({c.state for c in source if c.state})


def _centroids(contacts: list[Contact], attr: str, is_region: bool) -> list[GeocodedLocation]:
    points: dict[str, list[tuple[float, float]]] = defaultdict(list)
    for contact in contacts:
        name = getattr(contact, attr)
        coords = contact.coordinates
        if name and coords is not None:
            points[name].append(coords)

    locations = []
    for name, coords in points.items():
        lon = sum(p[0] for p in coords) / len(coords)
        lat = sum(p[1] for p in coords) / len(coords)
        locations.append(
            GeocodedLocation(
                name=name,
                coordinates=(lon, lat),
                query=name,
                is_region=is_region,
                scope=Scope.LOCAL,
                source="local",
            )
        )
    return locations


def _city_locations(contacts: list[Contact] | None = None) -> list[GeocodedLocation]:
    """Centroid of the geocoded contacts in each known city."""
    source = contacts if contacts is not None else _all_contacts()
    return _centroids(source, "city", is_region=False)


def _local_place_locations(contacts: list[Contact] | None = None) -> list[GeocodedLocation]:
    """City and state centroids; states also answer to their full name."""
    source = contacts if contacts is not None else _all_contacts()
    locations = _city_locations(source)
    for region in _centroids(source, "state", is_region=True):
        locations.append(region)
        full_name = format_location_name(region.name)
        if is_region_name(region.name) and full_name.lower() != region.name.lower():
            locations.append(
                GeocodedLocation(
                    name=full_name,
                    coordinates=region.coordinates,
                    query=region.name,
                    is_region=True,
                    scope=Scope.LOCAL,
                    source="local",
                )
            )
    return locations


def _get_statistics() -> dict:
    contacts = _all_contacts()
    geocoded = sum(1 for c in contacts if c.is_geocoded)
    city_counts = Counter(c.city for c in contacts if c.city)
    return {
        "total_contacts": len(contacts),
        "geocoded_contacts": geocoded,
        "ungeocoded_contacts": len(contacts) - geocoded,
        "cities": len(city_counts),
        "states": len(_known_states(contacts)),
        "top_cities": [{"city": city, "count": n} for city, n in city_counts.most_common(10)],
        "import_warnings": len(state.import_warnings),
        "geocode_cache": state.resolver.cache.stats() if state.resolver else None,
    }
