"""Distance, proximity and bounding-box helpers.

Provides:
1. distance: great-circle miles between two (lat, lon) points
2. nearby: "soft" city search - known places within a radius of an anchor
3. contacts_in_bounds: geocoded contacts inside a viewport rectangle
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from haversine import Unit, haversine

from .constants import DEFAULT_PROXIMITY_RADIUS_MILES, EARTH_RADIUS_MILES

if TYPE_CHECKING:
    from .models import Contact, GeocodedLocation, ViewportBounds

logger = logging.getLogger(__name__)


def distance(point_a: tuple[float, float], point_b: tuple[float, float]) -> float:
    """Haversine distance in miles between two (lat, lon) points.

    The library supplies the central angle; the fixed radius of 3958.8 miles keeps
    results identical across library versions.
    """
    return haversine(point_a, point_b, unit=Unit.RADIANS) * EARTH_RADIUS_MILES


def nearby_with_distance(
    anchor: GeocodedLocation,
    candidates: Iterable[GeocodedLocation],
    radius_miles: float = DEFAULT_PROXIMITY_RADIUS_MILES,
) -> list[tuple[str, float]]:
    """Find candidates within radius_miles of the anchor.

    Returns (name, miles) pairs sorted by distance, ties broken by name. A
    candidate at the anchor's own position is included at distance 0. Each name
    is reported once, at its closest distance.
    """
    closest: dict[str, float] = {}
    for candidate in candidates:
        dist = distance(anchor.lat_lon, candidate.lat_lon)
        if dist > radius_miles:
            continue
        if candidate.name not in closest or dist < closest[candidate.name]:
            closest[candidate.name] = dist

    results = sorted(closest.items(), key=lambda item: (item[1], item[0]))
    logger.debug(
        f"Proximity search around '{anchor.name}' ({radius_miles} mi): {len(results)} matches"
    )
    return results


def nearby(
    anchor: GeocodedLocation,
    candidates: Iterable[GeocodedLocation],
    radius_miles: float = DEFAULT_PROXIMITY_RADIUS_MILES,
) -> list[str]:
    """Names of candidates within radius_miles of the anchor, closest first."""
    return [name for name, _ in nearby_with_distance(anchor, candidates, radius_miles)]


def contacts_in_bounds(contacts: Iterable[Contact], bounds: ViewportBounds) -> list[Contact]:
    """Geocoded contacts whose (lon, lat) falls inside bounds, inclusive.

    Contacts with a half-set coordinate pair are treated as ungeocoded.
    """
    visible = []
    for contact in contacts:
        coords = contact.coordinates
        if coords is None:
            continue
        if bounds.contains(coords[0], coords[1]):
            visible.append(contact)
    return visible
