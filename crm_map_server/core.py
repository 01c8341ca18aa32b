"""Core logic functions behind the MCP tools: search, places, viewport, selection."""

import logging

from . import state
from .camera import MapController, RecordingMapSurface
from .contacts import _all_contacts, _city_locations, _local_place_locations
from .geocoding import GeocodeCache, GeocodeResolver, MapboxProvider, ResolutionFailed
from .models import GeocodedLocation, Scope, ViewportBounds
from .search import SearchConfig, SearchSession
from .spatial import nearby_with_distance
from .viewport import ViewportReconciler, ordered_contact_list

logger = logging.getLogger(__name__)


def _build_services() -> None:
    """Wire resolver, search session, viewport and camera from current config."""
    contacts = _all_contacts()

    provider = MapboxProvider(state.MAPBOX_ACCESS_TOKEN, timeout=state.GEOCODE_TIMEOUT_SECONDS)
    state.resolver = GeocodeResolver(
        provider,
        countries=state.GEOCODE_COUNTRIES,
        cache=GeocodeCache(ttl_seconds=state.GEOCODE_CACHE_TTL_SECONDS),
        local_places=_local_place_locations,
    )
    state.reconciler = ViewportReconciler(contacts)
    state.map_surface = RecordingMapSurface()
    state.map_controller = MapController(
        state.map_surface, resolver=state.resolver, reconciler=state.reconciler
    )
    state.session = SearchSession(
        resolver=state.resolver,
        contacts=contacts,
        on_contact_selected=state.map_controller.select_contact,
        on_place_selected=state.map_controller.place_selected,
        config=SearchConfig(
            debounce_seconds=state.SEARCH_DEBOUNCE_MS / 1000,
            max_contacts=state.SEARCH_MAX_CONTACTS,
            max_cities=state.SEARCH_MAX_CITIES,
            max_cities_total=state.SEARCH_MAX_CITIES_TOTAL,
            max_states=state.SEARCH_MAX_STATES,
            proximity_radius_miles=state.PROXIMITY_RADIUS_MILES,
        ),
    )
    logger.info(
        f"Services ready: {len(contacts)} contacts, countries={','.join(state.GEOCODE_COUNTRIES)}"
    )


def _parse_scope(scope: str) -> Scope | None:
    try:
        return Scope(scope.strip().lower())
    except ValueError:
        return None


async def _search(query: str) -> dict:
    result = await state.session.search_now(query)  # type: ignore[union-attr]
    return result.to_dict()


async def _resolve_location(name: str, scope: str) -> tuple[GeocodedLocation | None, dict]:
    """Resolve a place and build the tool response; location is None unless status is ok."""
    parsed = _parse_scope(scope)
    if parsed is None:
        valid = ", ".join(s.value for s in Scope)
        error = f"Unknown scope '{scope}' (use {valid})"
        return None, {"status": "error", "query": name, "error": error}

    try:
        location = await state.resolver.resolve(name, parsed)  # type: ignore[union-attr]
    except ResolutionFailed as e:
        return None, {"status": "failed", "query": name, "error": e.reason}

    if location is None:
        return None, {"status": "not_found", "query": name}
    return location, {"status": "ok", "query": name, "location": location.to_dict()}


async def _resolve_place(name: str, scope: str = Scope.REGION_RESTRICTED.value) -> dict:
    _, response = await _resolve_location(name, scope)
    return response


async def _find_nearby_cities(place: str, radius_miles: float | None = None) -> dict:
    radius = radius_miles if radius_miles is not None else state.PROXIMITY_RADIUS_MILES
    if radius < 0:
        return {"status": "error", "query": place, "error": "radius_miles must not be negative"}

    location, response = await _resolve_location(place, Scope.REGION_RESTRICTED.value)
    if location is None:
        return response

    matches = nearby_with_distance(location, _city_locations(), radius)
    return {
        "status": "ok",
        "anchor": location.to_dict(),
        "radius_miles": radius,
        "cities": [{"city": name, "distance_miles": round(miles, 1)} for name, miles in matches],
    }


def _set_viewport(west: float, south: float, east: float, north: float) -> dict:
    if south > north or west > east:
        return {
            "status": "error",
            "error": "Bounds must satisfy west <= east and south <= north",
        }
    bounds = ViewportBounds(west=west, south=south, east=east, north=north)
    state.map_surface.set_visible_bounds(bounds)  # type: ignore[union-attr]
    visible = state.map_controller.settle()  # type: ignore[union-attr]
    return {
        "status": "ok",
        "bounds": bounds.to_dict(),
        "visible_count": len(visible),
        "contacts": [c.to_summary() for c in visible],
    }


def _get_ordered_contacts(active_place: str | None = None) -> list[dict]:
    place = active_place or state.map_controller.selection.active_place  # type: ignore[union-attr]
    visible = state.reconciler.visible_contacts()  # type: ignore[union-attr]
    ordered = ordered_contact_list(_all_contacts(), visible, place)
    visible_ids = {c.id for c in visible}
    return [{**c.to_summary(), "visible": c.id in visible_ids} for c in ordered]


def _select_contact(contact_id: str) -> dict:
    contact = state.contacts.get(contact_id.strip())
    if contact is None:
        return {"status": "not_found", "id": contact_id}

    controller = state.map_controller
    controller.select_contact(contact)  # type: ignore[union-attr]
    visible = controller.settle()  # type: ignore[union-attr]
    return {
        "status": "ok",
        "contact": contact.to_dict(),
        "camera_moved": contact.is_geocoded,
        "selection": controller.selection.to_dict(),  # type: ignore[union-attr]
        "visible_count": len(visible),
    }


async def _select_place(name: str) -> dict:
    controller = state.map_controller
    try:
        location = await controller.select_place(name)  # type: ignore[union-attr]
    except ResolutionFailed as e:
        return {"status": "failed", "query": name, "error": e.reason}

    if location is None:
        return {"status": "not_found", "query": name}

    visible = controller.settle()  # type: ignore[union-attr]
    return {
        "status": "ok",
        "location": location.to_dict(),
        "selection": controller.selection.to_dict(),  # type: ignore[union-attr]
        "visible_count": len(visible),
    }
