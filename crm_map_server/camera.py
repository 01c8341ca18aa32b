"""Map camera, markers and selection highlighting."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

from .constants import DEFAULT_MAP_CENTER, ZOOM_CITY, ZOOM_CONTACT, ZOOM_REGION
from .contacts import _all_contacts
from .helpers import format_location_name
from .models import Contact, GeocodedLocation, Scope, SelectionState, ViewportBounds

if TYPE_CHECKING:
    from .geocoding import GeocodeResolver
    from .viewport import ViewportReconciler

logger = logging.getLogger(__name__)

# Initial zoom for the headless surface, roughly a whole-country view
DEFAULT_ZOOM = 4


class MapSurface(Protocol):
    """What the controller needs from a rendered map."""

    def set_camera(self, center: tuple[float, float], zoom: float) -> None: ...

    def place_marker(self, position: tuple[float, float], content: str) -> Any: ...

    def remove_marker(self, handle: Any) -> None: ...

    def get_visible_bounds(self) -> ViewportBounds | None: ...


class RecordingMapSurface:
    """Headless map surface used by the server and tests.

    Records camera moves and markers. Visible bounds come from an explicit
    set_visible_bounds() call, or are estimated from the camera center and zoom
    (a 1024x512 pixel viewport of 256 pixel tiles).
    """

    def __init__(self, center: tuple[float, float] = DEFAULT_MAP_CENTER, zoom: float = DEFAULT_ZOOM):
        self.center = center
        self.zoom = zoom
        self.camera_moves: list[tuple[tuple[float, float], float]] = []
        self.markers: dict[int, tuple[tuple[float, float], str]] = {}
        self._next_handle = 1
        self._bounds: ViewportBounds | None = None

    def set_camera(self, center: tuple[float, float], zoom: float) -> None:
        self.center = center
        self.zoom = zoom
        self.camera_moves.append((center, zoom))
        self._bounds = None

    def place_marker(self, position: tuple[float, float], content: str) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self.markers[handle] = (position, content)
        return handle

    def remove_marker(self, handle: int) -> None:
        self.markers.pop(handle, None)

    def set_visible_bounds(self, bounds: ViewportBounds) -> None:
        self._bounds = bounds
        self.center = bounds.center

    def get_visible_bounds(self) -> ViewportBounds:
        if self._bounds is not None:
            return self._bounds
        half_width = min(180.0, 720.0 / 2**self.zoom)
        half_height = min(90.0, half_width / 2)
        lon, lat = self.center
        return ViewportBounds(
            west=max(-180.0, lon - half_width),
            south=max(-90.0, lat - half_height),
            east=min(180.0, lon + half_width),
            north=min(90.0, lat + half_height),
        )


def _log_place_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning(f"Could not locate selected place: {error}")


class MapController:
    """Reacts to contact and place selection by moving the camera.

    Only one thing is highlighted at a time. A place gets a single marker that is
    replaced on each new place selection.
    """

    def __init__(
        self,
        surface: MapSurface,
        resolver: GeocodeResolver | None = None,
        reconciler: ViewportReconciler | None = None,
        contacts: Callable[[], list[Contact]] = _all_contacts,
    ):
        self.surface = surface
        self.resolver = resolver
        self.reconciler = reconciler
        self.selection = SelectionState()
        self.place_location: GeocodedLocation | None = None
        self.flying = False
        self._contacts = contacts
        self._place_marker: Any = None

    def _fly_to(self, center: tuple[float, float], zoom: float) -> None:
        logger.debug(f"Camera to ({center[1]:.4f}, {center[0]:.4f}) zoom {zoom}")
        self.surface.set_camera(center, zoom)

    def _clear_place_marker(self) -> None:
        if self._place_marker is not None:
            self.surface.remove_marker(self._place_marker)
            self._place_marker = None
        self.place_location = None

    def select_contact(self, contact: Contact) -> None:
        self.selection.select_contact(contact.id)
        self._clear_place_marker()
        coords = contact.coordinates
        if coords is None:
            logger.info(f"Contact {contact.id} has no coordinates; camera unchanged")
            return
        self._fly_to(coords, ZOOM_CONTACT)

    async def select_place(self, name: str) -> GeocodedLocation | None:
        """Highlight a place and fly to it.

        Returns the resolved location, or None if the place is unknown.

        Raises:
            ResolutionFailed: The resolver could not reach its provider.
        """
        self.selection.select_place(name)
        return await self._locate_place(name)

    async def _locate_place(self, name: str) -> GeocodedLocation | None:
        if self.selection.active_place != name:
            logger.debug(f"Skipping '{name}', selection changed before lookup")
            return None
        if self.resolver is None:
            logger.warning("No resolver configured; cannot locate places")
            return None

        self.flying = True
        try:
            # Places that contacts already cover need no network lookup
            location = await self.resolver.resolve(name, Scope.LOCAL)
            if location is None:
                location = await self.resolver.resolve(name)
            if location is None:
                logger.info(f"Place '{name}' not found")
                if self.selection.active_place == name:
                    self._clear_place_marker()
                return None
            if self.selection.active_place != name:
                # Selection moved on while resolving
                logger.debug(f"Ignoring resolved '{name}', selection changed")
                return location

            self._clear_place_marker()
            self._place_marker = self.surface.place_marker(
                location.coordinates, format_location_name(name)
            )
            self.place_location = location
            self._fly_to(location.coordinates, ZOOM_REGION if location.is_region else ZOOM_CITY)
            return location
        finally:
            self.flying = False

    def place_selected(self, name: str) -> asyncio.Task | None:
        """Event-handler form of select_place for synchronous callers.

        Highlights the place immediately and schedules the camera move on the
        running loop, if there is one.
        """
        self.selection.select_place(name)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        task = loop.create_task(self._locate_place(name))
        task.add_done_callback(_log_place_failure)
        return task

    def clear_selection(self) -> None:
        self.selection.clear()
        self._clear_place_marker()

    def settle(self) -> list[Contact]:
        """Feed the surface's current bounds to the viewport reconciler."""
        bounds = self.surface.get_visible_bounds()
        if bounds is None or self.reconciler is None:
            return []
        return self.reconciler.on_bounds_changed(bounds)

    def initial_center(self) -> tuple[float, float]:
        """Where the map should start, as (lon, lat)."""
        contacts = self._contacts()
        active_id = self.selection.active_contact_id
        if active_id:
            for contact in contacts:
                if contact.id == active_id and contact.coordinates is not None:
                    return contact.coordinates

        place = (self.selection.active_place or "").strip().lower()
        if place:
            for contact in contacts:
                if contact.city and contact.city.lower() == place and contact.coordinates:
                    return contact.coordinates

        for contact in contacts:
            if contact.coordinates is not None:
                return contact.coordinates
        return DEFAULT_MAP_CENTER
