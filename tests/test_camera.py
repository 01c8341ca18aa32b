"""Tests for the map controller and the headless map surface."""

import asyncio

import pytest

from crm_map_server.camera import MapController, RecordingMapSurface
from crm_map_server.constants import DEFAULT_MAP_CENTER, ZOOM_CITY, ZOOM_CONTACT, ZOOM_REGION
from crm_map_server.geocoding import GeocodeResolver, ResolutionFailed
from crm_map_server.models import Contact, ViewportBounds
from crm_map_server.viewport import ViewportReconciler


@pytest.fixture
def surface():
    return RecordingMapSurface()


@pytest.fixture
def controller(surface, resolver, contacts):
    return MapController(
        surface,
        resolver=resolver,
        reconciler=ViewportReconciler(contacts),
        contacts=lambda: contacts,
    )


class TestSelectContact:
    """Selecting a contact flies to it at street level."""

    def test_flies_to_geocoded_contact(self, controller, surface, contact_by_name):
        jane = contact_by_name("Jane Doe")
        controller.select_contact(jane)

        assert surface.camera_moves[-1] == ((-97.6789, 30.5083), ZOOM_CONTACT)
        assert controller.selection.active_contact_id == jane.id
        assert controller.selection.active_place is None

    def test_ungeocoded_contact_keeps_camera(self, controller, surface, contact_by_name):
        controller.select_contact(contact_by_name("Liam Wilson"))

        assert surface.camera_moves == []
        assert controller.selection.active_contact_id is not None

    def test_clears_place_highlight(self, controller, surface, contact_by_name):
        asyncio.run(controller.select_place("Austin"))
        assert len(surface.markers) == 1

        controller.select_contact(contact_by_name("Wei Chen"))

        assert controller.selection.active_place is None
        assert surface.markers == {}
        assert controller.place_location is None


class TestSelectPlace:
    """Selecting a place resolves it and flies there."""

    def test_known_city_resolved_locally(self, controller, surface, fake_provider):
        location = asyncio.run(controller.select_place("Austin"))

        assert location.source == "local"
        assert fake_provider.calls == []
        assert surface.camera_moves[-1] == (location.coordinates, ZOOM_CITY)
        assert list(surface.markers.values()) == [(location.coordinates, "Austin")]

    def test_state_zooms_out(self, controller, surface):
        location = asyncio.run(controller.select_place("TX"))

        assert location.is_region is True
        assert surface.camera_moves[-1][1] == ZOOM_REGION
        assert list(surface.markers.values())[0][1] == "Texas"

    def test_unknown_city_uses_provider(self, controller, surface, fake_provider):
        """Reno: restricted search misses, global search finds it."""
        location = asyncio.run(controller.select_place("Reno"))

        assert location.name == "Reno, Nevada, United States"
        assert [call[2] is None for call in fake_provider.calls] == [False, True]
        assert surface.camera_moves[-1] == ((-119.8138, 39.5296), ZOOM_CITY)

    def test_marker_replaced(self, controller, surface):
        asyncio.run(controller.select_place("Austin"))
        asyncio.run(controller.select_place("Round Rock"))

        assert len(surface.markers) == 1
        assert list(surface.markers.values())[0][1] == "Round Rock"

    def test_clears_contact_highlight(self, controller, contact_by_name):
        controller.select_contact(contact_by_name("Jane Doe"))
        asyncio.run(controller.select_place("Austin"))

        assert controller.selection.active_contact_id is None
        assert controller.selection.active_place == "Austin"

    def test_not_found(self, controller, surface):
        assert asyncio.run(controller.select_place("Atlantis")) is None
        assert surface.camera_moves == []
        assert controller.flying is False
        assert controller.selection.active_place == "Atlantis"

    def test_failure_propagates(self, surface, failing_provider):
        controller = MapController(surface, resolver=GeocodeResolver(failing_provider))

        with pytest.raises(ResolutionFailed):
            asyncio.run(controller.select_place("Reno"))
        assert controller.flying is False
        assert surface.camera_moves == []

    def test_no_resolver(self, surface):
        controller = MapController(surface)
        assert asyncio.run(controller.select_place("Austin")) is None
        assert controller.selection.active_place == "Austin"

    def test_place_selected_without_loop(self, controller, surface):
        assert controller.place_selected("Austin") is None
        assert controller.selection.active_place == "Austin"
        assert surface.camera_moves == []

    def test_place_selected_schedules_camera_move(self, controller, surface):
        async def scenario():
            task = controller.place_selected("Austin")
            await task
            return task

        task = asyncio.run(scenario())

        assert task.result().name == "Austin"
        assert surface.camera_moves[-1][1] == ZOOM_CITY


    def test_contact_selected_before_scheduled_move(self, controller, surface, contact_by_name):
        """A contact picked before the place lookup runs keeps the highlight."""
        wei = contact_by_name("Wei Chen")

        async def scenario():
            task = controller.place_selected("Austin")
            controller.select_contact(wei)
            return await task

        assert asyncio.run(scenario()) is None
        assert controller.selection.active_contact_id == wei.id
        assert controller.selection.active_place is None
        assert surface.markers == {}
        assert surface.camera_moves == [(wei.coordinates, ZOOM_CONTACT)]

    def test_not_found_clears_previous_marker(self, controller, surface):
        asyncio.run(controller.select_place("Austin"))
        assert len(surface.markers) == 1

        asyncio.run(controller.select_place("Atlantis"))

        assert surface.markers == {}
        assert controller.place_location is None
        assert controller.selection.active_place == "Atlantis"

class TestSettle:
    """Settling feeds the visible bounds to the reconciler."""

    def test_settle_uses_explicit_bounds(self, controller, surface):
        surface.set_visible_bounds(ViewportBounds(-98.0, 30.0, -97.5, 30.7))
        visible = controller.settle()
        assert len(visible) == 4

    def test_settle_after_flying_to_contact(self, controller, contact_by_name):
        wei = contact_by_name("Wei Chen")
        controller.select_contact(wei)

        visible = controller.settle()

        assert wei in visible
        assert controller.reconciler.is_visible(wei)

    def test_settle_without_reconciler(self, surface):
        assert MapController(surface).settle() == []


class TestRecordingMapSurface:
    """Tests for the headless surface."""

    def test_estimated_bounds_contain_center(self, surface):
        surface.set_camera((-97.74, 30.27), ZOOM_CITY)
        bounds = surface.get_visible_bounds()
        assert bounds.contains(-97.74, 30.27)

    def test_higher_zoom_shows_less(self, surface):
        surface.set_camera((-97.74, 30.27), ZOOM_REGION)
        wide = surface.get_visible_bounds()
        surface.set_camera((-97.74, 30.27), ZOOM_CONTACT)
        narrow = surface.get_visible_bounds()

        assert narrow.east - narrow.west < wide.east - wide.west

    def test_camera_move_drops_explicit_bounds(self, surface):
        explicit = ViewportBounds(0.0, 0.0, 1.0, 1.0)
        surface.set_visible_bounds(explicit)
        assert surface.get_visible_bounds() == explicit

        surface.set_camera((-97.74, 30.27), ZOOM_CITY)
        assert surface.get_visible_bounds() != explicit

    def test_remove_unknown_marker(self, surface):
        surface.remove_marker(999)
        assert surface.markers == {}


class TestInitialCenter:
    """Where the map starts."""

    def test_default_center_without_contacts(self, surface):
        controller = MapController(surface, contacts=lambda: [])
        assert controller.initial_center() == DEFAULT_MAP_CENTER

    def test_default_center_without_geocoded_contacts(self, surface):
        ungeocoded = [Contact(id="x", first_name="X", last_name="Y", city="Denver")]
        controller = MapController(surface, contacts=lambda: ungeocoded)
        assert controller.initial_center() == DEFAULT_MAP_CENTER

    def test_first_geocoded_contact(self, controller, contact_by_name):
        assert controller.initial_center() == contact_by_name("John Smith").coordinates

    def test_active_contact(self, controller, contact_by_name):
        wei = contact_by_name("Wei Chen")
        controller.selection.select_contact(wei.id)
        assert controller.initial_center() == wei.coordinates

    def test_active_place(self, controller, contact_by_name):
        controller.selection.select_place("seattle")
        assert controller.initial_center() == contact_by_name("Wei Chen").coordinates
