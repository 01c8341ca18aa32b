"""Tests for viewport reconciliation and side-panel ordering."""

import random

from crm_map_server.models import Contact, ViewportBounds
from crm_map_server.viewport import ViewportReconciler, ordered_contact_list

TEXAS = ViewportBounds(west=-99.0, south=29.0, east=-96.0, north=33.0)
AUSTIN_AREA = ViewportBounds(west=-98.0, south=30.0, east=-97.5, north=30.7)
PACIFIC = ViewportBounds(west=-170.0, south=0.0, east=-150.0, north=20.0)


def _contact(id, city=None, lat=None, lon=None):
    return Contact(id=id, first_name=id.title(), last_name="Test", city=city, latitude=lat, longitude=lon)


class TestReconciler:
    """Tests for ViewportReconciler."""

    def test_visible_contacts_in_bounds(self, contacts):
        reconciler = ViewportReconciler(contacts)
        visible = reconciler.on_bounds_changed(AUSTIN_AREA)

        names = {c.full_name() for c in visible}
        assert names == {"John Smith", "Jane Doe", "Noah Taylor", "Sofia Martinez"}
        assert reconciler.visible_contacts() == visible

    def test_is_visible_by_contact_or_id(self, contacts, contact_by_name):
        reconciler = ViewportReconciler(contacts)
        reconciler.on_bounds_changed(AUSTIN_AREA)

        jane = contact_by_name("Jane Doe")
        wei = contact_by_name("Wei Chen")
        assert reconciler.is_visible(jane) is True
        assert reconciler.is_visible(jane.id) is True
        assert reconciler.is_visible(wei) is False

    def test_ungeocoded_never_visible(self, contacts, contact_by_name):
        reconciler = ViewportReconciler(contacts)
        reconciler.on_bounds_changed(ViewportBounds(-180.0, -90.0, 180.0, 90.0))

        assert reconciler.is_visible(contact_by_name("Liam Wilson")) is False
        assert reconciler.is_visible(contact_by_name("Emma Clark")) is False

    def test_callback_fires_only_on_change(self, contacts):
        events = []
        reconciler = ViewportReconciler(contacts, on_visible_contacts_changed=events.append)

        reconciler.on_bounds_changed(AUSTIN_AREA)
        reconciler.on_bounds_changed(AUSTIN_AREA)
        assert len(events) == 1

        reconciler.on_bounds_changed(TEXAS)
        assert len(events) == 2
        assert len(events[1]) == 6

    def test_empty_viewport_after_content_notifies(self, contacts):
        events = []
        reconciler = ViewportReconciler(contacts, on_visible_contacts_changed=events.append)

        reconciler.on_bounds_changed(TEXAS)
        reconciler.on_bounds_changed(PACIFIC)

        assert events[-1] == []
        assert reconciler.visible_contacts() == []

    def test_set_contacts_recomputes(self):
        reconciler = ViewportReconciler([])
        reconciler.on_bounds_changed(AUSTIN_AREA)
        assert reconciler.visible_contacts() == []

        austin = _contact("a", "Austin", 30.27, -97.74)
        reconciler.set_contacts([austin])
        assert reconciler.visible_contacts() == [austin]

    def test_set_contacts_before_bounds(self):
        reconciler = ViewportReconciler([])
        reconciler.set_contacts([_contact("a", "Austin", 30.27, -97.74)])
        assert reconciler.visible_contacts() == []
        assert reconciler.bounds is None


class TestOrderedContactList:
    """Tests for ordered_contact_list."""

    def test_visible_first_in_given_order(self):
        a, b, c, d = (_contact(x) for x in "abcd")
        assert ordered_contact_list([a, b, c, d], [c, a]) == [c, a, b, d]

    def test_visible_not_in_input_ignored(self):
        a, b = _contact("a"), _contact("b")
        stranger = _contact("zed")
        assert ordered_contact_list([a, b], [stranger, b]) == [b, a]

    def test_duplicate_visible_entries(self):
        a, b = _contact("a"), _contact("b")
        assert ordered_contact_list([a, b], [b, b]) == [b, a]

    def test_nothing_visible_no_place_keeps_order(self):
        contacts = [_contact(x) for x in "cab"]
        assert ordered_contact_list(contacts, []) == contacts

    def test_fallback_to_active_place(self):
        """With an empty viewport: exact city, then partial, then the rest by city."""
        boston = _contact("boston", "Boston")
        nowhere = _contact("nowhere", None)
        east = _contact("east", "East Austin")
        albany = _contact("albany", "Albany")
        austin = _contact("austin", "austin")

        ordered = ordered_contact_list([boston, nowhere, east, albany, austin], [], "Austin")

        assert [c.id for c in ordered] == ["austin", "east", "albany", "boston", "nowhere"]

    def test_fallback_stable_within_city(self, contacts):
        ordered = ordered_contact_list(contacts, [], "Austin")
        assert [c.full_name() for c in ordered[:2]] == ["John Smith", "Noah Taylor"]

    def test_visible_wins_over_place(self):
        austin = _contact("austin", "Austin")
        denver = _contact("denver", "Denver")
        assert ordered_contact_list([austin, denver], [denver], "Austin") == [denver, austin]

    def test_always_a_permutation(self, contacts):
        """Every input contact comes out exactly once, for any visible subset."""
        rng = random.Random(42)
        for _ in range(50):
            visible = rng.sample(contacts, rng.randint(0, len(contacts)))
            place = rng.choice([None, "Austin", "tx", "Nowhere"])

            ordered = ordered_contact_list(contacts, visible, place)

            assert sorted(c.id for c in ordered) == sorted(c.id for c in contacts)
