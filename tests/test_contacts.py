"""Tests for contact store queries and place data derived from contacts."""

import pytest

from crm_map_server.contacts import (
    _city_locations,
    _get_contact,
    _get_contacts,
    _get_statistics,
    _known_cities,
    _known_states,
    _local_place_locations,
    _query_contacts,
)
from crm_map_server.models import Scope


class TestQueryContacts:
    """Tests for the city filter."""

    def test_no_filter_returns_all(self, contacts):
        assert _query_contacts() == contacts
        assert _query_contacts("  ") == contacts

    def test_case_insensitive_substring(self):
        names = {c.full_name() for c in _query_contacts("AUST")}
        assert names == {"John Smith", "Noah Taylor"}

    def test_no_match(self):
        assert _query_contacts("Atlantis") == []

    def test_summaries(self):
        summaries = _get_contacts("round rock")
        assert [s["name"] for s in summaries] == ["Jane Doe"]


class TestGetContact:
    """Tests for single contact lookup."""

    def test_found(self, contact_by_name):
        jane = contact_by_name("Jane Doe")
        record = _get_contact(jane.id)
        assert record["full_name"] == "Jane Doe"
        assert record["address"] == "1 Main St, Round Rock, TX 78664, US"

    def test_strips_whitespace(self, contact_by_name):
        jane = contact_by_name("Jane Doe")
        assert _get_contact(f"  {jane.id} ") is not None

    def test_not_found(self):
        assert _get_contact("nope") is None


class TestKnownPlaces:
    """Tests for the city and state lists."""

    def test_known_cities_sorted_unique(self):
        cities = _known_cities()
        assert cities == sorted(set(cities))
        assert "Austin" in cities
        assert len(cities) == 9

    def test_known_states(self):
        assert _known_states() == ["CO", "NY", "OR", "TX", "WA"]

    def test_city_centroid(self):
        austin = next(loc for loc in _city_locations() if loc.name == "Austin")
        assert austin.latitude == pytest.approx((30.2680 + 30.2700) / 2)
        assert austin.longitude == pytest.approx((-97.7420 + -97.7500) / 2)
        assert austin.scope is Scope.LOCAL

    def test_ungeocoded_cities_have_no_location(self):
        names = {loc.name for loc in _city_locations()}
        assert "Denver" not in names
        assert "Portland" not in names

    def test_local_places_include_state_names(self):
        places = {loc.name: loc for loc in _local_place_locations()}
        assert places["TX"].is_region is True
        assert places["Texas"].coordinates == places["TX"].coordinates
        assert places["Austin"].is_region is False


class TestStatistics:
    """Tests for _get_statistics."""

    def test_counts(self):
        stats = _get_statistics()
        assert stats["total_contacts"] == 10
        assert stats["geocoded_contacts"] == 8
        assert stats["ungeocoded_contacts"] == 2
        assert stats["cities"] == 9
        assert stats["states"] == 5
        assert stats["import_warnings"] == 2

    def test_top_cities(self):
        top = _get_statistics()["top_cities"]
        assert top[0] == {"city": "Austin", "count": 2}
