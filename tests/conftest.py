"""Shared fixtures for CRM map server tests."""

import os
import threading
from pathlib import Path

import pytest

# Set env vars BEFORE importing any crm_map_server modules
# Explicit values so .env doesn't override them (load_dotenv won't override existing)
_TEST_CONTACTS = Path(__file__).parent / "fixtures" / "contacts.csv"
os.environ["CONTACTS_FILE"] = str(_TEST_CONTACTS)
os.environ["MAPBOX_ACCESS_TOKEN"] = ""  # No network in tests
os.environ["GEOCODE_COUNTRIES"] = "us,ca,gb,de,fr"
os.environ["TRACING_ENABLED"] = "false"
os.environ["GEOCODE_ON_IMPORT"] = "false"

# Now import and initialize crm_map_server (safe because env vars are set)
from crm_map_server import initialize  # noqa: E402

initialize()

from crm_map_server import state  # noqa: E402
from crm_map_server.contacts import _local_place_locations  # noqa: E402
from crm_map_server.core import _build_services  # noqa: E402
from crm_map_server.geocoding import GeocodeResolver, ProviderMatch, ResolutionFailed  # noqa: E402

PFLUGERVILLE = ProviderMatch("Pflugerville, Texas, United States", -97.6200, 30.4394, "place")
RENO = ProviderMatch("Reno, Nevada, United States", -119.8138, 39.5296, "place")
NEVADA = ProviderMatch("Nevada, United States", -116.4194, 38.8026, "region")
ONTARIO = ProviderMatch("Ontario, Canada", -85.0, 50.0, "region")
KYOTO = ProviderMatch("Kyoto, Japan", 135.7681, 35.0116, "place")


class FakeProvider:
    """In-memory geocoding provider that records every call.

    `places` are found in any scope; `global_places` only when the request has no
    country restriction.
    """

    def __init__(self, places=None, global_places=None):
        self.places = places if places is not None else {
            "pflugerville": PFLUGERVILLE,
            "nevada": NEVADA,
            "ontario": ONTARIO,
        }
        self.global_places = global_places if global_places is not None else {
            "reno": RENO,
            "kyoto": KYOTO,
        }
        self.calls = []

    def search(self, query, types, countries):
        self.calls.append((query, tuple(types), tuple(countries) if countries else None))
        key = query.strip().lower()
        if key in self.places:
            return self.places[key]
        if countries is None and key in self.global_places:
            return self.global_places[key]
        return None


class FailingProvider(FakeProvider):
    """Provider whose service is always down."""

    def search(self, query, types, countries):
        self.calls.append((query, tuple(types), tuple(countries) if countries else None))
        raise ResolutionFailed(query, "service unavailable")


class BlockingProvider(FakeProvider):
    """Provider that holds each request until `release` is set."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.started = threading.Event()
        self.release = threading.Event()

    def search(self, query, types, countries):
        self.started.set()
        self.release.wait(timeout=5)
        return super().search(query, types, countries)


@pytest.fixture
def contacts():
    """All loaded contacts, in file order."""
    return list(state.contacts.values())


@pytest.fixture
def contact_by_name(contacts):
    """Look up a loaded contact by full name."""

    def lookup(name):
        for contact in contacts:
            if contact.full_name() == name:
                return contact
        raise KeyError(name)

    return lookup


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def failing_provider():
    return FailingProvider()


@pytest.fixture
def blocking_provider():
    provider = BlockingProvider()
    yield provider
    provider.release.set()


@pytest.fixture
def resolver(fake_provider):
    """Resolver over the fake provider, with local places from the loaded contacts."""
    return GeocodeResolver(fake_provider, local_places=_local_place_locations)


@pytest.fixture
def services(fake_provider):
    """Freshly wired server services using the fake provider."""
    _build_services()
    state.resolver.provider = fake_provider
    yield state
    _build_services()
