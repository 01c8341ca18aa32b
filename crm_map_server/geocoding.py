"""Place-name resolution for the map.

Resolution uses three tiers:
1. Local contact data - city/state centroids of already-geocoded contacts
2. Mapbox restricted to a country allow-list
3. Mapbox without a country restriction (automatic, at most one widening)

Results are cached per resolver by normalized name. Misses are cached only for
the scope that produced them; provider errors are never cached.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
import urllib.parse
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

import requests

from .constants import (
    DEFAULT_COUNTRY_ALLOW_LIST,
    DEFAULT_GEOCODE_TIMEOUT_SECONDS,
    GENERAL_PLACE_TYPES,
    REGION_PLACE_TYPES,
)
from .helpers import is_region_name, normalize_key
from .models import GeocodedLocation, Scope
from .telemetry import get_tracer

logger = logging.getLogger(__name__)


class ResolutionFailed(Exception):
    """The geocoding provider could not be reached or returned garbage.

    Distinct from a plain "no such place" (which resolves to None) so the UI can
    offer a retry instead of "no results".
    """

    def __init__(self, query: str, reason: str):
        super().__init__(f"Could not resolve '{query}': {reason}")
        self.query = query
        self.reason = reason


@dataclass(frozen=True)
class ProviderMatch:
    """Best match returned by a geocoding provider."""

    name: str
    longitude: float
    latitude: float
    place_type: str | None = None


class GeocodingProvider(Protocol):
    def search(
        self, query: str, types: Sequence[str], countries: Sequence[str] | None
    ) -> ProviderMatch | None: ...


class MapboxProvider:
    """Mapbox forward geocoding (v5), single best result per request."""

    BASE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"

    def __init__(
        self,
        access_token: str,
        timeout: float = DEFAULT_GEOCODE_TIMEOUT_SECONDS,
        http: requests.Session | None = None,
    ):
        self.access_token = access_token
        self.timeout = timeout
        self._http = http or requests.Session()

    def search(
        self, query: str, types: Sequence[str], countries: Sequence[str] | None
    ) -> ProviderMatch | None:
        if not self.access_token:
            raise ResolutionFailed(query, "missing Mapbox access token")

        url = f"{self.BASE_URL}/{urllib.parse.quote(query, safe='')}.json"
        params = {
            "access_token": self.access_token,
            "types": ",".join(types),
            "limit": 1,
            "fuzzyMatch": "true",
        }
        if countries:
            params["country"] = ",".join(countries)

        logger.debug(
            f"Mapbox request for '{query}' types={params['types']} "
            f"country={params.get('country', '*')}"
        )
        try:
            response = self._http.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise ResolutionFailed(query, str(e)) from e
        except ValueError as e:
            raise ResolutionFailed(query, f"invalid JSON from provider: {e}") from e

        if not isinstance(data, dict):
            raise ResolutionFailed(query, "malformed provider response")
        features = data.get("features") or []
        if not isinstance(features, list):
            raise ResolutionFailed(query, "malformed provider response")
        if not features:
            return None

        first = features[0]
        if not isinstance(first, dict):
            raise ResolutionFailed(query, "malformed provider response")
        try:
            center = first.get("center") or first["geometry"]["coordinates"]
            lon, lat = float(center[0]), float(center[1])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ResolutionFailed(query, "malformed provider response") from e

        place_types = first.get("place_type") or []
        if not isinstance(place_types, list):
            place_types = []
        return ProviderMatch(
            name=first.get("place_name") or first.get("text") or query,
            longitude=lon,
            latitude=lat,
            place_type=place_types[0] if place_types else None,
        )


@dataclass
class _CacheEntry:
    location: GeocodedLocation | None
    stored_at: float


class GeocodeCache:
    """Resolved places keyed by normalized name, plus per-scope misses.

    Entries are append-only: a live entry is never replaced. With a TTL, an
    expired entry counts as absent and the next store supersedes it.
    """

    def __init__(self, ttl_seconds: float | None = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._hits: dict[str, _CacheEntry] = {}
        self._misses: dict[tuple[str, Scope], _CacheEntry] = {}
        self._lock = threading.Lock()

    def _is_live(self, entry: _CacheEntry | None) -> bool:
        if entry is None:
            return False
        if self.ttl_seconds is None:
            return True
        return self._clock() - entry.stored_at < self.ttl_seconds

    def get(self, key: str) -> GeocodedLocation | None:
        with self._lock:
            entry = self._hits.get(key)
            return entry.location if self._is_live(entry) else None  # type: ignore[union-attr]

    def is_miss(self, key: str, scope: Scope) -> bool:
        with self._lock:
            return self._is_live(self._misses.get((key, scope)))

    def store(self, key: str, location: GeocodedLocation) -> GeocodedLocation:
        """Cache a hit. Returns the live cached value, which wins over a newcomer."""
        with self._lock:
            existing = self._hits.get(key)
            if self._is_live(existing):
                return existing.location  # type: ignore[union-attr,return-value]
            self._hits[key] = _CacheEntry(location, self._clock())
            return location

    def store_miss(self, key: str, scope: Scope) -> None:
        with self._lock:
            if not self._is_live(self._misses.get((key, scope))):
                self._misses[(key, scope)] = _CacheEntry(None, self._clock())

    def clear(self) -> None:
        with self._lock:
            self._hits.clear()
            self._misses.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)

    def stats(self) -> dict:
        with self._lock:
            return {
                "hits": len(self._hits),
                "misses": len(self._misses),
                "ttl_seconds": self.ttl_seconds,
            }


class GeocodeResolver:
    """Resolve free-text place names to coordinates with scope widening."""

    def __init__(
        self,
        provider: GeocodingProvider,
        countries: Sequence[str] = DEFAULT_COUNTRY_ALLOW_LIST,
        cache: GeocodeCache | None = None,
        local_places: Callable[[], Iterable[GeocodedLocation]] | None = None,
    ):
        self.provider = provider
        self.countries = list(countries)
        self.cache = cache if cache is not None else GeocodeCache()
        self._local_places = local_places

    def _resolve_local(self, key: str, text: str) -> GeocodedLocation | None:
        if self._local_places is None:
            return None
        for place in self._local_places():
            if normalize_key(place.name) == key:
                return GeocodedLocation(
                    name=place.name,
                    coordinates=place.coordinates,
                    query=text,
                    is_region=place.is_region,
                    scope=Scope.LOCAL,
                    source="local",
                )
        return None

    def _attempts(self, scope: Scope) -> list[Scope]:
        if scope is Scope.REGION_RESTRICTED and self.countries:
            return [Scope.REGION_RESTRICTED, Scope.GLOBAL]
        return [Scope.GLOBAL]

    async def resolve(
        self, query: str, scope: Scope = Scope.REGION_RESTRICTED
    ) -> GeocodedLocation | None:
        """Resolve a place name. Returns None when no place matches.

        Raises:
            ResolutionFailed: The provider errored; nothing is cached.
        """
        text = query.strip()
        if not text:
            return None
        key = normalize_key(text)

        with get_tracer().start_as_current_span("geocode.resolve") as span:
            span.set_attribute("geocode.query", text)
            span.set_attribute("geocode.scope", scope.value)

            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Geocode cache hit for '{text}' -> '{cached.name}'")
                span.set_attribute("geocode.cache_hit", True)
                return cached
            if self.cache.is_miss(key, scope):
                logger.debug(f"Geocode cached miss for '{text}' ({scope.value})")
                span.set_attribute("geocode.cache_hit", True)
                return None
            span.set_attribute("geocode.cache_hit", False)

            if scope is Scope.LOCAL:
                location = self._resolve_local(key, text)
                if location is None:
                    self.cache.store_miss(key, Scope.LOCAL)
                    return None
                return self.cache.store(key, location)

            region = is_region_name(text)
            types = REGION_PLACE_TYPES if region else GENERAL_PLACE_TYPES

            for attempt in self._attempts(scope):
                if self.cache.is_miss(key, attempt):
                    continue
                countries = self.countries if attempt is Scope.REGION_RESTRICTED else None
                try:
                    match = await asyncio.to_thread(self.provider.search, text, types, countries)
                except ResolutionFailed as e:
                    logger.warning(f"Geocoding failed for '{text}' ({attempt.value}): {e.reason}")
                    span.set_attribute("geocode.failed", True)
                    raise

                if match is not None:
                    location = GeocodedLocation(
                        name=match.name,
                        coordinates=(match.longitude, match.latitude),
                        query=text,
                        is_region=region or match.place_type == "region",
                        scope=attempt,
                        source="provider",
                    )
                    span.set_attribute("geocode.widened", attempt is not scope)
                    logger.info(
                        f"Geocoded '{text}' -> '{match.name}' "
                        f"({match.latitude:.4f}, {match.longitude:.4f}) via {attempt.value}"
                    )
                    return self.cache.store(key, location)

                self.cache.store_miss(key, attempt)
                if attempt is Scope.REGION_RESTRICTED:
                    logger.info(f"No results for '{text}' in {self.countries}, trying global search")

            logger.info(f"No geocoding results for '{text}'")
            return None
