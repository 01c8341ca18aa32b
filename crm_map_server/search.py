"""Query-as-you-type search over contacts, cities and states.

The session is a small state machine driven by key events:

    CLOSED -> OPEN -> (TYPING -> RESULTS_READY)* -> CLOSED

Every keystroke restarts a debounce timer, so only the latest query is
evaluated. Each evaluation is tagged with a generation number; a result whose
generation is no longer current (newer keystroke, session closed) is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from rapidfuzz import fuzz

from .constants import (
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_MAX_CITIES,
    DEFAULT_MAX_CITIES_TOTAL,
    DEFAULT_MAX_CONTACTS,
    DEFAULT_MAX_STATES,
    DEFAULT_PROXIMITY_RADIUS_MILES,
    DEFAULT_SCARCE_THRESHOLD,
    MIN_GEOCODE_QUERY_LENGTH,
    US_STATE_NAMES,
)
from .contacts import _city_locations, _known_cities, _known_states
from .fuzzy import matches, matches_any
from .geocoding import ResolutionFailed
from .helpers import is_region_name, looks_like_place, normalize_key
from .models import Contact, GeocodedLocation, Scope, SearchResult
from .spatial import nearby
from .telemetry import get_tracer

if TYPE_CHECKING:
    from .geocoding import GeocodeResolver

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    TYPING = "typing"
    RESULTS_READY = "results_ready"


class Section(str, Enum):
    CONTACTS = "contacts"
    CITIES = "cities"
    STATES = "states"


@dataclass
class SearchConfig:
    debounce_seconds: float = DEFAULT_DEBOUNCE_MS / 1000
    max_contacts: int = DEFAULT_MAX_CONTACTS
    max_cities: int = DEFAULT_MAX_CITIES  # direct city matches
    max_cities_total: int = DEFAULT_MAX_CITIES_TOTAL  # including resolved and nearby
    max_states: int = DEFAULT_MAX_STATES
    proximity_radius_miles: float = DEFAULT_PROXIMITY_RADIUS_MILES
    scarce_threshold: int = DEFAULT_SCARCE_THRESHOLD


def _rank(names: Iterable[str], term: str) -> list[str]:
    """Order matched names by similarity to the term, then alphabetically."""
    term_lower = term.lower()
    return sorted(names, key=lambda n: (-fuzz.WRatio(term_lower, n.lower()), n.lower()))


def _dedupe(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for name in names:
        key = name.lower()
        if key not in seen:
            seen.add(key)
            result.append(name)
    return result


class SearchSession:
    """Interactive search panel state: query, sectioned results and a cursor."""

    def __init__(
        self,
        resolver: GeocodeResolver | None = None,
        contacts: Iterable[Contact] = (),
        on_contact_selected: Callable[[Contact], None] | None = None,
        on_place_selected: Callable[[str], None] | None = None,
        config: SearchConfig | None = None,
    ):
        self.resolver = resolver
        self.on_contact_selected = on_contact_selected
        self.on_place_selected = on_place_selected
        self.config = config or SearchConfig()

        self.phase = SessionPhase.CLOSED
        self.query = ""
        self.results = SearchResult()
        self.cursor = -1
        self.evaluations = 0

        self._generation = 0
        self._pending: asyncio.Task | None = None  # still inside the debounce window
        self._in_flight: set[asyncio.Task] = set()

        self.set_contacts(contacts)

    # ---- contact data ----

    def set_contacts(self, contacts: Iterable[Contact]) -> None:
        self._contacts = list(contacts)
        self._cities = _known_cities(self._contacts)
        self._states = _known_states(self._contacts)
        self._city_locations = _city_locations(self._contacts)
        self._place_keys = {normalize_key(n) for n in self._cities + self._states}

    # ---- lifecycle ----

    @property
    def is_open(self) -> bool:
        return self.phase is not SessionPhase.CLOSED

    @property
    def generation(self) -> int:
        return self._generation

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def open(self) -> None:
        """Open the panel with a clean slate."""
        self._cancel_pending()
        self._generation += 1
        self.query = ""
        self.results = SearchResult()
        self.cursor = -1
        self.phase = SessionPhase.OPEN

    def close(self) -> None:
        """Close without activating anything; in-flight results are ignored."""
        self._cancel_pending()
        self._generation += 1
        self.cursor = -1
        self.phase = SessionPhase.CLOSED

    def click_outside(self) -> None:
        self.close()

    def type(self, text: str) -> asyncio.Task | None:
        """Record new input and schedule a debounced evaluation.

        Must be called from a running event loop. Returns the scheduled task, or
        None when the session is closed or the query is blank.
        """
        if not self.is_open:
            return None

        self._cancel_pending()
        self._generation += 1
        self.query = text

        if not text.strip():
            self._apply(SearchResult())
            return None

        self.phase = SessionPhase.TYPING
        generation = self._generation
        self._pending = asyncio.get_running_loop().create_task(self._debounced(text, generation))
        return self._pending

    async def _debounced(self, text: str, generation: int) -> None:
        await asyncio.sleep(self.config.debounce_seconds)

        # Past the debounce window: later keystrokes no longer cancel this task
        task = asyncio.current_task()
        if self._pending is task:
            self._pending = None
        if task is not None:
            self._in_flight.add(task)
        try:
            self.evaluations += 1
            result = await self.evaluate(text)
        finally:
            if task is not None:
                self._in_flight.discard(task)

        if generation != self._generation:
            logger.debug(f"Discarding stale results for '{text}'")
            return
        self._apply(result)

    async def wait_idle(self) -> None:
        """Wait until no evaluation is pending or running."""
        while self._pending is not None or self._in_flight:
            tasks = [t for t in (self._pending, *self._in_flight) if t is not None]
            for task in tasks:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            if self._pending is not None and self._pending.done():
                self._pending = None

    async def search_now(self, query: str) -> SearchResult:
        """Evaluate immediately, bypassing the debounce (non-interactive callers)."""
        if not self.is_open:
            self.open()
        self._cancel_pending()
        self._generation += 1
        generation = self._generation
        self.query = query
        self.evaluations += 1
        result = await self.evaluate(query)
        if generation == self._generation:
            self._apply(result)
        return result

    def _apply(self, result: SearchResult) -> None:
        self.results = result
        self.cursor = -1
        self.phase = SessionPhase.RESULTS_READY

    # ---- evaluation ----

    def _should_geocode(self, term: str, result: SearchResult) -> bool:
        if self.resolver is None or len(term) < MIN_GEOCODE_QUERY_LENGTH:
            return False
        if normalize_key(term) in self._place_keys or is_region_name(term):
            return False
        local_total = len(result.contacts) + len(result.cities) + len(result.states)
        return local_total < self.config.scarce_threshold or looks_like_place(term)

    def _add_resolved_place(self, result: SearchResult, anchor: GeocodedLocation) -> None:
        cfg = self.config
        listed = {name.lower() for name in result.cities + result.states}

        if anchor.name.lower() not in listed:
            if anchor.is_region and len(result.states) < cfg.max_states:
                result.states.append(anchor.name)
                listed.add(anchor.name.lower())
            elif not anchor.is_region and len(result.cities) < cfg.max_cities_total:
                result.cities.append(anchor.name)
                listed.add(anchor.name.lower())

        for name in nearby(anchor, self._city_locations, cfg.proximity_radius_miles):
            if len(result.cities) >= cfg.max_cities_total:
                break
            if name.lower() in listed:
                continue
            result.cities.append(name)
            result.annotations[name] = f"near {anchor.name}"
            listed.add(name.lower())

    async def evaluate(self, query: str) -> SearchResult:
        """Build the sectioned result set for a query.

        Local fuzzy matches always come back. An external lookup is attempted when
        the query looks like a place that the contact data does not know; if it
        fails, only the local matches are returned.
        """
        term = query.strip()
        result = SearchResult(query=term)
        if not term:
            return result

        cfg = self.config
        with get_tracer().start_as_current_span("search.evaluate") as span:
            span.set_attribute("search.query", term)

            result.contacts = [
                c
                for c in self._contacts
                if matches_any((c.full_name(), c.account_name, c.city, c.state), term)
            ][: cfg.max_contacts]

            result.cities = _rank((c for c in self._cities if matches(c, term)), term)[
                : cfg.max_cities
            ]

            contact_states = _rank((s for s in self._states if matches(s, term)), term)
            known = {s.lower() for s in self._states}
            other_states = _rank(
                (s for s in US_STATE_NAMES if s.lower() not in known and matches(s, term)), term
            )
            result.states = _dedupe(contact_states + other_states)[: cfg.max_states]

            if self._should_geocode(term, result):
                try:
                    anchor = await self.resolver.resolve(term, Scope.REGION_RESTRICTED)  # type: ignore[union-attr]
                except ResolutionFailed as e:
                    logger.info(f"Search for '{term}' falling back to local matches: {e.reason}")
                    result.geocode_failed = True
                    anchor = None
                if anchor is not None:
                    result.anchor = anchor
                    self._add_resolved_place(result, anchor)

            span.set_attribute("search.contacts", len(result.contacts))
            span.set_attribute("search.cities", len(result.cities))
            span.set_attribute("search.states", len(result.states))

        logger.debug(
            f"Search '{term}': {len(result.contacts)} contacts, "
            f"{len(result.cities)} cities, {len(result.states)} states"
        )
        return result

    # ---- keyboard navigation ----

    def _items(self) -> list[tuple[Section, Contact | str]]:
        items: list[tuple[Section, Contact | str]] = []
        items.extend((Section.CONTACTS, c) for c in self.results.contacts)
        items.extend((Section.CITIES, c) for c in self.results.cities)
        items.extend((Section.STATES, s) for s in self.results.states)
        return items

    @property
    def active_section(self) -> Section | None:
        """Section under the cursor, else the first populated section."""
        items = self._items()
        if not items:
            return None
        if 0 <= self.cursor < len(items):
            return items[self.cursor][0]
        return items[0][0]

    @property
    def selected_item(self) -> Contact | str | None:
        items = self._items()
        if 0 <= self.cursor < len(items):
            return items[self.cursor][1]
        return None

    def move_down(self) -> None:
        """Step the cursor down, crossing into the next populated section."""
        items = self._items()
        if items:
            self.cursor = min(self.cursor + 1, len(items) - 1)

    def move_up(self) -> None:
        """Step the cursor up, crossing into the previous populated section."""
        items = self._items()
        if items:
            self.cursor = max(self.cursor - 1, 0)

    def activate(self) -> Contact | str | None:
        """Select the item under the cursor and close the session.

        The session is closed before the callback runs, so a failing callback
        leaves it closed.
        """
        if not self.is_open:
            return None
        items = self._items()
        if not 0 <= self.cursor < len(items):
            return None

        section, item = items[self.cursor]
        self.close()
        if section is Section.CONTACTS:
            logger.info(f"Search selected contact {item.id}")  # type: ignore[union-attr]
            if self.on_contact_selected:
                self.on_contact_selected(item)  # type: ignore[arg-type]
        else:
            logger.info(f"Search selected {section.value[:-1]} '{item}'")
            if self.on_place_selected:
                self.on_place_selected(item)  # type: ignore[arg-type]
        return item

    def handle_key(self, key: str, meta: bool = False, ctrl: bool = False) -> bool:
        """Dispatch a key event. Returns True if the session consumed it."""
        if key.lower() == "k" and (meta or ctrl):
            self.open()
            return True
        if not self.is_open:
            return False

        if key == "ArrowDown":
            self.move_down()
        elif key == "ArrowUp":
            self.move_up()
        elif key == "Enter":
            self.activate()
        elif key == "Escape":
            self.close()
        else:
            return False
        return True
