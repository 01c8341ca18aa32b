"""Keep the contact list in step with what the map is showing."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from .models import Contact, ViewportBounds
from .spatial import contacts_in_bounds
from .telemetry import get_tracer

logger = logging.getLogger(__name__)


class ViewportReconciler:
    """Track which contacts fall inside the current map bounds.

    Bounds are reported on settle (end of a pan or zoom), not per frame. The
    visible-changed callback fires only when membership actually changes.
    """

    def __init__(
        self,
        contacts: Iterable[Contact] = (),
        on_visible_contacts_changed: Callable[[list[Contact]], None] | None = None,
    ):
        self.on_visible_contacts_changed = on_visible_contacts_changed
        self.bounds: ViewportBounds | None = None
        self._contacts: list[Contact] = list(contacts)
        self._visible: list[Contact] = []
        self._visible_ids: set[str] = set()

    def set_contacts(self, contacts: Iterable[Contact]) -> None:
        """Replace the contact collection and recompute against the last bounds."""
        self._contacts = list(contacts)
        if self.bounds is not None:
            self._recompute(self.bounds)

    def on_bounds_changed(self, bounds: ViewportBounds) -> list[Contact]:
        self.bounds = bounds
        with get_tracer().start_as_current_span("viewport.bounds_changed") as span:
            span.set_attribute("viewport.west", bounds.west)
            span.set_attribute("viewport.south", bounds.south)
            span.set_attribute("viewport.east", bounds.east)
            span.set_attribute("viewport.north", bounds.north)
            visible = self._recompute(bounds)
            span.set_attribute("viewport.visible", len(visible))
        return visible

    def _recompute(self, bounds: ViewportBounds) -> list[Contact]:
        visible = contacts_in_bounds(self._contacts, bounds)
        visible_ids = {c.id for c in visible}
        changed = visible_ids != self._visible_ids
        self._visible = visible
        self._visible_ids = visible_ids

        if changed:
            logger.debug(f"Viewport now shows {len(visible)} of {len(self._contacts)} contacts")
            if self.on_visible_contacts_changed:
                self.on_visible_contacts_changed(list(visible))
        return list(visible)

    def visible_contacts(self) -> list[Contact]:
        return list(self._visible)

    def is_visible(self, contact: Contact | str) -> bool:
        contact_id = contact if isinstance(contact, str) else contact.id
        return contact_id in self._visible_ids


def _city_tier(contact: Contact, place: str) -> int:
    if not contact.city:
        return 2
    city = contact.city.lower()
    if city == place:
        return 0
    if place in city:
        return 1
    return 2


def _city_sort_key(contact: Contact) -> tuple[bool, str]:
    # Missing city sorts last
    return (not contact.city, (contact.city or "").lower())


def ordered_contact_list(
    all_contacts: Iterable[Contact],
    visible: Iterable[Contact],
    active_place: str | None = None,
) -> list[Contact]:
    """Order the side-panel list so on-screen contacts come first.

    Visible contacts keep their given order, followed by the rest. When nothing is
    on screen but a place is selected, contacts in that place lead instead: exact
    city matches, then partial matches, then everyone else, each group sorted by
    city. The output is always a reordering of all_contacts.
    """
    contacts = list(all_contacts)
    present = {c.id for c in contacts}

    rank: dict[str, int] = {}
    for contact in visible:
        if contact.id in present and contact.id not in rank:
            rank[contact.id] = len(rank)

    if rank:
        leading = sorted((c for c in contacts if c.id in rank), key=lambda c: rank[c.id])
        return leading + [c for c in contacts if c.id not in rank]

    place = (active_place or "").strip().lower()
    if not place:
        return contacts

    # sorted() is stable, so equal cities keep input order
    return sorted(contacts, key=lambda c: (_city_tier(c, place), *_city_sort_key(c)))
