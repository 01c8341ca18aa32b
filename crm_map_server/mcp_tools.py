"""MCP tool definitions for the CRM map server."""

from .contacts import _get_contacts, _get_statistics
from .core import (
    _find_nearby_cities,
    _get_ordered_contacts,
    _resolve_place,
    _search,
    _select_contact,
    _select_place,
    _set_viewport,
)


def register_tools(mcp):
    """Register all MCP tools with the server."""

    # ============== SEARCH TOOLS (3) ==============

    @mcp.tool()
    async def search(query: str) -> dict:
        """
        Search contacts, cities and states as the map's search panel would.

        Matching is fuzzy: "austn" finds Austin, "jsmth" finds John Smith. When the
        query looks like a place the contact data doesn't know, it is geocoded and
        nearby known cities are added with a "near <place>" note.

        Args:
            query: Free-text search (name, organization, city or state)

        Returns:
            Sections: contacts (max 5), cities (with optional note), states, the
            resolved anchor place if any, and geocode_failed when the external
            lookup errored and only local matches are shown
        """
        return await _search(query)

    @mcp.tool()
    async def resolve_place(name: str, scope: str = "region_restricted") -> dict:
        """
        Resolve a place name to coordinates.

        Args:
            name: Place name, e.g. "Austin", "Texas", "TX", "Lyon"
            scope: "local" (contact data only), "region_restricted" (default;
                   allowed countries first, then worldwide) or "global"

        Returns:
            {"status": "ok", "location": {...}}, {"status": "not_found"}, or
            {"status": "failed", "error": ...} when the geocoding service errored
        """
        return await _resolve_place(name, scope)

    @mcp.tool()
    async def find_nearby_cities(place: str, radius_miles: float | None = None) -> dict:
        """
        Find known contact cities within a radius of a place.

        Useful for "who do we have near Round Rock?" - the place does not need
        any contacts of its own.

        Args:
            place: Place name to center on
            radius_miles: Search radius (default: 60)

        Returns:
            Resolved anchor and cities sorted by distance, with distance_miles
        """
        return await _find_nearby_cities(place, radius_miles)

    # ============== CONTACT TOOLS (3) ==============

    @mcp.tool()
    def get_contacts(city: str | None = None) -> list[dict]:
        """
        List contacts, optionally filtered by city.

        Args:
            city: Case-insensitive substring of the contact's city (optional)

        Returns:
            Contact summaries in file order
        """
        return _get_contacts(city)

    @mcp.tool()
    def get_ordered_contacts(active_place: str | None = None) -> list[dict]:
        """
        Get the side-panel contact list, ordered for the current map view.

        Contacts on screen come first. With nothing on screen, contacts in the
        active place lead (exact city match, then partial match).

        Args:
            active_place: Place to favor (default: the currently selected place)

        Returns:
            Every contact exactly once, each with a "visible" flag
        """
        return _get_ordered_contacts(active_place)

    @mcp.tool()
    def get_statistics() -> dict:
        """
        Get statistics about the loaded contacts.

        Returns:
            Counts of contacts, geocoded contacts, cities and states, top cities,
            import warnings and geocode cache size
        """
        return _get_statistics()

    # ============== MAP TOOLS (3) ==============

    @mcp.tool()
    def set_viewport(west: float, south: float, east: float, north: float) -> dict:
        """
        Report the map's visible bounds after a pan or zoom settles.

        Args:
            west: Western longitude
            south: Southern latitude
            east: Eastern longitude
            north: Northern latitude

        Returns:
            The bounds and the contacts now visible
        """
        return _set_viewport(west, south, east, north)

    @mcp.tool()
    def select_contact(contact_id: str) -> dict:
        """
        Highlight a contact and fly the camera to it (street zoom).

        Contacts without coordinates are highlighted but the camera stays put.

        Args:
            contact_id: Contact ID (see get_contacts)

        Returns:
            The contact record and new selection state
        """
        return _select_contact(contact_id)

    @mcp.tool()
    async def select_place(name: str) -> dict:
        """
        Highlight a city or state and fly the camera to it.

        States zoom out to show the region; cities zoom in to city level.

        Args:
            name: City or state name

        Returns:
            The resolved location and new selection state, or not_found/failed
        """
        return await _select_place(name)
