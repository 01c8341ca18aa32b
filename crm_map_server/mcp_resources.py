"""MCP resource definitions for the CRM map server."""

from collections import Counter

from . import state
from .contacts import _get_contact, _get_statistics, _known_states


def register_resources(mcp):
    """Register all MCP resources with the server."""

    @mcp.resource("crm://contact/{id}")
    def resource_contact(id: str) -> str:
        """Get contact record by ID."""
        contact = _get_contact(id)
        if contact:
            return str(contact)
        return f"Contact {id} not found"

    @mcp.resource("crm://cities")
    def resource_cities() -> str:
        """Get list of all cities with contact counts."""
        city_counts = Counter(c.city for c in state.contacts.values() if c.city)
        ordered = sorted(city_counts.items(), key=lambda x: (-x[1], x[0]))  # count desc, then name
        return "\n".join(f"{city}: {count}" for city, count in ordered)

    @mcp.resource("crm://states")
    def resource_states() -> str:
        """Get list of all states that have contacts."""
        return "\n".join(_known_states())

    @mcp.resource("crm://stats")
    def resource_stats() -> str:
        """Get contact statistics."""
        return str(_get_statistics())
