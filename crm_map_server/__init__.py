"""CRM Map Server - FastMCP server for putting CRM contacts on a map.

Resolves free-text place names, runs fuzzy query-as-you-type search over
contacts, cities and states, and keeps the contact list in step with the
visible map area.

Usage:
    crm-map-server --contacts-file /path/to/contacts.csv
    CONTACTS_FILE=/path/to/contacts.csv python -m crm_map_server
"""

from fastmcp import FastMCP

from . import state
from .core import _build_services
from .geocoding import MapboxProvider
from .mcp_resources import register_resources
from .mcp_tools import register_tools
from .parsing import load_contacts
from .state import configure
from .telemetry import initialize_tracing

# Initialize tracing FIRST (before creating server)
# This is a no-op if TRACING_ENABLED is not set to 'true'
initialize_tracing()

# Initialize FastMCP server
mcp = FastMCP("CRM Map Server")

# Register tools and resources
register_tools(mcp)
register_resources(mcp)

_initialized = False


def initialize():
    """Initialize the server: configure from env vars, load contacts, wire services.

    Called automatically on first use or can be called explicitly.
    Safe to call multiple times.
    """
    global _initialized
    if _initialized:
        return
    configure()
    provider = None
    if state.GEOCODE_ON_IMPORT:
        provider = MapboxProvider(state.MAPBOX_ACCESS_TOKEN, timeout=state.GEOCODE_TIMEOUT_SECONDS)
    load_contacts(provider=provider)
    _build_services()
    _initialized = True


__all__ = ["mcp", "initialize"]
