"""Configuration and global mutable state for the CRM map server."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from .constants import (
    DEFAULT_COUNTRY_ALLOW_LIST,
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_GEOCODE_TIMEOUT_SECONDS,
    DEFAULT_MAX_CITIES,
    DEFAULT_MAX_CITIES_TOTAL,
    DEFAULT_MAX_CONTACTS,
    DEFAULT_MAX_STATES,
    DEFAULT_PROXIMITY_RADIUS_MILES,
    KNOWN_COUNTRY_CODES,
)

if TYPE_CHECKING:
    from .camera import MapController, RecordingMapSurface
    from .geocoding import GeocodeResolver
    from .models import Contact
    from .search import SearchSession
    from .viewport import ViewportReconciler

logger = logging.getLogger(__name__)

# Configuration (set by configure() at startup)
CONTACTS_FILE: Path | None = None
MAPBOX_ACCESS_TOKEN: str = ""
GEOCODE_COUNTRIES: list[str] = list(DEFAULT_COUNTRY_ALLOW_LIST)
GEOCODE_TIMEOUT_SECONDS: float = DEFAULT_GEOCODE_TIMEOUT_SECONDS
GEOCODE_CACHE_TTL_SECONDS: float | None = None
GEOCODE_ON_IMPORT: bool = False
SEARCH_DEBOUNCE_MS: int = DEFAULT_DEBOUNCE_MS
PROXIMITY_RADIUS_MILES: float = DEFAULT_PROXIMITY_RADIUS_MILES
SEARCH_MAX_CONTACTS: int = DEFAULT_MAX_CONTACTS
SEARCH_MAX_CITIES: int = DEFAULT_MAX_CITIES
SEARCH_MAX_CITIES_TOTAL: int = DEFAULT_MAX_CITIES_TOTAL
SEARCH_MAX_STATES: int = DEFAULT_MAX_STATES

# Contact store (populated at startup by load_contacts)
contacts: dict[str, Contact] = {}  # contact_id -> Contact, in file order
import_warnings: list[str] = []

# Services (wired by initialize())
resolver: GeocodeResolver | None = None
session: SearchSession | None = None
reconciler: ViewportReconciler | None = None
map_controller: MapController | None = None
map_surface: RecordingMapSurface | None = None


def _resolve_contacts_path() -> Path:
    """Get contacts CSV path from CONTACTS_FILE env var.

    Raises:
        FileNotFoundError: If CONTACTS_FILE env var not set or file doesn't exist.
    """
    env_path = os.getenv("CONTACTS_FILE")
    if not env_path:
        raise FileNotFoundError(
            "CONTACTS_FILE environment variable not set.\n"
            "Set it to the path of your contacts CSV:\n"
            "  export CONTACTS_FILE=/path/to/contacts.csv\n"
            "Or use the --contacts-file CLI argument:\n"
            "  crm-map-server --contacts-file /path/to/contacts.csv"
        )
    path = Path(env_path).expanduser().resolve()
    if not path.exists():
        raise FileNotFoundError(f"Contacts file not found: {path}")
    return path


def _parse_countries(raw: str | None) -> list[str]:
    """Parse a comma-separated country allow-list, dropping unknown ISO codes."""
    if raw is None:
        return list(DEFAULT_COUNTRY_ALLOW_LIST)
    countries = []
    for code in raw.split(","):
        code = code.strip().lower()
        if not code:
            continue
        if code not in KNOWN_COUNTRY_CODES:
            logger.warning(f"Ignoring unknown country code in GEOCODE_COUNTRIES: '{code}'")
            continue
        if code not in countries:
            countries.append(code)
    return countries


def _env_float(
    name: str, default: float | None, minimum: float | None = None, strict: bool = False
) -> float | None:
    """Read a number from the environment.

    Values below `minimum` (or equal to it when `strict`) fall back to the default.
    """
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: '{raw}', using default {default}")
        return default
    if minimum is not None and (value < minimum or (strict and value == minimum)):
        logger.warning(f"Out-of-range value for {name}: '{raw}', using default {default}")
        return default
    return value


def _env_int(name: str, default: int, minimum: int | None = None, strict: bool = False) -> int:
    value = _env_float(name, default, minimum, strict)
    return int(value) if value is not None else default


def configure() -> None:
    """Initialize configuration from environment. Called at startup.

    Loads .env file if present, then reads settings from environment.
    Note: load_dotenv() does NOT override existing env vars by default.
    """
    global CONTACTS_FILE, MAPBOX_ACCESS_TOKEN, GEOCODE_COUNTRIES, GEOCODE_TIMEOUT_SECONDS
    global GEOCODE_CACHE_TTL_SECONDS, SEARCH_DEBOUNCE_MS, PROXIMITY_RADIUS_MILES
    global SEARCH_MAX_CONTACTS, SEARCH_MAX_CITIES, SEARCH_MAX_CITIES_TOTAL, SEARCH_MAX_STATES
    global GEOCODE_ON_IMPORT

    load_dotenv()  # Load .env, won't override existing env vars
    CONTACTS_FILE = _resolve_contacts_path()
    MAPBOX_ACCESS_TOKEN = os.getenv("MAPBOX_ACCESS_TOKEN", "")
    GEOCODE_COUNTRIES = _parse_countries(os.getenv("GEOCODE_COUNTRIES"))
    GEOCODE_TIMEOUT_SECONDS = _env_float(
        "GEOCODE_TIMEOUT_SECONDS", DEFAULT_GEOCODE_TIMEOUT_SECONDS, minimum=0, strict=True
    )
    GEOCODE_CACHE_TTL_SECONDS = _env_float("GEOCODE_CACHE_TTL_SECONDS", None, minimum=0, strict=True)
    GEOCODE_ON_IMPORT = os.getenv("GEOCODE_ON_IMPORT", "false").lower() == "true"
    SEARCH_DEBOUNCE_MS = _env_int("SEARCH_DEBOUNCE_MS", DEFAULT_DEBOUNCE_MS, minimum=0)
    # Zero is a valid radius: only the anchor itself is shown
    PROXIMITY_RADIUS_MILES = _env_float(
        "PROXIMITY_RADIUS_MILES", DEFAULT_PROXIMITY_RADIUS_MILES, minimum=0
    )
    SEARCH_MAX_CONTACTS = _env_int("SEARCH_MAX_CONTACTS", DEFAULT_MAX_CONTACTS, minimum=0, strict=True)
    SEARCH_MAX_CITIES = _env_int("SEARCH_MAX_CITIES", DEFAULT_MAX_CITIES, minimum=0, strict=True)
    SEARCH_MAX_CITIES_TOTAL = _env_int(
        "SEARCH_MAX_CITIES_TOTAL", DEFAULT_MAX_CITIES_TOTAL, minimum=0, strict=True
    )
    SEARCH_MAX_STATES = _env_int("SEARCH_MAX_STATES", DEFAULT_MAX_STATES, minimum=0, strict=True)

    if not MAPBOX_ACCESS_TOKEN:
        logger.warning("MAPBOX_ACCESS_TOKEN not set; external place lookups will fail")
