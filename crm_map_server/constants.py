"""Constants for place classification and tunable defaults."""

import geonamescache

_gc = geonamescache.GeonamesCache()

# Earth radius used by the distance utility (miles)
EARTH_RADIUS_MILES = 3958.8

# "Same metro area" radius for the soft city search
DEFAULT_PROXIMITY_RADIUS_MILES = 60.0

# Countries searched before widening to a global search
DEFAULT_COUNTRY_ALLOW_LIST = ["us", "ca", "gb", "de", "fr"]

# Place types sent to the geocoding provider
REGION_PLACE_TYPES = ("region",)
GENERAL_PLACE_TYPES = ("place", "locality", "region")
ADDRESS_PLACE_TYPES = ("address", "postcode", "place", "locality")

DEFAULT_GEOCODE_TIMEOUT_SECONDS = 5.0
DEFAULT_DEBOUNCE_MS = 300

# Result panel caps
DEFAULT_MAX_CONTACTS = 5
DEFAULT_MAX_CITIES = 3
DEFAULT_MAX_CITIES_TOTAL = 6
DEFAULT_MAX_STATES = 3

# Fewer local matches than this triggers an external lookup
DEFAULT_SCARCE_THRESHOLD = 3
MIN_GEOCODE_QUERY_LENGTH = 3

# Camera zoom levels
ZOOM_REGION = 5
ZOOM_CITY = 11
ZOOM_CONTACT = 13
DEFAULT_MAP_CENTER = (-95.0, 40.0)  # (lon, lat), continental US

# US states: code -> full name (from geonamescache)
US_STATE_CODES: dict[str, str] = {
    code.upper(): info["name"] for code, info in _gc.get_us_states().items()
}
US_STATE_NAMES: list[str] = sorted(US_STATE_CODES.values())

# Names and abbreviations recognised as administrative regions (lowercase)
REGION_NAMES: set[str] = {name.lower() for name in US_STATE_NAMES} | {
    code.lower() for code in US_STATE_CODES
}

# ISO 3166-1 alpha-2 codes (lowercase) accepted in the country allow-list
KNOWN_COUNTRY_CODES: set[str] = {code.lower() for code in _gc.get_countries()}
