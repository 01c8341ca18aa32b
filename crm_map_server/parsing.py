"""Contacts CSV loading."""

import csv
import logging
from pathlib import Path

from . import state
from .constants import ADDRESS_PLACE_TYPES
from .geocoding import GeocodingProvider, ResolutionFailed
from .helpers import clean_text, get_contact_id, parse_coordinate
from .models import Contact

logger = logging.getLogger(__name__)

PLACEHOLDER_FIRST_NAME = "Unknown"
PLACEHOLDER_LAST_NAME = "Contact"

# Normalized CSV header -> Contact field
HEADER_ALIASES = {
    "id": "id",
    "first_name": "first_name",
    "firstname": "first_name",
    "first": "first_name",
    "last_name": "last_name",
    "lastname": "last_name",
    "last": "last_name",
    "account_name": "account_name",
    "account": "account_name",
    "company": "account_name",
    "organization": "account_name",
    "title": "title",
    "mailing_street": "street",
    "street": "street",
    "address": "street",
    "mailing_city": "city",
    "city": "city",
    "mailing_state": "state",
    "state": "state",
    "mailing_zip": "zip",
    "zip": "zip",
    "postal_code": "zip",
    "mailing_country": "country",
    "country": "country",
    "phone": "phone",
    "email": "email",
    "latitude": "latitude",
    "lat": "latitude",
    "longitude": "longitude",
    "lon": "longitude",
    "lng": "longitude",
}


class InvalidContact(ValueError):
    """A contact row is missing required fields. Reported, never fatal."""

    def __init__(self, row_number: int, reason: str):
        super().__init__(f"Row {row_number}: {reason}")
        self.row_number = row_number
        self.reason = reason


def _normalize_header(header: str) -> str:
    return "_".join(header.strip().lower().replace("-", " ").split())


def _map_row(row: dict[str, str | None]) -> dict[str, str | None]:
    fields: dict[str, str | None] = {}
    for header, value in row.items():
        if header is None:
            continue
        field_name = HEADER_ALIASES.get(_normalize_header(header))
        if field_name and field_name not in fields:
            fields[field_name] = value
    return fields


def _validate_names(row_number: int, first: str | None, last: str | None) -> None:
    missing = [label for label, value in (("first name", first), ("last name", last)) if not value]
    if missing:
        raise InvalidContact(row_number, f"missing {' and '.join(missing)}")


def parse_contact_row(
    row: dict[str, str | None], row_number: int
) -> tuple[Contact, list[str], bool]:
    """Build a Contact from a CSV row.

    Returns the contact, any warnings, and whether the row carried a full name.
    Rows without a name keep placeholder names and a row-based ID; a half-set or
    malformed coordinate pair is dropped entirely.
    """
    fields = _map_row(row)
    warnings: list[str] = []

    first = clean_text(fields.get("first_name"))
    last = clean_text(fields.get("last_name"))
    named = True
    try:
        _validate_names(row_number, first, last)
    except InvalidContact as e:
        warnings.append(str(e))
        named = False
        first = first or PLACEHOLDER_FIRST_NAME
        last = last or PLACEHOLDER_LAST_NAME
    fallback_id = get_contact_id(first, last) if named else f"row-{row_number}"  # type: ignore[arg-type]

    lat = parse_coordinate(fields.get("latitude"))
    lon = parse_coordinate(fields.get("longitude"))
    if (lat is None) != (lon is None):
        warnings.append(f"Row {row_number}: only one coordinate present, treating as ungeocoded")
        lat = lon = None
    elif lat is not None and lon is not None and not (-90 <= lat <= 90 and -180 <= lon <= 180):
        warnings.append(f"Row {row_number}: coordinates out of range, treating as ungeocoded")
        lat = lon = None

    contact = Contact(
        id=clean_text(fields.get("id")) or fallback_id,
        first_name=first,  # type: ignore[arg-type]
        last_name=last,  # type: ignore[arg-type]
        account_name=clean_text(fields.get("account_name")),
        title=clean_text(fields.get("title")),
        street=clean_text(fields.get("street")),
        city=clean_text(fields.get("city")),
        state=clean_text(fields.get("state")),
        zip=clean_text(fields.get("zip")),
        country=clean_text(fields.get("country")),
        phone=clean_text(fields.get("phone")),
        email=clean_text(fields.get("email")),
        latitude=lat,
        longitude=lon,
    )
    return contact, warnings, named


def contact_address(contact: Contact) -> str | None:
    """Single-line mailing address for geocoding, or None if there is nothing to look up."""
    parts = [contact.street, contact.city, contact.state, contact.zip, contact.country]
    address = ", ".join(p for p in parts if p)
    return address or None


def geocode_contacts(contacts: list[Contact], provider: GeocodingProvider) -> list[str]:
    """Fill in coordinates for contacts that have an address but no position.

    Lookups are global and one per distinct address. Misses and provider errors
    leave the contact ungeocoded and are returned as warnings.
    """
    warnings: list[str] = []
    seen: dict[str, tuple[float, float] | None] = {}
    for contact in contacts:
        if contact.is_geocoded:
            continue
        address = contact_address(contact)
        if address is None:
            continue

        key = address.lower()
        if key not in seen:
            try:
                match = provider.search(address, ADDRESS_PLACE_TYPES, None)
            except ResolutionFailed as e:
                warnings.append(f"Geocoding failed for {contact.full_name()}: {e.reason}")
                continue
            seen[key] = (match.longitude, match.latitude) if match is not None else None

        position = seen[key]
        if position is None:
            warnings.append(f"Address not found for {contact.full_name()}: {address}")
            continue
        contact.longitude, contact.latitude = position

    for warning in warnings:
        logger.warning(f"Contact import: {warning}")
    return warnings


def load_contacts(path: Path | None = None, provider: GeocodingProvider | None = None) -> None:
    """Load contacts from CSV into state.contacts.

    Contacts sharing a first and last name are upserted: the later row wins but
    keeps the original position. With a provider, contacts that have an address
    but no coordinates are geocoded before they are stored.
    """
    path = path or state.CONTACTS_FILE
    if path is None:
        raise FileNotFoundError("No contacts file configured")

    loaded: dict[str, Contact] = {}
    warnings_seen: list[str] = []
    by_name: dict[tuple[str, str], str] = {}

    with open(path, newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        # Header is line 1
        for row_number, row in enumerate(reader, start=2):
            if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
                continue
            contact, warnings, named = parse_contact_row(row, row_number)
            for warning in warnings:
                logger.warning(f"Contact import: {warning}")
            warnings_seen.extend(warnings)

            if not named:
                loaded[contact.id] = contact
                continue

            name_key = (contact.first_name.lower(), contact.last_name.lower())
            previous_id = by_name.get(name_key)
            if previous_id is not None and previous_id != contact.id:
                # Replace in place so file order is preserved
                loaded = {
                    (contact.id if cid == previous_id else cid): (contact if cid == previous_id else c)
                    for cid, c in loaded.items()
                }
            else:
                loaded[contact.id] = contact
            by_name[name_key] = contact.id

    if provider is not None:
        warnings_seen.extend(geocode_contacts(list(loaded.values()), provider))

    # Updated in place; other modules keep references to these containers
    state.contacts.clear()
    state.contacts.update(loaded)
    state.import_warnings.clear()
    state.import_warnings.extend(warnings_seen)

    geocoded = sum(1 for c in state.contacts.values() if c.is_geocoded)
    logger.info(
        f"Loaded {len(state.contacts)} contacts from {path} "
        f"({geocoded} geocoded, {len(state.import_warnings)} warnings)"
    )
