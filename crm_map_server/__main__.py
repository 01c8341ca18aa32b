"""Entry point for running the CRM map server as a module.

Usage:
    python -m crm_map_server --contacts-file /path/to/contacts.csv
    crm-map-server --contacts-file /path/to/contacts.csv
"""

import argparse
import logging
import os


def main():
    """Main entry point for the CRM map MCP server."""
    parser = argparse.ArgumentParser(
        description="CRM Map Server - Search and map CRM contacts via MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  crm-map-server --contacts-file ~/contacts.csv
  crm-map-server -f ~/contacts.csv --mapbox-token pk.xxx

Environment variables:
  CONTACTS_FILE             Path to contacts CSV
  MAPBOX_ACCESS_TOKEN       Mapbox token for place lookups
  GEOCODE_COUNTRIES         Countries searched first (default: us,ca,gb,de,fr)
  PROXIMITY_RADIUS_MILES    Radius for "near" cities (default: 60)
  GEOCODE_ON_IMPORT         Geocode contact addresses without coordinates at startup
""",
    )
    parser.add_argument(
        "--contacts-file",
        "-f",
        metavar="PATH",
        help="Path to contacts CSV (or set CONTACTS_FILE env var)",
    )
    parser.add_argument(
        "--mapbox-token",
        "-t",
        metavar="TOKEN",
        help="Mapbox access token (or set MAPBOX_ACCESS_TOKEN env var)",
    )
    parser.add_argument(
        "--geocode-on-import",
        action="store_true",
        help="Geocode contact addresses that have no coordinates (or set GEOCODE_ON_IMPORT=true)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level)

    # CLI args override env vars
    if args.contacts_file:
        os.environ["CONTACTS_FILE"] = args.contacts_file
    if args.mapbox_token:
        os.environ["MAPBOX_ACCESS_TOKEN"] = args.mapbox_token
    if args.geocode_on_import:
        os.environ["GEOCODE_ON_IMPORT"] = "true"

    # Import and initialize AFTER setting env vars
    from . import initialize, mcp

    initialize()
    mcp.run()


if __name__ == "__main__":
    main()
