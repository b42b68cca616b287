"""User-facing status messages."""

from typing import Dict

WAITING = "Waiting for a walking route…"
REQUEST_RECEIVED = "Walking route request received."
EXTRACTING_PLACES = "Analyzing place names…"
PLACES_EXTRACTED = "Place names analyzed."
GEOCODING = "Fetching locations…"
GEOCODED = "Locations fetched."
ROUTING = "Searching for the route…"
ROUTED = "Route found."
RENDERING = "Displaying the route…"
RENDERED = "Route displayed."
TOO_LONG = "The walking route takes longer than {minutes} minutes."
TRY_ANOTHER_ROUTE = "Please enter a different walking route."
FETCHING_IMAGERY = "Fetching satellite imagery…"
IMAGERY_FETCHED = "Satellite imagery fetched."
EXPLAINING = "Analyzing satellite imagery…"
EXPLAINED = "Satellite imagery analyzed."

ERROR_MESSAGES: Dict[str, str] = {
    "parse": "Please enter the departure and destination clearly.",
    "not_found": "Could not find one of the locations.",
    "route_not_found": "No walking route was found between these places.",
    "decode": "The route could not be read.",
    "geometry": "The route is too short to show satellite imagery.",
    "fetch": "Could not fetch satellite imagery.",
    "service": "An error occurred. Please try again.",
}
DEFAULT_ERROR = ERROR_MESSAGES["service"]


def error_message(category: str) -> str:
    return ERROR_MESSAGES.get(category, DEFAULT_ERROR)
