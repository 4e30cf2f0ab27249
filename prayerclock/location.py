"""Location detection using IP geolocation and manual config."""

import dataclasses
import json
import os

import requests

from prayerclock.calculator import Coordinates


DEFAULT_LOCATION = {
    "city": "Jakarta",
    "region": "Jakarta",
    "country": "ID",
    "lat": -6.2088,
    "lon": 106.8456,
    "timezone": "Asia/Jakarta",
}

IPAPI_URL = "http://ip-api.com/json/"

CONFIG_DIR = os.environ.get("PRAYERCLOCK_HOME") or os.path.join(os.path.expanduser("~"), ".prayerclock")
CONFIG_FILE = os.path.join(CONFIG_DIR, "location.json")

REQUIRED_KEYS = ("city", "region", "country", "lat", "lon", "timezone")


@dataclasses.dataclass(frozen=True)
class PermissionDenied:
    """Returned instead of coordinates when the location cannot be used."""

    reason: str


def lookup_location(timeout: int = 5):
    """
    Detect current location via IP geolocation.

    Returns a dict with: city, region, country, lat, lon, timezone.
    Raises requests.RequestException on network failure and ValueError when
    the service refuses the lookup.
    """
    resp = requests.get(
        IPAPI_URL,
        params={"fields": "city,regionName,country,lat,lon,timezone,status,message"},
        timeout=timeout,
    )
    resp.raise_for_status()
    data = resp.json()
    if data.get("status") != "success":
        raise ValueError(f"ip-api lookup failed: {data.get('message', 'unknown error')}")
    return {
        "city": data.get("city", DEFAULT_LOCATION["city"]),
        "region": data.get("regionName", DEFAULT_LOCATION["region"]),
        "country": data.get("country", DEFAULT_LOCATION["country"]),
        "lat": float(data.get("lat", DEFAULT_LOCATION["lat"])),
        "lon": float(data.get("lon", DEFAULT_LOCATION["lon"])),
        "timezone": data.get("timezone", DEFAULT_LOCATION["timezone"]),
    }


def get_location(timeout: int = 5) -> dict:
    """Like lookup_location, but falls back to DEFAULT_LOCATION on failure."""
    try:
        return lookup_location(timeout)
    except (requests.RequestException, ValueError):
        return dict(DEFAULT_LOCATION)


def save_manual_location(location: dict) -> None:
    """Save a manually-set location to the config file."""
    os.makedirs(CONFIG_DIR, exist_ok=True)
    with open(CONFIG_FILE, "w", encoding="utf-8") as f:
        json.dump(location, f, indent=2)


def load_manual_location() -> dict | None:
    """Load a previously saved manual location, or return None."""
    if not os.path.isfile(CONFIG_FILE):
        return None
    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict) and all(k in data for k in REQUIRED_KEYS):
            return data
    except (OSError, ValueError):
        pass
    return None


def clear_manual_location() -> None:
    """Remove the saved manual location config."""
    if os.path.isfile(CONFIG_FILE):
        os.remove(CONFIG_FILE)


def to_coordinates(location: dict, altitude_override: float = None) -> Coordinates:
    """Build Coordinates from a location dict; a manual altitude wins over a stored one."""
    altitude = altitude_override if altitude_override is not None else location.get("altitude", 0.0)
    return Coordinates(
        latitude=float(location["lat"]),
        longitude=float(location["lon"]),
        altitude=max(0.0, float(altitude or 0.0)),
    )


def get_current_coordinates(altitude_override: float = None, allow_lookup: bool = True, timeout: int = 5):
    """
    Return (Coordinates, location dict) for the saved or detected location.

    Returns a PermissionDenied value instead when no manual location is saved
    and IP lookup is disabled or fails.
    """
    location = load_manual_location()
    if location is None:
        if not allow_lookup:
            return PermissionDenied("Location lookup is disabled and no manual location is saved")
        try:
            location = lookup_location(timeout)
        except (requests.RequestException, ValueError) as e:
            return PermissionDenied(f"Could not detect location: {e}")
    return to_coordinates(location, altitude_override), location
