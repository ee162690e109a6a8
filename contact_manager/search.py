"""Name and proximity filtering of contacts."""

import math
from typing import Iterable, List, Optional, Tuple

from .models import Contact

EARTH_RADIUS_MILES = 3959.0
DEFAULT_RADIUS_MILES = 10.0


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in miles."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    # rounding can push a just past 1 for near-antipodal points
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle in value.lower()


def filter_contacts(
    contacts: Iterable[Contact],
    q: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    origin: Optional[Tuple[float, float]] = None,
    radius: float = DEFAULT_RADIUS_MILES,
) -> List[Contact]:
    """
    Filter contacts by text and distance.

    All given filters must match. ``q`` is matched against first name,
    last name, email and address; ``first_name`` and ``last_name`` against
    their own field. Matching is case-insensitive substring matching.
    When ``origin`` is given, contacts without a location are dropped and
    the rest must lie within ``radius`` miles of it.
    """
    q = (q or "").strip().lower()
    first_name = (first_name or "").strip().lower()
    last_name = (last_name or "").strip().lower()

    matches = []
    for contact in contacts:
        if q and not (
            _contains(contact.first_name, q)
            or _contains(contact.last_name, q)
            or _contains(contact.email, q)
            or _contains(contact.address, q)
        ):
            continue
        if first_name and not _contains(contact.first_name, first_name):
            continue
        if last_name and not _contains(contact.last_name, last_name):
            continue
        if origin is not None:
            if not contact.has_location:
                continue
            distance = haversine_miles(
                origin[0], origin[1], contact.latitude, contact.longitude
            )
            if distance > radius:
                continue
        matches.append(contact)
    return matches
