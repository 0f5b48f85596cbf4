"""
Geo-Ranked Medication Search
============================
Filters candidates by name and price ceiling, then, when the caller sent a
location, annotates each candidate with the great-circle distance to its
pharmacy and sorts nearest first.

Pure functions: no I/O, inputs are never mutated.
"""
from math import radians, sin, cos, sqrt, atan2

from .models import RankedResult

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1, lon1, lat2, lon2):
    """Great-circle distance in kilometres between two WGS84 points."""
    d_lat = radians(lat2 - lat1)
    d_lon = radians(lon2 - lon1)
    a = sin(d_lat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(d_lon / 2) ** 2
    # Rounding can push a just outside [0, 1] near antipodes.
    a = min(1.0, max(0.0, a))
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def matches(medication, query):
    """True if the medication passes the name and price filters of the query."""
    if query.name_filter and query.name_filter.lower() not in (medication.nom or '').lower():
        return False
    if query.max_price is not None and medication.prix > query.max_price:
        return False
    return True


def _distance_to(candidate, query):
    pharmacy = candidate.pharmacy
    if pharmacy is None or not pharmacy.has_coordinates:
        return None
    return haversine_km(query.origin_latitude, query.origin_longitude,
                        pharmacy.latitude, pharmacy.longitude)


def _nearest_first(result):
    # Results without a distance go last, keeping their relative order.
    return (result.distance_km is None, result.distance_km or 0.0)


def search(candidates, query):
    """
    Rank candidates for a search query.

    Args:
        candidates: Iterable of Candidate (medication joined with its pharmacy).
        query: SearchQuery with validated numeric fields.

    Returns:
        list[RankedResult]: in input order without an origin, otherwise sorted
        by increasing distance (stable).
    """
    kept = [c for c in candidates if matches(c.medication, query)]

    if not query.has_origin:
        return [RankedResult(c) for c in kept]

    ranked = [RankedResult(c, distance_km=_distance_to(c, query)) for c in kept]
    ranked.sort(key=_nearest_first)
    return ranked
