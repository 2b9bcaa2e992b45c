"""Great-circle distances and "near me" filtering."""

from collections.abc import Iterable
from math import atan2, cos, radians, sin, sqrt

from carisekolah import config
from carisekolah.models import SchoolRecord, round_half_up


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance in kilometres between two points (in degrees)."""
    R = config.EARTH_RADIUS_KM

    dlat = radians(lat2 - lat1)
    dlng = radians(lng2 - lng1)

    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlng / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return R * c


def format_distance_km(km: float) -> str:
    """Format distance for display, e.g. "450 m" or "2.3 km"."""
    if km < 1:
        return f"{round_half_up(km * 1000)} m"
    return f"{round_half_up(km * 10) / 10:.1f} km"


def schools_with_distance(
    schools: Iterable[SchoolRecord], lat: float, lng: float, radius_km: float
) -> list[tuple[SchoolRecord, float]]:
    """(school, km) pairs within ``radius_km`` of the origin, nearest first.

    Schools without coordinates are skipped.
    """
    nearby = []
    for school in schools:
        if not school.has_coordinates:
            continue
        km = distance_km(lat, lng, school.lat, school.lng)
        if km <= radius_km:
            nearby.append((school, km))

    nearby.sort(key=lambda pair: pair[1])
    return nearby


def get_schools_near(
    schools: Iterable[SchoolRecord], lat: float, lng: float, radius_km: float
) -> list[SchoolRecord]:
    return [school for school, _ in schools_with_distance(schools, lat, lng, radius_km)]
