"""Equirectangular distance helpers shared by visit matching and home proximity"""

import math
from config import METRES_PER_DEG_LAT, METRES_PER_MILE


def metres_per_degree_longitude(lat: float) -> float:
    """Length of one degree of longitude at the given latitude"""
    return METRES_PER_DEG_LAT * math.cos(math.radians(lat))


def squared_distance_metres(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Squared planar distance in metres between two lat/lon pairs.

    The first point's latitude sets the longitude scale, so the result is only
    meaningful for points a few miles apart at most. Callers compare against a
    squared radius to avoid the square root.
    """
    dx = (lon1 - lon2) * metres_per_degree_longitude(lat1)
    dy = (lat1 - lat2) * METRES_PER_DEG_LAT
    return dx * dx + dy * dy


def miles_to_metres(miles: float) -> float:
    return miles * METRES_PER_MILE


def distance_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Approximate distance in miles, using the same projection as squared_distance_metres"""
    return math.sqrt(squared_distance_metres(lat1, lon1, lat2, lon2)) / METRES_PER_MILE
