import math

import numpy as np

from .types import GeoPoint, LocalPoint

# ============================================================
# Constants
# ============================================================

EARTH_RADIUS_M = 6371000.0
METERS_PER_DEG_LAT = 111320.0
YARDS_PER_METER = 1.09361
METERS_PER_YARD = 1.0 / YARDS_PER_METER


# ============================================================
# Local planar frame (equirectangular, good to <1% under ~1 km)
# ============================================================

def meters_per_deg_lon(ref_lat):
    return METERS_PER_DEG_LAT * math.cos(math.radians(ref_lat))


def to_local(p: GeoPoint, ref: GeoPoint) -> LocalPoint:
    """Offset of `p` from `ref` in meters (x east, y north)."""
    return LocalPoint(
        x=(p.lon - ref.lon) * meters_per_deg_lon(ref.lat),
        y=(p.lat - ref.lat) * METERS_PER_DEG_LAT,
    )


def to_geo(p: LocalPoint, ref: GeoPoint) -> GeoPoint:
    """Inverse of :func:`to_local` for the same reference point."""
    return GeoPoint(
        lat=ref.lat + p.y / METERS_PER_DEG_LAT,
        lon=ref.lon + p.x / meters_per_deg_lon(ref.lat),
    )


def offset(ref: GeoPoint, distance_m, bearing):
    """Point `distance_m` meters from `ref` along compass `bearing` (radians)."""
    return to_geo(
        LocalPoint(x=distance_m * math.sin(bearing), y=distance_m * math.cos(bearing)),
        ref,
    )


# ============================================================
# Great-circle helpers
# ============================================================

def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    d_phi = phi2 - phi1
    d_lambda = math.radians(b.lon - a.lon)
    h = (
        math.sin(d_phi / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    )
    return 2.0 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1.0 - h))


def distance_yards(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine distance in yards. Every distance in the engine goes through here."""
    return haversine_m(a, b) * YARDS_PER_METER


def bearing_rad(a: GeoPoint, b: GeoPoint) -> float:
    """Forward azimuth from `a` to `b`, clockwise from north, in [0, 2*pi)."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    d_lambda = math.radians(b.lon - a.lon)
    y = math.sin(d_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda)
    theta = math.atan2(y, x) % (2.0 * math.pi)
    # -0.0 % 2pi and tiny negatives can round up to exactly 2pi
    if theta >= 2.0 * math.pi:
        theta = 0.0
    return theta


def angle_diff(a, b):
    """Signed difference a - b wrapped into [-pi, pi)."""
    return (a - b + math.pi) % (2.0 * math.pi) - math.pi


def yards_to_meters(yards):
    return yards * METERS_PER_YARD


def distance_yards_array(lat, lon, target: GeoPoint):
    """Vectorized :func:`distance_yards` from each (lat, lon) to `target`."""
    phi1 = np.radians(np.asarray(lat, dtype=np.float64))
    phi2 = math.radians(target.lat)
    d_phi = phi2 - phi1
    d_lambda = np.radians(target.lon - np.asarray(lon, dtype=np.float64))
    h = np.sin(d_phi / 2.0) ** 2 + np.cos(phi1) * math.cos(phi2) * np.sin(d_lambda / 2.0) ** 2
    meters = 2.0 * EARTH_RADIUS_M * np.arctan2(np.sqrt(h), np.sqrt(1.0 - h))
    return meters * YARDS_PER_METER
