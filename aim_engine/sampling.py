"""
Deterministic dispersion sampling.

Landing points are drawn inside a rotated, translated ellipse using two Halton
sequences (bases 2 and 3) instead of a pseudorandom generator:

  r     = sqrt(halton(i, 2))        -> uniform density over the unit disc
  theta = 2*pi * halton(i, 3)
  (forward, lateral) = (semi_major * r * cos(theta), semi_minor * r * sin(theta))

The pair is rotated onto the shot heading (compass bearing, clockwise from
north), translated to the ellipse center in local meters and converted back to
lat/lon. Sample i depends only on (i, axes, heading, center), so a sample set can
be extended later by continuing from index n + 1.
"""

import math
from typing import Iterator, List, Tuple

import numpy as np

from .errors import InputError
from .geo import METERS_PER_DEG_LAT, meters_per_deg_lon
from .types import EllipseParams, GeoPoint, SkillPreset

HALTON_BASE_RADIUS = 2
HALTON_BASE_ANGLE = 3


# ============================================================
# Halton sequence
# ============================================================

def halton(index: int, base: int) -> float:
    """Radical inverse of `index` in `base`, in [0, 1)."""
    result = 0.0
    fraction = 1.0 / base
    i = index
    while i > 0:
        result += (i % base) * fraction
        i //= base
        fraction /= base
    return result


def halton_array(indices: np.ndarray, base: int) -> np.ndarray:
    """Vectorized :func:`halton` over an integer index array."""
    i = np.asarray(indices, dtype=np.int64).copy()
    result = np.zeros(i.shape, dtype=np.float64)
    fraction = 1.0 / base
    while np.any(i > 0):
        result += (i % base) * fraction
        i //= base
        fraction /= base
    return result


# ============================================================
# Skill -> ellipse axes
# ============================================================

def ellipse_axes(distance_yds, skill: SkillPreset, multipliers=None) -> Tuple[float, float]:
    """
    Dispersion semi-axes (yards) for a shot of `distance_yds`.

    - depth   = distance * dist_pct / 100   (long/short, along the shot line)
    - lateral = distance * tan(offline_deg) (left/right)

    `multipliers` is a DispersionMultipliers (roll condition); None means 1.0/1.0.
    """
    depth = distance_yds * (skill.dist_pct / 100.0)
    lateral = distance_yds * math.tan(math.radians(skill.offline_deg))
    if multipliers is not None:
        depth *= multipliers.depth
        lateral *= multipliers.width
    return depth, lateral


# ============================================================
# Ellipse sampler
# ============================================================

def _check_axes(semi_major, semi_minor):
    for label, value in (("semi_major", semi_major), ("semi_minor", semi_minor)):
        if value is None or not math.isfinite(value) or value <= 0.0:
            raise InputError(f"{label} must be a positive finite number, got {value}")


def _unit_disc(index):
    r = math.sqrt(halton(index, HALTON_BASE_RADIUS))
    theta = 2.0 * math.pi * halton(index, HALTON_BASE_ANGLE)
    return r, theta


def iter_ellipse_points(params: EllipseParams, start_index: int = 1) -> Iterator[GeoPoint]:
    """Endless stream of ellipse samples beginning at Halton index `start_index`."""
    params.validate()
    if start_index < 1:
        raise InputError(f"start_index is 1-based, got {start_index}")

    sin_h = math.sin(params.heading_rad)
    cos_h = math.cos(params.heading_rad)
    m_lon = meters_per_deg_lon(params.center.lat)
    index = start_index
    while True:
        r, theta = _unit_disc(index)
        forward = params.semi_major * r * math.cos(theta)
        lateral = params.semi_minor * r * math.sin(theta)
        east = forward * sin_h + lateral * cos_h
        north = forward * cos_h - lateral * sin_h
        yield GeoPoint(
            lat=params.center.lat + north / METERS_PER_DEG_LAT,
            lon=params.center.lon + east / m_lon,
        )
        index += 1


def generate(
    n: int,
    semi_major: float,
    semi_minor: float,
    heading_rad: float,
    center: GeoPoint,
    start_index: int = 1,
) -> List[GeoPoint]:
    """`n` landing points inside the ellipse (axes in meters)."""
    if n < 0:
        raise InputError(f"sample count must be >= 0, got {n}")
    _check_axes(semi_major, semi_minor)
    params = EllipseParams(semi_major, semi_minor, heading_rad, center)
    points = iter_ellipse_points(params, start_index)
    return [next(points) for _ in range(n)]


def generate_array(n: int, params: EllipseParams, start_index: int = 1) -> np.ndarray:
    """Same samples as :func:`generate`, as an (n, 2) array of (lat, lon)."""
    if n < 0:
        raise InputError(f"sample count must be >= 0, got {n}")
    params.validate()
    if start_index < 1:
        raise InputError(f"start_index is 1-based, got {start_index}")

    idx = np.arange(start_index, start_index + n, dtype=np.int64)
    r = np.sqrt(halton_array(idx, HALTON_BASE_RADIUS))
    theta = 2.0 * np.pi * halton_array(idx, HALTON_BASE_ANGLE)
    forward = params.semi_major * r * np.cos(theta)
    lateral = params.semi_minor * r * np.sin(theta)

    sin_h = math.sin(params.heading_rad)
    cos_h = math.cos(params.heading_rad)
    east = forward * sin_h + lateral * cos_h
    north = forward * cos_h - lateral * sin_h

    out = np.empty((n, 2), dtype=np.float64)
    out[:, 0] = params.center.lat + north / METERS_PER_DEG_LAT
    out[:, 1] = params.center.lon + east / meters_per_deg_lon(params.center.lat)
    return out


def ellipse_frame_coords(point: GeoPoint, params: EllipseParams):
    """(forward, lateral) meters of `point` in the ellipse's own rotated frame."""
    ref = params.center
    east = (point.lon - ref.lon) * meters_per_deg_lon(ref.lat)
    north = (point.lat - ref.lat) * METERS_PER_DEG_LAT
    sin_h = math.sin(params.heading_rad)
    cos_h = math.cos(params.heading_rad)
    forward = east * sin_h + north * cos_h
    lateral = east * cos_h - north * sin_h
    return forward, lateral
