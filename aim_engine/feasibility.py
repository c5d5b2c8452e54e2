"""
Feasibility and plays-like filtering of ranked candidates.

Plays-like distance = surface distance + elevation change (yards); uphill plays
longer, downhill shorter. Elevations come from an external, best-effort async
lookup (point -> meters or None). A failed, slow or missing lookup degrades to
the surface distance and never rejects a candidate by itself.
"""

from __future__ import annotations

import asyncio
import inspect
import math
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from .geo import YARDS_PER_METER, distance_yards, haversine_m
from .logging import get_logger
from .types import Candidate, GeoPoint

logger = get_logger(__name__)

ElevationLookup = Callable[[GeoPoint], Union[Awaitable[Optional[float]], Optional[float]]]


@dataclass(frozen=True)
class PlaysLike:
    surface_yards: float
    plays_like_yards: float
    elevation_delta_yards: Optional[float] = None  # None when elevation was unavailable


def plays_like_yards(surface_yards, elevation_delta_yards, uphill_factor=1.0, downhill_factor=1.0):
    """Surface distance adjusted by an elevation change already in yards."""
    if elevation_delta_yards is None:
        return surface_yards
    factor = uphill_factor if elevation_delta_yards > 0 else downhill_factor
    return surface_yards + elevation_delta_yards * factor


async def sample_elevation(lookup: Optional[ElevationLookup], point: GeoPoint, timeout_s=2.0):
    """Elevation in meters, or None if the lookup is missing, fails or times out."""
    if lookup is None:
        return None
    try:
        value = lookup(point)
        if inspect.isawaitable(value):
            value = await asyncio.wait_for(value, timeout_s)
    except Exception as exc:
        logger.warning(
            "elevation lookup failed at (%.6f, %.6f): %s; using surface distance",
            point.lat, point.lon, str(exc) or type(exc).__name__,
        )
        return None
    if value is None:
        return None
    value = float(value)
    return value if math.isfinite(value) else None


async def plays_like_distance(
    start: GeoPoint,
    target: GeoPoint,
    lookup: Optional[ElevationLookup],
    *,
    timeout_s=2.0,
    uphill_factor=1.0,
    downhill_factor=1.0,
    start_elevation: Optional[float] = None,
) -> PlaysLike:
    surface = distance_yards(start, target)
    if start_elevation is None:
        start_elevation = await sample_elevation(lookup, start, timeout_s)
    target_elevation = await sample_elevation(lookup, target, timeout_s)
    if start_elevation is None or target_elevation is None:
        return PlaysLike(surface, surface, None)

    delta_yds = (target_elevation - start_elevation) * YARDS_PER_METER
    return PlaysLike(
        surface,
        plays_like_yards(surface, delta_yds, uphill_factor, downhill_factor),
        delta_yds,
    )


# ============================================================
# Candidate filtering
# ============================================================

async def screen_candidates(
    candidates: Sequence[Candidate],
    start: GeoPoint,
    pin: GeoPoint,
    lookup: Optional[ElevationLookup],
    config,
) -> List[Candidate]:
    """
    Drop candidates that break the distance constraints; order is preserved.

    - plays-like distance must not exceed config.max_distance_yards
    - with config.disallow_farther_than_pin, surface distance from start must not
      exceed the start->pin distance

    Lookups for all candidates run concurrently.
    """
    if not candidates:
        return []

    start_elevation = await sample_elevation(lookup, start, config.elevation_timeout_s)
    pin_yards = distance_yards(start, pin)

    async def check(candidate: Candidate) -> Optional[Candidate]:
        if start_elevation is None:
            surface = distance_yards(start, candidate.position)
            measured = PlaysLike(surface, surface, None)
        else:
            measured = await plays_like_distance(
                start,
                candidate.position,
                lookup,
                timeout_s=config.elevation_timeout_s,
                uphill_factor=config.uphill_factor,
                downhill_factor=config.downhill_factor,
                start_elevation=start_elevation,
            )
        if measured.plays_like_yards > config.max_distance_yards:
            return None
        if config.disallow_farther_than_pin and measured.surface_yards > pin_yards:
            return None
        return replace(
            candidate,
            distance_from_start=measured.surface_yards,
            plays_like_yards=measured.plays_like_yards,
        )

    checked = await asyncio.gather(*(check(c) for c in candidates))
    kept = [c for c in checked if c is not None]
    logger.debug("feasibility kept %d of %d candidates", len(kept), len(candidates))
    return kept


def enforce_separation(candidates: Sequence[Candidate], min_separation_m, limit=None) -> List[Candidate]:
    """Greedy pass over best-first candidates, skipping any within `min_separation_m`
    of one already accepted."""
    accepted: List[Candidate] = []
    for candidate in candidates:
        if limit is not None and len(accepted) >= limit:
            break
        if any(haversine_m(candidate.position, a.position) < min_separation_m for a in accepted):
            continue
        accepted.append(candidate)
    return accepted


async def filter_candidates(
    candidates: Sequence[Candidate],
    start: GeoPoint,
    pin: GeoPoint,
    lookup: Optional[ElevationLookup],
    config,
    limit=None,
) -> List[Candidate]:
    """Feasibility screen followed by the separation pass."""
    feasible = await screen_candidates(candidates, start, pin, lookup, config)
    return enforce_separation(feasible, config.min_separation_meters, limit)
