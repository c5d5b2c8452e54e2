"""Value types shared by every engine component."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Mapping, Optional

from .errors import InputError


class TerrainClass(IntEnum):
    """Terrain label. The ordinal is the byte painted into channel 0 of a mask."""

    UNKNOWN = 0
    OUT_OF_BOUNDS = 1
    WATER = 2
    HAZARD = 3
    BUNKER = 4
    GREEN = 5
    FAIRWAY = 6
    RECOVERY = 7
    ROUGH = 8
    TEE = 9


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float

    def validate(self) -> None:
        if not (math.isfinite(self.lat) and math.isfinite(self.lon)):
            raise InputError(f"GeoPoint must be finite, got ({self.lat}, {self.lon})")
        if not -90.0 <= self.lat <= 90.0:
            raise InputError(f"latitude out of range: {self.lat}")


@dataclass(frozen=True)
class LocalPoint:
    """Planar offset in meters: x east, y north of a reference GeoPoint."""

    x: float
    y: float


@dataclass(frozen=True)
class SkillPreset:
    name: str
    offline_deg: float
    dist_pct: float

    def validate(self) -> None:
        if not (math.isfinite(self.offline_deg) and 0.0 < self.offline_deg < 45.0):
            raise InputError(f"offline_deg must be in (0, 45), got {self.offline_deg}")
        if not (math.isfinite(self.dist_pct) and 0.0 < self.dist_pct < 100.0):
            raise InputError(f"dist_pct must be in (0, 100), got {self.dist_pct}")


@dataclass(frozen=True)
class EllipseParams:
    """Dispersion ellipse. Axes in meters; semi_major lies along the heading."""

    semi_major: float
    semi_minor: float
    heading_rad: float
    center: GeoPoint

    def validate(self) -> None:
        for label, value in (("semi_major", self.semi_major), ("semi_minor", self.semi_minor)):
            if not math.isfinite(value) or value <= 0.0:
                raise InputError(f"{label} must be a positive finite number, got {value}")
        if not math.isfinite(self.heading_rad):
            raise InputError(f"heading_rad must be finite, got {self.heading_rad}")
        self.center.validate()


@dataclass(frozen=True)
class StrokeSample:
    point: GeoPoint
    terrain: TerrainClass
    distance_to_target: float  # yards
    strokes: float


@dataclass(frozen=True)
class EvaluationResult:
    mean: float
    ci95: float
    n: int
    counts_by_class: Mapping[TerrainClass, int] = field(default_factory=dict)
    converged: bool = False
    aim: Optional[GeoPoint] = None
    distance_yards: float = 0.0

    @property
    def dominant_class(self) -> Optional[TerrainClass]:
        if not self.counts_by_class:
            return None
        return max(sorted(self.counts_by_class), key=lambda c: self.counts_by_class[c])

    def share(self, terrain: TerrainClass) -> float:
        if self.n == 0:
            return 0.0
        return self.counts_by_class.get(terrain, 0) / self.n


@dataclass(frozen=True)
class Candidate:
    position: GeoPoint
    evaluation: EvaluationResult
    distance_from_start: float  # yards, surface
    plays_like_yards: Optional[float] = None

    @property
    def sort_key(self):
        return (self.evaluation.mean, self.evaluation.ci95)


def counts_dict(counts: Dict[TerrainClass, int]) -> Dict[TerrainClass, int]:
    """Drop zero entries and order by class ordinal."""
    return {c: counts[c] for c in sorted(counts) if counts[c] > 0}
