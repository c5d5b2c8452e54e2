from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .errors import InputError
from .skills import DispersionMultipliers

# ============================================================
# Defaults
# ============================================================

DEFAULT_MAX_DISTANCE_YARDS = 250.0
DEFAULT_EARLY_SAMPLES = 400
DEFAULT_FINAL_SAMPLES = 800
DEFAULT_CI95_STOP = 0.03
DEFAULT_MIN_SAMPLES = 50
DEFAULT_MIN_SEPARATION_M = 2.74  # ~3 yds
DEFAULT_FINAL_TOP_K = 5
DEFAULT_SCREEN_POOL = 100
DEFAULT_ELEVATION_TIMEOUT_S = 2.0


class Strategy(str, Enum):
    FULL_GRID = "FullGrid"
    RING_GRID = "RingGrid"
    CEM = "CEM"

    @classmethod
    def parse(cls, value) -> "Strategy":
        if isinstance(value, cls):
            return value
        key = str(value or "").replace("_", "").replace("-", "").lower()
        for s in cls:
            if s.value.lower() == key:
                return s
        raise InputError(f"unknown strategy {value!r}; expected one of {[s.value for s in cls]}")


def _positive(label, value):
    if value is None or not math.isfinite(value) or value <= 0:
        raise InputError(f"{label} must be positive, got {value}")


@dataclass
class FullGridParams:
    spacing_m: float = 10.0

    def validate(self) -> None:
        _positive("grid spacing_m", self.spacing_m)


@dataclass
class RingGridParams:
    ring_step_m: float = 10.0
    arc_spacing_m: float = 10.0
    min_points_per_ring: int = 16
    refine_top_seeds: int = 12
    refine_steps: int = 7
    refine_radius_m: Optional[float] = None  # None -> max(0.03 * R, 9 m)
    random_cover: int = 200

    def validate(self) -> None:
        _positive("ring_step_m", self.ring_step_m)
        _positive("arc_spacing_m", self.arc_spacing_m)
        if self.min_points_per_ring < 2:
            raise InputError("min_points_per_ring must be >= 2")
        if self.refine_top_seeds < 0 or self.random_cover < 0:
            raise InputError("refine_top_seeds and random_cover must be >= 0")
        if self.refine_steps < 1:
            raise InputError("refine_steps must be >= 1")
        if self.refine_radius_m is not None:
            _positive("refine_radius_m", self.refine_radius_m)


@dataclass
class CEMParams:
    iterations: int = 8
    population: int = 50
    elite_fraction: float = 0.2
    init_ratio: float = 0.65  # initial mean radius as a fraction of start->pin
    init_sigma_ratio: float = 0.4  # initial radial sigma as a fraction of R
    init_sigma_angle: float = math.pi / 4
    sigma_floor_m: float = 15.0
    sigma_floor_decay: float = 0.6
    sigma_floor_min_m: float = 1.0
    isotropic: bool = False
    convergence_threshold: float = 1e-4
    stagnation_limit: int = 2

    def validate(self) -> None:
        if self.iterations < 1 or self.population < 1:
            raise InputError("CEM iterations and population must be >= 1")
        if not 0.0 < self.elite_fraction <= 1.0:
            raise InputError(f"elite_fraction must be in (0, 1], got {self.elite_fraction}")
        _positive("init_ratio", self.init_ratio)
        _positive("init_sigma_ratio", self.init_sigma_ratio)
        _positive("init_sigma_angle", self.init_sigma_angle)
        _positive("sigma_floor_m", self.sigma_floor_m)
        _positive("sigma_floor_min_m", self.sigma_floor_min_m)
        if not 0.0 < self.sigma_floor_decay <= 1.0:
            raise InputError(f"sigma_floor_decay must be in (0, 1], got {self.sigma_floor_decay}")
        if self.stagnation_limit < 1:
            raise InputError("stagnation_limit must be >= 1")


@dataclass
class OptimizerConfig:
    strategy: Strategy = Strategy.RING_GRID
    max_distance_yards: float = DEFAULT_MAX_DISTANCE_YARDS
    early_sample_count: int = DEFAULT_EARLY_SAMPLES
    final_sample_count: int = DEFAULT_FINAL_SAMPLES
    ci95_stop_threshold: Optional[float] = DEFAULT_CI95_STOP
    min_separation_meters: float = DEFAULT_MIN_SEPARATION_M
    disallow_farther_than_pin: bool = False

    min_samples: int = DEFAULT_MIN_SAMPLES
    final_top_k: int = DEFAULT_FINAL_TOP_K
    screen_pool: int = DEFAULT_SCREEN_POOL
    elevation_timeout_s: float = DEFAULT_ELEVATION_TIMEOUT_S
    uphill_factor: float = 1.0
    downhill_factor: float = 1.0
    workers: int = 1
    seed: int = 0
    multipliers: DispersionMultipliers = field(default_factory=DispersionMultipliers)

    grid: FullGridParams = field(default_factory=FullGridParams)
    ring: RingGridParams = field(default_factory=RingGridParams)
    cem: CEMParams = field(default_factory=CEMParams)

    def __post_init__(self):
        self.strategy = Strategy.parse(self.strategy)

    def validate(self) -> None:
        _positive("max_distance_yards", self.max_distance_yards)
        for label, value in (
            ("early_sample_count", self.early_sample_count),
            ("final_sample_count", self.final_sample_count),
        ):
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InputError(f"{label} must be a positive int, got {value!r}")
        if self.ci95_stop_threshold is not None and not (
            math.isfinite(self.ci95_stop_threshold) and self.ci95_stop_threshold >= 0.0
        ):
            raise InputError(f"ci95_stop_threshold must be >= 0, got {self.ci95_stop_threshold}")
        if not math.isfinite(self.min_separation_meters) or self.min_separation_meters < 0:
            raise InputError(f"min_separation_meters must be >= 0, got {self.min_separation_meters}")
        if self.min_samples < 1:
            raise InputError("min_samples must be >= 1")
        if self.final_top_k < 1 or self.screen_pool < 1:
            raise InputError("final_top_k and screen_pool must be >= 1")
        _positive("elevation_timeout_s", self.elevation_timeout_s)
        _positive("uphill_factor", self.uphill_factor)
        _positive("downhill_factor", self.downhill_factor)
        if self.workers < 1:
            raise InputError(f"workers must be >= 1, got {self.workers}")
        self.multipliers.validate()
        self.grid.validate()
        self.ring.validate()
        self.cem.validate()
