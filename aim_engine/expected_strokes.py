import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional, Tuple

from .logging import get_logger
from .types import TerrainClass

logger = get_logger(__name__)

# ============================================================
# Constants & Baselines
# ============================================================

# Fitted 6th-degree polynomials (PGA Tour strokes-to-hole-out data), c0..c6 in yards.
PUTTING_COEFFS = (
    8.22701978e-01, 3.48808959e-01, -4.45111801e-02,
    3.05771434e-03, -1.12243654e-04, 2.09685358e-06, -1.57305673e-08,
)
FAIRWAY_COEFFS = (
    1.87505684, 3.44179367e-02, -5.63306650e-04,
    4.70425536e-06, -2.02041273e-08, 4.38015739e-11, -3.78163505e-14,
)
ROUGH_COEFFS = (
    2.01325284, 3.73834464e-02, -6.08542541e-04,
    5.01193038e-06, -2.08847962e-08, 4.32228049e-11, -3.53899274e-14,
)
SAND_COEFFS = (
    2.14601649, 2.61044155e-02, -2.69537153e-04,
    1.48010114e-06, -3.99813977e-09, 5.24740763e-12, -2.67577455e-15,
)
RECOVERY_COEFFS = (
    1.34932958, 6.39685426e-02, -6.38754410e-04,
    3.09148159e-06, -7.60396073e-09, 9.28546297e-12, -4.46945896e-15,
)

MIN_STROKES = 1.0
LONG_ANCHOR_YARDS = 600.0
LONG_TAIL_SLOPE = 0.004  # strokes per yard past a curve fitted out to 600 yds

# Flat penalties added on top of the rough curve
PENALTY_OUT_OF_BOUNDS = 2.0
PENALTY_WATER = 1.0
PENALTY_HAZARD = 1.0

CACHE_SIZE_LIMIT = 1000
CACHE_DISTANCE_DECIMALS = 2


@dataclass(frozen=True)
class StrokesCurve:
    name: str
    coefficients: Tuple[float, ...]
    domain_min: float
    domain_max: float
    base_strokes: float  # value at 0 yds for the short-range extrapolation
    anchor_strokes: Optional[float] = None  # value at LONG_ANCHOR_YARDS, if domain ends before it
    tail_slope: float = LONG_TAIL_SLOPE


CURVES = {
    "putting": StrokesCurve("putting", PUTTING_COEFFS, 0.333, 33.39, 1.0, anchor_strokes=5.25),
    "fairway": StrokesCurve("fairway", FAIRWAY_COEFFS, 7.43, 348.9, 1.0, anchor_strokes=5.25),
    "rough": StrokesCurve("rough", ROUGH_COEFFS, 7.76, 348.9, 1.5, anchor_strokes=5.4),
    "sand": StrokesCurve("sand", SAND_COEFFS, 7.96, 600.0, 2.0),
    "recovery": StrokesCurve("recovery", RECOVERY_COEFFS, 100.0, 600.0, 3.0),
}

# Surface label aliases accepted by expected_strokes()
SURFACE_ALIASES = {
    "green": "putting",
    "putting": "putting",
    "fringe": "putting",
    "tee": "fairway",
    "fairway": "fairway",
    "rough": "rough",
    "unknown": "rough",
    "sand": "sand",
    "bunker": "sand",
    "recovery": "recovery",
    "trees": "recovery",
    "punch": "recovery",
}

# TerrainClass -> (curve, flat penalty). Exhaustive over the enum.
CLASS_SCORING = {
    TerrainClass.UNKNOWN: ("rough", 0.0),
    TerrainClass.OUT_OF_BOUNDS: ("rough", PENALTY_OUT_OF_BOUNDS),
    TerrainClass.WATER: ("rough", PENALTY_WATER),
    TerrainClass.HAZARD: ("rough", PENALTY_HAZARD),
    TerrainClass.BUNKER: ("sand", 0.0),
    TerrainClass.GREEN: ("putting", 0.0),
    TerrainClass.FAIRWAY: ("fairway", 0.0),
    TerrainClass.RECOVERY: ("recovery", 0.0),
    TerrainClass.ROUGH: ("rough", 0.0),
    TerrainClass.TEE: ("fairway", 0.0),
}


# ============================================================
# Curve evaluation
# ============================================================

def evaluate_polynomial(x, coefficients):
    """Horner evaluation, clamped to the 1-stroke floor."""
    result = 0.0
    for c in reversed(coefficients):
        result = result * x + c
    return max(MIN_STROKES, result)


def curve_strokes(distance_yards, curve: StrokesCurve):
    """
    Expected strokes on one fitted curve, with linear tails on both sides:

      - d <= 0:            base strokes
      - 0 < d < min:       line from (0, base) to (min, poly(min))
      - min <= d <= max:   the polynomial
      - d > max:           line from (max, poly(max)) toward (600, anchor),
                           or a fixed tail slope when the fit already reaches 600
    """
    d = float(distance_yards)
    if d <= 0.0:
        return max(MIN_STROKES, curve.base_strokes)

    if d < curve.domain_min:
        first = evaluate_polynomial(curve.domain_min, curve.coefficients)
        slope = (first - curve.base_strokes) / curve.domain_min
        return max(MIN_STROKES, curve.base_strokes + slope * d)

    if d <= curve.domain_max:
        return evaluate_polynomial(d, curve.coefficients)

    last = evaluate_polynomial(curve.domain_max, curve.coefficients)
    if curve.anchor_strokes is not None and LONG_ANCHOR_YARDS > curve.domain_max:
        slope = (curve.anchor_strokes - last) / (LONG_ANCHOR_YARDS - curve.domain_max)
    else:
        slope = curve.tail_slope
    return max(MIN_STROKES, last + (d - curve.domain_max) * slope)


def expected_strokes(distance_yards, surface="fairway"):
    """
    Expected strokes to hole out from `distance_yards` on `surface`.

    - surface: 'green', 'tee', 'fairway', 'rough', 'sand', 'recovery', 'water', ...
      Unrecognised labels fall back to rough.
    - 'water' is rough + 1 penalty stroke.

    Never raises for out-of-domain distances; the curves extrapolate linearly.
    """
    s = (surface or "fairway").lower().strip()
    if s == "water":
        return curve_strokes(distance_yards, CURVES["rough"]) + PENALTY_WATER
    curve_name = SURFACE_ALIASES.get(s, "rough")
    return curve_strokes(distance_yards, CURVES[curve_name])


def strokes_for_class(distance_yards, terrain: TerrainClass):
    """Expected strokes for a landing in `terrain`, flat penalties included."""
    curve_name, penalty = CLASS_SCORING[TerrainClass(terrain)]
    return curve_strokes(distance_yards, CURVES[curve_name]) + penalty


# ============================================================
# Memoized model (one per evaluation session)
# ============================================================

class ExpectedStrokesModel:
    """
    `strokes_for_class` behind a bounded FIFO cache.

    Distances are rounded to 0.01 yd and the curve is always evaluated at the
    rounded distance, so a cache hit returns exactly what a miss would compute.
    Safe to share between threads.
    """

    def __init__(self, cache_size=CACHE_SIZE_LIMIT):
        self.cache_size = int(cache_size)
        self._cache = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def strokes(self, distance_yards, terrain: TerrainClass) -> float:
        d = round(float(distance_yards), CACHE_DISTANCE_DECIMALS)
        key = (d, int(terrain))
        with self._lock:
            value = self._cache.get(key)
            if value is not None:
                self.hits += 1
                return value

        value = strokes_for_class(d, terrain)

        with self._lock:
            self.misses += 1
            if key not in self._cache:
                if self.cache_size > 0 and len(self._cache) >= self.cache_size:
                    self._cache.popitem(last=False)
                if self.cache_size > 0:
                    self._cache[key] = value
        return value

    def cache_info(self):
        with self._lock:
            return {
                "size": len(self._cache),
                "limit": self.cache_size,
                "hits": self.hits,
                "misses": self.misses,
            }

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
            self.hits = 0
            self.misses = 0
        logger.debug("expected strokes cache cleared")
