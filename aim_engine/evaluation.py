"""
Single-aim Monte-Carlo evaluation.

For one (start, aim, pin) the skill preset sizes a dispersion ellipse around the
aim; every Halton landing point is classified against the mask, scored with the
expected-strokes model at its distance to the pin, and streamed into running
statistics until the sample budget or the CI95 stop rule ends the run.
"""

from __future__ import annotations

from typing import Iterator, Optional

from .errors import InputError
from .expected_strokes import ExpectedStrokesModel
from .geo import (
    METERS_PER_YARD,
    bearing_rad,
    distance_yards,
    distance_yards_array,
    yards_to_meters,
)
from .logging import get_logger
from .mask import MaskBuffer, classify, classify_array
from .sampling import ellipse_axes, generate_array, iter_ellipse_points
from .skills import DispersionMultipliers
from .stats import StoppingRule, accumulate
from .types import (
    EllipseParams,
    EvaluationResult,
    GeoPoint,
    SkillPreset,
    StrokeSample,
    TerrainClass,
    counts_dict,
)

logger = get_logger(__name__)

DEFAULT_SAMPLE_BUDGET = 600
DEFAULT_MIN_SAMPLES = 50
MIN_SHOT_METERS = 1.0

_CLASS_BY_ORDINAL = {int(c): c for c in TerrainClass}


def shot_ellipse(start: GeoPoint, aim: GeoPoint, skill: SkillPreset, multipliers=None) -> EllipseParams:
    """Dispersion ellipse (meters) for a shot from `start` aimed at `aim`."""
    shot_yds = distance_yards(start, aim)
    if shot_yds * METERS_PER_YARD < MIN_SHOT_METERS:
        raise InputError(
            f"aim is {shot_yds:.2f} yds from start; a shot needs at least {MIN_SHOT_METERS} m"
        )
    depth_yds, lateral_yds = ellipse_axes(shot_yds, skill, multipliers)
    return EllipseParams(
        semi_major=yards_to_meters(depth_yds),
        semi_minor=yards_to_meters(lateral_yds),
        heading_rad=bearing_rad(start, aim),
        center=aim,
    )


def validate_shot_inputs(start, aim, pin, skill, mask, multipliers):
    for p in (start, aim, pin):
        if not isinstance(p, GeoPoint):
            raise InputError(f"expected GeoPoint, got {type(p).__name__}")
        p.validate()
    skill.validate()
    if mask is not None and not isinstance(mask, MaskBuffer):
        raise InputError(f"mask must be a MaskBuffer or None, got {type(mask).__name__}")
    if multipliers is not None:
        multipliers.validate()
    if mask is not None:
        for label, p in (("start", start), ("pin", pin)):
            if not mask.bbox.contains(p):
                logger.warning(
                    "%s (%.6f, %.6f) lies outside the mask bbox; landings there read the edge pixels",
                    label, p.lat, p.lon,
                )


def evaluate_shot(
    start: GeoPoint,
    aim: GeoPoint,
    pin: GeoPoint,
    skill: SkillPreset,
    mask: Optional[MaskBuffer],
    rule: StoppingRule,
    model: ExpectedStrokesModel,
    multipliers: Optional[DispersionMultipliers] = None,
) -> EvaluationResult:
    """Hot path shared with the optimizer; inputs are assumed validated."""
    ellipse = shot_ellipse(start, aim, skill, multipliers)
    points = generate_array(rule.max_samples, ellipse)
    classes = classify_array(points[:, 0], points[:, 1], mask)
    remaining = distance_yards_array(points[:, 0], points[:, 1], pin)

    counts = {}

    def strokes():
        # counts only advance for values accumulate() actually pulls
        for ordinal, dist in zip(classes.tolist(), remaining.tolist()):
            terrain = _CLASS_BY_ORDINAL[ordinal]
            counts[terrain] = counts.get(terrain, 0) + 1
            yield model.strokes(dist, terrain)

    summary = accumulate(strokes(), rule)

    return EvaluationResult(
        mean=summary.mean,
        ci95=summary.ci95,
        n=summary.n,
        counts_by_class=counts_dict(counts),
        converged=summary.converged,
        aim=aim,
        distance_yards=distance_yards(start, aim),
    )


def evaluate(
    start: GeoPoint,
    aim: GeoPoint,
    pin: GeoPoint,
    skill: SkillPreset,
    mask: Optional[MaskBuffer],
    sample_budget: int = DEFAULT_SAMPLE_BUDGET,
    *,
    ci95_stop: Optional[float] = None,
    min_samples: int = DEFAULT_MIN_SAMPLES,
    multipliers: Optional[DispersionMultipliers] = None,
    model: Optional[ExpectedStrokesModel] = None,
) -> EvaluationResult:
    """
    Expected strokes for aiming at `aim` from `start` with the hole at `pin`.

    - sample_budget: maximum landing points drawn (must be > 0)
    - ci95_stop:     stop early once n >= min_samples and ci95 <= ci95_stop;
                     None draws the full budget
    - mask:          None degrades to "everything is rough"

    Raises InputError for bad inputs before any sampling.
    """
    if isinstance(sample_budget, bool) or not isinstance(sample_budget, int):
        raise InputError(f"sample_budget must be an int, got {sample_budget!r}")
    rule = StoppingRule(max_samples=sample_budget, min_samples=min_samples, epsilon=ci95_stop)
    rule.validate()
    validate_shot_inputs(start, aim, pin, skill, mask, multipliers)

    if mask is None:
        logger.warning("no terrain mask supplied; scoring every landing as rough")

    result = evaluate_shot(
        start, aim, pin, skill, mask, rule,
        model or ExpectedStrokesModel(),
        multipliers,
    )
    logger.debug(
        "evaluated aim (%.6f, %.6f): mean=%.4f ci95=%.4f n=%d converged=%s",
        aim.lat, aim.lon, result.mean, result.ci95, result.n, result.converged,
    )
    return result


def iter_stroke_samples(
    start: GeoPoint,
    aim: GeoPoint,
    pin: GeoPoint,
    skill: SkillPreset,
    mask: Optional[MaskBuffer],
    *,
    multipliers: Optional[DispersionMultipliers] = None,
    model: Optional[ExpectedStrokesModel] = None,
    start_index: int = 1,
) -> Iterator[StrokeSample]:
    """Endless per-landing breakdown behind :func:`evaluate`, for inspection."""
    validate_shot_inputs(start, aim, pin, skill, mask, multipliers)
    model = model or ExpectedStrokesModel()
    ellipse = shot_ellipse(start, aim, skill, multipliers)
    for point in iter_ellipse_points(ellipse, start_index):
        terrain = classify(point, mask)
        remaining = distance_yards(point, pin)
        yield StrokeSample(point, terrain, remaining, model.strokes(remaining, terrain))
