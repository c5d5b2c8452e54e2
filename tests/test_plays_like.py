import asyncio

import pytest

from aim_engine import feasibility
from aim_engine.config import OptimizerConfig
from aim_engine.errors import DataUnavailable
from aim_engine.geo import METERS_PER_YARD, YARDS_PER_METER, offset
from aim_engine.types import Candidate, EvaluationResult, GeoPoint

START = GeoPoint(0.0, 0.0)
PIN = offset(START, 400 * METERS_PER_YARD, 0.0)


def _candidate(yards, bearing=0.0, mean=3.0):
    position = offset(START, yards * METERS_PER_YARD, bearing)
    return Candidate(position, EvaluationResult(mean=mean, ci95=0.01, n=100), distance_from_start=yards)


def _lookup_with_rise(rise_yards):
    """Start at 0 m, every other point `rise_yards` higher."""

    def lookup(point):
        return 0.0 if point == START else rise_yards / YARDS_PER_METER

    return lookup


def test_uphill_plays_longer_downhill_shorter():
    assert feasibility.plays_like_yards(200, 10) == pytest.approx(210)
    assert feasibility.plays_like_yards(200, -10) == pytest.approx(190)
    assert feasibility.plays_like_yards(200, None) == 200


def test_uphill_and_downhill_factors():
    assert feasibility.plays_like_yards(200, 10, 1.105, 0.90) == pytest.approx(211.05)
    assert feasibility.plays_like_yards(200, -10, 1.105, 0.90) == pytest.approx(191.0)


def test_uphill_candidate_over_max_is_rejected():
    config = OptimizerConfig(max_distance_yards=300)
    kept = asyncio.run(
        feasibility.screen_candidates([_candidate(290)], START, PIN, _lookup_with_rise(15), config)
    )
    assert kept == []


def test_downhill_candidate_is_kept_with_plays_like():
    config = OptimizerConfig(max_distance_yards=300)
    kept = asyncio.run(
        feasibility.screen_candidates([_candidate(290)], START, PIN, _lookup_with_rise(-15), config)
    )
    assert len(kept) == 1
    assert kept[0].distance_from_start == pytest.approx(290, abs=0.5)
    assert kept[0].plays_like_yards == pytest.approx(275, abs=0.5)


def test_async_lookup_is_awaited():
    async def lookup(point):
        await asyncio.sleep(0)
        return 0.0 if point == START else 15 / YARDS_PER_METER

    measured = asyncio.run(feasibility.plays_like_distance(START, _candidate(200).position, lookup))
    assert measured.elevation_delta_yards == pytest.approx(15)
    assert measured.plays_like_yards == pytest.approx(measured.surface_yards + 15)


def test_failed_lookup_degrades_to_surface_distance():
    def lookup(point):
        raise DataUnavailable("no DEM tile here")

    config = OptimizerConfig(max_distance_yards=300)
    kept = asyncio.run(feasibility.screen_candidates([_candidate(290)], START, PIN, lookup, config))
    assert len(kept) == 1
    assert kept[0].plays_like_yards == pytest.approx(kept[0].distance_from_start)


def test_slow_lookup_times_out_to_surface_distance():
    async def lookup(point):
        await asyncio.sleep(5)
        return 100.0

    measured = asyncio.run(
        feasibility.plays_like_distance(START, _candidate(200).position, lookup, timeout_s=0.01)
    )
    assert measured.elevation_delta_yards is None
    assert measured.plays_like_yards == measured.surface_yards


def test_missing_lookup_uses_surface_distance():
    measured = asyncio.run(feasibility.plays_like_distance(START, _candidate(180).position, None))
    assert measured.plays_like_yards == pytest.approx(180, abs=0.5)


def test_farther_than_pin_rejected_when_disallowed():
    pin = offset(START, 200 * METERS_PER_YARD, 0.0)
    config = OptimizerConfig(max_distance_yards=300, disallow_farther_than_pin=True)
    kept = asyncio.run(
        feasibility.screen_candidates([_candidate(180), _candidate(250)], START, pin, None, config)
    )
    assert [round(c.distance_from_start) for c in kept] == [180]


def test_separation_keeps_best_of_close_pairs():
    best = _candidate(200, mean=2.9)
    near = Candidate(offset(best.position, 1.0, 1.5), EvaluationResult(3.0, 0.01, 100), 200)
    far = _candidate(150, mean=3.1)

    kept = feasibility.enforce_separation([best, near, far], min_separation_m=2.74)
    assert kept == [best, far]


def test_filter_applies_limit_after_separation():
    candidates = [_candidate(100 + 10 * i, mean=3.0 + i * 0.01) for i in range(8)]
    config = OptimizerConfig(max_distance_yards=300)
    kept = asyncio.run(feasibility.filter_candidates(candidates, START, PIN, None, config, limit=3))
    assert [round(c.distance_from_start) for c in kept] == [100, 110, 120]
