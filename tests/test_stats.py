import numpy as np
import pytest

from aim_engine.errors import InputError
from aim_engine.stats import RunningStats, StoppingRule, accumulate


def test_welford_matches_numpy():
    values = np.random.default_rng(3).normal(3.2, 0.4, 1000)
    stats = RunningStats()
    for v in values:
        stats.add(float(v))

    assert stats.count == 1000
    assert stats.mean == pytest.approx(values.mean())
    assert stats.variance == pytest.approx(values.var(ddof=1))
    assert stats.ci95 == pytest.approx(1.96 * np.sqrt(values.var(ddof=1) / 1000))


def test_variance_is_zero_below_two_samples():
    stats = RunningStats()
    assert stats.variance == 0.0
    assert stats.ci95 == 0.0
    stats.add(4.0)
    assert stats.mean == 4.0
    assert stats.variance == 0.0


def test_constant_stream_stops_at_min_samples():
    rule = StoppingRule(max_samples=1000, min_samples=50, epsilon=0.03)
    result = accumulate(iter(lambda: 3.0, None), rule)
    assert result.n == 50
    assert result.converged
    assert result.mean == pytest.approx(3.0)


def test_no_epsilon_consumes_whole_budget():
    rule = StoppingRule(max_samples=120, epsilon=None)
    result = accumulate((float(i % 3) for i in range(10_000)), rule)
    assert result.n == 120
    assert not result.converged


def test_noisy_stream_keeps_sampling_until_budget():
    values = [0.0, 10.0] * 500
    result = accumulate(values, StoppingRule(max_samples=300, min_samples=50, epsilon=0.01))
    assert result.n == 300
    assert not result.converged


def test_short_stream_returns_partial_result():
    result = accumulate([1.0, 2.0, 3.0], StoppingRule(max_samples=100))
    assert result.n == 3
    assert result.mean == pytest.approx(2.0)


def test_rule_validation():
    with pytest.raises(InputError):
        StoppingRule(max_samples=0).validate()
    with pytest.raises(InputError):
        StoppingRule(max_samples=10, epsilon=-1.0).validate()
    with pytest.raises(InputError):
        StoppingRule(max_samples=10, min_samples=0).validate()
