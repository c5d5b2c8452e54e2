"""Welford running statistics and the CI95 early-stopping rule."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import InputError

Z_95 = 1.96


class RunningStats:
    """Online mean / variance (Welford). ci95 = 1.96 * sqrt(variance / n)."""

    __slots__ = ("count", "mean", "m2")

    def __init__(self):
        self.count = 0
        self.mean = 0.0
        self.m2 = 0.0  # sum of squared deviations from the running mean

    def add(self, value: float) -> None:
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self.m2 += delta * (value - self.mean)

    @property
    def variance(self) -> float:
        """Sample variance; 0 until two values have been seen."""
        if self.count < 2:
            return 0.0
        return self.m2 / (self.count - 1)

    @property
    def standard_error(self) -> float:
        if self.count == 0:
            return 0.0
        return math.sqrt(self.variance / self.count)

    @property
    def ci95(self) -> float:
        return Z_95 * self.standard_error


@dataclass(frozen=True)
class StoppingRule:
    """
    Stop once n >= min_samples and ci95 <= epsilon, or once n == max_samples.
    `epsilon=None` disables the CI test so exactly max_samples are consumed.
    """

    max_samples: int
    min_samples: int = 50
    epsilon: Optional[float] = None

    def validate(self) -> None:
        if self.max_samples <= 0:
            raise InputError(f"sample budget must be positive, got {self.max_samples}")
        if self.min_samples < 1:
            raise InputError(f"min_samples must be >= 1, got {self.min_samples}")
        if self.epsilon is not None and not (math.isfinite(self.epsilon) and self.epsilon >= 0.0):
            raise InputError(f"ci95 threshold must be a non-negative number, got {self.epsilon}")

    def converged(self, stats: RunningStats) -> bool:
        return (
            self.epsilon is not None
            and stats.count >= self.min_samples
            and stats.ci95 <= self.epsilon
        )

    def done(self, stats: RunningStats) -> bool:
        return stats.count >= self.max_samples or self.converged(stats)


@dataclass(frozen=True)
class ProgressiveResult:
    mean: float
    ci95: float
    n: int
    converged: bool


def accumulate(values: Iterable[float], rule: StoppingRule) -> ProgressiveResult:
    """
    Feed `values` into a RunningStats until `rule` says stop.

    A stream that runs dry early is not an error: the partial result comes back
    with whatever ci95 it reached.
    """
    rule.validate()
    stats = RunningStats()
    for value in values:
        stats.add(value)
        if rule.done(stats):
            break
    return ProgressiveResult(stats.mean, stats.ci95, stats.count, rule.converged(stats))
