"""Tabular views of optimizer output for notebooks and dashboards."""

from __future__ import annotations

from typing import Sequence

import pandas as pd

from .types import Candidate, EvaluationResult, TerrainClass

CANDIDATE_COLUMNS = [
    "rank",
    "lat",
    "lon",
    "mean",
    "ci95",
    "n",
    "distance_from_start",
    "plays_like_yards",
    "dominant_class",
]


def _class_label(terrain: TerrainClass) -> str:
    return terrain.name.lower()


def candidates_frame(candidates: Sequence[Candidate]) -> pd.DataFrame:
    """
    One row per candidate, in the given (best-first) order.

    Share columns (`share_<class>`) are added for every terrain class that any
    candidate's landings touched; a class a candidate never hit gets 0.0.
    """
    rows = []
    present = set()
    for rank, c in enumerate(candidates, start=1):
        ev = c.evaluation
        dominant = ev.dominant_class
        row = {
            "rank": rank,
            "lat": c.position.lat,
            "lon": c.position.lon,
            "mean": ev.mean,
            "ci95": ev.ci95,
            "n": ev.n,
            "distance_from_start": c.distance_from_start,
            "plays_like_yards": c.plays_like_yards,
            "dominant_class": _class_label(dominant) if dominant is not None else None,
        }
        for terrain in ev.counts_by_class:
            present.add(terrain)
            row[f"share_{_class_label(terrain)}"] = ev.share(terrain)
        rows.append(row)

    share_cols = [f"share_{_class_label(t)}" for t in sorted(present)]
    df = pd.DataFrame(rows, columns=CANDIDATE_COLUMNS + share_cols)
    if share_cols:
        df[share_cols] = df[share_cols].fillna(0.0)
    return df.reset_index(drop=True)


def landing_breakdown(result: EvaluationResult) -> pd.DataFrame:
    """class / count / share for one evaluation, most common class first."""
    df = pd.DataFrame(
        {
            "class": [_class_label(t) for t in result.counts_by_class],
            "count": list(result.counts_by_class.values()),
        },
        columns=["class", "count"],
    )
    df["share"] = df["count"] / result.n if result.n else 0.0
    df = df.sort_values("count", ascending=False, kind="stable").reset_index(drop=True)
    return df
