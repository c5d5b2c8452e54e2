import pytest

from aim_engine.report import CANDIDATE_COLUMNS, candidates_frame, landing_breakdown
from aim_engine.types import Candidate, EvaluationResult, GeoPoint, TerrainClass


def _result(counts, mean=3.0):
    return EvaluationResult(mean=mean, ci95=0.02, n=sum(counts.values()), counts_by_class=counts)


def test_candidates_frame_columns_and_shares():
    ranked = [
        Candidate(GeoPoint(0.001, 0.0), _result({TerrainClass.FAIRWAY: 90, TerrainClass.ROUGH: 10}, 2.9), 120.0),
        Candidate(GeoPoint(0.001, 0.0005), _result({TerrainClass.WATER: 40, TerrainClass.ROUGH: 60}, 3.6), 125.0, 131.0),
    ]
    df = candidates_frame(ranked)

    assert list(df.columns[: len(CANDIDATE_COLUMNS)]) == CANDIDATE_COLUMNS
    assert list(df.columns[len(CANDIDATE_COLUMNS):]) == ["share_water", "share_fairway", "share_rough"]
    assert df["rank"].tolist() == [1, 2]
    assert df["dominant_class"].tolist() == ["fairway", "rough"]
    assert df.loc[0, "share_water"] == 0.0
    assert df.loc[1, "share_water"] == pytest.approx(0.4)
    share_cols = [c for c in df.columns if c.startswith("share_")]
    assert df[share_cols].sum(axis=1).tolist() == pytest.approx([1.0, 1.0])


def test_empty_candidates_frame():
    df = candidates_frame([])
    assert df.empty
    assert list(df.columns) == CANDIDATE_COLUMNS


def test_landing_breakdown_sorted_by_count():
    df = landing_breakdown(_result({TerrainClass.BUNKER: 5, TerrainClass.GREEN: 30, TerrainClass.FAIRWAY: 15}))

    assert df["class"].tolist() == ["green", "fairway", "bunker"]
    assert df["count"].tolist() == [30, 15, 5]
    assert df["share"].sum() == pytest.approx(1.0)
