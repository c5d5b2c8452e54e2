import numpy as np
import pytest

import aim_engine as ae
from aim_engine.geo import METERS_PER_YARD, offset

START = ae.GeoPoint(0.0, 0.0)
AIM = offset(START, 150 * METERS_PER_YARD, 0.0)
PIN = offset(START, 300 * METERS_PER_YARD, 0.0)


def _water_right_of_line():
    # 20 columns of ~10 m; everything more than ~10 m east of the line is water
    box = ae.BBox(west=-0.0009, south=-0.001, east=0.0009, north=0.003)
    grid = np.full((4, 20), int(ae.TerrainClass.FAIRWAY))
    grid[:, 11:] = int(ae.TerrainClass.WATER)
    return ae.MaskBuffer.from_class_grid(grid, box)


def test_flat_fairway_scenario_end_to_end():
    box = ae.BBox(west=-0.01, south=-0.01, east=0.01, north=0.01)
    mask = ae.MaskBuffer.from_class_grid(np.full((8, 8), int(ae.TerrainClass.FAIRWAY)), box)
    skill = ae.SkillPreset("Test", 5.9, 4.7)

    result = ae.evaluate(START, AIM, PIN, skill, mask, 2000)

    assert result.mean == pytest.approx(ae.strokes_for_class(150, ae.TerrainClass.FAIRWAY), abs=0.02)
    assert result.counts_by_class[ae.TerrainClass.FAIRWAY] == 2000


def test_tighter_player_stays_out_of_water_on_the_right():
    mask = _water_right_of_line()
    pro = ae.evaluate(START, AIM, PIN, ae.get_skill_preset("Pro"), mask, 600)
    terrible = ae.evaluate(START, AIM, PIN, ae.get_skill_preset("Terrible"), mask, 600)

    assert pro.share(ae.TerrainClass.WATER) == 0.0
    assert terrible.share(ae.TerrainClass.WATER) > 0.1
    assert pro.mean < terrible.mean


def test_bailing_out_left_beats_aiming_at_the_water():
    mask = _water_right_of_line()
    skill = ae.get_skill_preset("Bad")
    at_line = ae.evaluate(START, AIM, PIN, skill, mask, 600)
    left = offset(AIM, 15.0, 3 * np.pi / 2)
    bail = ae.evaluate(START, left, PIN, skill, mask, 600)

    assert bail.share(ae.TerrainClass.WATER) < at_line.share(ae.TerrainClass.WATER)
    assert bail.mean < at_line.mean


def test_skill_presets_get_wider_down_the_list():
    offline = [p.offline_deg for p in ae.SKILL_PRESETS]
    assert offline == sorted(offline)
    assert [p.name for p in ae.SKILL_PRESETS][0] == "Pro"


def test_skill_lookup_is_case_insensitive():
    assert ae.get_skill_preset("elite am") == ae.get_skill_preset("Elite Am")
    assert ae.get_skill_preset().name == "Average"


def test_unknown_skill_rejected():
    with pytest.raises(ae.InputError):
        ae.get_skill_preset("Scratch Wizard")
