import math
from dataclasses import dataclass

from .errors import InputError
from .types import SkillPreset

# name, lateral dispersion half-angle (deg), distance dispersion (% of shot length)
SKILL_PRESETS = (
    SkillPreset("Pro", 2.5, 3.0),
    SkillPreset("Elite Am", 3.8, 4.2),
    SkillPreset("Good", 5.2, 5.8),
    SkillPreset("Average", 7.1, 7.5),
    SkillPreset("Bad", 9.8, 9.2),
    SkillPreset("Terrible", 12.5, 11.8),
)

DEFAULT_SKILL = "Average"


def get_skill_preset(name=DEFAULT_SKILL) -> SkillPreset:
    """Case-insensitive lookup in SKILL_PRESETS."""
    key = (name or DEFAULT_SKILL).strip().lower()
    for preset in SKILL_PRESETS:
        if preset.name.lower() == key:
            return preset
    known = ", ".join(p.name for p in SKILL_PRESETS)
    raise InputError(f"unknown skill preset {name!r} (known: {known})")


@dataclass(frozen=True)
class DispersionMultipliers:
    """Scales the ellipse for roll conditions: depth along the line, width across it."""

    depth: float = 1.0
    width: float = 1.0

    def validate(self) -> None:
        for label, value in (("depth", self.depth), ("width", self.width)):
            if not math.isfinite(value) or value <= 0.0:
                raise InputError(f"{label} multiplier must be positive, got {value}")
