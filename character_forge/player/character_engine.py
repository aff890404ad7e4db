"""Pure rules helpers that turn ability scores into combat statistics.

Everything here is deterministic and side-effect free: the record model and
the generated-character normalizer call these whenever ability scores, race
or class change. Only level 1 values are modelled (hit points do not grow
with level) and armor class is the unarmoured baseline.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Union

from character_forge.rules.reference_tables import (
    DEFAULT_HIT_DIE,
    DEFAULT_SPEED,
    HIT_DIE_BY_CLASS,
    SPEED_BY_RACE,
    CharacterClass,
    Race,
)

UNARMORED_BASE_AC = 10


@dataclass
class HitPoints:
    """Current and maximum hit points; ``current`` never exceeds ``maximum``."""

    current: int
    maximum: int

    def __post_init__(self) -> None:
        self.current = int(self.current)
        self.maximum = int(self.maximum)
        if self.current > self.maximum:
            self.current = self.maximum

    @classmethod
    def full(cls, maximum: int) -> "HitPoints":
        return cls(current=maximum, maximum=maximum)

    def to_dict(self) -> Dict[str, int]:
        return {"current": self.current, "maximum": self.maximum}


def calculate_modifier(score: int) -> int:
    """Return the D&D ability modifier for ``score``."""

    return (score - 10) // 2


def format_modifier(modifier: int) -> str:
    return f"+{modifier}" if modifier >= 0 else str(modifier)


def base_hit_points(character_class: Union[CharacterClass, str, None]) -> int:
    """Hit die size for ``character_class``; unknown classes use a d8."""

    parsed = CharacterClass.parse(character_class)
    if parsed is None:
        return DEFAULT_HIT_DIE
    return HIT_DIE_BY_CLASS[parsed]


def race_speed(race: Union[Race, str, None]) -> int:
    """Walking speed in feet for ``race``; unknown races walk 30 ft."""

    parsed = Race.parse(race)
    if parsed is None:
        return DEFAULT_SPEED
    return SPEED_BY_RACE[parsed]


def calculate_hit_points(character_class: Union[CharacterClass, str, None], constitution: int) -> int:
    return base_hit_points(character_class) + calculate_modifier(constitution)


def calculate_armor_class(dexterity: int) -> int:
    return UNARMORED_BASE_AC + calculate_modifier(dexterity)


def calculate_initiative(dexterity: int) -> int:
    return calculate_modifier(dexterity)


def derive_combat_stats(
    ability_scores: Any,
    race: Union[Race, str, None],
    character_class: Union[CharacterClass, str, None],
) -> Dict[str, Any]:
    """Compute every derived field for a character.

    ``ability_scores`` only needs ``constitution`` and ``dexterity``
    attributes. The returned keys match the character record's field names.
    """

    hit_points = calculate_hit_points(character_class, ability_scores.constitution)
    return {
        "hit_points": HitPoints.full(hit_points),
        "armor_class": calculate_armor_class(ability_scores.dexterity),
        "initiative": calculate_initiative(ability_scores.dexterity),
        "speed": race_speed(race),
    }


DERIVED_FIELDS = ("hit_points", "armor_class", "initiative", "speed")


__all__ = [
    "DERIVED_FIELDS",
    "HitPoints",
    "base_hit_points",
    "calculate_armor_class",
    "calculate_hit_points",
    "calculate_initiative",
    "calculate_modifier",
    "derive_combat_stats",
    "format_modifier",
    "race_speed",
]
