"""Helpers for interpreting the descriptive reference data stored in ``data/``."""
from __future__ import annotations

import random
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional

from .loader import (
    load_abilities,
    load_backgrounds,
    load_classes,
    load_equipment,
    load_races,
)
from .reference_tables import (
    Ability,
    Alignment,
    Background,
    CharacterClass,
    Race,
    check_exhaustive,
)

EQUIPMENT_CATEGORIES = ("weapons", "armor", "gear", "magical")
MAGIC_ITEM_CHANCE = 0.2


@dataclass(frozen=True)
class RulesEngine:
    """Lightweight facade around the race, class and background reference."""

    races: Dict[str, Dict[str, Any]]
    classes: Dict[str, Dict[str, Any]]
    backgrounds: Dict[str, Dict[str, str]]
    abilities: Dict[str, str]
    equipment: Dict[str, List[str]]

    def __post_init__(self) -> None:
        check_exhaustive(self.races, Race, "races.json")
        check_exhaustive(self.classes, CharacterClass, "classes.json")
        check_exhaustive(self.backgrounds.get("backgrounds", {}), Background, "backgrounds.json")
        check_exhaustive(self.backgrounds.get("alignments", {}), Alignment, "backgrounds.json alignments")
        check_exhaustive(self.abilities, Ability, "abilities.json")

    def race_description(self, race: Race) -> str:
        return str(self.races[race.value].get("description", ""))

    def race_traits(self, race: Race) -> List[str]:
        return list(self.races[race.value].get("traits", []))

    def class_description(self, character_class: CharacterClass) -> str:
        return str(self.classes[character_class.value].get("description", ""))

    def primary_abilities(self, character_class: CharacterClass) -> List[str]:
        return list(self.classes[character_class.value].get("primary_abilities", []))

    def class_proficiencies(self, character_class: CharacterClass) -> List[str]:
        return list(self.classes[character_class.value].get("proficiencies", []))

    def recommended_abilities(self, character_class: CharacterClass) -> str:
        """Return the abilities worth prioritising, e.g. ``"Strength and Constitution"``."""

        return " and ".join(self.classes[character_class.value].get("recommended_abilities", []))

    def background_description(self, background: Background) -> str:
        return self.backgrounds["backgrounds"][background.value]

    def alignment_description(self, alignment: Alignment) -> str:
        return self.backgrounds["alignments"][alignment.value]

    def ability_description(self, ability: Ability) -> str:
        return self.abilities[ability.value]

    def equipment_suggestions(self, category: str, query: str = "") -> List[str]:
        """Return catalogue items in ``category`` whose name contains ``query``."""

        if category not in EQUIPMENT_CATEGORIES:
            raise KeyError(category)
        items = self.equipment.get(category, [])
        query = query.strip().lower()
        if not query:
            return list(items)
        return [item for item in items if query in item.lower()]

    def random_starting_equipment(self, rng: Optional[random.Random] = None) -> List[Dict[str, str]]:
        """Pick a weapon, an armor, two to four pieces of gear and maybe a magic item."""

        rng = rng or random.Random()
        picks: List[Dict[str, str]] = [
            {"name": rng.choice(self.equipment["weapons"]), "category": "Weapon"},
            {"name": rng.choice(self.equipment["armor"]), "category": "Armor"},
        ]
        gear_count = rng.randint(2, 4)
        for _ in range(gear_count):
            picks.append({"name": rng.choice(self.equipment["gear"]), "category": "Gear"})
        if rng.random() < MAGIC_ITEM_CHANCE:
            picks.append({"name": rng.choice(self.equipment["magical"]), "category": "Magical"})
        return picks


@lru_cache(maxsize=1)
def get_rules_engine() -> RulesEngine:
    """Return a cached :class:`RulesEngine` instance."""

    return RulesEngine(
        races=load_races(),
        classes=load_classes(),
        backgrounds=load_backgrounds(),
        abilities=load_abilities(),
        equipment=load_equipment(),
    )


__all__ = ["EQUIPMENT_CATEGORIES", "RulesEngine", "get_rules_engine"]
