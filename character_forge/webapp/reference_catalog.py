"""Utilities for exposing character creation reference data via the web API."""
from __future__ import annotations

from copy import deepcopy
from functools import lru_cache
from typing import Dict, List

from character_forge.player.ability_scores import (
    METHODS,
    POINT_BUY_BUDGET,
    POINT_BUY_COSTS,
    STANDARD_ARRAY_VALUES,
)
from character_forge.player.character_engine import base_hit_points, race_speed
from character_forge.rules.dice import DIE_SIZES, ROLL_POLICIES
from character_forge.rules.reference_tables import Ability, Alignment, Background, CharacterClass, Race
from character_forge.rules.rules_engine import EQUIPMENT_CATEGORIES, get_rules_engine


def list_races() -> List[Dict[str, object]]:
    """Return summary information for all playable races."""

    rules = get_rules_engine()
    return [
        {
            "name": race.value,
            "description": rules.race_description(race),
            "traits": rules.race_traits(race),
            "speed": race_speed(race),
        }
        for race in Race
    ]


def list_classes() -> List[Dict[str, object]]:
    """Return summary information for all available classes."""

    rules = get_rules_engine()
    return [
        {
            "name": cls.value,
            "description": rules.class_description(cls),
            "hit_die": base_hit_points(cls),
            "primary_abilities": rules.primary_abilities(cls),
            "recommended_abilities": rules.recommended_abilities(cls),
            "proficiencies": rules.class_proficiencies(cls),
        }
        for cls in CharacterClass
    ]


def list_backgrounds() -> List[Dict[str, str]]:
    rules = get_rules_engine()
    return [{"name": bg.value, "description": rules.background_description(bg)} for bg in Background]


def list_alignments() -> List[Dict[str, str]]:
    rules = get_rules_engine()
    return [{"name": al.value, "description": rules.alignment_description(al)} for al in Alignment]


def list_abilities() -> List[Dict[str, str]]:
    rules = get_rules_engine()
    return [
        {"name": ability.value, "label": ability.value.title(), "description": rules.ability_description(ability)}
        for ability in Ability
    ]


def point_buy_info() -> Dict[str, object]:
    """Expose the standard point-buy budget and cost table."""

    return {"budget": POINT_BUY_BUDGET, "costs": dict(POINT_BUY_COSTS)}


def roll_policies() -> List[Dict[str, str]]:
    return [
        {"name": name, "label": str(policy["label"]), "description": str(policy["description"])}
        for name, policy in ROLL_POLICIES.items()
    ]


def equipment_catalog() -> Dict[str, List[str]]:
    rules = get_rules_engine()
    return {category: rules.equipment_suggestions(category) for category in EQUIPMENT_CATEGORIES}


def equipment_suggestions(category: str, query: str = "") -> List[str]:
    """Suggestions for the add-item box; unknown categories raise ``KeyError``."""

    return get_rules_engine().equipment_suggestions(category, query)


@lru_cache(maxsize=1)
def _catalog() -> Dict[str, object]:
    return {
        "races": list_races(),
        "classes": list_classes(),
        "backgrounds": list_backgrounds(),
        "alignments": list_alignments(),
        "abilities": list_abilities(),
        "ability_methods": list(METHODS),
        "point_buy": point_buy_info(),
        "standard_array": list(STANDARD_ARRAY_VALUES),
        "roll_policies": roll_policies(),
        "dice": list(DIE_SIZES),
        "equipment": equipment_catalog(),
    }


def reference_catalog() -> Dict[str, object]:
    """Return a deep copy of the cached reference catalogue."""

    return deepcopy(_catalog())
