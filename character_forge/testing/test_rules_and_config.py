"""Tests for reference data, table exhaustiveness and environment settings."""
from __future__ import annotations

import os
import random
import sys
from enum import Enum

import pytest

TEST_DIR = os.path.dirname(__file__)
REPO_ROOT = os.path.abspath(os.path.join(TEST_DIR, "..", ".."))
sys.path.insert(0, REPO_ROOT)

from character_forge.config import Settings, load_settings
from character_forge.rules.reference_tables import (
    CharacterClass,
    IncompleteTableError,
    Race,
    check_exhaustive,
)
from character_forge.rules.rules_engine import get_rules_engine
from character_forge.webapp.reference_catalog import reference_catalog


def test_enum_parse_is_forgiving():
    assert Race.parse("half-orc") is Race.HALF_ORC
    assert Race.parse("HALF ORC") is Race.HALF_ORC
    assert CharacterClass.parse("warlock") is CharacterClass.WARLOCK
    assert Race.parse("Kobold") is None
    assert Race.parse(12) is None


def test_check_exhaustive_names_missing_members():
    class Colour(Enum):
        RED = "Red"
        BLUE = "Blue"

    with pytest.raises(IncompleteTableError, match="Blue"):
        check_exhaustive({"Red": 1}, Colour, "colours")


def test_rules_engine_descriptions_cover_every_member():
    rules = get_rules_engine()

    assert rules.race_traits(Race.DWARF)
    assert rules.recommended_abilities(CharacterClass.FIGHTER) == "Strength or Dexterity and Constitution"
    for cls in CharacterClass:
        assert rules.class_description(cls)


def test_equipment_suggestions_filter_by_query():
    rules = get_rules_engine()

    matches = rules.equipment_suggestions("weapons", "sword")

    assert matches
    assert all("sword" in item.lower() for item in matches)
    with pytest.raises(KeyError):
        rules.equipment_suggestions("vehicles")


def test_random_starting_equipment_shape():
    items = get_rules_engine().random_starting_equipment(random.Random(11))
    categories = [item["category"] for item in items]

    assert categories[:2] == ["Weapon", "Armor"]
    assert 2 <= categories.count("Gear") <= 4
    assert categories.count("Magical") <= 1


def test_reference_catalog_is_a_copy():
    catalog = reference_catalog()
    catalog["races"].clear()

    assert len(reference_catalog()["races"]) == len(Race)
    assert catalog["point_buy"]["budget"] == 27


def test_load_settings_defaults_to_manual_mode():
    settings = load_settings({})

    assert settings == Settings()
    assert settings.generator_configured is False


def test_load_settings_openai_backend():
    settings = load_settings(
        {"CHARACTER_FORGE_BACKEND": "OpenAI", "OPENAI_API_KEY": "sk-test", "OPENAI_MODEL": "gpt-4o"}
    )

    assert settings.backend == "openai"
    assert settings.openai_model == "gpt-4o"
    assert settings.generator_configured is True


def test_load_settings_falls_back_on_bad_values():
    settings = load_settings(
        {"CHARACTER_FORGE_BACKEND": "llama", "CHARACTER_FORGE_ROLL_POLICY": "9d9"}
    )

    assert settings.backend == "transformers"
    assert settings.roll_policy == "d20"
