"""Closed enumerations and the derivation lookup tables keyed by them."""
from __future__ import annotations

import re
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Type, TypeVar

E = TypeVar("E", bound="ReferenceEnum")


def _lookup_key(value: str) -> str:
    return re.sub(r"[^a-z]", "", value.lower())


class ReferenceEnum(str, Enum):
    """String valued enumeration with a forgiving ``parse`` helper."""

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls: Type[E], value: object) -> Optional[E]:
        """Return the member matching ``value`` ignoring case, spaces and dashes."""

        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            return None
        key = _lookup_key(value)
        for member in cls:
            if _lookup_key(member.value) == key or _lookup_key(member.name) == key:
                return member
        return None

    @classmethod
    def values(cls) -> list:
        return [member.value for member in cls]


class Ability(ReferenceEnum):
    STRENGTH = "strength"
    DEXTERITY = "dexterity"
    CONSTITUTION = "constitution"
    INTELLIGENCE = "intelligence"
    WISDOM = "wisdom"
    CHARISMA = "charisma"


class Race(ReferenceEnum):
    HUMAN = "Human"
    ELF = "Elf"
    DWARF = "Dwarf"
    HALFLING = "Halfling"
    GNOME = "Gnome"
    HALF_ELF = "Half-Elf"
    HALF_ORC = "Half-Orc"
    TIEFLING = "Tiefling"
    DRAGONBORN = "Dragonborn"


class CharacterClass(ReferenceEnum):
    BARBARIAN = "Barbarian"
    BARD = "Bard"
    CLERIC = "Cleric"
    DRUID = "Druid"
    FIGHTER = "Fighter"
    MONK = "Monk"
    PALADIN = "Paladin"
    RANGER = "Ranger"
    ROGUE = "Rogue"
    SORCERER = "Sorcerer"
    WARLOCK = "Warlock"
    WIZARD = "Wizard"


class Background(ReferenceEnum):
    ACOLYTE = "Acolyte"
    CHARLATAN = "Charlatan"
    CRIMINAL = "Criminal"
    ENTERTAINER = "Entertainer"
    FOLK_HERO = "Folk Hero"
    GUILD_ARTISAN = "Guild Artisan"
    HERMIT = "Hermit"
    NOBLE = "Noble"
    OUTLANDER = "Outlander"
    SAGE = "Sage"
    SAILOR = "Sailor"
    SOLDIER = "Soldier"
    URCHIN = "Urchin"


class Alignment(ReferenceEnum):
    LAWFUL_GOOD = "Lawful Good"
    NEUTRAL_GOOD = "Neutral Good"
    CHAOTIC_GOOD = "Chaotic Good"
    LAWFUL_NEUTRAL = "Lawful Neutral"
    TRUE_NEUTRAL = "True Neutral"
    CHAOTIC_NEUTRAL = "Chaotic Neutral"
    LAWFUL_EVIL = "Lawful Evil"
    NEUTRAL_EVIL = "Neutral Evil"
    CHAOTIC_EVIL = "Chaotic Evil"


ABILITY_NAMES = Ability.values()

DEFAULT_HIT_DIE = 8
DEFAULT_SPEED = 30

HIT_DIE_BY_CLASS: Dict[CharacterClass, int] = {
    CharacterClass.BARBARIAN: 12,
    CharacterClass.FIGHTER: 10,
    CharacterClass.PALADIN: 10,
    CharacterClass.RANGER: 10,
    CharacterClass.MONK: 8,
    CharacterClass.ROGUE: 8,
    CharacterClass.BARD: 8,
    CharacterClass.CLERIC: 8,
    CharacterClass.DRUID: 8,
    CharacterClass.WARLOCK: 8,
    CharacterClass.WIZARD: 6,
    CharacterClass.SORCERER: 6,
}

SPEED_BY_RACE: Dict[Race, int] = {
    Race.HUMAN: 30,
    Race.ELF: 30,
    Race.HALF_ELF: 30,
    Race.TIEFLING: 30,
    Race.DRAGONBORN: 30,
    Race.HALF_ORC: 30,
    Race.DWARF: 25,
    Race.HALFLING: 25,
    Race.GNOME: 25,
}


class IncompleteTableError(Exception):
    """Raised when a reference table does not cover every enumeration member."""


def check_exhaustive(table: Mapping, enum_cls: Type[Enum], table_name: str) -> None:
    """Fail loudly if ``table`` is missing a key for any member of ``enum_cls``."""

    keys: Iterable = table.keys()
    expected = {member.value for member in enum_cls}
    present = {getattr(key, "value", key) for key in keys}
    missing = sorted(expected - present)
    if missing:
        raise IncompleteTableError(f"{table_name} is missing entries for: {', '.join(missing)}")


# Adding a race or class without extending these tables breaks the import.
check_exhaustive(HIT_DIE_BY_CLASS, CharacterClass, "HIT_DIE_BY_CLASS")
check_exhaustive(SPEED_BY_RACE, Race, "SPEED_BY_RACE")


__all__ = [
    "ABILITY_NAMES",
    "Ability",
    "Alignment",
    "Background",
    "CharacterClass",
    "DEFAULT_HIT_DIE",
    "DEFAULT_SPEED",
    "HIT_DIE_BY_CLASS",
    "IncompleteTableError",
    "Race",
    "ReferenceEnum",
    "SPEED_BY_RACE",
    "check_exhaustive",
]
