"""The canonical character record and its merge-update rules."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from character_forge.player.ability_scores import AbilityScores
from character_forge.player.character_engine import DERIVED_FIELDS, HitPoints, derive_combat_stats
from character_forge.rules.reference_tables import Alignment, Background, CharacterClass, Race

logger = logging.getLogger(__name__)

# Changing any of these recomputes the derived combat stats.
TRIGGER_FIELDS = ("ability_scores", "race", "character_class")


class UnknownFieldError(KeyError):
    """Raised when an update names a field the character does not have."""


@dataclass
class EquipmentItem:
    name: str
    category: str = "Gear"
    description: str = ""

    @classmethod
    def coerce(cls, value: Union["EquipmentItem", Mapping[str, Any], str]) -> "EquipmentItem":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls(name=value)
        return cls(
            name=str(value.get("name", "")),
            category=str(value.get("category") or "Gear"),
            description=str(value.get("description") or ""),
        )


@dataclass
class Feature:
    name: str
    description: str = ""
    source: Optional[str] = None  # race, class, background or other

    @classmethod
    def coerce(cls, value: Union["Feature", Mapping[str, Any], str]) -> "Feature":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls(name=value)
        return cls(
            name=str(value.get("name", "")),
            description=str(value.get("description") or ""),
            source=value.get("source"),
        )


@dataclass
class Spell:
    name: str
    level: int = 0
    school: str = ""
    casting_time: str = ""
    range: str = ""
    components: str = ""
    duration: str = ""
    description: str = ""
    ritual: bool = False

    @classmethod
    def coerce(cls, value: Union["Spell", Mapping[str, Any], str]) -> "Spell":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls(name=value)
        known = {f.name for f in fields(cls)}
        return cls(**{key: val for key, val in value.items() if key in known})


@dataclass
class Character:
    id: str = ""
    name: str = ""
    race: Union[Race, str] = Race.HUMAN
    character_class: Union[CharacterClass, str] = CharacterClass.FIGHTER
    level: int = 1
    background: Union[Background, str] = Background.SOLDIER
    alignment: Union[Alignment, str] = Alignment.TRUE_NEUTRAL
    experience_points: int = 0

    ability_scores: AbilityScores = field(default_factory=AbilityScores)

    armor_class: int = 10
    hit_points: Union[HitPoints, int] = field(default_factory=lambda: HitPoints.full(10))
    speed: int = 30
    initiative: int = 0

    age: str = ""
    height: str = ""
    weight: str = ""
    eyes: str = ""
    hair: str = ""
    skin: str = ""
    gender: str = ""

    personality_traits: str = ""
    ideals: str = ""
    bonds: str = ""
    flaws: str = ""
    backstory: str = ""
    appearance: str = ""

    equipment: List[EquipmentItem] = field(default_factory=list)
    features: List[Feature] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)
    proficiencies: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    spells: List[Spell] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("race", "character_class", "background", "alignment"):
            data[key] = str(getattr(self, key))
        if isinstance(self.hit_points, int):
            data["hit_points"] = self.hit_points
        return data


CHARACTER_FIELDS = tuple(f.name for f in fields(Character))


def _coerce_enum(enum_cls, value):
    parsed = enum_cls.parse(value)
    return parsed if parsed is not None else value


def _coerce_hit_points(value: Union[HitPoints, Mapping[str, Any], int]) -> Union[HitPoints, int]:
    if isinstance(value, HitPoints):
        return HitPoints(current=value.current, maximum=value.maximum)
    if isinstance(value, Mapping):
        maximum = int(value["maximum"])
        return HitPoints(current=int(value.get("current", maximum)), maximum=maximum)
    return int(value)


def _coerce_value(key: str, value: Any) -> Any:
    """Bring an incoming value into the shape stored on :class:`Character`."""

    if key == "ability_scores":
        return value if isinstance(value, AbilityScores) else AbilityScores.from_mapping(value)
    if key == "hit_points":
        return _coerce_hit_points(value)
    if key == "race":
        return _coerce_enum(Race, value)
    if key == "character_class":
        return _coerce_enum(CharacterClass, value)
    if key == "background":
        return _coerce_enum(Background, value)
    if key == "alignment":
        return _coerce_enum(Alignment, value)
    if key == "equipment":
        return [EquipmentItem.coerce(item) for item in value]
    if key == "features":
        return [Feature.coerce(item) for item in value]
    if key == "spells":
        return [Spell.coerce(item) for item in value]
    if key in ("skills", "proficiencies", "languages"):
        return [str(item) for item in value]
    return value


Listener = Callable[["CharacterRecord"], None]


class CharacterRecord:
    """Owns one :class:`Character` and applies whole-or-partial updates.

    An update either applies completely or raises before anything changes.
    ``version`` increases with every applied change and subscribed listeners
    are told the whole record changed.
    """

    def __init__(self, character: Optional[Character] = None):
        self._character = character or Character()
        self._version = 0
        self._listeners: List[Listener] = []

    @property
    def character(self) -> Character:
        return self._character

    @property
    def version(self) -> int:
        return self._version

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _changed(self) -> None:
        self._version += 1
        for listener in list(self._listeners):
            listener(self)

    def update(self, partial: Mapping[str, Any]) -> Character:
        """Shallow-merge ``partial`` into the character.

        When the update changes ``ability_scores``, ``race`` or
        ``character_class`` the derived combat stats are recomputed, except
        for any derived field the same update supplies explicitly. Resending
        an unchanged value keeps manual overrides.
        """

        if not partial:
            return self._character

        unknown = sorted(key for key in partial if key not in CHARACTER_FIELDS)
        if unknown:
            raise UnknownFieldError(f"Unknown character field(s): {', '.join(unknown)}")

        changes = {key: _coerce_value(key, value) for key, value in partial.items()}
        updated = replace(self._character, **changes)

        if any(key in changes and changes[key] != getattr(self._character, key) for key in TRIGGER_FIELDS):
            derived = derive_combat_stats(updated.ability_scores, updated.race, updated.character_class)
            recomputed = {key: derived[key] for key in DERIVED_FIELDS if key not in changes}
            updated = replace(updated, **recomputed)
            logger.debug("Recomputed derived stats: %s", sorted(recomputed))

        self._character = updated
        self._changed()
        return self._character

    def reset(self) -> Character:
        """Restore the default template in one step."""

        self._character = Character()
        self._changed()
        return self._character

    def to_dict(self) -> Dict[str, Any]:
        return self._character.to_dict()


__all__ = [
    "CHARACTER_FIELDS",
    "Character",
    "CharacterRecord",
    "EquipmentItem",
    "Feature",
    "Spell",
    "TRIGGER_FIELDS",
    "UnknownFieldError",
]
