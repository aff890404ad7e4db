"""Turn a generated character suggestion into a record update."""
from __future__ import annotations

import json
import logging
import random
import string
from typing import Any, Dict, List, Mapping, Optional

from character_forge.ai_character_writer import CharacterGenerationError, CharacterPrompt
from character_forge.player.ability_scores import SCORE_MAX, SCORE_MIN, AbilityScores, clamp_score
from character_forge.player.character_engine import derive_combat_stats
from character_forge.player.character_record import Character, EquipmentItem, Feature
from character_forge.rules.reference_tables import (
    ABILITY_NAMES,
    Alignment,
    Background,
    CharacterClass,
    Race,
)

logger = logging.getLogger(__name__)

ID_ALPHABET = string.digits + string.ascii_lowercase
ID_LENGTH = 13

# record field -> accepted payload keys
NARRATIVE_FIELDS = {
    "personality_traits": ("personalityTraits", "personality_traits"),
    "ideals": ("ideals",),
    "bonds": ("bonds",),
    "flaws": ("flaws",),
    "backstory": ("backstory",),
    "appearance": ("appearance",),
}


class NormalizationError(ValueError):
    """The generated payload cannot be turned into a character."""


class MalformedResponseError(CharacterGenerationError):
    """The generator's text does not contain a JSON object."""


def generate_character_id(rng: Optional[random.Random] = None) -> str:
    """Short opaque base-36 identifier."""

    rng = rng or random.Random()
    return "".join(rng.choice(ID_ALPHABET) for _ in range(ID_LENGTH))


def parse_character_payload(text: str) -> Dict[str, Any]:
    """Extract the JSON object from generator output.

    Chat models sometimes wrap the object in prose or a code fence, so the
    outermost ``{...}`` span is parsed.
    """

    start = text.find("{") if text else -1
    end = text.rfind("}") if text else -1
    if start == -1 or end <= start:
        raise MalformedResponseError("No JSON object found in generated text")
    try:
        payload = json.loads(text[start:end + 1])
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Generated text is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedResponseError("Generated JSON is not an object")
    return payload


def _ability_scores(data: Mapping[str, Any]) -> AbilityScores:
    raw = data.get("abilityScores", data.get("ability_scores"))
    if not isinstance(raw, Mapping):
        raise NormalizationError("Generated character has no ability scores")
    scores = {}
    for ability in ABILITY_NAMES:
        value = raw.get(ability)
        if isinstance(value, bool) or value is None:
            raise NormalizationError(f"Missing ability score: {ability}")
        try:
            number = int(float(value))
        except (TypeError, ValueError, OverflowError) as exc:
            raise NormalizationError(f"Ability score {ability} is not a number: {value!r}") from exc
        scores[ability] = clamp_score(number)
        if scores[ability] != number:
            logger.warning("Clamped generated %s from %s into [%s, %s]", ability, number, SCORE_MIN, SCORE_MAX)
    return AbilityScores(**scores)


def _coerce_choice(enum_cls, value: Any, requested: Optional[str], default, label: str):
    parsed = enum_cls.parse(value)
    if parsed is not None:
        return parsed
    fallback = enum_cls.parse(requested) or default
    if value:
        logger.warning("Unrecognized generated %s %r, using %s", label, value, fallback)
    return fallback


def _equipment(raw: Any) -> List[EquipmentItem]:
    if not isinstance(raw, list):
        return []
    items = []
    for entry in raw:
        if isinstance(entry, (str, Mapping)):
            items.append(EquipmentItem.coerce(entry))
        else:
            logger.debug("Skipping equipment entry %r", entry)
    return items


def _features(raw: Any) -> List[Feature]:
    if not isinstance(raw, list):
        return []
    return [Feature.coerce(entry) for entry in raw if isinstance(entry, (str, Mapping))]


def _string_list(raw: Any) -> List[str]:
    if not isinstance(raw, list):
        return []
    return [str(item) for item in raw]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def normalize_character_payload(
    data: Mapping[str, Any],
    prompt: Optional[CharacterPrompt] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """Build a partial character update from a parsed generator payload.

    Raises :class:`NormalizationError` when ability scores are missing or not
    numeric. Everything else is filled with safe defaults.
    """

    if not isinstance(data, Mapping):
        raise NormalizationError("Generated character is not an object")
    prompt = prompt or CharacterPrompt()
    template = Character()

    ability_scores = _ability_scores(data)
    race = _coerce_choice(Race, data.get("race"), prompt.race, template.race, "race")
    character_class = _coerce_choice(
        CharacterClass,
        data.get("class", data.get("character_class")),
        prompt.character_class,
        template.character_class,
        "class",
    )
    background = _coerce_choice(Background, data.get("background"), prompt.background, template.background, "background")
    alignment = _coerce_choice(Alignment, data.get("alignment"), prompt.alignment, template.alignment, "alignment")

    try:
        level = int(data.get("level") or 1)
    except (TypeError, ValueError, OverflowError):
        level = 1

    partial: Dict[str, Any] = {
        "id": generate_character_id(rng),
        "name": _text(data.get("name")) or (prompt.name or ""),
        "race": race,
        "character_class": character_class,
        "level": max(level, 1),
        "background": background,
        "alignment": alignment,
        "experience_points": 0,
        "ability_scores": ability_scores,
        "equipment": _equipment(data.get("equipment")),
        "proficiencies": _string_list(data.get("proficiencies")),
        "languages": _string_list(data.get("languages")),
        "features": _features(data.get("features")),
    }
    partial.update(derive_combat_stats(ability_scores, race, character_class))
    for field_name, keys in NARRATIVE_FIELDS.items():
        value = next((data[key] for key in keys if data.get(key) is not None), None)
        partial[field_name] = _text(value)
    return partial


__all__ = [
    "MalformedResponseError",
    "NormalizationError",
    "generate_character_id",
    "normalize_character_payload",
    "parse_character_payload",
]
