"""
Printable one-page character sheet.

The page is an A4 portrait sheet laid out in millimetres: a header, an info
box, ability scores down the left, combat stats and features on the right and
the backstory along the bottom. HTML comes from a Jinja2 template, PDF from
WeasyPrint.
"""

from __future__ import annotations

import re
import textwrap
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from character_forge.player.character_engine import calculate_modifier, format_modifier
from character_forge.rules.reference_tables import ABILITY_NAMES

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
TEMPLATE_NAME = "character_sheet.html"

MAX_FEATURE_LINES = 8
MAX_BACKSTORY_LINES = 12
# Roughly 170 mm of 10pt serif text.
BACKSTORY_WRAP_WIDTH = 95

NO_BACKSTORY = "No backstory provided."

# (x, y, width, height) in millimetres
PAGE_BORDER = (10, 10, 190, 277)
SECTIONS = {
    "info": (15, 30, 180, 50),
    "abilities": (15, 85, 50, 120),
    "combat": (70, 85, 125, 50),
    "features": (70, 140, 125, 65),
    "backstory": (15, 210, 180, 67),
}

DEFAULTS: Dict[str, Any] = {
    "name": "Unnamed Character",
    "race": "Unknown Race",
    "character_class": "Unknown Class",
    "level": 1,
    "background": "",
    "alignment": "",
    "experience_points": 0,
    "hit_points": 10,
    "armor_class": 10,
    "speed": 30,
}


def sheet_filename(name: Optional[str]) -> str:
    """``Sir Gawain`` -> ``Sir_Gawain_character_sheet.pdf``"""

    base = re.sub(r"\s+", "_", (name or "").strip()) or "character"
    return f"{base}_character_sheet.pdf"


def _hit_points_text(value: Any) -> str:
    if isinstance(value, Mapping):
        maximum = value.get("maximum", DEFAULTS["hit_points"])
        return f"{value.get('current', maximum)}/{maximum}"
    if value in (None, ""):
        return str(DEFAULTS["hit_points"])
    return str(value)


def _feature_lines(features: Any) -> List[str]:
    names = []
    for feature in features or []:
        name = feature.get("name") if isinstance(feature, Mapping) else feature
        if name:
            names.append(str(name))
    return names[:MAX_FEATURE_LINES]


def _backstory_lines(backstory: Optional[str]) -> List[str]:
    if not backstory or not backstory.strip():
        return [NO_BACKSTORY]
    lines: List[str] = []
    for paragraph in backstory.splitlines():
        lines.extend(textwrap.wrap(paragraph, BACKSTORY_WRAP_WIDTH) or [""])
    return lines[:MAX_BACKSTORY_LINES]


def _section_style(box) -> str:
    x, y, width, height = box
    return f"left: {x}mm; top: {y}mm; width: {width}mm; height: {height}mm;"


class CharacterSheet:
    def __init__(self, template_dir: Union[str, Path] = TEMPLATE_DIR):
        self.template_dir = Path(template_dir)
        self._template = None

    @property
    def template(self):
        if self._template is None:
            env = Environment(
                loader=FileSystemLoader(str(self.template_dir)),
                autoescape=select_autoescape(["html"]),
            )
            self._template = env.get_template(TEMPLATE_NAME)
        return self._template

    def build_context(self, character: Mapping[str, Any]) -> Dict[str, Any]:
        """Flatten a character dict into display strings, filling any gaps."""

        data = {key: character.get(key) for key in DEFAULTS}
        for key, default in DEFAULTS.items():
            if data[key] in (None, ""):
                data[key] = default

        scores = character.get("ability_scores") or {}
        abilities = []
        for ability in ABILITY_NAMES:
            score = scores.get(ability, 10)
            abilities.append(
                {
                    "name": ability.title(),
                    "score": score,
                    "modifier": format_modifier(calculate_modifier(score)),
                }
            )

        initiative = character.get("initiative")
        if initiative is None:
            initiative = calculate_modifier(scores.get("dexterity", 10))

        return {
            "name": data["name"],
            "race": data["race"],
            "character_class": data["character_class"],
            "level": data["level"],
            "background": data["background"],
            "alignment": data["alignment"],
            "experience_points": data["experience_points"],
            "hit_points": _hit_points_text(character.get("hit_points")),
            "armor_class": data["armor_class"],
            "initiative": format_modifier(int(initiative)),
            "speed": f"{data['speed']} ft.",
            "abilities": abilities,
            "features": _feature_lines(character.get("features")),
            "backstory_lines": _backstory_lines(character.get("backstory")),
            "page_border": _section_style(PAGE_BORDER),
            "sections": {key: _section_style(box) for key, box in SECTIONS.items()},
        }

    def render_html(self, character: Mapping[str, Any]) -> str:
        return self.template.render(sheet=self.build_context(character))

    def generate(self, character: Mapping[str, Any], base_url: Optional[str] = None) -> bytes:
        from weasyprint import HTML
        html_content = self.render_html(character)
        base = base_url or str(self.template_dir)
        return HTML(string=html_content, base_url=base).write_pdf()
