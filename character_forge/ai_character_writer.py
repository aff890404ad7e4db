"""Text generation backends used to suggest characters and write backstories.

Two backends share the :class:`TextGenerator` interface: a local causal
language model loaded through ``transformers`` and the OpenAI chat
completions API. Both return raw text; turning a character suggestion into
record fields is the normalizer's job.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import openai
import torch
from transformers import AutoModelForCausalLM, AutoTokenizer

from .config import Settings

logger = logging.getLogger(__name__)

CHARACTER_SYSTEM_PROMPT = (
    "You are a Dungeons & Dragons character creation assistant. You help players "
    "create detailed and interesting characters for 5th Edition D&D."
)
BACKSTORY_SYSTEM_PROMPT = (
    "You are a creative writer specializing in fantasy character backstories for "
    "Dungeons & Dragons."
)

CHARACTER_JSON_SHAPE = """{
  "name": string,
  "race": string,
  "class": string,
  "level": number,
  "background": string,
  "alignment": string,
  "abilityScores": {
    "strength": number,
    "dexterity": number,
    "constitution": number,
    "intelligence": number,
    "wisdom": number,
    "charisma": number
  },
  "personalityTraits": string,
  "ideals": string,
  "bonds": string,
  "flaws": string,
  "backstory": string,
  "appearance": string,
  "equipment": [{"name": string, "category": string, "description": string}],
  "proficiencies": string[],
  "languages": string[],
  "features": string[]
}"""


class CharacterGenerationError(Exception):
    """Raised when a generation request fails or returns nothing usable."""


@dataclass
class CharacterPrompt:
    """What the user has already decided; blank fields are left to the model."""

    name: Optional[str] = None
    race: Optional[str] = None
    character_class: Optional[str] = None
    level: Optional[int] = None
    background: Optional[str] = None
    alignment: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CharacterPrompt":
        def text(key: str) -> Optional[str]:
            value = data.get(key)
            return str(value) if value else None

        level = data.get("level")
        return cls(
            name=text("name"),
            race=text("race"),
            character_class=text("character_class") or text("class"),
            level=int(level) if level else None,
            background=text("background"),
            alignment=text("alignment"),
        )


def build_character_prompt(prompt: CharacterPrompt) -> str:
    lines = [
        "Generate a Dungeons & Dragons 5th Edition character with the following details:",
        f"Name: {prompt.name}" if prompt.name else "Generate a fitting fantasy name",
        f"Race: {prompt.race}" if prompt.race else "Choose an appropriate race",
        f"Class: {prompt.character_class}" if prompt.character_class else "Choose an appropriate class",
        f"Level: {prompt.level}" if prompt.level else "Level: 1",
        f"Background: {prompt.background}" if prompt.background else "Generate an appropriate background",
        f"Alignment: {prompt.alignment}" if prompt.alignment else "Choose an appropriate alignment",
        "",
        "Please provide:",
        "1. Basic character details (name, race, class, level, background, alignment)",
        "2. A set of ability scores (strength, dexterity, constitution, intelligence, wisdom, charisma)",
        "3. Personality traits, ideals, bonds, and flaws",
        "4. A brief backstory (2-3 paragraphs)",
        "5. Physical appearance description",
        "6. Starting equipment appropriate for the class and background",
        "7. Proficiencies and languages",
        "",
        "Format the response as a JSON object with the following structure:",
        CHARACTER_JSON_SHAPE,
    ]
    return "\n".join(lines)


def build_backstory_prompt(character: Mapping[str, Any]) -> str:
    """Prompt for a backstory; personality fields are listed only when filled in."""

    character_class = character.get("character_class") or character.get("class")
    lines = [
        "Create a compelling and detailed backstory for a D&D character with the following attributes:",
        "",
        f"- Name: {character.get('name', '')}",
        f"- Race: {character.get('race', '')}",
        f"- Class: {character_class or ''}",
        f"- Background: {character.get('background', '')}",
        f"- Alignment: {character.get('alignment', '')}",
    ]
    for key, label in (
        ("personality_traits", "Personality Traits"),
        ("ideals", "Ideals"),
        ("bonds", "Bonds"),
        ("flaws", "Flaws"),
    ):
        if character.get(key):
            lines.append(f"- {label}: {character[key]}")
    lines += [
        "",
        "The backstory should:",
        f"1. Explain how the character became a {character_class}",
        "2. Include key events and relationships that shaped the character",
        "3. Provide motivation for why the character is adventuring",
        f"4. Connect to the character's background as a {character.get('background', '')}",
        f"5. Be consistent with the character's alignment ({character.get('alignment', '')})",
        "6. Be about 3-4 paragraphs in length",
        "7. Include some interesting hooks that could be developed in a campaign",
    ]
    return "\n".join(lines)


class TextGenerator:
    """Common interface for the generation backends."""

    def is_configured(self) -> bool:
        raise NotImplementedError

    def complete(self, system_prompt: str, user_prompt: str, json_mode: bool = False) -> str:
        raise NotImplementedError

    def generate_character(self, prompt: CharacterPrompt) -> str:
        """Return raw model text that should contain one JSON object."""

        logger.info("Requesting character suggestion")
        return self._checked(self.complete(CHARACTER_SYSTEM_PROMPT, build_character_prompt(prompt), json_mode=True))

    def generate_backstory(self, character: Mapping[str, Any]) -> str:
        logger.info("Requesting backstory for %s", character.get("name") or "unnamed character")
        return self._checked(self.complete(BACKSTORY_SYSTEM_PROMPT, build_backstory_prompt(character))).strip()

    @staticmethod
    def _checked(text: Optional[str]) -> str:
        if not text or not text.strip():
            raise CharacterGenerationError("The text generator returned an empty response")
        return text


class TransformersTextGenerator(TextGenerator):
    """Local causal language model, loaded on first use."""

    def __init__(self, model_path: Optional[str], max_new_tokens: int = 700):
        self.model_path = model_path
        self.max_new_tokens = max_new_tokens
        self.tokenizer = None
        self.model = None

    def is_configured(self) -> bool:
        return bool(self.model_path)

    def load_model(self) -> None:
        if not self.model_path:
            raise CharacterGenerationError("No local model path configured")
        logger.info("Loading text generation model from %s", self.model_path)
        try:
            self.tokenizer = AutoTokenizer.from_pretrained(self.model_path)
            self.model = AutoModelForCausalLM.from_pretrained(self.model_path)
        except (OSError, ValueError) as exc:
            raise CharacterGenerationError(f"Could not load model: {exc}") from exc

        if self.tokenizer.pad_token is None:
            self.tokenizer.pad_token = self.tokenizer.eos_token

    def complete(self, system_prompt: str, user_prompt: str, json_mode: bool = False) -> str:
        if self.model is None:
            self.load_model()

        prompt = f"{system_prompt}\n\n{user_prompt}\n\nRESPONSE:"
        if json_mode:
            prompt += "\n{"
        inputs = self.tokenizer(prompt, return_tensors="pt", max_length=1024, truncation=True)
        try:
            with torch.no_grad():
                outputs = self.model.generate(
                    **inputs,
                    max_new_tokens=self.max_new_tokens,
                    temperature=0.8,
                    do_sample=True,
                    pad_token_id=self.tokenizer.eos_token_id,
                    repetition_penalty=1.2,
                    top_p=0.92,
                    top_k=50,
                )
        except RuntimeError as exc:
            raise CharacterGenerationError(f"Local generation failed: {exc}") from exc

        # Only decode the continuation, not the echoed prompt.
        prompt_length = inputs["input_ids"].shape[-1]
        text = self.tokenizer.decode(outputs[0][prompt_length:], skip_special_tokens=True)
        if json_mode:
            text = "{" + text
        return text


class OpenAITextGenerator(TextGenerator):
    """OpenAI chat completions; JSON mode is used for character suggestions."""

    def __init__(self, api_key: Optional[str], model: str, client: Any = None):
        self.api_key = api_key
        self.model = model
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise CharacterGenerationError("OpenAI API key not configured")
            self._client = openai.OpenAI(api_key=self.api_key)
        return self._client

    def complete(self, system_prompt: str, user_prompt: str, json_mode: bool = False) -> str:
        kwargs = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = self.client.chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            logger.error("OpenAI request failed: %s", exc)
            raise CharacterGenerationError("Failed to reach the text generation service") from exc

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


def build_text_generator(settings: Settings) -> TextGenerator:
    if settings.backend == "openai":
        return OpenAITextGenerator(settings.openai_api_key, settings.openai_model)
    return TransformersTextGenerator(settings.model_path)


__all__ = [
    "CharacterGenerationError",
    "CharacterPrompt",
    "OpenAITextGenerator",
    "TextGenerator",
    "TransformersTextGenerator",
    "build_backstory_prompt",
    "build_character_prompt",
    "build_text_generator",
]
