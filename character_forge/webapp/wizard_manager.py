"""Session helpers for the character creation web experience."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from character_forge.ai_character_writer import (
    CharacterGenerationError,
    CharacterPrompt,
    TextGenerator,
    build_text_generator,
)
from character_forge.config import Settings, load_settings
from character_forge.player.ability_scores import AbilityScoreAllocator, AllocationError
from character_forge.player.character_normalizer import (
    NormalizationError,
    normalize_character_payload,
    parse_character_payload,
)
from character_forge.player.character_record import CharacterRecord, UnknownFieldError
from character_forge.player.character_wizard import CharacterWizard, WizardNavigationError
from character_forge.rules.rules_engine import get_rules_engine

logger = logging.getLogger(__name__)

CHARACTER = "character"
BACKSTORY = "backstory"

# Identity fields used to seed a generation prompt.
PROMPT_FIELDS = ("name", "race", "character_class", "level", "background", "alignment")


class WizardError(Exception):
    """Base exception used by the web layer."""


class SessionNotFoundError(WizardError):
    pass


class GeneratorUnavailableError(WizardError):
    """No text generation backend is configured; only manual entry works."""


class GenerationInProgressError(WizardError):
    pass


@dataclass
class WizardSession:
    """One user's wizard: the sequencer, its record and the ability allocator.

    Mutations are serialized by ``lock``. Generation requests run outside the
    lock and their results are only merged if nothing moved in the meantime.
    """

    id: str
    wizard: CharacterWizard
    allocator: AbilityScoreAllocator
    generator: TextGenerator
    last_error: Optional[str] = None
    pending: Dict[str, bool] = field(default_factory=lambda: {CHARACTER: False, BACKSTORY: False})
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @property
    def record(self) -> CharacterRecord:
        return self.wizard.record

    def serialize(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "id": self.id,
                "wizard": self.wizard.serialize(),
                "character": self.record.to_dict(),
                "version": self.record.version,
                "abilities": self.allocator.serialize(),
                "pending": dict(self.pending),
                "last_error": self.last_error,
                "generator_configured": self.generator.is_configured(),
            }

    def _succeeded(self) -> None:
        self.last_error = None

    # ------------------------------------------------------------------
    # Manual edits
    # ------------------------------------------------------------------
    def update_character(self, changes: Mapping[str, Any]) -> None:
        if not isinstance(changes, Mapping):
            raise WizardError("Character changes must be an object")
        with self.lock:
            try:
                character = self.wizard.dispatch(changes)
            except UnknownFieldError as exc:
                raise WizardError(exc.args[0]) from exc
            except (KeyError, TypeError, ValueError) as exc:
                raise WizardError(f"Invalid character changes: {exc}") from exc
            if "ability_scores" in changes:
                self.allocator.load_scores(character.ability_scores)
            self._succeeded()

    def add_random_equipment(self) -> None:
        with self.lock:
            current = [item.name for item in self.record.character.equipment]
            picks = get_rules_engine().random_starting_equipment()
            merged = list(self.record.character.equipment)
            for pick in picks:
                if pick["name"] not in current:
                    current.append(pick["name"])
                    merged.append(pick)
            self.wizard.dispatch({"equipment": merged})
            self._succeeded()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def navigate(self, action: str) -> None:
        with self.lock:
            try:
                if action == "next":
                    self.wizard.next_step()
                elif action == "previous":
                    self.wizard.previous_step()
                elif action == "review":
                    self.wizard.jump_to_review()
                elif action == "complete":
                    self.wizard.complete()
                elif action == "restart":
                    self.wizard.start_over()
                    self.allocator = _new_allocator(
                        self.record, self.allocator.roll_policy, self.allocator.bulk_roll_policy
                    )
                else:
                    raise WizardError(f"Unknown navigation action: {action}")
            except WizardNavigationError as exc:
                raise WizardError(str(exc)) from exc
            self._succeeded()

    # ------------------------------------------------------------------
    # Ability scores
    # ------------------------------------------------------------------
    def allocate(self, action: str, payload: Mapping[str, Any]) -> bool:
        """Run an allocator action and copy the scores to the record.

        Returns ``False`` when the allocator rejected the move.
        """

        with self.lock:
            allocator = self.allocator
            accepted = True
            try:
                if action == "method":
                    allocator.set_method(str(payload.get("method", "")))
                elif action == "set":
                    accepted = allocator.set_score(str(payload.get("ability", "")), int(payload.get("value")))
                elif action == "assign":
                    accepted = allocator.assign(str(payload.get("ability", "")), int(payload.get("value")))
                elif action == "roll":
                    allocator.roll(str(payload.get("ability", "")))
                elif action == "random":
                    allocator.randomize()
                elif action == "reset":
                    allocator.reset_scores()
                else:
                    raise WizardError(f"Unknown ability action: {action}")
            except AllocationError as exc:
                raise WizardError(str(exc)) from exc
            except (TypeError, ValueError) as exc:
                raise WizardError("value must be an integer") from exc

            if accepted and allocator.scores != self.record.character.ability_scores:
                self.wizard.dispatch({"ability_scores": allocator.scores})
            self._succeeded()
            return accepted

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------
    def _begin(self, kind: str) -> tuple:
        if not self.generator.is_configured():
            raise GeneratorUnavailableError("No text generation backend is configured")
        if self.pending[kind]:
            raise GenerationInProgressError(f"A {kind} generation is already running")
        self.pending[kind] = True
        return self.wizard.navigation_epoch, self.record.version

    def _is_stale(self, started: tuple) -> bool:
        return started != (self.wizard.navigation_epoch, self.record.version)

    def _fail(self, kind: str, exc: Exception) -> None:
        if isinstance(exc, (CharacterGenerationError, NormalizationError)):
            logger.warning("%s generation failed for session %s: %s", kind.title(), self.id, exc)
        else:
            logger.exception("Unexpected error during %s generation for session %s", kind, self.id)
        with self.lock:
            self.last_error = str(exc) or exc.__class__.__name__

    def build_prompt(self, overrides: Optional[Mapping[str, Any]] = None) -> CharacterPrompt:
        """Current record values first, request values for anything still blank."""

        current = self.record.to_dict()
        overrides = overrides or {}
        data = {key: current.get(key) or overrides.get(key) for key in PROMPT_FIELDS}
        return CharacterPrompt.from_mapping(data)

    def generate_character(self, overrides: Optional[Mapping[str, Any]] = None) -> bool:
        """Ask the backend for a full character and move to review.

        Returns ``False`` when the request failed (see ``last_error``) or the
        result arrived after the user moved on and was discarded.
        """

        with self.lock:
            started = self._begin(CHARACTER)

        try:
            with self.lock:
                prompt = self.build_prompt(overrides)
            text = self.generator.generate_character(prompt)
            partial = normalize_character_payload(parse_character_payload(text), prompt)

            with self.lock:
                if self._is_stale(started):
                    logger.warning("Discarding stale character generation for session %s", self.id)
                    return False
                character = self.wizard.apply_generated(partial)
                self.allocator.load_scores(character.ability_scores)
                self.wizard.jump_to_review()
                self._succeeded()
        except Exception as exc:
            self._fail(CHARACTER, exc)
            return False
        finally:
            with self.lock:
                self.pending[CHARACTER] = False

        logger.info("Generated %s for session %s", character.name or "a character", self.id)
        return True

    def generate_backstory(self) -> bool:
        with self.lock:
            started = self._begin(BACKSTORY)

        try:
            with self.lock:
                character = self.record.to_dict()
            backstory = self.generator.generate_backstory(character)

            with self.lock:
                if self._is_stale(started):
                    logger.warning("Discarding stale backstory for session %s", self.id)
                    return False
                self.wizard.dispatch({"backstory": backstory})
                self._succeeded()
        except Exception as exc:
            self._fail(BACKSTORY, exc)
            return False
        finally:
            with self.lock:
                self.pending[BACKSTORY] = False
        return True


_SETTINGS: Settings = load_settings()
_GENERATOR: TextGenerator = build_text_generator(_SETTINGS)
_SESSIONS: Dict[str, WizardSession] = {}


def settings() -> Settings:
    return _SETTINGS


def generator_configured() -> bool:
    return _GENERATOR.is_configured()


def _new_allocator(record: CharacterRecord, roll_policy: str, bulk_roll_policy: str) -> AbilityScoreAllocator:
    # Point-buy adopts the template's 10s, so 12 of the 27 points start spent.
    return AbilityScoreAllocator(
        scores=record.character.ability_scores,
        roll_policy=roll_policy,
        bulk_roll_policy=bulk_roll_policy,
    )


def create_session(generator: Optional[TextGenerator] = None) -> WizardSession:
    wizard = CharacterWizard(CharacterRecord())
    allocator = _new_allocator(wizard.record, _SETTINGS.roll_policy, _SETTINGS.bulk_roll_policy)
    session = WizardSession(
        id=str(uuid.uuid4()),
        wizard=wizard,
        allocator=allocator,
        generator=generator or _GENERATOR,
    )
    _SESSIONS[session.id] = session
    return session


def get_session(session_id: str) -> WizardSession:
    if session_id not in _SESSIONS:
        raise SessionNotFoundError("Wizard session not found")
    return _SESSIONS[session_id]


def reset_sessions() -> None:
    _SESSIONS.clear()
