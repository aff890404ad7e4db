"""Step sequencing for the character creation wizard.

The wizard only tracks where the user is. Character data lives in the
injected :class:`CharacterRecord`; the wizard forwards updates to it.
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional

from character_forge.player.character_record import Character, CharacterRecord

logger = logging.getLogger(__name__)


class WizardStep(IntEnum):
    RACE = 0
    CLASS = 1
    ABILITY_SCORES = 2
    BACKGROUND = 3
    DETAILS = 4
    EQUIPMENT = 5
    REVIEW = 6
    COMPLETE = 7

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


FIRST_STEP = WizardStep.RACE
LAST_STEP = WizardStep.COMPLETE


class WizardNavigationError(Exception):
    """Raised for navigation the current wizard state does not allow."""


class CharacterWizard:
    def __init__(self, record: Optional[CharacterRecord] = None):
        self.record = record or CharacterRecord()
        self._step = FIRST_STEP
        self._generated = False
        self._epoch = 0

    @property
    def step(self) -> WizardStep:
        return self._step

    @property
    def navigation_epoch(self) -> int:
        """Bumped on every step change so stale async results can be spotted."""

        return self._epoch

    @property
    def has_generated(self) -> bool:
        return self._generated

    @property
    def progress(self) -> float:
        return self._step / LAST_STEP * 100

    def _go(self, step: WizardStep) -> WizardStep:
        if step != self._step:
            logger.debug("Wizard step %s -> %s", self._step.name, step.name)
            self._step = step
            self._epoch += 1
        return self._step

    def next_step(self) -> WizardStep:
        return self._go(WizardStep(min(self._step + 1, LAST_STEP)))

    def previous_step(self) -> WizardStep:
        return self._go(WizardStep(max(self._step - 1, FIRST_STEP)))

    def dispatch(self, partial: Mapping[str, Any]) -> Character:
        return self.record.update(partial)

    def apply_generated(self, partial: Mapping[str, Any]) -> Character:
        """Merge a complete generated character and unlock the review shortcut."""

        character = self.record.update(partial)
        self._generated = True
        return character

    def jump_to_review(self) -> WizardStep:
        if not self._generated:
            raise WizardNavigationError("Generate a character before jumping to review")
        return self._go(WizardStep.REVIEW)

    def complete(self) -> WizardStep:
        if self._step != WizardStep.REVIEW:
            raise WizardNavigationError("A character can only be completed from the review step")
        return self._go(WizardStep.COMPLETE)

    def start_over(self) -> WizardStep:
        """Reset the record and go back to the first step ("create another")."""

        self.record.reset()
        self._generated = False
        # Always bump: any generation started before this belongs to the old character.
        self._epoch += 1
        self._step = FIRST_STEP
        return self._step

    def serialize(self) -> Dict[str, Any]:
        return {
            "step": int(self._step),
            "step_name": self._step.label,
            "progress": round(self.progress, 2),
            "navigation_epoch": self._epoch,
            "has_generated": self._generated,
        }


__all__ = ["CharacterWizard", "WizardNavigationError", "WizardStep"]
