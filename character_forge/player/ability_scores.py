"""Ability score values and the three ways of generating them.

``AbilityScoreAllocator`` keeps one method active at a time:

* ``point-buy``: scores between 8 and 15 bought from a 27 point budget with
  the nonlinear cost table below.
* ``standard-array``: each of 15, 14, 13, 12, 10 and 8 handed to exactly one
  ability.
* ``roll``: scores drawn from a named roll policy (see
  :data:`character_forge.rules.dice.ROLL_POLICIES`).

Illegal moves (over budget, out of range, a standard value already taken)
are rejected silently: the call returns ``False`` and nothing changes.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, fields
from typing import Dict, List, Mapping, Optional

from character_forge.rules.dice import ROLL_POLICIES, roll_with_policy
from character_forge.rules.reference_tables import ABILITY_NAMES

logger = logging.getLogger(__name__)

SCORE_MIN = 3
SCORE_MAX = 20
DEFAULT_SCORE = 10

POINT_BUY = "point-buy"
STANDARD_ARRAY = "standard-array"
ROLL = "roll"
METHODS = (POINT_BUY, STANDARD_ARRAY, ROLL)

POINT_BUY_BUDGET = 27
POINT_BUY_COSTS: Dict[int, int] = {8: 0, 9: 1, 10: 2, 11: 3, 12: 4, 13: 5, 14: 7, 15: 9}
POINT_BUY_MIN = min(POINT_BUY_COSTS)
POINT_BUY_MAX = max(POINT_BUY_COSTS)

STANDARD_ARRAY_VALUES = (15, 14, 13, 12, 10, 8)


class AllocationError(Exception):
    """Raised for unknown abilities, methods or roll policies."""


@dataclass
class AbilityScores:
    strength: int = DEFAULT_SCORE
    dexterity: int = DEFAULT_SCORE
    constitution: int = DEFAULT_SCORE
    intelligence: int = DEFAULT_SCORE
    wisdom: int = DEFAULT_SCORE
    charisma: int = DEFAULT_SCORE

    @classmethod
    def from_mapping(cls, data: Mapping[str, int]) -> "AbilityScores":
        return cls(**{ability: int(data.get(ability, DEFAULT_SCORE)) for ability in ABILITY_NAMES})

    @classmethod
    def uniform(cls, value: int) -> "AbilityScores":
        return cls(**{ability: value for ability in ABILITY_NAMES})

    def get(self, ability: str) -> int:
        return getattr(self, _check_ability(ability))

    def replace(self, ability: str, value: int) -> "AbilityScores":
        data = self.to_dict()
        data[_check_ability(ability)] = int(value)
        return AbilityScores(**data)

    def to_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _check_ability(ability: str) -> str:
    if ability not in ABILITY_NAMES:
        raise AllocationError(f"Unknown ability: {ability}")
    return ability


def clamp_score(value: int, low: int = SCORE_MIN, high: int = SCORE_MAX) -> int:
    return max(low, min(high, int(value)))


def point_buy_cost(value: int) -> int:
    """Cost of ``value`` under point-buy; scores outside the table cost nothing."""

    return POINT_BUY_COSTS.get(value, 0)


def point_buy_total(scores: AbilityScores) -> int:
    return sum(point_buy_cost(score) for score in scores.to_dict().values())


class AbilityScoreAllocator:
    """Produces a complete :class:`AbilityScores` under one generation method."""

    def __init__(
        self,
        method: str = POINT_BUY,
        scores: Optional[AbilityScores] = None,
        roll_policy: str = "d20",
        bulk_roll_policy: str = "uniform-8-20",
        rng: Optional[random.Random] = None,
    ):
        if method not in METHODS:
            raise AllocationError(f"Unknown ability generation method: {method}")
        for policy in (roll_policy, bulk_roll_policy):
            if policy not in ROLL_POLICIES:
                raise AllocationError(f"Unknown roll policy: {policy}")
        self.roll_policy = roll_policy
        self.bulk_roll_policy = bulk_roll_policy
        self._rng = rng or random.Random()
        self.method = method
        if scores is None:
            scores = AbilityScores.uniform(POINT_BUY_MIN) if method == POINT_BUY else AbilityScores()
        self.scores = scores
        self._spent = 0
        self._assignments: Dict[str, int] = {}
        self._reset_bookkeeping()

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------
    def _reset_bookkeeping(self) -> None:
        self._assignments = {}
        self._spent = point_buy_total(self.scores) if self.method == POINT_BUY else 0

    @property
    def points_spent(self) -> int:
        return self._spent

    @property
    def remaining_points(self) -> int:
        return POINT_BUY_BUDGET - self._spent

    @property
    def assignments(self) -> Dict[str, int]:
        return dict(self._assignments)

    def unassigned_values(self) -> List[int]:
        remaining = list(STANDARD_ARRAY_VALUES)
        for value in self._assignments.values():
            remaining.remove(value)
        return remaining

    def set_method(self, method: str) -> None:
        """Switch methods, keeping score values but clearing the bookkeeping."""

        if method not in METHODS:
            raise AllocationError(f"Unknown ability generation method: {method}")
        self.method = method
        self._reset_bookkeeping()
        if not self.is_legal():
            logger.debug("Scores %s are not legal under %s", self.scores, method)

    def is_legal(self) -> bool:
        """Whether the current scores could have been produced by the active method."""

        values = list(self.scores.to_dict().values())
        if self.method == POINT_BUY:
            in_range = all(POINT_BUY_MIN <= value <= POINT_BUY_MAX for value in values)
            return in_range and point_buy_total(self.scores) <= POINT_BUY_BUDGET
        if self.method == STANDARD_ARRAY:
            return sorted(values) == sorted(STANDARD_ARRAY_VALUES)
        return all(SCORE_MIN <= value <= SCORE_MAX for value in values)

    def load_scores(self, scores: AbilityScores) -> None:
        """Adopt scores set elsewhere (manual edit or generation) under the active method."""

        self.scores = scores
        self._reset_bookkeeping()

    def reset_scores(self) -> AbilityScores:
        """Restore the active method's starting scores."""

        if self.method == POINT_BUY:
            self.scores = AbilityScores.uniform(POINT_BUY_MIN)
        else:
            self.scores = AbilityScores()
        self._reset_bookkeeping()
        return self.scores

    # ------------------------------------------------------------------
    # Point buy
    # ------------------------------------------------------------------
    def set_score(self, ability: str, value: int) -> bool:
        """Buy ``value`` for ``ability``; returns ``False`` when the move is illegal."""

        _check_ability(ability)
        if self.method != POINT_BUY:
            raise AllocationError("set_score is only available for point-buy")
        value = int(value)
        if value < POINT_BUY_MIN or value > POINT_BUY_MAX:
            logger.debug("Rejected %s=%s: outside point-buy range", ability, value)
            return False
        old_cost = point_buy_cost(self.scores.get(ability))
        new_total = self._spent - old_cost + point_buy_cost(value)
        if new_total > POINT_BUY_BUDGET:
            logger.debug("Rejected %s=%s: %s points exceeds budget", ability, value, new_total)
            return False
        self._spent = new_total
        self.scores = self.scores.replace(ability, value)
        return True

    # ------------------------------------------------------------------
    # Standard array
    # ------------------------------------------------------------------
    def assign(self, ability: str, value: int) -> bool:
        """Give ``ability`` a standard-array value not held by another ability."""

        _check_ability(ability)
        if self.method != STANDARD_ARRAY:
            raise AllocationError("assign is only available for standard-array")
        value = int(value)
        if value not in STANDARD_ARRAY_VALUES:
            return False
        for other, assigned in self._assignments.items():
            if other != ability and assigned == value:
                return False
        self._assignments[ability] = value
        self.scores = self.scores.replace(ability, value)
        return True

    def auto_assign(self) -> AbilityScores:
        shuffled = list(STANDARD_ARRAY_VALUES)
        self._rng.shuffle(shuffled)
        self._assignments = dict(zip(ABILITY_NAMES, shuffled))
        self.scores = AbilityScores(**self._assignments)
        return self.scores

    # ------------------------------------------------------------------
    # Rolling
    # ------------------------------------------------------------------
    def _draw(self, policy: str) -> int:
        value = roll_with_policy(policy, self._rng)
        clamped = clamp_score(value)
        if clamped != value:
            logger.debug("Clamped rolled score %s to %s", value, clamped)
        return clamped

    def roll(self, ability: str) -> int:
        _check_ability(ability)
        if self.method != ROLL:
            raise AllocationError("roll is only available for the roll method")
        value = self._draw(self.roll_policy)
        self.scores = self.scores.replace(ability, value)
        return value

    def roll_all(self) -> AbilityScores:
        if self.method != ROLL:
            raise AllocationError("roll_all is only available for the roll method")
        self.scores = AbilityScores(**{ability: self._draw(self.bulk_roll_policy) for ability in ABILITY_NAMES})
        return self.scores

    def randomize(self) -> AbilityScores:
        """Random assignment for the active method (shuffle or roll all)."""

        if self.method == STANDARD_ARRAY:
            return self.auto_assign()
        if self.method == ROLL:
            return self.roll_all()
        raise AllocationError("Point-buy has no random assignment")

    def serialize(self) -> Dict[str, object]:
        return {
            "method": self.method,
            "scores": self.scores.to_dict(),
            "points_spent": self._spent,
            "remaining_points": self.remaining_points,
            "assignments": self.assignments,
            "unassigned_values": self.unassigned_values(),
            "legal": self.is_legal(),
            "roll_policy": self.roll_policy,
            "bulk_roll_policy": self.bulk_roll_policy,
        }


__all__ = [
    "AbilityScoreAllocator",
    "AbilityScores",
    "AllocationError",
    "METHODS",
    "POINT_BUY",
    "POINT_BUY_BUDGET",
    "POINT_BUY_COSTS",
    "ROLL",
    "SCORE_MAX",
    "SCORE_MIN",
    "STANDARD_ARRAY",
    "STANDARD_ARRAY_VALUES",
    "clamp_score",
    "point_buy_cost",
    "point_buy_total",
]
