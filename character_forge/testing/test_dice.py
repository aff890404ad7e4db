"""Tests for dice helpers, roll policies and the roll reveal."""
from __future__ import annotations

import os
import sys
from unittest.mock import patch

import pytest

TEST_DIR = os.path.dirname(__file__)
REPO_ROOT = os.path.abspath(os.path.join(TEST_DIR, "..", ".."))
sys.path.insert(0, REPO_ROOT)

from character_forge.rules.dice import (
    HISTORY_SIZE,
    REVEAL_FRAMES,
    ROLL_POLICIES,
    DiceRollReveal,
    roll_dice,
    roll_with_policy,
)


def test_roll_dice_applies_modifier():
    with patch("character_forge.rules.dice.roll_die", return_value=4):
        assert roll_dice("2d6+6") == 14
        assert roll_dice("d8-1") == 3


def test_roll_dice_rejects_bad_notation():
    with pytest.raises(ValueError):
        roll_dice("two dice")


@pytest.mark.parametrize("policy", sorted(ROLL_POLICIES))
def test_policies_stay_in_plausible_range(policy):
    for _ in range(50):
        assert 1 <= roll_with_policy(policy) <= 20


def test_unknown_policy_raises():
    with pytest.raises(ValueError):
        roll_with_policy("7d7")


def test_reveal_frames_end_on_result_and_callback_fires():
    results = []
    reveal = DiceRollReveal(sides=20, on_complete=results.append)

    outcome = reveal.roll()

    assert len(outcome.frames) == REVEAL_FRAMES
    assert outcome.frames[-1] == outcome.result
    assert results == [outcome.result]


def test_reveal_flags_maximum_face_as_critical():
    reveal = DiceRollReveal(sides=6)

    with patch("character_forge.rules.dice.roll_die", return_value=6):
        assert reveal.roll().critical is True
    with patch("character_forge.rules.dice.roll_die", return_value=2):
        assert reveal.roll().critical is False


def test_reveal_history_keeps_last_five_newest_first():
    reveal = DiceRollReveal(sides=10)
    for value in range(1, 8):
        with patch("character_forge.rules.dice.roll_die", return_value=value):
            reveal.roll()

    assert reveal.history == [7, 6, 5, 4, 3]
    assert len(reveal.history) == HISTORY_SIZE


def test_play_emits_frames_before_completion():
    events = []
    reveal = DiceRollReveal(sides=4, on_complete=lambda value: events.append(("done", value)))
    sleeps = []

    outcome = reveal.play(lambda value: events.append(("frame", value)), sleep=sleeps.append)

    assert [kind for kind, _ in events] == ["frame"] * REVEAL_FRAMES + ["done"]
    assert sleeps == [0.1] * REVEAL_FRAMES
    assert events[-1] == ("done", outcome.result)


def test_unsupported_die_size():
    with pytest.raises(ValueError):
        DiceRollReveal(sides=7)
