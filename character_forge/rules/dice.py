import random
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

DIE_SIZES = (4, 6, 8, 10, 12, 20, 100)
REVEAL_FRAMES = 10
REVEAL_INTERVAL_MS = 100
HISTORY_SIZE = 5


def roll_die(sides: int, rng: Optional[random.Random] = None) -> int:
    """Roll a single die with ``sides`` faces and return the result.

    ``rng`` defaults to the module-level generator.
    """

    if sides < 2:
        raise ValueError("Dice must have at least 2 sides.")
    return (rng or random).randint(1, sides)


def roll_dice(dice_string, rng=None):

    """
    Simulates rolling dice based on standard D&D notation.

    Args:
        dice_string (str): A string in the format 'NdS[+/-]M', where:
                         - N: number of dice (optional, defaults to 1)
                         - S: number of sides on the die
                         - M: modifier (optional, can be positive or negative)
        rng (random.Random, optional): Source of randomness for every die.

    Returns:
        int: The total result of the dice roll plus the modifier.

    Examples:
        >>> roll_dice("1d20")
        # Rolls 1 twenty-sided die
        >>> roll_dice("2d6+6")
        # Rolls 2 six-sided dice, sums them, and adds 6
        >>> roll_dice("d8-1")
        # Rolls 1 eight-sided die and subtracts 1
    """

    num_dice = 1
    modifier = 0

    #This pattern matches: (optional number)d(number)(optional +- modifier)
    pattern = r'^(\d*)d(\d+)([+-]\d+)?$'
    match = re.match(pattern, dice_string)

    if not match:
        raise ValueError(f"Invalid dice format: '{dice_string}'. Use format like '2d6+3' or 'd20'.")

    num_dice_str, sides_str, modifier_str = match.groups()

    num_dice = int(num_dice_str) if num_dice_str else 1
    sides = int(sides_str)
    if modifier_str:
        modifier = int(modifier_str)  #This handles both + and - signs

    if num_dice < 1:
        raise ValueError("Number of dice must be at least 1.")
    if sides < 2:
        raise ValueError("Dice must have at least 2 sides.")

    total = 0
    for _ in range(num_dice):
        total += roll_die(sides, rng)

    return total + modifier


def roll_uniform(low: int, high: int, rng: Optional[random.Random] = None) -> int:
    """Draw an integer uniformly from ``low`` to ``high`` inclusive."""

    if low > high:
        raise ValueError("Lower bound must not exceed upper bound.")
    return (rng or random).randint(low, high)


def _roll_drop_lowest(rng: Optional[random.Random] = None) -> int:
    rolls = sorted(roll_die(6, rng) for _ in range(4))
    return sum(rolls[1:])


ROLL_POLICIES: Dict[str, Dict[str, object]] = {
    "uniform-8-20": {
        "label": "Uniform 8-20",
        "description": "Every score between 8 and 20 is equally likely.",
        "roller": lambda rng: roll_uniform(8, 20, rng),
    },
    "d20": {
        "label": "Single d20",
        "description": "One twenty-sided die per ability.",
        "roller": lambda rng: roll_dice("1d20", rng),
    },
    "4d6-drop-lowest": {
        "label": "4d6 drop lowest",
        "description": "Traditional method: roll four d6 and keep the best three.",
        "roller": _roll_drop_lowest,
    },
    "3d6": {
        "label": "3d6",
        "description": "Classic straight roll.",
        "roller": lambda rng: roll_dice("3d6", rng),
    },
    "2d6+6": {
        "label": "2d6+6",
        "description": "Heroic method providing a higher floor.",
        "roller": lambda rng: roll_dice("2d6+6", rng),
    },
}


def roll_with_policy(policy: str, rng: Optional[random.Random] = None) -> int:
    """Roll a single ability score using the named policy."""

    if policy not in ROLL_POLICIES:
        raise ValueError(f"Unknown roll policy: {policy}")
    roller: Callable[[Optional[random.Random]], int] = ROLL_POLICIES[policy]["roller"]  # type: ignore[assignment]
    return roller(rng)


@dataclass
class RevealResult:
    sides: int
    frames: List[int]
    result: int
    critical: bool
    interval_ms: int = REVEAL_INTERVAL_MS


@dataclass
class DiceRollReveal:
    """Cosmetic roll animation as a sequence of display values.

    Each roll yields ``REVEAL_FRAMES`` intermediate faces, the last of which is
    the settled result. Nothing here touches character data; callers that
    care about the outcome pass ``on_complete``.
    """

    sides: int = 20
    on_complete: Optional[Callable[[int], None]] = None
    history: List[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.sides not in DIE_SIZES:
            raise ValueError(f"Unsupported die size: d{self.sides}")

    def _draw(self) -> RevealResult:
        frames = [roll_die(self.sides) for _ in range(REVEAL_FRAMES)]
        result = frames[-1]
        self.history = ([result] + self.history)[:HISTORY_SIZE]
        return RevealResult(
            sides=self.sides,
            frames=frames,
            result=result,
            critical=result == self.sides,
        )

    def _settle(self, reveal: RevealResult) -> RevealResult:
        if self.on_complete is not None:
            self.on_complete(reveal.result)
        return reveal

    def roll(self) -> RevealResult:
        return self._settle(self._draw())

    def play(
        self,
        on_frame: Callable[[int], None],
        sleep: Optional[Callable[[float], None]] = None,
    ) -> RevealResult:
        """Emit each frame to ``on_frame`` at the reveal cadence, then settle."""

        reveal = self._draw()
        for value in reveal.frames:
            on_frame(value)
            if sleep is not None:
                sleep(reveal.interval_ms / 1000)
        return self._settle(reveal)
