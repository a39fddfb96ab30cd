"""Fate dice resolution and the adjective ladder.

Modes:
  normal     4dF                 dice_total in [-4, 4]
  advantage  3dF + 1d6           dice_total in [-3, 9]

Outcome by shifts (total - opposition):
  < 0   failure
  = 0   tie
  1-2   success
  >= 3  style

Everything here is pure; callers log or persist the result themselves.
"""

import random
from typing import Any

from ihunt_vtt.models import ActionType, DiceResult, Outcome, RollMode

FATE_FACES = (1, -1, 0)

FATE_LADDER: dict[int, str] = {
    -2: "Terrible",
    -1: "Poor",
    0: "Mediocre",
    1: "Average",
    2: "Fair",
    3: "Good",
    4: "Great",
    5: "Superb",
    6: "Fantastic",
    7: "Epic",
    8: "Legendary",
    9: "Godlike",
}

OPPOSITION_PRESETS = [(v, f"{FATE_LADDER[v]} (+{v})") for v in range(0, 7)]

OUTCOME_LABELS: dict[Outcome, str] = {
    "failure": "Failure",
    "tie": "Tie",
    "success": "Success",
    "style": "Success with Style",
}


def ladder_label(value: int) -> str:
    """Ladder adjective for a value, clamped to the ends of the ladder."""
    return FATE_LADDER[max(-2, min(9, value))]


def calculate_outcome(total: int, opposition: int | None) -> tuple[int, Outcome] | None:
    """Return (shifts, outcome), or None for a free-standing roll."""
    if opposition is None:
        return None
    shifts = total - opposition
    if shifts < 0:
        return shifts, "failure"
    if shifts == 0:
        return shifts, "tie"
    if shifts >= 3:
        return shifts, "style"
    return shifts, "success"


def roll(
    modifier: int = 0,
    mode: RollMode = "normal",
    opposition: int | None = None,
    *,
    character: str = "",
    skill: str | None = None,
    action: ActionType | None = None,
    invocations: int = 0,
    rng: Any = None,
) -> DiceResult:
    """Roll the dice and classify the result against an optional opposition.

    `rng` needs `choice()` and `randint()`; it defaults to the random module.
    """
    rng = rng or random
    d6: int | None = None
    if mode == "advantage":
        fate_dice = tuple(rng.choice(FATE_FACES) for _ in range(3))
        d6 = rng.randint(1, 6)
        dice_total = sum(fate_dice) + d6
    else:
        fate_dice = tuple(rng.choice(FATE_FACES) for _ in range(4))
        dice_total = sum(fate_dice)

    total = dice_total + modifier
    resolved = calculate_outcome(total, opposition)
    shifts, outcome = resolved if resolved else (None, None)

    return DiceResult(
        fate_dice=fate_dice,
        d6=d6,
        modifier=modifier,
        dice_total=dice_total,
        total=total,
        opposition=opposition,
        shifts=shifts,
        outcome=outcome,
        mode=mode,
        character=character,
        skill=skill,
        action=action,
        invocations=invocations,
    )
