"""Skill pyramid and stress track rules.

Skill pyramid (levels 1-4, level 0 = untrained and absent):
  level 4: 1 skill
  level 3: 2 skills
  level 2: 3 skills
  level 1: 4 skills

Stress track size comes from the highest relevant skill:
  0    → 2 boxes
  1-2  → 3 boxes
  3+   → 4 boxes
physical: Atleta / Atletismo / Vigor
mental:   mental aliases (Vontade, Ocultista, Acadêmico, Sobrevivente)

Persisted stress arrays only record which boxes are marked. The derived size
wins for display: missing boxes default to unmarked, persisted marks past the
derived size are ignored but never removed from the document.

Consequences are three fixed free-text slots absorbing 2/4/6 shifts.
"""

from collections import Counter

from ihunt_vtt.config import DEFAULT_MENTAL_ALIASES
from ihunt_vtt.models import Character, Severity, StressTracks, Validation

PYRAMID: dict[int, int] = {4: 1, 3: 2, 2: 3, 1: 4}
MAX_LEVEL = max(PYRAMID)

BASE_STRESS_BOXES = 2
PHYSICAL_SKILLS = ("Atleta", "Atletismo", "Vigor")

CONSEQUENCE_SHIFTS: dict[Severity, int] = {"mild": 2, "moderate": 4, "severe": 6}


# ── Skill pyramid ───────────────────────────────────────────


def _level_counts(skills: dict[str, int]) -> Counter:
    return Counter(level for level in skills.values() if level != 0)


def validate_pyramid(skills: dict[str, int]) -> Validation:
    """Valid iff the trained skills fill the pyramid exactly."""
    counts = _level_counts(skills)

    for level in sorted(PYRAMID, reverse=True):
        if counts[level] > PYRAMID[level]:
            return Validation.fail(
                f"Level {level} overflow: {counts[level]} skills, at most {PYRAMID[level]} allowed.",
                level=level,
            )

    for level in sorted(counts, reverse=True):
        if level not in PYRAMID:
            return Validation.fail(
                f"Level {level} is outside the pyramid (levels 1-{MAX_LEVEL}).",
                level=level,
            )

    for level in sorted(PYRAMID, reverse=True):
        if counts[level] < PYRAMID[level]:
            return Validation.fail(
                f"Level {level} incomplete: {counts[level]} skills, {PYRAMID[level]} required.",
                level=level,
            )

    return Validation.ok()


def check_increment(skills: dict[str, int], skill: str) -> Validation:
    """Would raising `skill` by one point keep every level within its cap?"""
    new_level = skills.get(skill, 0) + 1
    if new_level > MAX_LEVEL:
        return Validation.fail(
            f"{skill} cannot go above level {MAX_LEVEL}.", level=new_level
        )
    counts = _level_counts({**skills, skill: new_level})
    if counts[new_level] > PYRAMID[new_level]:
        return Validation.fail(
            f"Level {new_level} overflow: raising {skill} would put "
            f"{counts[new_level]} skills there, at most {PYRAMID[new_level]} allowed.",
            level=new_level,
        )
    return Validation.ok()


# ── Stress ──────────────────────────────────────────────────


def track_size(skill_value: int) -> int:
    if skill_value >= 3:
        return 4
    if skill_value >= 1:
        return 3
    return BASE_STRESS_BOXES


def _highest(skills: dict[str, int], names) -> int:
    return max((skills.get(n, 0) for n in names), default=0)


def _build_track(saved: list[bool], size: int) -> list[bool]:
    track = list(saved[:size])
    track.extend([False] * (size - len(track)))
    return track


def derive_tracks(character: Character, mental_aliases: list[str] | None = None) -> StressTracks:
    """Expected stress tracks for a character, reconciled with persisted marks."""
    aliases = mental_aliases or DEFAULT_MENTAL_ALIASES
    physical = track_size(_highest(character.skills, PHYSICAL_SKILLS))
    mental = track_size(_highest(character.skills, aliases))
    return StressTracks(
        physical=_build_track(character.stress.physical, physical),
        mental=_build_track(character.stress.mental, mental),
    )


def mark_box(persisted: list[bool], index: int, marked: bool) -> list[bool]:
    """New persisted track with box `index` set. Grows, never truncates."""
    track = list(persisted)
    if index >= len(track):
        track.extend([False] * (index + 1 - len(track)))
    track[index] = marked
    return track
