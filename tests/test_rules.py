from ihunt_vtt.models import Character, StressTracks
from ihunt_vtt.rules import (
    CONSEQUENCE_SHIFTS,
    check_increment,
    derive_tracks,
    mark_box,
    track_size,
    validate_pyramid,
)

FULL = {"A": 4, "B": 3, "C": 3, "D": 2, "E": 2, "F": 2, "G": 1, "H": 1, "I": 1, "J": 1}


# ── validate_pyramid ────────────────────────────────────────


def test_pyramid_exact_is_valid():
    result = validate_pyramid(FULL)
    assert result.valid
    assert result.error is None


def test_pyramid_level_four_overflow():
    result = validate_pyramid({"A": 4, "B": 4, "C": 3})
    assert not result.valid
    assert result.level == 4
    assert "4" in result.error


def test_pyramid_overflow_reported_before_gaps():
    """Over-capacity at a lower level beats an unfilled higher level."""
    result = validate_pyramid({"A": 1, "B": 1, "C": 1, "D": 1, "E": 1})
    assert not result.valid
    assert result.level == 1


def test_pyramid_out_of_range_level():
    result = validate_pyramid({**FULL, "K": 5})
    assert not result.valid
    assert result.level == 5


def test_pyramid_incomplete_names_highest_missing_level():
    skills = dict(FULL)
    del skills["B"]
    result = validate_pyramid(skills)
    assert not result.valid
    assert result.level == 3


def test_pyramid_ignores_untrained():
    assert validate_pyramid({**FULL, "Z": 0}).valid


def test_pyramid_empty_is_invalid():
    result = validate_pyramid({})
    assert not result.valid
    assert result.error


def test_pyramid_does_not_mutate():
    skills = dict(FULL)
    validate_pyramid(skills)
    assert skills == FULL


# ── check_increment ─────────────────────────────────────────


def test_increment_into_free_slot():
    skills = {"A": 4, "B": 3, "C": 2}
    assert check_increment(skills, "C").valid


def test_increment_into_full_level():
    result = check_increment({"A": 4, "B": 3}, "B")
    assert not result.valid
    assert result.level == 4


def test_increment_above_max():
    result = check_increment({"A": 4}, "A")
    assert not result.valid
    assert result.level == 5


def test_increment_new_skill():
    assert check_increment({}, "Hacker").valid


# ── stress ──────────────────────────────────────────────────


def test_track_size_thresholds():
    assert [track_size(v) for v in range(6)] == [2, 3, 3, 4, 4, 4]


def test_derive_tracks_sizes_from_skills():
    character = Character(name="X", skills={"Vigor": 2, "Atleta": 3, "Ocultista": 1})
    tracks = derive_tracks(character)
    assert len(tracks.physical) == 4
    assert len(tracks.mental) == 3


def test_derive_tracks_custom_mental_aliases():
    character = Character(name="X", skills={"Hacker": 4})
    assert len(derive_tracks(character).mental) == 2
    assert len(derive_tracks(character, ["Hacker"]).mental) == 4


def test_derive_tracks_copies_marks_and_pads():
    character = Character(
        name="X", skills={"Atleta": 1}, stress=StressTracks(physical=[True], mental=[]),
    )
    tracks = derive_tracks(character)
    assert tracks.physical == [True, False, False]
    assert tracks.mental == [False, False]


def test_derive_tracks_ignores_marks_past_size():
    character = Character(name="X", stress=StressTracks(physical=[False, True, True, True]))
    tracks = derive_tracks(character)
    assert tracks.physical == [False, True]
    # persisted array untouched
    assert character.stress.physical == [False, True, True, True]


def test_derive_tracks_idempotent():
    character = Character(
        name="X", skills={"Atleta": 3, "Vontade": 1},
        stress=StressTracks(physical=[True, False, True], mental=[True]),
    )
    assert derive_tracks(character) == derive_tracks(character)


def test_mark_box_grows():
    assert mark_box([], 2, True) == [False, False, True]


def test_mark_box_never_truncates():
    assert mark_box([False, False, False, True], 0, True) == [True, False, False, True]


def test_mark_box_clears():
    assert mark_box([True, True], 1, False) == [True, False]


def test_consequence_shifts():
    assert CONSEQUENCE_SHIFTS == {"mild": 2, "moderate": 4, "severe": 6}
