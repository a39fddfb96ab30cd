import pytest
from pydantic import TypeAdapter, ValidationError

from ihunt_vtt.models import (
    AspectRef,
    Character,
    ConsequenceRef,
    Scene,
    SceneRef,
    SituationalAspect,
    UnifiedAspect,
    Validation,
    from_doc,
    to_doc,
)


def test_to_doc_drops_id():
    character = Character(id="c1", name="Marina")
    doc = to_doc(character)
    assert "id" not in doc
    assert doc["name"] == "Marina"
    assert doc["fate_points"] == 0


def test_from_doc_restores_id():
    character = from_doc(Character, "c1", {"name": "Marina", "skills": {"Hacker": 4}})
    assert character.id == "c1"
    assert character.skills == {"Hacker": 4}


def test_doc_is_json_ready():
    doc = to_doc(Scene(name="Beco", aspects=[SituationalAspect(name="Chuva")]))
    assert isinstance(doc["aspects"][0]["created_at"], str)
    assert doc["aspects"][0]["id"]


def test_free_invokes_never_negative():
    with pytest.raises(ValidationError):
        SituationalAspect(name="X", free_invokes=-1)


def test_scene_status():
    assert Scene(name="a").status == "draft"
    assert Scene(name="a", is_active=True).status == "active"
    assert Scene(name="a", is_archived=True).status == "archived"


def test_aspect_ref_discriminates_on_kind():
    adapter = TypeAdapter(AspectRef)
    ref = adapter.validate_python({"kind": "scene", "scene_id": "s1", "aspect_id": "a1"})
    assert isinstance(ref, SceneRef)
    ref = adapter.validate_python(
        {"kind": "consequence", "owner_type": "npc", "owner_id": "n1", "severity": "mild"}
    )
    assert isinstance(ref, ConsequenceRef)


def test_aspect_ref_rejects_unknown_kind():
    with pytest.raises(ValidationError):
        TypeAdapter(AspectRef).validate_python({"kind": "weather"})


def test_unified_aspect_round_trips_through_json():
    aspect = UnifiedAspect(
        id="x", name="Chuva", source="location", owner_type="scene",
        ref=SceneRef(scene_id="s1", aspect_id="x"),
    )
    restored = UnifiedAspect.model_validate_json(aspect.model_dump_json())
    assert restored == aspect
    assert restored.ref.kind == "scene"


def test_validation_helpers():
    assert Validation.ok().valid
    failed = Validation.fail("Level 4 overflow", level=4)
    assert not failed.valid
    assert failed.level == 4
