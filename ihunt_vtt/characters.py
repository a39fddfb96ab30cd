"""Character roster for a campaign.

Characters live at the top level (`characters/{id}`) and point back to their
campaign. A character is edited by its creator or by the GM; everyone else
gets a notice and no write.

Write patterns:
  - create, name/aspect/text edits: last-writer-wins on the touched fields
  - skill advance, stress marks, consequences, situational aspects:
    transaction on the one character document, so two edits to the same
    list never overwrite each other
  - fate points: never here; see fate.FateLedger

Characters referenced by a session are archived, never deleted.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal

from pydantic import ValidationError

from ihunt_vtt.catalog import available_refresh, migrate_skills, unavailable_maneuvers
from ihunt_vtt.errors import DocumentNotFound
from ihunt_vtt.models import (
    Character,
    Severity,
    SituationalAspect,
    StressTracks,
    Validation,
    from_doc,
    to_doc,
)
from ihunt_vtt.rules import check_increment, derive_tracks, mark_box, validate_pyramid
from ihunt_vtt.store import Query, Transaction

if TYPE_CHECKING:
    from ihunt_vtt.session import SessionContext

logger = logging.getLogger(__name__)

Track = Literal["physical", "mental"]

# Fields with their own mutator (or none at all)
_GUARDED_FIELDS = {
    "id", "campaign_id", "created_by", "fate_points", "refresh", "skills", "is_archived",
    "stress", "consequences", "situational_aspects", "advancement_slots",
}


class CharacterRoster:
    def __init__(self, ctx: SessionContext) -> None:
        self._ctx = ctx

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, character_id: str) -> Character:
        path = self._ctx.character_path(character_id)
        data = await self._ctx.store.get(path)
        if data is None:
            raise DocumentNotFound(path)
        return migrate_skills(from_doc(Character, character_id, data))

    async def list(self, include_archived: bool = False) -> list[Character]:
        docs = await self._ctx.store.list(
            Query(collection="characters", filters={"campaign_id": self._ctx.campaign_id})
        )
        characters = [migrate_skills(from_doc(Character, d.id, d.data)) for d in docs]
        if not include_archived:
            characters = [c for c in characters if not c.is_archived]
        return sorted(characters, key=lambda c: c.name)

    def tracks(self, character: Character) -> StressTracks:
        return derive_tracks(character, self._ctx.config.mental_aliases)

    # ------------------------------------------------------------------
    # Creation and advancement
    # ------------------------------------------------------------------

    def validate(self, character: Character) -> Validation:
        if not character.name.strip():
            return Validation.fail("Character name is required.")
        if character.drive is None:
            return Validation.fail("Pick a drive.")
        if not character.aspects.high_concept.strip():
            return Validation.fail("High concept is required.")
        result = validate_pyramid(character.skills)
        if not result.valid:
            return result
        unavailable = unavailable_maneuvers(character.drive, character.maneuvers)
        if unavailable:
            return Validation.fail(f"Maneuvers not available to this drive: {', '.join(unavailable)}")
        if available_refresh(character.drive, character.maneuvers) < 0:
            return Validation.fail("Not enough refresh for that many maneuvers.")
        return Validation.ok()

    async def create(self, character: Character) -> Validation:
        """Validate and store a new character owned by the current user.

        Refresh and starting fate points come from the maneuvers bought;
        stress tracks start empty at their derived size.
        """
        result = self.validate(character)
        if not result.valid:
            return result
        ctx = self._ctx
        refresh = available_refresh(character.drive, character.maneuvers)
        character = character.model_copy(update={
            "campaign_id": ctx.campaign_id,
            "created_by": ctx.user.uid,
            "refresh": refresh,
            "fate_points": refresh,
            "stress": StressTracks(),
            "is_archived": False,
        })
        character = character.model_copy(update={"stress": self.tracks(character)})
        ok, _ = await ctx.attempt(
            "create the character", ctx.store.set(ctx.character_path(character.id), to_doc(character))
        )
        if not ok:
            return Validation.fail("The character could not be saved.")
        logger.info(f"Created character '{character.name}' ({character.id})")
        return Validation.ok()

    async def advance_skill(self, character_id: str, skill: str) -> Validation:
        """Raise one skill by a point if the pyramid caps allow it."""
        ctx = self._ctx
        path = ctx.character_path(character_id)
        if not await self.may_edit(character_id):
            return Validation.fail("Only the owner or the GM can edit this character.")

        async def raise_skill(txn: Transaction) -> Validation:
            data = await txn.get(path)
            if data is None:
                raise DocumentNotFound(path)
            skills = dict(data.get("skills") or {})
            result = check_increment(skills, skill)
            if result.valid:
                skills[skill] = skills.get(skill, 0) + 1
                txn.update(path, {"skills": skills})
            return result

        ok, result = await ctx.transact("advance the skill", raise_skill)
        return result if ok else Validation.fail("The skill could not be saved.")

    # ------------------------------------------------------------------
    # Plain edits
    # ------------------------------------------------------------------

    async def update_fields(self, character_id: str, fields: dict[str, Any]) -> bool:
        """Last-writer-wins edit of the free-text fields.

        Guarded fields are dropped. The merged document must still parse as a
        Character, otherwise nothing is written and a notice is posted.
        """
        ctx = self._ctx
        path = ctx.character_path(character_id)
        fields = {k: v for k, v in fields.items() if k not in _GUARDED_FIELDS}
        if not fields or not await self.may_edit(character_id):
            return False
        current = await ctx.store.get(path)
        if current is None:
            raise DocumentNotFound(path)
        try:
            merged = from_doc(Character, character_id, {**current, **fields})
        except ValidationError as e:
            logger.warning(f"Rejected edit of character {character_id}: {e}")
            ctx.notices.post("Invalid character", str(e), level="warning")
            return False
        fields = {k: v for k, v in to_doc(merged).items() if k in fields}
        ok, _ = await ctx.attempt("update the character", ctx.store.update(path, fields))
        return ok

    async def archive(self, character_id: str) -> bool:
        return await self._set_archived(character_id, True)

    async def unarchive(self, character_id: str) -> bool:
        return await self._set_archived(character_id, False)

    async def _set_archived(self, character_id: str, archived: bool) -> bool:
        ctx = self._ctx
        if not await self.may_edit(character_id):
            return False
        ok, _ = await ctx.attempt(
            "archive the character" if archived else "restore the character",
            ctx.store.update(ctx.character_path(character_id), {"is_archived": archived}),
        )
        return ok

    # ------------------------------------------------------------------
    # Stress, consequences, situational aspects
    # ------------------------------------------------------------------

    async def mark_stress(self, character_id: str, track: Track, index: int, marked: bool = True) -> bool:
        """Mark or clear one box inside the derived track. Boxes past it stay untouched."""
        if index < 0:
            return False
        size: int | None = None

        def edit(data: dict[str, Any]) -> dict[str, Any] | None:
            nonlocal size
            character = migrate_skills(from_doc(Character, character_id, data))
            size = len(getattr(self.tracks(character), track))
            if index >= size:
                return None
            stress = dict(data.get("stress") or {})
            stress[track] = mark_box(stress.get(track) or [], index, marked)
            return {"stress": stress}

        if await self._edit(character_id, "mark stress", edit):
            return True
        if size is not None and index >= size:
            self._ctx.notices.post("No such box", f"The {track} track has only {size} boxes.", level="warning")
        return False

    async def set_consequence(self, character_id: str, severity: Severity, text: str | None) -> bool:
        """Fill (or clear, with None or blank text) one consequence slot."""
        value = text.strip() if text and text.strip() else None

        def edit(data: dict[str, Any]) -> dict[str, Any]:
            consequences = dict(data.get("consequences") or {})
            consequences[severity] = value
            return {"consequences": consequences}

        return await self._edit(character_id, "set the consequence", edit)

    async def add_situational_aspect(
        self, character_id: str, name: str, free_invokes: int = 0
    ) -> SituationalAspect | None:
        """Attach a situational aspect. Only the GM may seed it with free invokes."""
        if free_invokes > 0 and not await self._ctx.is_gm():
            self._ctx.notices.post("GM only", "Only the GM can grant free invokes.", level="warning")
            return None
        aspect = SituationalAspect(
            name=name, free_invokes=free_invokes, created_by=self._ctx.user.uid or "system"
        )
        entry = to_doc(aspect) | {"id": aspect.id}

        def edit(data: dict[str, Any]) -> dict[str, Any]:
            return {"situational_aspects": [*(data.get("situational_aspects") or []), entry]}

        return aspect if await self._edit(character_id, "add the aspect", edit) else None

    async def remove_situational_aspect(self, character_id: str, aspect_id: str) -> bool:
        def edit(data: dict[str, Any]) -> dict[str, Any]:
            aspects = data.get("situational_aspects") or []
            return {"situational_aspects": [a for a in aspects if a.get("id") != aspect_id]}

        return await self._edit(character_id, "remove the aspect", edit)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _edit(self, character_id: str, action: str, edit) -> bool:
        """Apply `edit(current_data) -> fields` to one character in a transaction.

        An edit returning None refuses the change and nothing is written.
        """
        ctx = self._ctx
        path = ctx.character_path(character_id)
        if not await self.may_edit(character_id):
            return False

        async def apply(txn: Transaction) -> bool:
            data = await txn.get(path)
            if data is None:
                raise DocumentNotFound(path)
            fields = edit(data)
            if fields is None:
                return False
            txn.update(path, fields)
            return True

        ok, applied = await ctx.transact(action, apply)
        return ok and bool(applied)

    async def may_edit(self, character_id: str) -> bool:
        """Owner or GM. Anyone else gets a notice."""
        ctx = self._ctx
        path = ctx.character_path(character_id)
        data = await ctx.store.get(path)
        if data is None:
            raise DocumentNotFound(path)
        if data.get("created_by") == ctx.user.uid or await ctx.is_gm():
            return True
        ctx.notices.post(
            "Not your character", "Only the owner or the GM can edit this character.", level="warning"
        )
        return False
