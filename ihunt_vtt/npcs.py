"""NPCs: archetype templates and the live NPCs spawned from them.

Archetypes come from two places:
  - built-ins (catalog.BUILTIN_ARCHETYPES, ids prefixed global_/scenario_),
    read-only
  - custom ones under campaigns/{id}/archetypes, editable

An ActiveNPC copies its archetype at spawn time and is edited independently
afterwards. It starts stored (scene_id None, no token); moving it into a
scene gives it a token, moving it out takes the token away.

archive_to_archetype() closes the loop: the NPC, with every edit made
during play, becomes a new archived archetype and the live NPC is removed,
both in one transaction.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ihunt_vtt.catalog import BUILTIN_ARCHETYPES, is_protected
from ihunt_vtt.errors import DocumentNotFound
from ihunt_vtt.models import ActiveNPC, Archetype, from_doc, new_id, to_doc
from ihunt_vtt.store import Query, Transaction, join

if TYPE_CHECKING:
    from ihunt_vtt.session import SessionContext

logger = logging.getLogger(__name__)


class NPCRoster:
    def __init__(self, ctx: SessionContext) -> None:
        self._ctx = ctx

    # ------------------------------------------------------------------
    # Archetypes
    # ------------------------------------------------------------------

    def _archetype_path(self, archetype_id: str) -> str:
        return join(self._ctx.archetypes_path, archetype_id)

    async def archetypes(self, include_archived: bool = True) -> list[Archetype]:
        """Custom archetypes (alphabetical) followed by the built-ins."""
        docs = await self._ctx.store.list(self._ctx.archetypes_path)
        custom = sorted((from_doc(Archetype, d.id, d.data) for d in docs), key=lambda a: a.name)
        if not include_archived:
            custom = [a for a in custom if not a.is_archived]
        return [*custom, *BUILTIN_ARCHETYPES]

    async def get_archetype(self, archetype_id: str) -> Archetype:
        for builtin in BUILTIN_ARCHETYPES:
            if builtin.id == archetype_id:
                return builtin
        path = self._archetype_path(archetype_id)
        data = await self._ctx.store.get(path)
        if data is None:
            raise DocumentNotFound(path)
        return from_doc(Archetype, archetype_id, data)

    async def create_archetype(self, archetype: Archetype) -> Archetype | None:
        """Store a custom archetype. A copy of a built-in gets a fresh id."""
        ctx = self._ctx
        if is_protected(archetype.id):
            archetype = archetype.model_copy(update={"id": new_id()})
        archetype = archetype.model_copy(update={"is_global": False})
        ok, _ = await ctx.attempt(
            "create the archetype", ctx.store.set(self._archetype_path(archetype.id), to_doc(archetype))
        )
        return archetype if ok else None

    async def update_archetype(self, archetype_id: str, fields: dict[str, Any]) -> bool:
        ctx = self._ctx
        if self._refuse_builtin(archetype_id, "edit"):
            return False
        fields = {k: v for k, v in fields.items() if k not in ("id", "is_global")}
        ok, _ = await ctx.attempt(
            "update the archetype", ctx.store.update(self._archetype_path(archetype_id), fields)
        )
        return ok

    async def delete_archetype(self, archetype_id: str) -> bool:
        ctx = self._ctx
        if self._refuse_builtin(archetype_id, "delete"):
            return False
        ok, _ = await ctx.attempt("delete the archetype", ctx.store.delete(self._archetype_path(archetype_id)))
        return ok

    def _refuse_builtin(self, archetype_id: str, verb: str) -> bool:
        if not is_protected(archetype_id):
            return False
        self._ctx.notices.post(
            "Built-in archetype", f"Built-in archetypes are read-only; you cannot {verb} them. Make a copy.",
            level="warning",
        )
        return True

    # ------------------------------------------------------------------
    # Active NPCs
    # ------------------------------------------------------------------

    async def list(self, scene_id: str | None = None) -> list[ActiveNPC]:
        """Every live NPC of the campaign, or only those placed in `scene_id`."""
        filters: dict[str, Any] = {"campaign_id": self._ctx.campaign_id}
        if scene_id is not None:
            filters["scene_id"] = scene_id
        docs = await self._ctx.store.list(Query(collection="activeNpcs", filters=filters))
        return sorted((from_doc(ActiveNPC, d.id, d.data) for d in docs), key=lambda n: n.name)

    async def get(self, npc_id: str) -> ActiveNPC:
        path = self._ctx.npc_path(npc_id)
        data = await self._ctx.store.get(path)
        if data is None:
            raise DocumentNotFound(path)
        return from_doc(ActiveNPC, npc_id, data)

    async def spawn(self, archetype: Archetype, name: str = "") -> ActiveNPC | None:
        ctx = self._ctx
        npc = ActiveNPC(
            campaign_id=ctx.campaign_id,
            name=name.strip() or archetype.name,
            archetype_id=archetype.id,
            archetype_name=archetype.name,
            kind=archetype.kind,
            aspects=list(archetype.aspects),
            skills=dict(archetype.skills),
            stress=archetype.stress,
            consequences=archetype.consequences.model_copy(),
            stunts=list(archetype.stunts),
        )
        ok, _ = await ctx.attempt("add the NPC", ctx.store.set(ctx.npc_path(npc.id), to_doc(npc)))
        if not ok:
            return None
        logger.info(f"Spawned NPC '{npc.name}' from {archetype.id}")
        return npc

    async def update(self, npc_id: str, fields: dict[str, Any]) -> bool:
        ctx = self._ctx
        fields = {k: v for k, v in fields.items() if k not in ("id", "campaign_id")}
        if not fields:
            return True
        ok, _ = await ctx.attempt("update the NPC", ctx.store.update(ctx.npc_path(npc_id), fields))
        return ok

    async def move_to_scene(self, npc_id: str, scene_id: str | None) -> bool:
        """Place the NPC in a scene (with a token) or store it (scene_id None)."""
        return await self.update(npc_id, {"scene_id": scene_id, "has_token": scene_id is not None})

    async def toggle_token(self, npc_id: str, has_token: bool) -> bool:
        return await self.update(npc_id, {"has_token": has_token})

    async def delete(self, npc_id: str) -> bool:
        ctx = self._ctx
        ok, _ = await ctx.attempt("remove the NPC", ctx.store.delete(ctx.npc_path(npc_id)))
        return ok

    async def archive_to_archetype(self, npc_id: str) -> Archetype | None:
        """Turn a live NPC into an archived custom archetype and remove it from play."""
        ctx = self._ctx
        npc_path = ctx.npc_path(npc_id)

        async def archive(txn: Transaction) -> Archetype:
            data = await txn.get(npc_path)
            if data is None:
                raise DocumentNotFound(npc_path)
            npc = from_doc(ActiveNPC, npc_id, data)
            archetype = Archetype(
                name=npc.archetype_name or npc.name,
                kind=npc.kind,
                aspects=list(npc.aspects),
                skills=dict(npc.skills),
                stress=npc.stress,
                consequences=npc.consequences,
                stunts=list(npc.stunts),
                description=npc.notes,
                is_archived=True,
                archived_from_name=npc.name,
            )
            txn.set(self._archetype_path(archetype.id), to_doc(archetype))
            txn.delete(npc_path)
            return archetype

        ok, archetype = await ctx.transact("archive the NPC", archive)
        if ok and archetype is not None:
            logger.info(f"Archived NPC {npc_id} as archetype {archetype.id}")
        return archetype
