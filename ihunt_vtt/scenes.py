"""Scene lifecycle for one episode.

States and transitions:

    draft ──activate──▶ active ──deactivate──▶ draft
    active ──activate(other)──▶ draft          (switch, same transaction)
    draft ──archive──▶ archived ──restore──▶ draft
    active ──archive / delete──▶ SceneIsActive (deactivate first)
    archived ──activate──▶ SceneArchived

Activation is one transaction over the whole scenes collection and the
episode document, so no reader ever sees two active scenes or a switch
half done. Name, background and order edits are plain last-writer-wins
updates; they never touch is_active / is_archived.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ihunt_vtt.errors import DocumentNotFound, SceneArchived, SceneIsActive
from ihunt_vtt.gamelog import GameLog
from ihunt_vtt.models import Scene, SceneAspect, Validation, from_doc, new_id, to_doc
from ihunt_vtt.store import Transaction

if TYPE_CHECKING:
    from ihunt_vtt.session import SessionContext

logger = logging.getLogger(__name__)

# Fields only the lifecycle transitions and aspect mutators may write
_LIFECYCLE_FIELDS = {"id", "is_active", "is_archived", "aspects"}


class SceneManager:
    def __init__(self, ctx: SessionContext) -> None:
        self._ctx = ctx
        self._log = GameLog(ctx)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list(self) -> list[Scene]:
        docs = await self._ctx.store.list(self._ctx.scenes_path)
        scenes = [from_doc(Scene, d.id, d.data) for d in docs]
        return sorted(scenes, key=lambda s: (s.order, s.name))

    async def get(self, scene_id: str) -> Scene:
        path = self._ctx.scene_path(scene_id)
        data = await self._ctx.store.get(path)
        if data is None:
            raise DocumentNotFound(path)
        return from_doc(Scene, scene_id, data)

    def validate(self, scene: Scene) -> Validation:
        if not scene.name.strip():
            return Validation.fail("Scene name is required.")
        minimum = self._ctx.config.min_scene_aspects
        if len(scene.aspects) < minimum:
            return Validation.fail(f"A scene needs at least {minimum} aspects.")
        return Validation.ok()

    # ------------------------------------------------------------------
    # Create / edit
    # ------------------------------------------------------------------

    async def create(self, scene: Scene) -> Validation:
        """Store a new draft scene at the end of the episode's scene order."""
        result = self.validate(scene)
        if not result.valid:
            return result
        ctx = self._ctx
        existing = await ctx.store.list(ctx.scenes_path)
        order = max((d.data.get("order", 0) for d in existing), default=-1) + 1
        draft = scene.model_copy(update={"is_active": False, "is_archived": False, "order": order})
        ok, _ = await ctx.attempt("create the scene", ctx.store.set(ctx.scene_path(draft.id), to_doc(draft)))
        if not ok:
            return Validation.fail("The scene could not be saved.")
        logger.info(f"Created scene '{draft.name}' ({draft.id}) in {ctx.episode_id}")
        return Validation.ok()

    async def update(self, scene_id: str, fields: dict[str, Any]) -> bool:
        ctx = self._ctx
        fields = {k: v for k, v in fields.items() if k not in _LIFECYCLE_FIELDS}
        if not fields:
            return True
        ok, _ = await ctx.attempt("update the scene", ctx.store.update(ctx.scene_path(scene_id), fields))
        return ok

    async def duplicate(self, scene_id: str) -> Scene | None:
        """Copy a scene as a new draft, with fresh aspect ids."""
        source = await self.get(scene_id)
        copy = Scene(
            name=f"{source.name} (copy)",
            background=source.background,
            aspects=[a.model_copy(update={"id": new_id()}) for a in source.aspects],
        )
        result = await self.create(copy)
        return copy if result.valid else None

    async def add_aspect(
        self, scene_id: str, name: str, free_invokes: int = 0, is_temporary: bool = False
    ) -> SceneAspect | None:
        ctx = self._ctx
        if free_invokes > 0 and not await ctx.is_gm():
            ctx.notices.post("GM only", "Only the GM can grant free invokes.", level="warning")
            return None
        aspect = SceneAspect(
            name=name,
            free_invokes=free_invokes,
            is_temporary=is_temporary,
            created_by=ctx.user.uid or "system",
        )
        path = ctx.scene_path(scene_id)

        async def append(txn: Transaction) -> None:
            data = await txn.get(path)
            if data is None:
                raise DocumentNotFound(path)
            aspects = data.get("aspects") or []
            txn.update(path, {"aspects": [*aspects, to_doc(aspect) | {"id": aspect.id}]})

        ok, _ = await ctx.transact("add the scene aspect", append)
        return aspect if ok else None

    async def remove_aspect(self, scene_id: str, aspect_id: str) -> Validation:
        ctx = self._ctx
        path = ctx.scene_path(scene_id)
        minimum = ctx.config.min_scene_aspects

        async def drop(txn: Transaction) -> Validation:
            data = await txn.get(path)
            if data is None:
                raise DocumentNotFound(path)
            aspects = data.get("aspects") or []
            kept = [a for a in aspects if a.get("id") != aspect_id]
            if len(kept) == len(aspects):
                return Validation.ok()
            if len(kept) < minimum:
                return Validation.fail(f"A scene needs at least {minimum} aspects.")
            txn.update(path, {"aspects": kept})
            return Validation.ok()

        ok, result = await ctx.transact("remove the scene aspect", drop)
        return result if ok else Validation.fail("The aspect could not be removed.")

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    async def activate(self, scene_id: str) -> Scene | None:
        """Make this the only active scene of the episode."""
        ctx = self._ctx
        target_path = ctx.scene_path(scene_id)

        async def switch(txn: Transaction) -> Scene:
            session = await txn.get(ctx.episode_path)
            docs = await txn.list(ctx.scenes_path)
            if session is None:
                raise DocumentNotFound(ctx.episode_path)
            target = next((d for d in docs if d.path == target_path), None)
            if target is None:
                raise DocumentNotFound(target_path)
            if target.data.get("is_archived"):
                raise SceneArchived(f"'{target.data.get('name')}' is archived; restore it first.")
            for doc in docs:
                if doc.path != target_path and doc.data.get("is_active"):
                    txn.update(doc.path, {"is_active": False})
            txn.update(target_path, {"is_active": True})
            txn.update(ctx.episode_path, {"current_scene_id": scene_id})
            return from_doc(Scene, scene_id, {**target.data, "is_active": True})

        ok, scene = await ctx.transact("activate the scene", switch)
        if ok and scene is not None:
            await self._log.add(f"Scene: {scene.name}", "system", details={"scene_id": scene_id})
        return scene

    async def deactivate(self, scene_id: str) -> bool:
        ctx = self._ctx
        path = ctx.scene_path(scene_id)

        async def stop(txn: Transaction) -> None:
            session = await txn.get(ctx.episode_path)
            if await txn.get(path) is None:
                raise DocumentNotFound(path)
            txn.update(path, {"is_active": False})
            if session is not None and session.get("current_scene_id") == scene_id:
                txn.update(ctx.episode_path, {"current_scene_id": None})

        ok, _ = await ctx.transact("deactivate the scene", stop)
        return ok

    async def archive(self, scene_id: str) -> bool:
        ctx = self._ctx
        path = ctx.scene_path(scene_id)

        async def shelve(txn: Transaction) -> None:
            data = await txn.get(path)
            if data is None:
                raise DocumentNotFound(path)
            if data.get("is_active"):
                raise SceneIsActive(f"'{data.get('name')}' is active; deactivate it before archiving.")
            txn.update(path, {"is_archived": True, "is_active": False})

        ok, _ = await ctx.transact("archive the scene", shelve)
        return ok

    async def restore(self, scene_id: str) -> bool:
        """Bring an archived scene back as a draft."""
        ctx = self._ctx
        ok, _ = await ctx.attempt(
            "restore the scene",
            ctx.store.update(ctx.scene_path(scene_id), {"is_archived": False, "is_active": False}),
        )
        return ok

    async def delete(self, scene_id: str) -> bool:
        ctx = self._ctx
        path = ctx.scene_path(scene_id)

        async def remove(txn: Transaction) -> None:
            data = await txn.get(path)
            if data is None:
                raise DocumentNotFound(path)
            if data.get("is_active"):
                raise SceneIsActive(f"'{data.get('name')}' is active; deactivate it before deleting.")
            txn.delete(path)

        ok, _ = await ctx.transact("delete the scene", remove)
        return ok
