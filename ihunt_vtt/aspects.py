"""Aspect ledger: every invocable fact in play, as one list.

Sources, in aggregation order:
  1. campaign theme aspects
  2. per character: high concept, drama, job, dream board, free aspects
  3. per character: consequences (filled slots only)
  4. per character: situational aspects
  5. per NPC: aspects
  6. per NPC: consequences (each seeded with 1 free invoke; a foe's wound
     is a weakness waiting to be found)
  7. active scene aspects

Ids are derived from content (owner id + name, or the stored aspect id), so
re-aggregating after any single change yields the same ids for everything
that did not change.

Each UnifiedAspect carries a `ref` tagged by kind. Behaviour that depends on
the kind is looked up in one table per behaviour (_POOLS, _LABELS); only
scene and situational aspects have a free-invoke pool.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Iterable

from ihunt_vtt.errors import DocumentNotFound
from ihunt_vtt.fate import FateLedger
from ihunt_vtt.gamelog import GameLog
from ihunt_vtt.models import (
    SEVERITIES,
    ActiveNPC,
    Campaign,
    Character,
    CharacterRef,
    ConsequenceRef,
    NPCRef,
    Scene,
    SceneRef,
    SituationalAspect,
    SituationalRef,
    ThemeRef,
    UnifiedAspect,
    to_doc,
)
from ihunt_vtt.store import Transaction

if TYPE_CHECKING:
    from ihunt_vtt.cache import TableState
    from ihunt_vtt.session import SessionContext

logger = logging.getLogger(__name__)

SEVERITY_LABELS = {"mild": "Mild", "moderate": "Moderate", "severe": "Severe"}


# ── Aggregation ─────────────────────────────────────────────


def _core_aspects(character: Character) -> list[str]:
    a = character.aspects
    return [a.high_concept, a.drama, a.job, a.dream_board, *a.free]


def _collect(
    campaign: Campaign | None,
    characters: Iterable[Character],
    npcs: Iterable[ActiveNPC],
    scene: Scene | None,
    gm_id: str,
) -> Iterable[UnifiedAspect]:
    characters = [c for c in characters if not c.is_archived]
    npcs = list(npcs)

    if campaign is not None:
        for name in campaign.theme_aspects:
            yield UnifiedAspect(
                id=f"theme-{name}", name=name, source="theme", owner_type="campaign",
                owner_id=campaign.id, owner_name=campaign.name, created_by=gm_id,
                ref=ThemeRef(campaign_id=campaign.id),
            )

    for char in characters:
        for name in _core_aspects(char):
            if name:
                yield UnifiedAspect(
                    id=f"char-{char.id}-{name}", name=name, source="character",
                    owner_type="character", owner_id=char.id, owner_name=char.name,
                    created_by=char.created_by, ref=CharacterRef(character_id=char.id),
                )

    for char in characters:
        for severity in SEVERITIES:
            name = getattr(char.consequences, severity)
            if name:
                yield UnifiedAspect(
                    id=f"conseq-{char.id}-{severity}", name=name, source="consequence",
                    owner_type="character", owner_id=char.id, owner_name=char.name,
                    created_by=char.created_by, severity=severity,
                    ref=ConsequenceRef(owner_type="character", owner_id=char.id, severity=severity),
                )

    for char in characters:
        for sa in char.situational_aspects:
            yield UnifiedAspect(
                id=sa.id, name=sa.name, source="situational", owner_type="character",
                owner_id=char.id, owner_name=char.name, free_invokes=sa.free_invokes,
                is_temporary=True, created_by=sa.created_by,
                ref=SituationalRef(character_id=char.id, aspect_id=sa.id),
            )

    for npc in npcs:
        for name in npc.aspects:
            if name:
                yield UnifiedAspect(
                    id=f"npc-{npc.id}-{name}", name=name, source="character",
                    owner_type="npc", owner_id=npc.id, owner_name=npc.name,
                    created_by=gm_id, ref=NPCRef(npc_id=npc.id),
                )

    for npc in npcs:
        for severity in SEVERITIES:
            name = getattr(npc.consequences, severity)
            if name:
                yield UnifiedAspect(
                    id=f"npc-conseq-{npc.id}-{severity}", name=name, source="consequence",
                    owner_type="npc", owner_id=npc.id, owner_name=npc.name,
                    free_invokes=1, created_by=gm_id, severity=severity,
                    ref=ConsequenceRef(owner_type="npc", owner_id=npc.id, severity=severity),
                )

    if scene is not None:
        for sa in scene.aspects:
            yield UnifiedAspect(
                id=sa.id, name=sa.name,
                source="situational" if sa.is_temporary else "location",
                owner_type="scene", owner_id=scene.id, owner_name=scene.name,
                free_invokes=sa.free_invokes, is_temporary=sa.is_temporary,
                created_by=sa.created_by,
                ref=SceneRef(scene_id=scene.id, aspect_id=sa.id),
            )


def aggregate(
    campaign: Campaign | None,
    characters: Iterable[Character],
    npcs: Iterable[ActiveNPC],
    scene: Scene | None,
    *,
    gm_id: str = "",
) -> list[UnifiedAspect]:
    """Deterministic union of every aspect in play. Duplicate ids keep the first."""
    seen: set[str] = set()
    result: list[UnifiedAspect] = []
    for aspect in _collect(campaign, characters, npcs, scene, gm_id):
        if aspect.id in seen:
            continue
        seen.add(aspect.id)
        result.append(aspect)
    return result


# ── Per-kind dispatch tables ────────────────────────────────

# kind → (store path, list field) of the document holding the free-invoke pool
_POOLS: dict[str, Callable[["SessionContext", object], tuple[str, str]]] = {
    "scene": lambda ctx, ref: (ctx.scene_path(ref.scene_id), "aspects"),
    "situational": lambda ctx, ref: (ctx.character_path(ref.character_id), "situational_aspects"),
}

_LABELS: dict[str, Callable[[UnifiedAspect], str]] = {
    "theme": lambda a: "Campaign theme",
    "character": lambda a: f"Aspect of {a.owner_name}",
    "consequence": lambda a: f"{SEVERITY_LABELS[a.severity or 'mild']} consequence of {a.owner_name}",
    "situational": lambda a: f"Situational on {a.owner_name}",
    "npc": lambda a: f"Aspect of {a.owner_name}",
    "scene": lambda a: f"Scene: {a.owner_name}" if not a.is_temporary else f"Boost in {a.owner_name}",
}


def label(aspect: UnifiedAspect) -> str:
    return _LABELS[aspect.ref.kind](aspect)


def has_pool(aspect: UnifiedAspect) -> bool:
    return aspect.ref.kind in _POOLS


async def adjust_pool(ctx: SessionContext, aspect: UnifiedAspect, delta: int) -> int | None:
    """Add `delta` to an aspect's free invokes, floored at 0, in one transaction.

    Returns the new count, or None when the aspect has no pool or is gone.
    """
    locate = _POOLS.get(aspect.ref.kind)
    if locate is None:
        return None
    path, field = locate(ctx, aspect.ref)
    aspect_id = aspect.ref.aspect_id

    async def apply(txn: Transaction) -> int | None:
        data = await txn.get(path)
        if data is None:
            raise DocumentNotFound(path)
        entries = data.get(field) or []
        for entry in entries:
            if entry.get("id") == aspect_id:
                entry["free_invokes"] = max(0, (entry.get("free_invokes") or 0) + delta)
                txn.update(path, {field: entries})
                return entry["free_invokes"]
        return None

    return await ctx.store.run_transaction(apply)


# ── Ledger ──────────────────────────────────────────────────


class AspectLedger:
    """Live aspect list plus the invoke / compel / boost actions.

    `aspects` is re-derived from the table cache on every cache update.
    """

    def __init__(self, ctx: SessionContext, state: TableState | None = None) -> None:
        self._ctx = ctx
        self._state = state or ctx.state
        self._fate = FateLedger(ctx)
        self._log = GameLog(ctx)
        self.aspects: list[UnifiedAspect] = []
        self._remove = self._state.add_listener(self._rederive)
        self._rederive()

    def close(self) -> None:
        self._remove()

    def _rederive(self) -> None:
        state = self._state
        session = state.game_session
        self.aspects = aggregate(
            state.campaign.first,
            state.party,
            state.npcs.items,
            state.active_scene,
            gm_id=(session.gm_id or "") if session else "",
        )

    # ── Views ───────────────────────────────────────────────

    def find(self, aspect_id: str) -> UnifiedAspect | None:
        return next((a for a in self.aspects if a.id == aspect_id), None)

    @property
    def theme_aspects(self) -> list[UnifiedAspect]:
        return [a for a in self.aspects if a.source == "theme"]

    @property
    def scene_aspects(self) -> list[UnifiedAspect]:
        return [a for a in self.aspects if a.owner_type == "scene"]

    @property
    def character_aspects(self) -> list[UnifiedAspect]:
        return [a for a in self.aspects if a.owner_type == "character"]

    @property
    def npc_aspects(self) -> list[UnifiedAspect]:
        return [a for a in self.aspects if a.owner_type == "npc"]

    @property
    def consequences(self) -> list[UnifiedAspect]:
        return [a for a in self.aspects if a.source == "consequence"]

    @property
    def situational_aspects(self) -> list[UnifiedAspect]:
        return [a for a in self.aspects if a.source == "situational"]

    # ── Actions ─────────────────────────────────────────────

    async def _character_name(self, character_id: str | None) -> str:
        if not character_id:
            return self._ctx.user.display_name or "Someone"
        cached = self._state.characters.get(character_id)
        if cached is not None:
            return cached.name
        data = await self._ctx.store.get(self._ctx.character_path(character_id))
        return (data or {}).get("name") or "Someone"

    async def invoke(
        self, aspect: UnifiedAspect, use_free: bool, actor_id: str | None = None
    ) -> bool:
        """Invoke an aspect for free (consuming a free invoke) or for 1 fate point.

        A free invoke on an aspect without a pool changes nothing.
        """
        ctx = self._ctx
        actor_id = actor_id or await ctx.seated_character_id()
        if use_free:
            ok, remaining = await ctx.attempt("use the free invoke", adjust_pool(ctx, aspect, -1))
            if not ok:
                return False
            if remaining is None and has_pool(aspect):
                ctx.notices.post(
                    "Aspect gone", f'"{aspect.name}" is no longer in play.', level="warning"
                )
                return False
            if remaining is None:
                logger.debug("free invoke on %s has no pool to draw from", aspect.id)
            method = "for free"
        else:
            if actor_id is None:
                ctx.notices.post(
                    "No character", "Take a seat with a character before spending fate points.",
                    level="warning",
                )
                return False
            if not await self._fate.adjust(actor_id, -1):
                return False
            method = "for 1 fate point"

        actor = await self._character_name(actor_id)
        await self._log.add(
            f'{actor} invoked "{aspect.name}" {method}',
            "aspect",
            character=actor,
            details={"aspect_id": aspect.id, "use_free": use_free, "actor_id": actor_id},
        )
        return True

    async def compel(self, aspect: UnifiedAspect, target_character_id: str) -> bool:
        """GM only: the target accepts a complication and is paid 1 fate point."""
        ctx = self._ctx
        if not await ctx.is_gm():
            ctx.notices.post("GM only", "Only the GM can compel.", level="warning")
            return False
        if not await self._fate.update_fate(target_character_id, 1, is_character=True):
            return False
        target = await self._character_name(target_character_id)
        await self._log.add(
            f'GM compelled "{aspect.name}" against {target}',
            "fate",
            details={"aspect_id": aspect.id, "target_id": target_character_id},
        )
        return True

    async def reject_compel(self, target_character_id: str) -> bool:
        """The target pays 1 fate point to refuse the compel."""
        if not await self._fate.adjust(target_character_id, -1):
            return False
        target = await self._character_name(target_character_id)
        await self._log.add(
            f"{target} refused the compel (-1 fate point)",
            "fate",
            details={"target_id": target_character_id},
        )
        return True

    async def grant_free_invoke(self, aspect: UnifiedAspect) -> bool:
        """GM adds one free invoke to an aspect that has a pool."""
        ctx = self._ctx
        if not has_pool(aspect):
            ctx.notices.post("No free invokes", f'"{aspect.name}" cannot hold free invokes.')
            return False
        if not await ctx.is_gm():
            ctx.notices.post("GM only", "Only the GM can grant free invokes.", level="warning")
            return False
        ok, result = await ctx.attempt("grant the free invoke", adjust_pool(ctx, aspect, 1))
        return ok and result is not None

    async def create_boost(self, name: str, target_id: str) -> SituationalAspect | None:
        """New one-shot situational aspect on a party character, else on the active scene."""
        ctx = self._ctx
        boost = SituationalAspect(
            name=f"{name} (Boost)",
            free_invokes=1,
            is_temporary=True,
            created_by=ctx.user.uid or "system",
        )
        entry = to_doc(boost) | {"id": boost.id}
        character_path = ctx.character_path(target_id)

        async def attach(txn: Transaction) -> str | None:
            session = await txn.get(ctx.episode_path) or {}
            in_party = bool(target_id) and target_id in (session.get("character_ids") or [])
            character = await txn.get(character_path) if in_party else None
            if character is not None:
                txn.update(character_path, {
                    "situational_aspects": [*(character.get("situational_aspects") or []), entry],
                })
                return character.get("name") or "character"
            for doc in await txn.list(ctx.scenes_path):
                if doc.data.get("is_active") and not doc.data.get("is_archived"):
                    txn.update(doc.path, {"aspects": [*(doc.data.get("aspects") or []), entry]})
                    return None
            raise DocumentNotFound(ctx.scenes_path)

        try:
            ok, owner = await ctx.attempt("create the boost", ctx.store.run_transaction(attach))
        except DocumentNotFound:
            ctx.notices.post(
                "No target", "There is no such character and no active scene.", level="warning"
            )
            return None
        if not ok:
            return None

        where = f"on {owner}" if owner else "in the scene"
        await self._log.add(f'Boost created {where}: "{name}"', "aspect",
                            details={"aspect_id": boost.id, "target_id": target_id})
        return boost
