"""NPC endpoints: archetypes and active NPCs."""

from fastapi import APIRouter

from ihunt_vtt.models import Archetype
from ihunt_vtt.npcs import NPCRoster

from .deps import Context, require
from .models import CreateArchetype, MoveNPC, SpawnNPC, TokenBody

router = APIRouter()


# ── Archetypes ──────────────────────────────────────────────


@router.get("/episodes/{episode_id}/archetypes")
async def list_archetypes(ctx: Context, include_archived: bool = True):
    """Custom archetypes followed by the built-ins."""
    return await NPCRoster(ctx).archetypes(include_archived)


@router.post("/episodes/{episode_id}/archetypes", status_code=201)
async def create_archetype(body: CreateArchetype, ctx: Context):
    archetype = await NPCRoster(ctx).create_archetype(Archetype(**body.model_dump()))
    require(ctx, archetype)
    return archetype


@router.patch("/episodes/{episode_id}/archetypes/{archetype_id}")
async def update_archetype(archetype_id: str, body: dict, ctx: Context):
    """Edit a custom archetype. Built-ins are read-only."""
    roster = NPCRoster(ctx)
    require(ctx, await roster.update_archetype(archetype_id, body))
    return await roster.get_archetype(archetype_id)


@router.delete("/episodes/{episode_id}/archetypes/{archetype_id}")
async def delete_archetype(archetype_id: str, ctx: Context):
    require(ctx, await NPCRoster(ctx).delete_archetype(archetype_id))
    return {"ok": True}


# ── Active NPCs ─────────────────────────────────────────────


@router.get("/episodes/{episode_id}/npcs")
async def list_npcs(ctx: Context, scene_id: str | None = None):
    """Live NPCs of the campaign, optionally only those in one scene."""
    return await NPCRoster(ctx).list(scene_id)


@router.post("/episodes/{episode_id}/npcs", status_code=201)
async def spawn_npc(body: SpawnNPC, ctx: Context):
    """Spawn a live NPC from an archetype. It starts stored (off-scene)."""
    roster = NPCRoster(ctx)
    npc = await roster.spawn(await roster.get_archetype(body.archetype_id), body.name)
    require(ctx, npc)
    return npc


@router.patch("/episodes/{episode_id}/npcs/{npc_id}")
async def update_npc(npc_id: str, body: dict, ctx: Context):
    roster = NPCRoster(ctx)
    require(ctx, await roster.update(npc_id, body))
    return await roster.get(npc_id)


@router.post("/episodes/{episode_id}/npcs/{npc_id}/move")
async def move_npc(npc_id: str, body: MoveNPC, ctx: Context):
    """Place the NPC in a scene, or store it with scene_id null."""
    roster = NPCRoster(ctx)
    require(ctx, await roster.move_to_scene(npc_id, body.scene_id))
    return await roster.get(npc_id)


@router.post("/episodes/{episode_id}/npcs/{npc_id}/token")
async def toggle_token(npc_id: str, body: TokenBody, ctx: Context):
    roster = NPCRoster(ctx)
    require(ctx, await roster.toggle_token(npc_id, body.has_token))
    return await roster.get(npc_id)


@router.delete("/episodes/{episode_id}/npcs/{npc_id}")
async def delete_npc(npc_id: str, ctx: Context):
    require(ctx, await NPCRoster(ctx).delete(npc_id))
    return {"ok": True}


@router.post("/episodes/{episode_id}/npcs/{npc_id}/archive", status_code=201)
async def archive_npc(npc_id: str, ctx: Context):
    """Turn the NPC into an archived archetype and remove it from play."""
    archetype = await NPCRoster(ctx).archive_to_archetype(npc_id)
    require(ctx, archetype)
    return archetype
