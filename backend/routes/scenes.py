"""Scene lifecycle endpoints."""

from fastapi import APIRouter

from ihunt_vtt.models import Scene, SceneAspect
from ihunt_vtt.scenes import SceneManager

from .deps import Context, require, require_valid
from .models import CreateScene, SceneAspectBody, UpdateScene

router = APIRouter()


@router.get("/episodes/{episode_id}/scenes")
async def list_scenes(ctx: Context):
    """All scenes of the episode in play order, with their status."""
    return [{**s.model_dump(mode="json"), "status": s.status} for s in await SceneManager(ctx).list()]


@router.post("/episodes/{episode_id}/scenes", status_code=201)
async def create_scene(body: CreateScene, ctx: Context):
    """Create a draft scene. 422 when it has too few aspects."""
    scene = Scene(
        name=body.name,
        background=body.background,
        aspects=[SceneAspect(name=a, is_temporary=False, created_by=ctx.user.uid) for a in body.aspects],
    )
    require_valid(await SceneManager(ctx).create(scene))
    return await SceneManager(ctx).get(scene.id)


@router.patch("/episodes/{episode_id}/scenes/{scene_id}")
async def update_scene(scene_id: str, body: UpdateScene, ctx: Context):
    """Edit name, background or order."""
    manager = SceneManager(ctx)
    require(ctx, await manager.update(scene_id, body.model_dump(exclude_unset=True)))
    return await manager.get(scene_id)


@router.delete("/episodes/{episode_id}/scenes/{scene_id}")
async def delete_scene(scene_id: str, ctx: Context):
    """Delete a scene. 409 while it is active."""
    require(ctx, await SceneManager(ctx).delete(scene_id))
    return {"ok": True}


@router.post("/episodes/{episode_id}/scenes/{scene_id}/activate")
async def activate_scene(scene_id: str, ctx: Context):
    """Make this the only active scene. 409 when archived."""
    scene = await SceneManager(ctx).activate(scene_id)
    require(ctx, scene)
    return scene


@router.post("/episodes/{episode_id}/scenes/{scene_id}/deactivate")
async def deactivate_scene(scene_id: str, ctx: Context):
    manager = SceneManager(ctx)
    require(ctx, await manager.deactivate(scene_id))
    return await manager.get(scene_id)


@router.post("/episodes/{episode_id}/scenes/{scene_id}/archive")
async def archive_scene(scene_id: str, ctx: Context):
    """Archive a scene. 409 while it is active."""
    manager = SceneManager(ctx)
    require(ctx, await manager.archive(scene_id))
    return await manager.get(scene_id)


@router.post("/episodes/{episode_id}/scenes/{scene_id}/restore")
async def restore_scene(scene_id: str, ctx: Context):
    manager = SceneManager(ctx)
    require(ctx, await manager.restore(scene_id))
    return await manager.get(scene_id)


@router.post("/episodes/{episode_id}/scenes/{scene_id}/duplicate", status_code=201)
async def duplicate_scene(scene_id: str, ctx: Context):
    copy = await SceneManager(ctx).duplicate(scene_id)
    require(ctx, copy)
    return copy


@router.post("/episodes/{episode_id}/scenes/{scene_id}/aspects", status_code=201)
async def add_scene_aspect(scene_id: str, body: SceneAspectBody, ctx: Context):
    aspect = await SceneManager(ctx).add_aspect(
        scene_id, body.name, free_invokes=body.free_invokes, is_temporary=body.is_temporary
    )
    require(ctx, aspect)
    return aspect


@router.delete("/episodes/{episode_id}/scenes/{scene_id}/aspects/{aspect_id}")
async def remove_scene_aspect(scene_id: str, aspect_id: str, ctx: Context):
    require_valid(await SceneManager(ctx).remove_aspect(scene_id, aspect_id))
    return {"ok": True}
