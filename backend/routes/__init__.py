"""FastAPI API endpoints under /api.

Endpoint groups: rules (health, dice, skills, catalog, config), episodes
(open, table state, GM claim, seats, fate, log, close), aspects, scenes,
characters, NPCs, safety tools. Everything that touches shared state is nested under
/api/episodes/{episode_id}/ and acts as the X-User-Id header's user.

Conflicts answer 409, validation failures 422, missing documents 404.
"""

from fastapi import APIRouter

from .aspects import router as aspects_router
from .characters import router as characters_router
from .episodes import router as episodes_router
from .npcs import router as npcs_router
from .rules import router as rules_router
from .safety import router as safety_router
from .scenes import router as scenes_router

router = APIRouter()
router.include_router(rules_router)
router.include_router(episodes_router)
router.include_router(aspects_router)
router.include_router(scenes_router)
router.include_router(characters_router)
router.include_router(npcs_router)
router.include_router(safety_router)
