import pytest

from ihunt_vtt.models import Character, CharacterAspects, Identity
from ihunt_vtt.notices import NoticeBoard
from ihunt_vtt.session import SessionContext
from ihunt_vtt.store import MemoryStore

CAMPAIGN_ID = "camp-1"
EPISODE_ID = "ep-1"


@pytest.fixture
def store():
    """Fresh in-memory store per test."""
    return MemoryStore()


@pytest.fixture
def gm_user():
    return Identity(uid="gm-uid", display_name="Mestre")


@pytest.fixture
def player():
    return Identity(uid="player-uid", display_name="Marina")


@pytest.fixture
def other_player():
    return Identity(uid="other-uid", display_name="Tiago")


@pytest.fixture
async def ctx(store, player):
    """Player's session on a freshly created episode."""
    context = await SessionContext.open(store, player, EPISODE_ID, CAMPAIGN_ID, notices=NoticeBoard())
    yield context
    await context.close()


@pytest.fixture
async def gm_ctx(store, gm_user, ctx):
    """GM's session on the same episode, with the GM seat already claimed."""
    context = await SessionContext.open(store, gm_user, EPISODE_ID)
    await store.update(context.episode_path, {"gm_id": gm_user.uid})
    yield context
    await context.close()


HUNTER_SKILLS = {
    "Lutador": 4,
    "Atleta": 3, "Sobrevivente": 3,
    "Investigador": 2, "Hacker": 2, "Médico": 2,
    "Acadêmico": 1, "Espião": 1, "Socialite": 1, "Criador": 1,
}


@pytest.fixture
def make_hunter():
    """Factory for a valid character build; keyword overrides win."""

    def make(**overrides) -> Character:
        fields = {
            "name": "Marina",
            "drive": "cavalo",
            "aspects": CharacterAspects(
                high_concept="Ex-lutadora que bate primeiro",
                drama="Devo dinheiro pra gente errada",
                job="Entregadora de app",
                dream_board="Abrir uma academia",
            ),
            "skills": dict(HUNTER_SKILLS),
            "maneuvers": ["melhor-defesa"],
        }
        fields.update(overrides)
        return Character(**fields)

    return make
