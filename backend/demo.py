"""Create a demo table for development/testing.

One campaign, one episode with a GM, two hunters, three scenes (the first
active) and a vampire waiting off-scene. Everything goes through the same
mutators the API uses.
"""

import logging

from ihunt_vtt.catalog import BUILTIN_ARCHETYPES
from ihunt_vtt.characters import CharacterRoster
from ihunt_vtt.models import Character, CharacterAspects, Identity, Scene, SceneAspect
from ihunt_vtt.npcs import NPCRoster
from ihunt_vtt.roles import RoleClaims
from ihunt_vtt.scenes import SceneManager
from ihunt_vtt.session import SessionContext
from ihunt_vtt.store import DocumentStore

logger = logging.getLogger(__name__)

DEMO_CAMPAIGN = "demo"
DEMO_EPISODE = "demo-1"
DEMO_GM = Identity(uid="demo-gm", display_name="Mestre")

DEMO_THEMES = ["A cidade que nunca dorme", "Gig economy da caçada"]

DEMO_CHARACTERS = [
    Character(
        id="demo-marina",
        name="Marina 'Neon' Costa",
        drive="fui",
        aspects=CharacterAspects(
            high_concept="Hacker de aluguel com dívida no cartão",
            drama="Minha irmã não sabe o que eu faço",
            job="Entregadora de app",
            dream_board="Abrir minha própria oficina",
        ),
        skills={
            "Hacker": 4,
            "Criador": 3, "Espião": 3,
            "Atleta": 2, "Investigador": 2, "Profissional": 2,
            "Acadêmico": 1, "Influencer": 1, "Sobrevivente": 1, "Trambiqueiro": 1,
        },
        maneuvers=["protocolo-basico", "referencia-hacker"],
    ),
    Character(
        id="demo-tiago",
        name="Tiago 'Muralha' Silva",
        drive="cavalo",
        aspects=CharacterAspects(
            high_concept="Ex-lutador de MMA que bate primeiro",
            drama="Devo dinheiro pra gente errada",
            job="Segurança de balada",
            dream_board="Voltar pro octógono",
        ),
        skills={
            "Lutador": 4,
            "Atleta": 3, "Sobrevivente": 3,
            "Assassino": 2, "Guerrilheiro": 2, "Socialite": 2,
            "Investigador": 1, "Médico": 1, "Organizador": 1, "Trambiqueiro": 1,
        },
        maneuvers=["melhor-defesa", "machuca-nao-doi"],
    ),
]

DEMO_SCENES = [
    ("Balada Submersa", "Uma boate no subsolo de um estacionamento.",
     ["Luzes estroboscópicas", "Multidão apertada"]),
    ("Beco dos Fundos", None, ["Chuva ácida", "Caçambas de lixo"]),
    ("Cobertura do Ancião", None, ["Vista para a cidade inteira"]),
]


async def create_demo_data(store: DocumentStore) -> None:
    """Populate `store` with the demo table. Safe to run on an empty store only."""
    async with await SessionContext.open(store, DEMO_GM, DEMO_EPISODE, DEMO_CAMPAIGN) as gm:
        await store.update(gm.campaign_path, {"name": "Noites de São Paulo", "theme_aspects": DEMO_THEMES})
        await RoleClaims(gm).claim_gm()

        roster = CharacterRoster(gm)
        for character in DEMO_CHARACTERS:
            result = await roster.create(character)
            if not result.valid:
                logger.warning(f"Demo character {character.name} rejected: {result.error}")

        manager = SceneManager(gm)
        first = None
        for name, background, aspects in DEMO_SCENES:
            scene = Scene(name=name, background=background,
                          aspects=[SceneAspect(name=a, is_temporary=False) for a in aspects])
            await manager.create(scene)
            first = first or scene
        await manager.activate(first.id)

        await NPCRoster(gm).spawn(BUILTIN_ARCHETYPES[0], "Lucien")

    for character in DEMO_CHARACTERS:
        player = Identity(uid=f"player-{character.id}", display_name=character.name.split()[0])
        async with await SessionContext.open(store, player, DEMO_EPISODE) as ctx:
            await RoleClaims(ctx).join_as_player(character.id)

    logger.info(f"Demo table ready: episode {DEMO_EPISODE}")
