"""Static game data: skills, drives, maneuvers, NPC kinds, built-in archetypes,
advancement slots and safety topics.

All of these are small closed sets keyed by id. Lookups are plain dict
access; there is no class hierarchy per drive or per NPC kind.
"""

from pydantic import BaseModel

from ihunt_vtt.models import (
    ActionType,
    Archetype,
    Character,
    ClosedAs,
    DriveId,
    NPCKind,
    SafetyLevel,
    SlotType,
)

# ── Skills ──────────────────────────────────────────────────

SKILLS: dict[str, list[ActionType]] = {
    "Acadêmico": ["overcome", "create_advantage"],
    "Assassino": ["create_advantage", "attack"],
    "Assistente Social": ["overcome", "create_advantage", "defend"],
    "Atleta": ["overcome", "create_advantage", "defend"],
    "Criador": ["overcome", "create_advantage"],
    "Espião": ["overcome", "create_advantage", "defend"],
    "Guerrilheiro": ["overcome", "create_advantage"],
    "Hacker": ["overcome", "create_advantage"],
    "Influencer": ["overcome", "create_advantage", "attack"],
    "Investigador": ["overcome", "create_advantage"],
    "Lutador": ["overcome", "create_advantage", "attack", "defend"],
    "Médico": ["overcome", "create_advantage"],
    "Ocultista": ["overcome", "create_advantage"],
    "Organizador": ["overcome", "create_advantage"],
    "Profissional": ["overcome", "create_advantage"],
    "Sobrevivente": ["overcome", "create_advantage", "defend"],
    "Socialite": ["overcome", "create_advantage", "defend"],
    "Trambiqueiro": ["overcome", "create_advantage", "defend"],
}

SKILL_NAMES = sorted(SKILLS)

# Pre-2.0 skill names → current skill
LEGACY_SKILLS: dict[str, str] = {
    "Atirar": "Assassino",
    "Combate": "Lutador",
    "Briga": "Lutador",
    "Atletismo": "Atleta",
    "Vigor": "Sobrevivente",
    "Enganar": "Trambiqueiro",
    "Roubo": "Trambiqueiro",
    "Intimidar": "Guerrilheiro",
    "Empatia": "Assistente Social",
    "Serviço Social": "Assistente Social",
    "Contatos": "Organizador",
    "Recursos": "Profissional",
    "Provocar": "Influencer",
    "Comunicação": "Influencer",
    "Vontade": "Sobrevivente",
    "Percepção": "Investigador",
    "Investigar": "Investigador",
    "Investigação": "Investigador",
    "Tecnologia": "Hacker",
    "Furtividade": "Espião",
    "Espionagem": "Espião",
    "Conhecimento": "Acadêmico",
    "Erudição": "Acadêmico",
    "Ofícios": "Criador",
    "Dirigir": "Atleta",
}


def migrate_skills(character: Character) -> Character:
    """Rename legacy skills, keeping the higher value when two merge.

    Unknown names are kept as custom skills so the owner can fix them.
    """
    skills: dict[str, int] = {}
    for name, value in character.skills.items():
        target = name if name in SKILLS else LEGACY_SKILLS.get(name, name)
        skills[target] = max(skills.get(target, 0), value)
    return character.model_copy(update={"skills": skills})


# ── Maneuvers and drives ────────────────────────────────────

class Maneuver(BaseModel):
    id: str
    name: str
    description: str = ""
    drive: DriveId | None = None  # None = general, open to every drive
    cost: int = 1  # refresh cost; 0 = free


class Drive(BaseModel):
    id: DriveId
    name: str
    summary: str
    free_maneuver: Maneuver
    exclusive_maneuvers: list[Maneuver]


GENERAL_MANEUVERS: list[Maneuver] = [
    Maneuver(id="golpe-rasteiro", name="Golpe Rasteiro",
             description="+2 on melee attacks against an unsuspecting target."),
    Maneuver(id="tiro-certeiro", name="Tiro Certeiro",
             description="Use Investigador instead of Assassino for ranged attacks."),
    Maneuver(id="instinto-sobrevivencia", name="Instinto de Sobrevivência",
             description="+2 to defend while outnumbered."),
    Maneuver(id="contatos-submundo", name="Contatos no Submundo",
             description="Once per session, you know someone who can help."),
    Maneuver(id="primeiros-socorros", name="Primeiros Socorros",
             description="Treat mild consequences outside of a fight."),
    Maneuver(id="mecanico-ocasiao", name="Mecânico de Ocasião",
             description="+2 to fix or sabotage vehicles and gear."),
]


def _drive(id: DriveId, name: str, summary: str, free: tuple[str, str], exclusive: list[tuple[str, str]]) -> Drive:
    return Drive(
        id=id,
        name=name,
        summary=summary,
        free_maneuver=Maneuver(id=free[0], name=free[1], drive=id, cost=0),
        exclusive_maneuvers=[Maneuver(id=m, name=n, drive=id) for m, n in exclusive],
    )


DRIVES: dict[DriveId, Drive] = {
    "malina": _drive(
        "malina", "Malinas (Os Sabichões)",
        "Fight with knowledge, secrets and the profane.",
        ("sabe-das-coisas", "Sabe das Coisas"),
        [("mestre-pesquisa", "Mestre da Pesquisa"), ("pocoes", "Poções"),
         ("embruxacao", "Embruxação")],
    ),
    "cavalo": _drive(
        "cavalo", "Cavalos (Os Porradeiros)",
        "Fight with brute force; the body is a disposable tool.",
        ("melhor-defesa", "A Melhor Defesa"),
        [("consciencia-situacional", "Consciência Situacional"),
         ("machuca-nao-doi", "Machuca Mas Não Dói"),
         ("espirito-equipe", "Espírito de Equipe")],
    ),
    "fui": _drive(
        "fui", "Fuis (Os Techs)",
        "Fight with technology, gadgets and explosives.",
        ("protocolo-basico", "Protocolo Básico"),
        [("referencia-hacker", "Referência Hacker"),
         ("pilotagem-sagaz", "Pilotagem Sagaz"),
         ("anarquia-ihunt", "Anarquia no #iHunt")],
    ),
    "os66": _drive(
        "os66", "Os 66 (O Social)",
        "Fight with people, contacts and public opinion.",
        ("pessoas-conhecem-pessoas", "Pessoas Que Conhecem Pessoas"),
        [("disfarce-secreto", "Disfarce Secreto"),
         ("imunidade-diplomatica", "Imunidade Diplomática"),
         ("alvo-na-cabeca", "Alvo na Cabeça")],
    ),
}


def maneuvers_for(drive: DriveId | None) -> list[Maneuver]:
    """Every maneuver a character with this drive may take."""
    if drive is None or drive not in DRIVES:
        return list(GENERAL_MANEUVERS)
    d = DRIVES[drive]
    return [d.free_maneuver, *d.exclusive_maneuvers, *GENERAL_MANEUVERS]


def unavailable_maneuvers(drive: DriveId | None, maneuver_ids: list[str]) -> list[str]:
    allowed = {m.id for m in maneuvers_for(drive)}
    return [m for m in maneuver_ids if m not in allowed]


BASE_REFRESH = 5
FREE_MANEUVER_SLOTS = 2


def available_refresh(drive: DriveId | None, maneuver_ids: list[str]) -> int:
    """Refresh left after paying for maneuvers.

    The drive's free maneuver and two more picks cost nothing; every other
    maneuver costs 1 refresh.
    """
    count = len(set(maneuver_ids))
    if drive in DRIVES and DRIVES[drive].free_maneuver.id in maneuver_ids:
        count -= 1
    return BASE_REFRESH - max(0, count - FREE_MANEUVER_SLOTS)


# ── NPC kinds ───────────────────────────────────────────────

NPC_KINDS: dict[NPCKind, dict[str, str]] = {
    NPCKind.MONSTRO: {"label": "Monstro", "token_color": "#b91c1c"},
    NPCKind.PESSOA: {"label": "Pessoa", "token_color": "#2563eb"},
}

# ── Built-in archetypes ─────────────────────────────────────

PROTECTED_PREFIXES = ("global_", "scenario_")

BUILTIN_ARCHETYPES: list[Archetype] = [
    Archetype(
        id="global_vampiro_neofito",
        name="Vampiro Neófito",
        kind=NPCKind.MONSTRO,
        description="Freshly turned, arrogant, found in VIP areas.",
        aspects=[
            "Clado: Vampiro",
            "Arrogância de quem nunca levou um não",
            "Sedento por sangue e validação",
        ],
        skills={"Lutador": 3, "Atleta": 2, "Influencer": 2, "Socialite": 1},
        stress=3,
        stunts=["Regeneração (heals one mild consequence per scene)"],
        is_global=True,
    ),
    Archetype(
        id="global_vampiro_anciao",
        name="Vampiro Ancião",
        kind=NPCKind.MONSTRO,
        description="Never gets his hands dirty; outsources the violence.",
        aspects=[
            "Clado: Vampiro",
            "Paciência de quem tem a eternidade",
            "Mente alienígena e cruel",
        ],
        skills={"Ocultista": 5, "Trambiqueiro": 4, "Organizador": 4, "Lutador": 3},
        stress=6,
        stunts=["Controle Mental", "Forma de Névoa"],
        is_global=True,
    ),
    Archetype(
        id="global_seguranca",
        name="Segurança de Balada",
        kind=NPCKind.PESSOA,
        description="Big, bored and paid to say no.",
        aspects=["Paredão humano", "Não é pago pra pensar"],
        skills={"Lutador": 2, "Atleta": 1},
        stress=2,
        is_global=True,
    ),
]


def is_protected(archetype_id: str) -> bool:
    return archetype_id.startswith(PROTECTED_PREFIXES)


# ── Advancement ─────────────────────────────────────────────

# how an episode was closed → the slot every character earns
SLOT_FOR_CLOSE: dict[ClosedAs, SlotType] = {
    "episode": "mood",
    "story_climax": "auge",
    "season_finale": "mudanca",
}

# ── Safety tools ────────────────────────────────────────────

SAFETY_TOPICS: dict[str, str] = {
    "preconceito_racial": "Preconceito: Racial",
    "preconceito_religioso": "Preconceito: Religioso",
    "preconceito_genero": "Preconceito: Sexualidade e Gênero",
    "sangue": "Sangue",
    "morte_violenta": "Morte Violenta",
    "bullying": "Bullying",
    "espacos_confinados": "Espaços Confinados",
    "drogas": "Uso de Drogas",
    "violencia_grafica": "Violência Gráfica",
    "insetos": "Insetos",
    "perda_autonomia": "Perda de Autonomia",
    "tratamento_medico": "Tratamento Médico",
    "desastres_naturais": "Desastres Naturais",
    "violencia_politica": "Violência Política e Policial",
    "gravidez": "Gravidez (Traumática)",
    "restricao_fisica": "Restrição Física ou Paralisia",
    "romance": "Romance",
    "automutilacao": "Automutilação",
    "sexo": "Sexo",
    "violencia_sexual": "Violência Sexual",
    "fome": "Fome e Privação",
    "tortura": "Tortura",
    "violencia_animais": "Violência Contra Animais",
    "violencia_criancas": "Violência Contra Crianças",
}

# level → (label, severity); the table uses the most severe level anyone set
SAFETY_LEVELS: dict[SafetyLevel, tuple[str, int]] = {
    "ok": ("Tudo OK", 0),
    "stage": ("OK em Cena", 1),
    "not_with_me": ("Comigo Não", 2),
    "veil": ("Fora de Cena", 3),
    "line": ("Limite", 4),
}
