"""
Static persona catalog.

Loaded once at import time and never mutated, so it is safe to share
between concurrent conversations.
"""

from dataclasses import dataclass
from typing import Optional

from app.agents.prompts import ALEX_PROMPT, MIA_PROMPT, LEO_PROMPT, build_system_prompt
from app.services.errors import UnknownPersona


@dataclass(frozen=True)
class Persona:
    id: str
    name: str
    tagline: str
    prompt: str
    background_image: str

    @property
    def system_prompt(self) -> str:
        return build_system_prompt(self.prompt)


PERSONAS: tuple[Persona, ...] = (
    Persona(
        id="alex",
        name="Alex",
        tagline="Playful photographer from Lisbon",
        prompt=ALEX_PROMPT,
        background_image="/avatars/alex.png",
    ),
    Persona(
        id="mia",
        name="Mia",
        tagline="Bookshop girl with a poem for every mood",
        prompt=MIA_PROMPT,
        background_image="/avatars/mia.png",
    ),
    Persona(
        id="leo",
        name="Leo",
        tagline="Travel writer, just back from the road",
        prompt=LEO_PROMPT,
        background_image="/avatars/leo.png",
    ),
)

_PERSONAS_BY_ID = {persona.id: persona for persona in PERSONAS}


def find_persona(persona_id: Optional[str]) -> Optional[Persona]:
    if not persona_id:
        return None
    return _PERSONAS_BY_ID.get(persona_id)


def get_persona(persona_id: str) -> Persona:
    """Resolve a persona id, raising UnknownPersona for ids outside the catalog."""
    persona = find_persona(persona_id)
    if persona is None:
        raise UnknownPersona(persona_id)
    return persona
