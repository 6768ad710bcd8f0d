"""Fixed persona catalog.

Named personas are handed out in rank order: the most frequent correspondent
gets slot 1, the second gets slot 2, and so on. The order of this tuple is
part of the output contract; append new entries, never reorder.
"""

from __future__ import annotations

from typing import NamedTuple


class NamedPersonaSpec(NamedTuple):
    role: str
    display_name: str
    local_part: str


NAMED_PERSONAS: tuple[NamedPersonaSpec, ...] = (
    NamedPersonaSpec("sister", "Emma Larsen", "emma.larsen"),
    NamedPersonaSpec("cto", "Marcus Webb", "marcus.webb"),
    NamedPersonaSpec("manager", "Priya Raman", "priya.raman"),
    NamedPersonaSpec("best-friend", "Jordan Alvarez", "jordan.alvarez"),
    NamedPersonaSpec("client", "Helen Okafor", "helen.okafor"),
    NamedPersonaSpec("recruiter", "Tom Becker", "tom.becker"),
    NamedPersonaSpec("accountant", "Grace Liu", "grace.liu"),
    NamedPersonaSpec("landlord", "Victor Novak", "victor.novak"),
    NamedPersonaSpec("mentor", "Ruth Alder", "ruth.alder"),
)

GENERIC_ROLE = "colleague"
SELF_PERSONA_ID = "self"
SELF_ROLE = "self"


def generic_persona_id(slot: int) -> str:
    """Return the persona id for a 1-based generic slot."""
    return f"{GENERIC_ROLE}-{slot}"
