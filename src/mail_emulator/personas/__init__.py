"""Synthetic persona assignment."""

from .assigner import PersonaAssigner, PersonaTable, count_participation, infer_owner_address
from .catalog import NAMED_PERSONAS

__all__ = [
    "NAMED_PERSONAS",
    "PersonaAssigner",
    "PersonaTable",
    "count_participation",
    "infer_owner_address",
]
