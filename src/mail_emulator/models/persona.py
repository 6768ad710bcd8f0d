"""Synthetic persona model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Persona(BaseModel):
    """A synthetic identity substituted for one or more real addresses."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    persona_id: str = Field(description="Stable persona identifier (e.g. 'cto', 'colleague-3')")
    display_name: str = Field(description="Synthetic display name")
    synthetic_email: str = Field(description="Synthetic email address")
    role: str = Field(description="Relationship role label")
    frequency_rank: int | None = Field(
        default=None,
        description="1-based rank of the real correspondent; None for generic personas",
    )

    @property
    def mailbox(self) -> str:
        """Render as an RFC 5322 mailbox (``Name <addr>``)."""
        return f"{self.display_name} <{self.synthetic_email}>"
