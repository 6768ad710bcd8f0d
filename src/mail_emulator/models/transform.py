"""Models produced by the transform: rewritten messages, stats and run metadata."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .persona import Persona


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TransformedMessage(BaseModel):
    """A message with personas substituted and time shifted."""

    synthetic_id: str
    thread_id: str
    from_persona: Persona
    to_personas: list[Persona] = Field(default_factory=list)
    cc_personas: list[Persona] = Field(default_factory=list)
    subject: str = ""
    body_full: str = ""
    body_snippet: str = ""
    shifted_timestamp: datetime
    internal_date_ms: int = Field(description="Shifted time as epoch milliseconds")
    labels: list[str] = Field(default_factory=list)


class DateRange(_CamelModel):
    start: datetime | None = None
    end: datetime | None = None


class ContactSummary(_CamelModel):
    """A named persona with the participation count of the address behind it."""

    rank: int
    persona_id: str
    display_name: str
    synthetic_email: str
    role: str
    message_count: int


class TransformStats(_CamelModel):
    """Aggregate statistics for one transform run."""

    total_transformed: int = 0
    thread_count: int = 0
    persona_count: int = 0
    persona_frequency_table: dict[str, int] = Field(default_factory=dict)
    top_contacts: list[ContactSummary] = Field(default_factory=list)
    skipped_count: int = 0
    duplicate_count: int = 0
    truncated_count: int = 0
    flagged_date_count: int = 0
    date_range: DateRange = Field(default_factory=DateRange)


class TimeWindow(_CamelModel):
    """The translation applied to every timestamp."""

    offset_millis: int
    original_start: datetime | None = None
    original_end: datetime | None = None
    window_end: datetime


class RunMetadata(_CamelModel):
    """Parameters used for a run, persisted next to the data for reproducibility."""

    generator: str
    user: str
    limit: int | None = None
    test_email: str
    top_k: int
    generic_persona_count: int
    time_window: TimeWindow
    personas: list[Persona] = Field(default_factory=list)
