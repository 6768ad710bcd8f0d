"""Data models for Mail Emulator.

This module contains Pydantic models for data validation and serialization.
"""

from .corpus import ParsedMessage, RawRecord, Thread
from .gmail import (
    GmailMessage,
    GmailThread,
    ListMessagesResponse,
    MessagePart,
    MessagePartBody,
    MessagePartHeader,
    MessageRef,
    Profile,
)
from .persona import Persona
from .transform import (
    ContactSummary,
    DateRange,
    RunMetadata,
    TimeWindow,
    TransformedMessage,
    TransformStats,
)

__all__ = [
    "ContactSummary",
    "DateRange",
    "GmailMessage",
    "GmailThread",
    "ListMessagesResponse",
    "MessagePart",
    "MessagePartBody",
    "MessagePartHeader",
    "MessageRef",
    "ParsedMessage",
    "Persona",
    "Profile",
    "RawRecord",
    "RunMetadata",
    "Thread",
    "TimeWindow",
    "TransformStats",
    "TransformedMessage",
]
