"""Models for raw and parsed corpus records.

``RawRecord`` only lives between the reader and the parser; the parsed and
threaded models are what the rest of the pipeline works with.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class RawRecord:
    """One message file read from disk."""

    source_path: Path
    folder_owner: str
    folder: str
    ordinal: int
    modified_at: float
    raw_bytes: bytes


class ParsedMessage(BaseModel):
    """A message with its headers extracted and normalized."""

    original_message_id: str = Field(description="Message-ID without angle brackets")
    thread_refs: list[str] = Field(
        default_factory=list,
        description="Referenced message ids, oldest first; the direct parent is last",
    )

    from_address: str = Field(description="Lowercased sender address")
    to_addresses: list[str] = Field(default_factory=list, description="Unique To addresses")
    cc_addresses: list[str] = Field(default_factory=list, description="Unique Cc addresses")
    display_names: dict[str, str] = Field(
        default_factory=dict,
        description="Real display names seen in the headers, keyed by address",
    )

    subject: str = Field(default="", description="Decoded subject, never null")
    body_text: str = Field(default="", description="Decoded plain-text body")

    original_timestamp: datetime | None = Field(
        default=None, description="UTC send time; None until backfilled when the Date header was bad"
    )
    date_flagged: bool = Field(
        default=False, description="Whether the timestamp was inferred rather than parsed"
    )

    folder_owner: str = Field(description="Mailbox owner directory name")
    folders: list[str] = Field(default_factory=list, description="Folders this message was found in")
    ordinal: int = Field(default=0, description="Position of the file in the corpus walk")
    modified_at: float = Field(default=0.0, description="On-disk mtime of the source file")
    source_path: str = Field(default="", description="Path of the first file holding this message")

    @property
    def participants(self) -> list[str]:
        """Sender followed by unique recipients, in header order."""
        seen: dict[str, None] = {self.from_address: None}
        for addr in (*self.to_addresses, *self.cc_addresses):
            seen.setdefault(addr, None)
        return list(seen)


class Thread(BaseModel):
    """A reconstructed conversation."""

    thread_id: str = Field(description="Synthetic id of the root message")
    root_message_id: str = Field(description="Original Message-ID of the root")
    message_ids: list[str] = Field(description="Original Message-IDs, oldest first")
    participants: list[str] = Field(default_factory=list, description="Sorted real addresses")
