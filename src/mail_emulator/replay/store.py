"""In-memory, read-only dataset behind the replay service.

The store is filled exactly once (``load`` or ``from_messages``) and never
mutated afterwards, so any number of request threads can read it without
locking. ``ready`` only turns true after every index is built.
"""

from __future__ import annotations

import json
from collections import defaultdict
from collections.abc import Sequence
from pathlib import Path
from typing import TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from mail_emulator.exceptions import ConfigurationError, NotFoundError
from mail_emulator.models import GmailMessage, RunMetadata, TransformStats
from mail_emulator.serialization import (
    MESSAGE_LIST_ADAPTER,
    MESSAGES_FILE,
    METADATA_FILE,
    STATS_FILE,
    decode_body,
)

from .query import QueryTerm, SearchDocument, matches

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)


def _document(message: GmailMessage) -> SearchDocument:
    payload = message.payload
    subject = payload.header("Subject") if payload else ""
    sender = payload.header("From") if payload else ""
    to = payload.header("To") if payload else ""
    cc = payload.header("Cc") if payload else ""
    text = "\n".join((subject, sender, to, cc, message.snippet, decode_body(message)))
    return SearchDocument(
        subject=subject.lower(),
        sender=sender.lower(),
        to=to.lower(),
        cc=cc.lower(),
        text=text.lower(),
        labels=frozenset(message.label_ids),
        internal_date_ms=int(message.internal_date),
    )


def _listing_order(message: GmailMessage) -> tuple[int, str]:
    return (-int(message.internal_date), message.id)


class MessageStore:
    """Indexes transform output for listing, lookup and thread retrieval."""

    def __init__(self) -> None:
        self._messages: list[GmailMessage] = []
        self._documents: list[SearchDocument] = []
        self._by_id: dict[str, GmailMessage] = {}
        self._threads: dict[str, list[GmailMessage]] = {}
        self.metadata: RunMetadata | None = None
        self.stats: TransformStats | None = None
        self._ready = False

    @classmethod
    def from_messages(
        cls,
        messages: Sequence[GmailMessage],
        *,
        metadata: RunMetadata | None = None,
        stats: TransformStats | None = None,
    ) -> MessageStore:
        store = cls()
        store._index(messages, metadata, stats)
        return store

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def self_email(self) -> str | None:
        return self.metadata.test_email if self.metadata else None

    @property
    def thread_count(self) -> int:
        return len(self._threads)

    def __len__(self) -> int:
        return len(self._messages)

    def load(self, data_dir: Path) -> None:
        """Load transform output from ``data_dir``. Blocks until fully indexed.

        Raises:
            ConfigurationError: If the files are missing or malformed.
        """
        data_dir = Path(data_dir)
        messages_path = data_dir / MESSAGES_FILE
        if not messages_path.is_file():
            raise ConfigurationError(f"Replay dataset not found: {messages_path}")

        try:
            messages = MESSAGE_LIST_ADAPTER.validate_json(messages_path.read_bytes())
            metadata = self._load_optional(data_dir / METADATA_FILE, RunMetadata)
            stats = self._load_optional(data_dir / STATS_FILE, TransformStats)
        except (OSError, ValidationError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Invalid replay dataset in {data_dir}: {exc}") from exc

        self._index(messages, metadata, stats)
        logger.info(
            "replay_dataset_loaded",
            data_dir=str(data_dir),
            message_count=len(self._messages),
            thread_count=len(self._threads),
        )

    def search(
        self,
        terms: list[QueryTerm] | None = None,
        label_ids: Sequence[str] | None = None,
    ) -> list[GmailMessage]:
        """Return matching messages, newest first."""
        wanted = {label.upper() for label in label_ids or []}
        if not terms and not wanted:
            return self._messages
        return [
            message
            for message, doc in zip(self._messages, self._documents)
            if wanted.issubset(doc.labels) and matches(doc, terms or [])
        ]

    def get(self, message_id: str) -> GmailMessage:
        """Return a message by synthetic id.

        Raises:
            NotFoundError: If the id is unknown.
        """
        message = self._by_id.get(message_id)
        if message is None:
            raise NotFoundError("Requested entity was not found.")
        return message

    def thread(self, thread_id: str) -> list[GmailMessage]:
        """Return a thread's messages, oldest first.

        Raises:
            NotFoundError: If the thread id is unknown.
        """
        messages = self._threads.get(thread_id)
        if messages is None:
            raise NotFoundError("Requested entity was not found.")
        return messages

    @staticmethod
    def _load_optional(path: Path, model: type[M]) -> M | None:
        if not path.is_file():
            return None
        return model.model_validate_json(path.read_bytes())

    def _index(
        self,
        messages: Sequence[GmailMessage],
        metadata: RunMetadata | None,
        stats: TransformStats | None,
    ) -> None:
        ordered = sorted(messages, key=_listing_order)
        threads: dict[str, list[GmailMessage]] = defaultdict(list)
        for message in reversed(ordered):
            threads[message.thread_id].append(message)

        self._messages = ordered
        self._documents = [_document(m) for m in ordered]
        self._by_id = {m.id: m for m in ordered}
        self._threads = dict(threads)
        self.metadata = metadata
        self.stats = stats
        self._ready = True
