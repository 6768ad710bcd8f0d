"""Protocol serializer: Gmail wire mapping and the on-disk artifacts.

Four files are written per run:

- ``messages.json``: every message as a Gmail ``Message`` resource, newest first
- ``list_response.json``: the first ``users.messages.list`` page
- ``stats.json``: ``TransformStats``
- ``metadata.json``: ``RunMetadata``

Output is byte-for-byte deterministic for identical inputs: no wall-clock
values, stable ordering, fixed JSON formatting.
"""

from __future__ import annotations

import base64
import json
import os
from collections.abc import Sequence
from email.utils import format_datetime
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, TypeAdapter

from mail_emulator.exceptions import OutputWriteError
from mail_emulator.models import (
    GmailMessage,
    ListMessagesResponse,
    MessagePart,
    MessagePartBody,
    MessagePartHeader,
    MessageRef,
    Persona,
    RunMetadata,
    TransformedMessage,
    TransformStats,
)
from mail_emulator.pagination import paginate

logger = structlog.get_logger()

MESSAGES_FILE = "messages.json"
LIST_RESPONSE_FILE = "list_response.json"
STATS_FILE = "stats.json"
METADATA_FILE = "metadata.json"

MESSAGE_LIST_ADAPTER = TypeAdapter(list[GmailMessage])


def _mailbox_list(personas: Sequence[Persona]) -> str:
    return ", ".join(p.mailbox for p in personas)


def to_gmail_message(message: TransformedMessage) -> GmailMessage:
    """Render a transformed message as a Gmail ``Message`` resource (format=full)."""
    headers = [MessagePartHeader(name="From", value=message.from_persona.mailbox)]
    if message.to_personas:
        headers.append(MessagePartHeader(name="To", value=_mailbox_list(message.to_personas)))
    if message.cc_personas:
        headers.append(MessagePartHeader(name="Cc", value=_mailbox_list(message.cc_personas)))
    headers.append(MessagePartHeader(name="Subject", value=message.subject))
    headers.append(MessagePartHeader(name="Date", value=format_datetime(message.shifted_timestamp)))

    body_bytes = message.body_full.encode("utf-8")
    body = MessagePartBody(
        size=len(body_bytes),
        data=base64.urlsafe_b64encode(body_bytes).decode("ascii") if body_bytes else None,
    )
    size_estimate = len(body_bytes) + sum(len(h.name) + len(h.value) + 4 for h in headers)

    return GmailMessage(
        id=message.synthetic_id,
        thread_id=message.thread_id,
        label_ids=list(message.labels),
        snippet=message.body_snippet,
        internal_date=str(message.internal_date_ms),
        size_estimate=size_estimate,
        payload=MessagePart(
            part_id="",
            mime_type="text/plain",
            filename="",
            headers=headers,
            body=body,
        ),
    )


def decode_body(message: GmailMessage) -> str:
    """Return the plain-text body of a wire message ("" when absent)."""
    if message.payload is None or not message.payload.body.data:
        return ""
    return base64.urlsafe_b64decode(message.payload.body.data.encode("ascii")).decode("utf-8", errors="replace")


def build_list_response(
    messages: Sequence[GmailMessage],
    *,
    offset: int = 0,
    page_size: int = 100,
) -> ListMessagesResponse:
    """Build one ``users.messages.list`` page over an already ordered message set."""
    page, next_token = paginate(messages, offset=offset, page_size=page_size)
    return ListMessagesResponse(
        messages=[MessageRef(id=m.id, thread_id=m.thread_id) for m in page] or None,
        next_page_token=next_token,
        result_size_estimate=len(messages),
    )


def dump_json(payload: BaseModel | list[Any] | dict[str, Any]) -> str:
    """Serialize with fixed formatting so identical data yields identical bytes."""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


class OutputWriter:
    """Writes the transform artifacts into an output directory."""

    def __init__(self, output_dir: Path, *, page_size: int = 100) -> None:
        self.output_dir = Path(output_dir)
        self.page_size = page_size

    def prepare(self) -> None:
        """Create the output directory and check that it is writable.

        Raises:
            OutputWriteError: If the directory cannot be created or written.
        """
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputWriteError(f"Cannot create output directory {self.output_dir}: {exc}") from exc
        if not self.output_dir.is_dir() or not os.access(self.output_dir, os.W_OK):
            raise OutputWriteError(f"Output directory is not writable: {self.output_dir}")

    def write(
        self,
        messages: Sequence[GmailMessage],
        stats: TransformStats,
        metadata: RunMetadata,
    ) -> list[Path]:
        """Write all four artifacts.

        Args:
            messages: Wire messages in listing order (newest first).
            stats: Finalized run statistics.
            metadata: Run parameters.

        Returns:
            Paths written, in a fixed order.

        Raises:
            OutputWriteError: If any file cannot be written.
        """
        self.prepare()
        listing = MESSAGE_LIST_ADAPTER.dump_python(
            list(messages), mode="json", by_alias=True, exclude_none=True
        )
        first_page = build_list_response(messages, page_size=self.page_size)

        written = [
            self._write_text(MESSAGES_FILE, dump_json(listing)),
            self._write_text(LIST_RESPONSE_FILE, dump_json(first_page)),
            self._write_text(STATS_FILE, dump_json(stats)),
            self._write_text(METADATA_FILE, dump_json(metadata)),
        ]
        logger.info(
            "transform_output_written",
            output_dir=str(self.output_dir),
            message_count=len(messages),
            files=[p.name for p in written],
        )
        return written

    def _write_text(self, name: str, content: str) -> Path:
        path = self.output_dir / name
        tmp = path.with_name(f".{name}.tmp")
        try:
            tmp.write_text(content, encoding="utf-8", newline="\n")
            os.replace(tmp, path)
        except OSError as exc:
            raise OutputWriteError(f"Failed to write {path}: {exc}") from exc
        return path
