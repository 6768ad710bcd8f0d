"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

import pytest

OWNER = "allen-p"
WINDOW_END = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def build_message(
    *,
    sender: str,
    to: str | None = None,
    cc: str | None = None,
    subject: str | None = None,
    date: str | None = None,
    message_id: str | None = None,
    in_reply_to: str | None = None,
    references: str | None = None,
    body: str = "",
    extra_headers: dict[str, str] | None = None,
) -> str:
    """Render a single RFC 822 message the way the corpus stores it."""
    headers: list[tuple[str, str]] = []
    if message_id:
        headers.append(("Message-ID", message_id))
    if date:
        headers.append(("Date", date))
    headers.append(("From", sender))
    if to:
        headers.append(("To", to))
    if cc:
        headers.append(("Cc", cc))
    if subject is not None:
        headers.append(("Subject", subject))
    if in_reply_to:
        headers.append(("In-Reply-To", in_reply_to))
    if references:
        headers.append(("References", references))
    for name, value in (extra_headers or {}).items():
        headers.append((name, value))
    head = "\n".join(f"{name}: {value}" for name, value in headers)
    return f"{head}\n\n{body}"


@pytest.fixture
def make_message() -> Callable[..., str]:
    """Provide the message builder to tests."""
    return build_message


@pytest.fixture
def write_message() -> Callable[[Path, str | bytes], Path]:
    """Provide a helper that writes one message file, creating parent folders."""

    def _write(path: Path, content: str | bytes) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        path.write_bytes(content)
        return path

    return _write


@pytest.fixture
def maildir(tmp_path: Path, write_message) -> Path:
    """Provide a small corpus: one owner, one three-message conversation."""
    root = tmp_path / "maildir"
    owner_dir = root / OWNER

    write_message(
        owner_dir / "sent_items" / "1.",
        build_message(
            message_id="<100.allen@enron.com>",
            date="Mon, 14 May 2001 16:39:00 -0700",
            sender="Phillip K Allen <phillip.allen@enron.com>",
            to="john.arnold@enron.com",
            subject="Gas forecast",
            body="John,\nHere is the forecast for June.\nPhillip\n",
        ),
    )
    write_message(
        owner_dir / "inbox" / "1.",
        build_message(
            message_id="<200.arnold@enron.com>",
            date="Tue, 15 May 2001 09:12:00 -0700",
            sender="John Arnold <john.arnold@enron.com>",
            to="phillip.allen@enron.com",
            subject="RE: Gas forecast",
            in_reply_to="<100.allen@enron.com>",
            body="Thanks. Looping in mike.grigsby@enron.com for the west desk.\n",
        ),
    )
    write_message(
        owner_dir / "sent_items" / "2.",
        build_message(
            message_id="<300.allen@enron.com>",
            date="Tue, 15 May 2001 11:00:00 -0700",
            sender="Phillip K Allen <phillip.allen@enron.com>",
            to="john.arnold@enron.com",
            subject="Re: RE: Gas forecast",
            references="<100.allen@enron.com> <200.arnold@enron.com>",
            in_reply_to="<200.arnold@enron.com>",
            body="Sounds good.\n",
        ),
    )
    return root


@pytest.fixture
def settings(maildir: Path, tmp_path: Path):
    """Provide settings pointing at the sample corpus."""
    from mail_emulator.config import Settings

    return Settings(
        corpus_root=maildir,
        folder_owner=OWNER,
        output_dir=tmp_path / "output",
        data_dir=tmp_path / "output",
        window_end=WINDOW_END,
        parse_workers=2,
        parse_chunk_size=1,
        log_level="DEBUG",
        debug=True,
    )
