"""Utility functions for Mail Emulator."""

from __future__ import annotations

import hashlib
import re

RE_PREFIX = re.compile(r"^\s*((re|fwd?|aw|wg)\s*(\[\d+\])?\s*:\s*)+", re.IGNORECASE)
RE_WHITESPACE = re.compile(r"\s+")

SYNTHETIC_ID_LENGTH = 16


def stable_hash(value: str) -> int:
    """Hash a string to an integer that is identical across processes and runs.

    The builtin ``hash()`` is salted per process, so anything that must be
    reproducible goes through SHA-256 instead.
    """
    return int.from_bytes(hashlib.sha256(value.encode("utf-8")).digest()[:8], "big")


def synthetic_id(original_message_id: str) -> str:
    """Derive a Gmail-style 16 hex digit id from an original Message-ID."""
    digest = hashlib.sha256(f"message:{original_message_id}".encode("utf-8")).hexdigest()
    return digest[:SYNTHETIC_ID_LENGTH]


def collapse_whitespace(text: str) -> str:
    return RE_WHITESPACE.sub(" ", text).strip()


def normalize_subject(subject: str | None) -> str:
    """Case-fold a subject, strip reply/forward prefixes and collapse whitespace.

    Returns an empty string when nothing meaningful is left.
    """
    if not subject:
        return ""
    s = RE_PREFIX.sub("", subject)
    return collapse_whitespace(s).casefold()


def has_reply_prefix(subject: str | None) -> bool:
    return bool(subject) and RE_PREFIX.match(subject) is not None


SENT_FOLDERS = frozenset({"sent", "sent_items", "sent items", "sent_mail", "_sent_mail", "sent messages"})
TRASH_FOLDERS = frozenset({"deleted_items", "deleted items", "trash", "deleted"})


def is_sent_folder(folder: str) -> bool:
    return folder.strip().lower() in SENT_FOLDERS


def is_trash_folder(folder: str) -> bool:
    return folder.strip().lower() in TRASH_FOLDERS
