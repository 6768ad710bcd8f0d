"""Lazy, restartable walk over one mailbox owner's message files."""

from __future__ import annotations

import os
import re
from collections.abc import Iterator
from pathlib import Path

import structlog

from mail_emulator.exceptions import ConfigurationError
from mail_emulator.models import RawRecord

logger = structlog.get_logger()

# Names that show up next to message files but are never messages themselves.
_INDEX_NAMES = frozenset({"index", "index.html", "index.txt", "desktop.ini", "thumbs.db"})
_INDEX_SUFFIXES = frozenset({".json", ".html", ".htm", ".db", ".sqlite", ".sqlite3", ".csv", ".idx"})

_DIGITS = re.compile(r"(\d+)")


def _natural_key(name: str) -> list[object]:
    # "2." sorts before "10."
    return [int(part) if part.isdigit() else part.lower() for part in _DIGITS.split(name)]


def _is_candidate(name: str) -> bool:
    if name.startswith("."):
        return False
    lowered = name.lower()
    if lowered in _INDEX_NAMES:
        return False
    return os.path.splitext(lowered)[1] not in _INDEX_SUFFIXES


def list_owners(root: Path) -> list[str]:
    """Return the mailbox owner directories under ``root``, sorted.

    Raises:
        ConfigurationError: If ``root`` is not a directory.
    """
    if not root.is_dir():
        raise ConfigurationError(f"Corpus root not found or not a directory: {root}")
    return sorted(
        (p.name for p in root.iterdir() if p.is_dir() and not p.name.startswith(".")),
        key=_natural_key,
    )


class CorpusReader:
    """Yields one ``RawRecord`` per message file of a mailbox owner.

    Each call to ``iter()`` starts a fresh walk, so the reader can be consumed
    more than once. Files are visited in natural sort order per directory so
    the walk order is stable across machines.
    """

    def __init__(self, root: Path, owner: str) -> None:
        """Create a reader.

        Args:
            root: Corpus root directory.
            owner: Name of the owner directory under ``root``.

        Raises:
            ConfigurationError: If the root or the owner directory is missing.
        """
        self.root = Path(root)
        self.owner = owner
        self.unreadable_count = 0

        if not self.root.is_dir():
            raise ConfigurationError(f"Corpus root not found or not a directory: {self.root}")
        if not owner or "/" in owner or "\\" in owner or owner in {".", ".."}:
            raise ConfigurationError(f"Invalid folder owner: {owner!r}")

        self.owner_dir = self.root / owner
        if not self.owner_dir.is_dir():
            raise ConfigurationError(
                f"Folder owner {owner!r} not found under {self.root}. "
                f"Available owners: {', '.join(list_owners(self.root)[:10]) or '(none)'}"
            )

    def __iter__(self) -> Iterator[RawRecord]:
        self.unreadable_count = 0
        ordinal = 0
        for path in self._walk(self.owner_dir):
            try:
                raw = path.read_bytes()
                mtime = path.stat().st_mtime
            except OSError as exc:
                self.unreadable_count += 1
                logger.warning("corpus_record_unreadable", path=str(path), error=str(exc))
                continue

            relative = path.relative_to(self.owner_dir)
            folder = relative.parts[0] if len(relative.parts) > 1 else ""
            yield RawRecord(
                source_path=path,
                folder_owner=self.owner,
                folder=folder,
                ordinal=ordinal,
                modified_at=mtime,
                raw_bytes=raw,
            )
            ordinal += 1

    def _walk(self, directory: Path) -> Iterator[Path]:
        try:
            entries = sorted(os.scandir(directory), key=lambda e: _natural_key(e.name))
        except OSError as exc:
            logger.warning("corpus_directory_unreadable", path=str(directory), error=str(exc))
            return

        for entry in entries:
            if entry.name.startswith("."):
                continue
            if entry.is_dir(follow_symlinks=False):
                yield from self._walk(Path(entry.path))
            elif entry.is_file() and _is_candidate(entry.name):
                yield Path(entry.path)
