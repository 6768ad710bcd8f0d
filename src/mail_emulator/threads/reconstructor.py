"""Rebuild conversation threads from reference chains and subjects.

The reconstruction is a pure function over the complete set of parsed
messages:

1. Every message id, and every id it references, is a node in a union-find
   forest. Referenced ids that are not in the corpus stay in the forest as
   phantom nodes, so two replies to the same missing parent still meet.
2. Messages without any reference header are joined, by normalized subject
   within the same mailbox owner, to the earliest message carrying that
   subject key.
3. Each resulting group picks a root and is named after it.

This is a heuristic. Unrelated mails sharing a generic subject ("hello",
"update") can be merged, and a reply whose headers were stripped and whose
subject was edited ends up in a thread of its own. Both outcomes are
accepted approximations, not bugs.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime, timezone

import structlog

from mail_emulator.models import ParsedMessage, Thread
from mail_emulator.utils import has_reply_prefix, normalize_subject, synthetic_id

logger = structlog.get_logger()

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class _UnionFind:
    def __init__(self) -> None:
        self._parent: dict[str, str] = {}

    def add(self, item: str) -> None:
        self._parent.setdefault(item, item)

    def find(self, item: str) -> str:
        self.add(item)
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        # Path compression.
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: str, b: str) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return
        # Smaller string wins so the forest shape does not depend on input order.
        if rb < ra:
            ra, rb = rb, ra
        self._parent[rb] = ra


def _sort_key(message: ParsedMessage) -> tuple[datetime, str]:
    return (message.original_timestamp or _EPOCH, message.original_message_id)


def _pick_root(members: list[ParsedMessage]) -> ParsedMessage:
    """Choose the root message of a group (``members`` sorted oldest first)."""
    present = {m.original_message_id for m in members}
    # Candidates reply to nothing we have.
    candidates = [m for m in members if not any(ref in present for ref in m.thread_refs)]
    if len(candidates) == 1:
        return candidates[0]

    originals = [m for m in candidates if not has_reply_prefix(m.subject)]
    if len(originals) == 1:
        return originals[0]

    pool = originals or candidates or members
    return min(pool, key=_sort_key)


def reconstruct_threads(messages: Sequence[ParsedMessage]) -> list[Thread]:
    """Group messages into threads.

    Args:
        messages: Parsed messages with unique ``original_message_id`` values.

    Returns:
        Threads ordered by their oldest message. Every input message appears in
        exactly one thread.
    """
    uf = _UnionFind()
    for m in messages:
        uf.add(m.original_message_id)
        for ref in m.thread_refs:
            uf.union(m.original_message_id, ref)

    # Subject fallback: the earliest message per (owner, subject key) anchors the key.
    anchors: dict[tuple[str, str], str] = {}
    for m in sorted(messages, key=_sort_key):
        key = normalize_subject(m.subject)
        if key:
            anchors.setdefault((m.folder_owner, key), m.original_message_id)

    fallback_joins = 0
    for m in messages:
        if m.thread_refs:
            continue
        key = normalize_subject(m.subject)
        if not key:
            continue
        anchor = anchors[(m.folder_owner, key)]
        if uf.find(anchor) != uf.find(m.original_message_id):
            uf.union(anchor, m.original_message_id)
            fallback_joins += 1

    groups: dict[str, list[ParsedMessage]] = defaultdict(list)
    for m in messages:
        groups[uf.find(m.original_message_id)].append(m)

    keyed: list[tuple[tuple[datetime, str], Thread]] = []
    for members in groups.values():
        members.sort(key=_sort_key)
        root = _pick_root(members)
        participants = sorted({addr for m in members for addr in m.participants})
        keyed.append(
            (
                _sort_key(members[0]),
                Thread(
                    thread_id=synthetic_id(root.original_message_id),
                    root_message_id=root.original_message_id,
                    message_ids=[m.original_message_id for m in members],
                    participants=participants,
                ),
            )
        )

    keyed.sort(key=lambda pair: (pair[0], pair[1].thread_id))
    threads = [t for _, t in keyed]
    logger.info(
        "threads_reconstructed",
        message_count=len(messages),
        thread_count=len(threads),
        subject_fallback_joins=fallback_joins,
    )
    return threads


def thread_index(threads: Sequence[Thread]) -> dict[str, str]:
    """Map each original message id to its thread id."""
    return {mid: t.thread_id for t in threads for mid in t.message_ids}
