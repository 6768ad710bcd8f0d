"""A small subset of the Gmail search syntax for ``users.messages.list?q=``.

Supported: free words, ``"quoted phrases"``, ``-negation`` and the operators
``from:``, ``to:``, ``cc:``, ``subject:``, ``label:``/``in:``, ``after:`` and
``before:``. All terms must match (implicit AND). Text matching is a
case-insensitive substring test; ``OR`` and parentheses are not supported and
are matched literally.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache

from mail_emulator.exceptions import BadRequestError
from mail_emulator.timeshift import to_epoch_ms

_TOKEN = re.compile(r'(-)?(?:([A-Za-z_]+):)?(?:"([^"]*)"|(\S+))')
_TEXT_FIELDS = frozenset({"from", "to", "cc", "subject"})
_LABEL_FIELDS = frozenset({"label", "in"})
_DATE_FIELDS = frozenset({"after", "before"})
_OPERATORS = _TEXT_FIELDS | _LABEL_FIELDS | _DATE_FIELDS


@dataclass(frozen=True)
class QueryTerm:
    """One search term. ``field`` is None for free text."""

    value: str
    field: str | None = None
    negated: bool = False


@dataclass(frozen=True)
class SearchDocument:
    """Pre-lowercased searchable view of one message."""

    subject: str
    sender: str
    to: str
    cc: str
    text: str
    labels: frozenset[str]
    internal_date_ms: int


@lru_cache(maxsize=256)
def _parse_date_ms(raw: str) -> int:
    if raw.isascii() and raw.isdigit():
        return int(raw) * 1000
    for fmt in ("%Y/%m/%d", "%Y-%m-%d"):
        try:
            return to_epoch_ms(datetime.strptime(raw, fmt).replace(tzinfo=timezone.utc))
        except ValueError:
            continue
    raise BadRequestError(f"Invalid date in query: {raw!r}")


def parse_query(q: str | None) -> list[QueryTerm]:
    """Tokenize a query string.

    Raises:
        BadRequestError: If an ``after:``/``before:`` date cannot be parsed.
    """
    if not q or not q.strip():
        return []

    terms: list[QueryTerm] = []
    for match in _TOKEN.finditer(q):
        negated = match.group(1) is not None
        field = (match.group(2) or "").lower() or None
        value = match.group(3) if match.group(3) is not None else match.group(4)

        if field is not None and field not in _OPERATORS:
            # Not an operator ("https://...", "re:"), keep the token as text.
            value = f"{match.group(2)}:{value}"
            field = None
        if not value:
            continue
        if field in _DATE_FIELDS:
            _parse_date_ms(value)
        terms.append(QueryTerm(value=value, field=field, negated=negated))
    return terms


def _term_matches(doc: SearchDocument, term: QueryTerm) -> bool:
    needle = term.value.lower()
    if term.field is None:
        return needle in doc.text
    if term.field == "from":
        return needle in doc.sender
    if term.field == "to":
        return needle in doc.to
    if term.field == "cc":
        return needle in doc.cc
    if term.field == "subject":
        return needle in doc.subject
    if term.field in _LABEL_FIELDS:
        return needle == "anywhere" or needle.upper() in doc.labels
    if term.field == "after":
        return doc.internal_date_ms >= _parse_date_ms(term.value)
    if term.field == "before":
        return doc.internal_date_ms < _parse_date_ms(term.value)
    return False


def matches(doc: SearchDocument, terms: list[QueryTerm]) -> bool:
    return all(_term_matches(doc, t) != t.negated for t in terms)
