"""Helpers for parsing raw message files into ``ParsedMessage`` models.

Parsing is lenient: archive dumps contain folded headers, mixed
charsets, bogus dates and the occasional file that is not a message at all.
Anything recoverable is normalized; anything that leaves us without a sender
raises ``MessageParseError`` so the caller can count and skip the record.
"""

from __future__ import annotations

import email
import hashlib
import re
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from email.errors import HeaderParseError
from email.header import decode_header, make_header
from email.message import Message
from email.policy import compat32
from email.utils import getaddresses, parsedate_to_datetime

from mail_emulator.exceptions import MessageParseError
from mail_emulator.models import ParsedMessage, RawRecord

_FALLBACK_ENCODINGS = ("utf-8", "cp1252", "latin-1")
_FOLD = re.compile(r"\r?\n[ \t]+")
_MSGID = re.compile(r"<([^<>\s]+)>")
_ANGLE_ADDR = re.compile(r"<[^<>]*>")
_ENRON_NAMED = re.compile(r"\s*,?\s*([^<>]+?)\s*<[^<>]*>")

# Dates outside this range are corpus noise (1979 epoch artifacts, 2044 typos).
_MIN_YEAR = 1980
_MAX_YEAR = 2037


def _best_effort_decode(data: bytes, charset: str | None = None) -> str:
    candidates = ((charset,) if charset else ()) + _FALLBACK_ENCODINGS
    for encoding in candidates:
        try:
            return data.decode(encoding)
        except (LookupError, UnicodeDecodeError):
            continue
    # Unreachable: latin-1 decodes any byte string.
    return data.decode("latin-1", errors="replace")


def _clean_header(value: str | None) -> str:
    if not value:
        return ""
    value = _FOLD.sub(" ", str(value))
    if "=?" in value:
        try:
            value = str(make_header(decode_header(value)))
        except (LookupError, UnicodeDecodeError, ValueError, HeaderParseError):
            pass
    return value.strip()


def _header_map(message: Message) -> dict[str, str]:
    result: dict[str, str] = {}
    for name, value in message.items():
        # Duplicated headers happen in forwarded dumps; keep the first.
        result.setdefault(name.lower(), _clean_header(value))
    return result


def _parse_address_list(value: str | None) -> list[tuple[str, str]]:
    """Parse an address header into unique ``(name, address)`` pairs.

    Addresses are lowercased and trimmed; entries without an ``@`` are dropped.
    """
    if not value:
        return []
    seen: dict[str, str] = {}
    for name, addr in getaddresses([value]):
        addr = addr.strip().strip("'\"").lower()
        if "@" not in addr or addr in seen:
            continue
        seen[addr] = name.strip().strip("'\"")
    return list(seen.items())


def _enron_display_name(value: str) -> str:
    # X-From: "Phillip K Allen" or "Allen, Phillip K. </O=ENRON/OU=NA/CN=RECIPIENTS/CN=PALLEN>"
    return _ANGLE_ADDR.sub("", value).strip().strip("'\"").strip()


def _enron_name_list(value: str) -> list[str]:
    # X-To: "John Arnold, Mike Grigsby" or
    # "Arnold, John </O=ENRON/...>, Grigsby, Mike </O=ENRON/...>"
    if not value:
        return []
    if "<" in value:
        parts = _ENRON_NAMED.findall(value)
    else:
        parts = value.split(",")
    return [_enron_display_name(part) for part in parts]


def _parse_message_ids(value: str | None) -> list[str]:
    if not value:
        return []
    ids = _MSGID.findall(value)
    if ids:
        return ids
    bare = value.strip()
    return [bare] if bare and " " not in bare else []


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, OverflowError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    parsed = parsed.astimezone(timezone.utc)
    if not _MIN_YEAR <= parsed.year <= _MAX_YEAR:
        return None
    return parsed


def _decode_part(part: Message) -> str:
    cte = (part.get("Content-Transfer-Encoding") or "").strip().lower()
    if cte in {"base64", "quoted-printable"}:
        data = part.get_payload(decode=True)
        if isinstance(data, bytes):
            return _best_effort_decode(data, part.get_content_charset())
    payload = part.get_payload()
    return payload if isinstance(payload, str) else ""


def _extract_body(message: Message) -> str:
    if not message.is_multipart():
        return _decode_part(message)
    for part in message.walk():
        if part.is_multipart():
            continue
        if part.get_content_type() == "text/plain" and not part.get_filename():
            return _decode_part(part)
    return ""


def _fallback_message_id(record: RawRecord) -> str:
    digest = hashlib.sha256(record.raw_bytes).hexdigest()[:24]
    return f"{digest}@{record.folder_owner}.local"


def parse_raw_record(record: RawRecord) -> ParsedMessage:
    """Parse a raw message file.

    Args:
        record: Raw bytes and provenance of one message file.

    Returns:
        ParsedMessage: Normalized message. ``original_timestamp`` is None and
        ``date_flagged`` is set when the Date header is missing or unusable.

    Raises:
        MessageParseError: If the record has no headers or no sender address.
    """
    source = str(record.source_path)
    if not record.raw_bytes.strip():
        raise MessageParseError("empty record", source)

    text = _best_effort_decode(record.raw_bytes)
    message = email.message_from_string(text, policy=compat32)
    if not message.keys():
        raise MessageParseError("no headers", source)

    hm = _header_map(message)

    from_pairs = _parse_address_list(hm.get("from"))
    if not from_pairs:
        raise MessageParseError("missing or unparseable From header", source)
    from_address, from_name = from_pairs[0]

    to_pairs = _parse_address_list(hm.get("to"))
    cc_pairs = _parse_address_list(hm.get("cc"))

    display_names: dict[str, str] = {}
    for addr, name in (*to_pairs, *cc_pairs):
        if name and name.lower() != addr:
            display_names.setdefault(addr, name)
    # Enron keeps recipient names in X-To/X-cc, positionally aligned with To/Cc.
    for header, pairs in (("x-to", to_pairs), ("x-cc", cc_pairs)):
        names = _enron_name_list(hm.get(header, ""))
        if len(names) != len(pairs):
            continue
        for (addr, _), name in zip(pairs, names):
            if name and "@" not in name:
                display_names.setdefault(addr, name)
    sender_name = from_name or _enron_display_name(hm.get("x-from", ""))
    if sender_name and sender_name.lower() != from_address:
        display_names[from_address] = sender_name

    ids = _parse_message_ids(hm.get("message-id"))
    original_message_id = ids[0] if ids else _fallback_message_id(record)

    refs = _parse_message_ids(hm.get("references"))
    for parent in _parse_message_ids(hm.get("in-reply-to")):
        if parent in refs:
            refs.remove(parent)
        refs.append(parent)
    refs = [r for r in dict.fromkeys(refs) if r != original_message_id]

    timestamp = _parse_date(hm.get("date"))

    return ParsedMessage(
        original_message_id=original_message_id,
        thread_refs=refs,
        from_address=from_address,
        to_addresses=[addr for addr, _ in to_pairs],
        cc_addresses=[addr for addr, _ in cc_pairs],
        display_names=display_names,
        subject=hm.get("subject", ""),
        body_text=_extract_body(message).replace("\r\n", "\n"),
        original_timestamp=timestamp,
        date_flagged=timestamp is None,
        folder_owner=record.folder_owner,
        folders=[record.folder],
        ordinal=record.ordinal,
        modified_at=record.modified_at,
        source_path=source,
    )


def backfill_timestamps(messages: Sequence[ParsedMessage]) -> list[ParsedMessage]:
    """Give every undated message a timestamp inferred from its folder.

    Within each folder, files are taken in walk order. An undated message gets
    the timestamp of the nearest earlier dated file plus one second per step,
    or, if only later files are dated, the nearest later one minus one second
    per step. A folder with no dated file at all falls back to file mtimes.
    Messages keep ``date_flagged=True`` so the inference stays visible.
    """
    result = list(messages)
    by_folder: dict[tuple[str, str], list[int]] = defaultdict(list)
    for i, m in enumerate(result):
        by_folder[(m.folder_owner, m.folders[0] if m.folders else "")].append(i)

    for indices in by_folder.values():
        indices.sort(key=lambda i: result[i].ordinal)
        original = [result[i].original_timestamp for i in indices]
        if all(ts is not None for ts in original):
            continue

        filled = list(original)
        last: datetime | None = None
        gap = 0
        for pos, ts in enumerate(original):
            if ts is not None:
                last, gap = ts, 0
            elif last is not None:
                gap += 1
                filled[pos] = last + timedelta(seconds=gap)

        following: datetime | None = None
        gap = 0
        for pos in reversed(range(len(original))):
            if original[pos] is not None:
                following, gap = original[pos], 0
            elif filled[pos] is None and following is not None:
                gap += 1
                filled[pos] = following - timedelta(seconds=gap)

        for pos, i in enumerate(indices):
            if original[pos] is not None:
                continue
            ts = filled[pos]
            if ts is None:
                ts = datetime.fromtimestamp(result[i].modified_at, tz=timezone.utc)
            result[i] = result[i].model_copy(update={"original_timestamp": ts})

    return result
