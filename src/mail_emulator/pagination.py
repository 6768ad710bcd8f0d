"""Offset-based page tokens shared by the serializer and the replay service.

A page token is the decimal offset of the first item of the page. Tokens the
service does not understand (absent, empty, non-numeric, negative) restart
from the beginning, the same way an expired token behaves upstream.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from mail_emulator.exceptions import BadRequestError

T = TypeVar("T")


def decode_page_token(token: str | None) -> int:
    if token is None:
        return 0
    token = token.strip()
    if not (token.isascii() and token.isdigit()):
        return 0
    return int(token)


def encode_page_token(offset: int) -> str:
    return str(offset)


def parse_max_results(raw: str | int | None, *, default: int, cap: int) -> int:
    """Validate ``maxResults``.

    Raises:
        BadRequestError: If the value is not a positive integer.
    """
    if raw is None or raw == "":
        return default
    try:
        value = int(str(raw).strip())
    except ValueError as exc:
        raise BadRequestError(f"Invalid value for maxResults: {raw!r}") from exc
    if value < 1:
        raise BadRequestError(f"maxResults must be a positive integer, got {value}")
    return min(value, cap)


def paginate(items: Sequence[T], *, offset: int, page_size: int) -> tuple[list[T], str | None]:
    """Slice one page and compute the token of the next one.

    Returns:
        The page items and the next page token, or None when nothing remains.
    """
    offset = max(0, offset)
    page = list(items[offset : offset + page_size])
    end = offset + len(page)
    next_token = encode_page_token(end) if end < len(items) and page else None
    return page, next_token
