"""Read-only Gmail ``users.messages`` surface.

Routes are mounted under ``/{api_version}/users/{user_id}`` (and again under
``/gmail`` by the app factory so a Gmail client's base URL works unchanged).
``user_id`` accepts ``me`` or the dataset's test account address.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query, Request

from mail_emulator.config import Settings
from mail_emulator.exceptions import BadRequestError, DatasetNotReadyError, NotFoundError
from mail_emulator.models import GmailMessage, GmailThread, ListMessagesResponse, MessagePartBody, Profile
from mail_emulator.pagination import decode_page_token, parse_max_results
from mail_emulator.serialization import build_list_response

from .query import parse_query
from .store import MessageStore

logger = structlog.get_logger()

router = APIRouter(prefix="/{api_version}/users/{user_id}", tags=["messages"])

_FORMATS = frozenset({"full", "metadata", "minimal"})


def get_store(request: Request) -> MessageStore:
    store: MessageStore = request.app.state.store
    if not store.ready:
        raise DatasetNotReadyError("The dataset is still loading. Retry shortly.")
    return store


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _check_scope(api_version: str, user_id: str, store: MessageStore, settings: Settings) -> None:
    if api_version != settings.api_version:
        raise NotFoundError(f"Unknown API version: {api_version}")
    if user_id != "me" and user_id.lower() != (store.self_email or "me"):
        raise NotFoundError(f"Unknown user: {user_id}")


def render_message(message: GmailMessage, fmt: str, metadata_headers: list[str] | None = None) -> GmailMessage:
    """Project a stored (full) message onto the requested ``format``.

    Raises:
        BadRequestError: For unsupported formats.
    """
    fmt = fmt.lower()
    if fmt not in _FORMATS:
        raise BadRequestError(f"Unsupported format: {fmt!r}. Use one of: full, metadata, minimal")
    if fmt == "minimal":
        return message.model_copy(update={"payload": None})
    if fmt == "full" or message.payload is None:
        return message

    headers = message.payload.headers
    if metadata_headers:
        wanted = {h.lower() for h in metadata_headers}
        headers = [h for h in headers if h.name.lower() in wanted]
    payload = message.payload.model_copy(
        update={"headers": headers, "body": MessagePartBody(size=message.payload.body.size)}
    )
    return message.model_copy(update={"payload": payload})


@router.get("/messages", response_model=ListMessagesResponse, response_model_exclude_none=True)
def list_messages(
    api_version: str,
    user_id: str,
    page_token: str | None = Query(default=None, alias="pageToken"),
    max_results: str | None = Query(default=None, alias="maxResults"),
    q: str | None = Query(default=None),
    label_ids: list[str] | None = Query(default=None, alias="labelIds"),
    store: MessageStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> ListMessagesResponse:
    _check_scope(api_version, user_id, store, settings)

    page_size = parse_max_results(
        max_results,
        default=settings.default_max_results,
        cap=settings.max_results_cap,
    )
    offset = decode_page_token(page_token)
    matched = store.search(parse_query(q), label_ids)
    response = build_list_response(matched, offset=offset, page_size=page_size)

    logger.debug(
        "replay_messages_listed",
        q=q,
        offset=offset,
        page_size=page_size,
        total=response.result_size_estimate,
        next_page_token=response.next_page_token,
    )
    return response


@router.get("/messages/{message_id}", response_model=GmailMessage, response_model_exclude_none=True)
def get_message(
    api_version: str,
    user_id: str,
    message_id: str,
    message_format: str = Query(default="full", alias="format"),
    metadata_headers: list[str] | None = Query(default=None, alias="metadataHeaders"),
    store: MessageStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> GmailMessage:
    _check_scope(api_version, user_id, store, settings)
    return render_message(store.get(message_id), message_format, metadata_headers)


@router.get("/threads/{thread_id}", response_model=GmailThread, response_model_exclude_none=True)
def get_thread(
    api_version: str,
    user_id: str,
    thread_id: str,
    message_format: str = Query(default="full", alias="format"),
    metadata_headers: list[str] | None = Query(default=None, alias="metadataHeaders"),
    store: MessageStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> GmailThread:
    _check_scope(api_version, user_id, store, settings)
    messages = [render_message(m, message_format, metadata_headers) for m in store.thread(thread_id)]
    return GmailThread(id=thread_id, snippet=messages[-1].snippet, messages=messages)


@router.get("/profile", response_model=Profile)
def get_profile(
    api_version: str,
    user_id: str,
    store: MessageStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> Profile:
    _check_scope(api_version, user_id, store, settings)
    return Profile(
        email_address=store.self_email or "me",
        messages_total=len(store),
        threads_total=store.thread_count,
    )
