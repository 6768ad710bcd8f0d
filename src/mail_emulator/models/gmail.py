"""Wire models matching the Gmail API ``users.messages`` resources.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _GmailModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessagePartHeader(_GmailModel):
    name: str
    value: str


class MessagePartBody(_GmailModel):
    size: int = 0
    data: str | None = Field(default=None, description="base64url-encoded body")


class MessagePart(_GmailModel):
    part_id: str = ""
    mime_type: str = "text/plain"
    filename: str = ""
    headers: list[MessagePartHeader] = Field(default_factory=list)
    body: MessagePartBody = Field(default_factory=MessagePartBody)

    def header(self, name: str) -> str:
        """Return the first header value matching ``name`` (case-insensitive)."""
        wanted = name.lower()
        for h in self.headers:
            if h.name.lower() == wanted:
                return h.value
        return ""


class GmailMessage(_GmailModel):
    id: str
    thread_id: str
    label_ids: list[str] = Field(default_factory=list)
    snippet: str = ""
    internal_date: str = Field(description="Epoch milliseconds as a string")
    size_estimate: int = 0
    payload: MessagePart | None = None


class MessageRef(_GmailModel):
    id: str
    thread_id: str


class ListMessagesResponse(_GmailModel):
    messages: list[MessageRef] | None = None
    next_page_token: str | None = None
    result_size_estimate: int = 0


class GmailThread(_GmailModel):
    id: str
    snippet: str = ""
    messages: list[GmailMessage] = Field(default_factory=list)


class Profile(_GmailModel):
    email_address: str
    messages_total: int
    threads_total: int
