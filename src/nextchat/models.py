"""Data models for conversations, API settings and the completion stream."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .config import (
    COMPLETIONS_PATH,
    DEFAULT_API_KEY,
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    DEFAULT_TITLE,
)


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    id: str = Field(default_factory=new_id)
    role: Literal["user", "assistant"]
    content: str = ""
    timestamp: datetime = Field(default_factory=utcnow)

    def to_api_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class Conversation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id)
    title: str = DEFAULT_TITLE
    messages: list[Message] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=utcnow, alias="lastUpdated")
    error: str | None = None

    def touch(self):
        self.last_updated = utcnow()

    def find_message(self, message_id: str) -> Message | None:
        for msg in self.messages:
            if msg.id == message_id:
                return msg
        return None

    def to_json(self) -> dict:
        """Serialize with wire names (``lastUpdated``) and ISO-8601 timestamps."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ApiSettings(BaseModel):
    """Connection settings for the completion endpoint.

    Frozen so a send always sees one consistent snapshot.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    base_url: str = Field(default=DEFAULT_BASE_URL, alias="baseUrl")
    model: str = DEFAULT_MODEL
    api_key: str = Field(default=DEFAULT_API_KEY, alias="apiKey")
    temperature: float = DEFAULT_TEMPERATURE

    def missing_fields(self) -> list[str]:
        """Return the wire names of required settings that are blank."""
        required = {"baseUrl": self.base_url, "model": self.model, "apiKey": self.api_key}
        return [name for name, value in required.items() if not value or not value.strip()]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    @property
    def completions_url(self) -> str:
        return self.base_url.rstrip("/") + COMPLETIONS_PATH

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class CompletionRequest(BaseModel):
    model: str
    messages: list[dict[str, str]]
    stream: bool = True


# Streaming delta schema. Every field is optional so a sparse chunk still
# validates; a chunk that is not an object at all fails validation.


class Delta(BaseModel):
    content: str | None = None


class Choice(BaseModel):
    delta: Delta = Field(default_factory=Delta)
    index: int = 0
    finish_reason: str | None = None


class StreamChunk(BaseModel):
    id: str = ""
    object: str = ""
    created: int = 0
    model: str = ""
    choices: list[Choice] = Field(default_factory=list)

    @property
    def delta_content(self) -> str:
        """Content fragment of the first choice, or an empty string."""
        if not self.choices:
            return ""
        return self.choices[0].delta.content or ""
