"""Shared fixtures: fake HTTP responses, storage and settings."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from nextchat.models import ApiSettings
from nextchat.storage import StateStorage


def sse(content=None, finish_reason=None) -> bytes:
    """One ``data:`` line in the completion-delta format."""
    delta = {} if content is None else {"content": content}
    chunk = {
        "id": "chatcmpl-123",
        "object": "chat.completion.chunk",
        "created": 1735379793,
        "model": "gpt-4o-mini",
        "choices": [{"delta": delta, "index": 0, "finish_reason": finish_reason}],
    }
    return f"data: {json.dumps(chunk, ensure_ascii=False)}\n\n".encode()


DONE = b"data: [DONE]\n\n"


class FakeResponse:
    """Stand-in for a streamed ``requests.Response``."""

    def __init__(self, chunks=(), status_code=200, body=None, error=None):
        self.status_code = status_code
        self._chunks = list(chunks)
        self._body = body
        self._error = error
        self.closed = False

    def json(self):
        if self._body is None:
            raise ValueError("Expecting value")
        return self._body

    def iter_content(self, chunk_size=None):
        yield from self._chunks
        if self._error is not None:
            raise self._error

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True
        return False


def make_http(response: FakeResponse | None = None, error: Exception | None = None) -> MagicMock:
    http = MagicMock(spec=requests.Session)
    if error is not None:
        http.post.side_effect = error
    else:
        http.post.return_value = response
    return http


@pytest.fixture
def settings():
    return ApiSettings(
        base_url="https://api.example.com/v1",
        model="gpt-4o-mini",
        api_key="sk-test-key",
        temperature=0.7,
    )


@pytest.fixture
def storage(tmp_path):
    s = StateStorage(tmp_path / "state.db")
    yield s
    s.close()
