"""Streaming chat-completion client.

Sends one completion request and turns the ``data: <json>`` line stream into
a sequence of accumulated-content updates.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import Callable, Iterable

import requests
from pydantic import ValidationError

from .config import DATA_PREFIX, DONE_LINE, GENERIC_HTTP_ERROR, REQUEST_TIMEOUT
from .errors import HttpError, NetworkError, StreamParseError
from .models import ApiSettings, CompletionRequest, StreamChunk

logger = logging.getLogger(__name__)


class LineBuffer:
    """Incremental bytes-to-lines decoder.

    The decoder keeps its state between reads, so a multi-byte character
    split across two chunks is reassembled. An unterminated trailing line is
    held back and prefixed to the next chunk.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    def feed(self, data: bytes) -> list[str]:
        text = self._pending + self._decoder.decode(data)
        lines = text.split("\n")
        self._pending = lines.pop()
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> list[str]:
        """Return whatever is left once the stream has ended."""
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return [text.rstrip("\r")] if text else []


def parse_line(line: str) -> StreamChunk | None:
    """Parse one stream line.

    Returns None for lines that carry no data: blank lines, the ``[DONE]``
    terminator and lines without the ``data: `` prefix. Raises
    StreamParseError when the payload is not a valid completion chunk.
    """
    stripped = line.strip()
    if not stripped or stripped == DONE_LINE:
        return None
    if not line.startswith(DATA_PREFIX):
        logger.debug("Ignoring non-data line: %r", line[:80])
        return None

    try:
        return StreamChunk.model_validate_json(line[len(DATA_PREFIX):])
    except ValidationError as e:
        first = e.errors()[0]
        raise StreamParseError(f"Malformed stream line ({first['type']}): {line[:80]!r}") from e


def _error_message(response: requests.Response) -> str:
    """Pull ``error.message`` out of an error body, falling back to a generic text."""
    try:
        data = response.json()
    except ValueError:
        return GENERIC_HTTP_ERROR

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return GENERIC_HTTP_ERROR


class StreamSession:
    """One streamed completion request against an OpenAI-compatible endpoint."""

    def __init__(
        self,
        settings: ApiSettings,
        http: requests.Session | None = None,
        timeout: float | None = REQUEST_TIMEOUT,
    ):
        self.settings = settings
        self.http = http or requests.Session()
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.api_key}",
        }

    def run(
        self,
        payload: CompletionRequest | dict,
        on_update: Callable[[str], None] | None = None,
        on_response: Callable[[], None] | None = None,
    ) -> str:
        """Send ``payload`` and stream the reply.

        Args:
            payload: The completion request body.
            on_update: Called with the full accumulated content after every
                parsed line.
            on_response: Called once when a 2xx response has been accepted,
                before any content is read.

        Returns:
            The final accumulated content.

        Raises:
            HttpError: The endpoint answered with a non-2xx status.
            NetworkError: The request or the stream failed at transport level.
        """
        body = payload.model_dump() if isinstance(payload, CompletionRequest) else payload
        url = self.settings.completions_url
        logger.debug("POST %s (model=%s, %d messages)", url, body.get("model"), len(body.get("messages", [])))

        try:
            response = self.http.post(
                url,
                data=json.dumps(body),
                headers=self._headers(),
                stream=True,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise NetworkError(f"Could not reach {url}: {e}") from e

        with response:
            if not 200 <= response.status_code < 300:
                raise HttpError(response.status_code, _error_message(response))

            if on_response is not None:
                on_response()
            return self._read(response, on_update)

    def _read(self, response: requests.Response, on_update: Callable[[str], None] | None) -> str:
        buffer = LineBuffer()
        accumulated = ""

        try:
            for chunk in response.iter_content(chunk_size=None):
                if chunk:
                    accumulated = self._consume(buffer.feed(chunk), accumulated, on_update)
        except requests.RequestException as e:
            raise NetworkError(f"Stream interrupted: {e}") from e

        return self._consume(buffer.flush(), accumulated, on_update)

    @staticmethod
    def _consume(
        lines: Iterable[str],
        accumulated: str,
        on_update: Callable[[str], None] | None,
    ) -> str:
        for line in lines:
            try:
                chunk = parse_line(line)
            except StreamParseError as e:
                logger.warning("Skipping stream line: %s", e)
                continue

            if chunk is None:
                continue

            accumulated += chunk.delta_content
            if on_update is not None:
                on_update(accumulated)

        return accumulated
