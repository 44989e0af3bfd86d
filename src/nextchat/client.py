"""Wiring of storage, conversations, settings and turns for one data directory."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import requests

from .config import STATE_PATH
from .models import ApiSettings
from .recovery import Turn, run_turn
from .settings import load_settings, save_settings, update_settings
from .storage import StateStorage
from .store import ConversationStore
from .stream import StreamSession
from .sync import SyncEngine

logger = logging.getLogger(__name__)


class ChatClient:
    """Entry point used by the CLI and the MCP server."""

    def __init__(self, storage: StateStorage, http: requests.Session | None = None):
        self.storage = storage
        self.store = ConversationStore.load(storage)
        self.engine = SyncEngine(self.store, load_settings(storage))
        self._http = http

    @classmethod
    def open(cls, db_path: Path = STATE_PATH, http: requests.Session | None = None) -> ChatClient:
        return cls(StateStorage(db_path), http=http)

    @property
    def settings(self) -> ApiSettings:
        return self.engine.settings

    def configure(self, **changes) -> ApiSettings:
        """Apply and persist setting changes (``base_url``, ``model``, ``api_key``, ``temperature``)."""
        settings = update_settings(self.engine.settings, **changes)
        save_settings(self.storage, settings)
        self.engine.settings = settings
        logger.debug("API settings updated (model=%s)", settings.model)
        return settings

    def _session(self, settings: ApiSettings) -> StreamSession:
        return StreamSession(settings, http=self._http)

    def send(
        self,
        text: str,
        on_update: Callable[[str], None] | None = None,
        on_state: Callable[[Turn], None] | None = None,
    ) -> Turn:
        return run_turn(
            self.engine,
            text,
            on_update=on_update,
            session_factory=self._session,
            on_state=on_state,
        )

    def close(self):
        self.storage.close()
