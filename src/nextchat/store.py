"""Conversation list and active-conversation pointer."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from .config import ACTIVE_KEY, CONVERSATIONS_KEY
from .errors import FormatError, PersistenceError
from .models import Conversation, Message
from .storage import StateStorage

logger = logging.getLogger(__name__)


class ConversationStore:
    """Authoritative in-memory copy of all conversations.

    The active view is a read of the active entry, never a second copy.
    Every completed mutation is written through to ``storage`` when one is
    attached, so memory and disk agree after each call returns.
    """

    def __init__(
        self,
        conversations: list[Conversation] | None = None,
        storage: StateStorage | None = None,
    ):
        self._storage = storage
        self._conversations: list[Conversation] = list(conversations or []) or [Conversation()]
        self._active_id = self._conversations[0].id

    @classmethod
    def load(cls, storage: StateStorage) -> ConversationStore:
        """Restore the persisted list and active pointer.

        Falls back to the first conversation when the saved pointer is
        missing or stale, and to one fresh conversation when nothing valid
        is stored. Invalid entries are skipped; the stored value is only
        rewritten by the next mutation.
        """
        raw = storage.load(CONVERSATIONS_KEY)
        conversations: list[Conversation] = []

        if isinstance(raw, list):
            for i, entry in enumerate(raw):
                try:
                    conversations.append(Conversation.model_validate(entry))
                except ValidationError as e:
                    err = PersistenceError(f"Stored conversation #{i} is invalid ({e.error_count()} errors)")
                    logger.warning("%s; skipping it", err)
        elif raw is not None:
            logger.warning("Stored conversations are not a list; starting fresh")

        store = cls(conversations, storage=storage)
        if CONVERSATIONS_KEY not in storage.keys():
            store._commit()
        if not conversations:
            return store

        active_id = storage.load(ACTIVE_KEY)
        if isinstance(active_id, str) and active_id in store:
            store._active_id = active_id
        logger.debug("Loaded %d conversations from storage", len(conversations))
        return store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def conversations(self) -> list[Conversation]:
        return list(self._conversations)

    @property
    def active_id(self) -> str:
        return self._active_id

    @property
    def active(self) -> Conversation:
        return self.get(self._active_id)

    @property
    def active_messages(self) -> list[Message]:
        """The active view: the active conversation's own message list."""
        return self.active.messages

    def get(self, conversation_id: str) -> Conversation:
        for conv in self._conversations:
            if conv.id == conversation_id:
                return conv
        raise KeyError(conversation_id)

    def __contains__(self, conversation_id: object) -> bool:
        return any(c.id == conversation_id for c in self._conversations)

    def __len__(self) -> int:
        return len(self._conversations)

    # ------------------------------------------------------------------
    # Conversation lifecycle
    # ------------------------------------------------------------------

    def select_conversation(self, conversation_id: str) -> Conversation:
        conv = self.get(conversation_id)
        self._active_id = conv.id
        self._save_active()
        return conv

    def create_conversation(self) -> Conversation:
        conv = Conversation()
        self._conversations.insert(0, conv)
        self._active_id = conv.id
        self._commit()
        return conv

    def delete_conversation(self, conversation_id: str):
        conv = self.get(conversation_id)
        self._conversations.remove(conv)

        if not self._conversations:
            fresh = Conversation()
            self._conversations.append(fresh)
            self._active_id = fresh.id
        elif conversation_id == self._active_id:
            self._active_id = self._conversations[0].id

        self._commit()

    def rename_conversation(self, conversation_id: str, title: str) -> Conversation:
        """Set a new title. Blank titles leave the conversation unchanged."""
        conv = self.get(conversation_id)
        if title and title.strip():
            conv.title = title.strip()
            conv.touch()
            self._commit()
        return conv

    def clear_messages(self, conversation_id: str):
        conv = self.get(conversation_id)
        conv.messages.clear()
        conv.touch()
        self._commit()

    # ------------------------------------------------------------------
    # Message mutations (driven by SyncEngine)
    # ------------------------------------------------------------------

    def append_messages(self, conversation_id: str, *messages: Message):
        conv = self.get(conversation_id)
        conv.messages.extend(messages)
        conv.touch()
        self._commit()

    def update_message(self, conversation_id: str, message_id: str, content: str) -> bool:
        """Replace a message's content by id. Returns False if it no longer exists."""
        conv = self.get(conversation_id)
        msg = conv.find_message(message_id)
        if msg is None:
            return False
        msg.content = content
        conv.touch()
        self._commit()
        return True

    def remove_message(self, conversation_id: str, message_id: str, error: str | None = None) -> bool:
        conv = self.get(conversation_id)
        msg = conv.find_message(message_id)
        if msg is not None:
            conv.messages.remove(msg)
        if error is not None:
            conv.error = error
        self._commit()
        return msg is not None

    def touch(self, conversation_id: str):
        self.get(conversation_id).touch()
        self._commit()

    # ------------------------------------------------------------------
    # Bulk import / export
    # ------------------------------------------------------------------

    def import_all(self, data: Any) -> int:
        """Replace every conversation with ``data``.

        Raises FormatError, leaving the current list untouched, unless
        ``data`` is a list of valid conversations.
        """
        if not isinstance(data, list):
            raise FormatError("Import data must be a JSON array of conversations")

        try:
            conversations = [Conversation.model_validate(c) for c in data]
        except ValidationError as e:
            raise FormatError(f"Invalid conversation data ({e.error_count()} errors)") from e

        if not conversations:
            conversations = [Conversation()]

        self._conversations = conversations
        if self._active_id not in self:
            self._active_id = conversations[0].id

        self._commit()
        logger.info("Imported %d conversations", len(conversations))
        return len(conversations)

    def export_all(self) -> list[dict]:
        """JSON-serializable deep copy of every conversation."""
        return [c.to_json() for c in self._conversations]

    def _commit(self):
        if self._storage is not None:
            self._storage.save(CONVERSATIONS_KEY, self.export_all())
            self._save_active()

    def _save_active(self):
        if self._storage is not None:
            self._storage.save(ACTIVE_KEY, self._active_id)
