"""Single writer applying turn events to the conversation store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .errors import TurnInProgressError
from .models import ApiSettings, CompletionRequest, Message
from .settings import require_complete
from .store import ConversationStore

logger = logging.getLogger(__name__)


@dataclass
class PendingTurn:
    """Identity of an in-flight turn, captured when it starts.

    Updates for the turn always target ``conversation_id``, whatever the
    active conversation is by the time they arrive.
    """

    conversation_id: str
    message_id: str
    settings: ApiSettings
    history: list[dict[str, str]] = field(default_factory=list)


class SyncEngine:
    """Turn-level mutations of a ConversationStore.

    A conversation with a turn in flight is marked busy; a second turn
    against it is rejected until the first is finalized or rolled back.
    """

    def __init__(self, store: ConversationStore, settings: ApiSettings):
        self.store = store
        self.settings = settings
        self._busy: set[str] = set()

    def is_busy(self, conversation_id: str) -> bool:
        return conversation_id in self._busy

    def begin_turn(self, user_text: str) -> PendingTurn:
        """Append the user message and an empty assistant placeholder.

        Raises:
            ConfigurationError: A required API setting is blank. Nothing is
                appended.
            ValueError: ``user_text`` is blank.
            TurnInProgressError: The active conversation is already streaming.
        """
        settings = self.settings
        require_complete(settings)
        if not user_text or not user_text.strip():
            raise ValueError("Message is empty")

        conversation_id = self.store.active_id
        if conversation_id in self._busy:
            raise TurnInProgressError(conversation_id)

        user_msg = Message(role="user", content=user_text)
        placeholder = Message(role="assistant")
        self.store.append_messages(conversation_id, user_msg, placeholder)
        self._busy.add(conversation_id)

        history = [
            m.to_api_dict()
            for m in self.store.get(conversation_id).messages
            if m.id != placeholder.id
        ]
        logger.debug("Turn started in %s (placeholder %s)", conversation_id, placeholder.id)
        return PendingTurn(conversation_id, placeholder.id, settings, history)

    @staticmethod
    def build_request(turn: PendingTurn) -> CompletionRequest:
        return CompletionRequest(model=turn.settings.model, messages=turn.history)

    def patch_message(self, conversation_id: str, message_id: str, content: str) -> bool:
        """Replace a message's content, located by id inside the named conversation."""
        try:
            found = self.store.update_message(conversation_id, message_id, content)
        except KeyError:
            logger.warning("Conversation %s was deleted; dropping update", conversation_id)
            return False

        if not found:
            logger.warning("Message %s is gone from %s; dropping update", message_id, conversation_id)
        return found

    def finalize_turn(self, conversation_id: str):
        try:
            self.store.touch(conversation_id)
        except KeyError:
            logger.warning("Conversation %s was deleted before its turn finished", conversation_id)
        finally:
            self._busy.discard(conversation_id)

    def rollback_turn(self, conversation_id: str, message_id: str, reason: str):
        """Remove the placeholder and record ``reason`` on the conversation."""
        try:
            self.store.remove_message(conversation_id, message_id, error=reason)
        except KeyError:
            logger.warning("Conversation %s was deleted before rollback", conversation_id)
        finally:
            self._busy.discard(conversation_id)
