"""Turn state machine and rollback policy."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .errors import ConfigurationError
from .models import ApiSettings
from .stream import StreamSession
from .sync import SyncEngine

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS = {
    TurnState.IDLE: {TurnState.SENDING, TurnState.FAILED},
    TurnState.SENDING: {TurnState.STREAMING, TurnState.FAILED},
    TurnState.STREAMING: {TurnState.COMPLETED, TurnState.FAILED},
    TurnState.COMPLETED: set(),
    TurnState.FAILED: set(),
}


@dataclass
class Turn:
    """Progress of one user send → assistant reply cycle."""

    state: TurnState = TurnState.IDLE
    conversation_id: str | None = None
    message_id: str | None = None
    content: str = ""
    error: str | None = None

    def advance(self, state: TurnState):
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid turn transition {self.state.value} -> {state.value}")
        self.state = state

    def fail(self, reason: str):
        self.advance(TurnState.FAILED)
        self.content = ""
        self.error = reason


def run_turn(
    engine: SyncEngine,
    user_text: str,
    on_update: Callable[[str], None] | None = None,
    session_factory: Callable[[ApiSettings], StreamSession] = StreamSession,
    on_state: Callable[[Turn], None] | None = None,
) -> Turn:
    """Send ``user_text`` in the active conversation and stream the reply.

    Any failure after the placeholder exists rolls the turn back: the
    placeholder is removed and the reason is recorded on the conversation.
    Failures are re-raised for the caller to report; nothing is retried.

    Args:
        engine: Writer for the conversation store.
        user_text: The user's message.
        on_update: Called with the accumulated reply after each stream line.
        session_factory: Builds the StreamSession for the turn's settings.
        on_state: Called after every state transition.

    Returns:
        The completed Turn.
    """
    turn = Turn()

    def _transition(state: TurnState, reason: str | None = None):
        if state is TurnState.FAILED:
            turn.fail(reason or "unknown error")
        else:
            turn.advance(state)
        if on_state is not None:
            on_state(turn)

    try:
        pending = engine.begin_turn(user_text)
    except ConfigurationError as e:
        logger.warning("Send refused: %s", e)
        _transition(TurnState.FAILED, str(e))
        raise

    turn.conversation_id = pending.conversation_id
    turn.message_id = pending.message_id
    _transition(TurnState.SENDING)

    def _patch(content: str):
        engine.patch_message(pending.conversation_id, pending.message_id, content)
        turn.content = content
        if on_update is not None:
            on_update(content)

    try:
        session = session_factory(pending.settings)
        final = session.run(
            engine.build_request(pending),
            on_update=_patch,
            on_response=lambda: _transition(TurnState.STREAMING),
        )
    except BaseException as e:
        # KeyboardInterrupt included: an interrupted reply must not be kept
        reason = str(e) or f"Interrupted ({type(e).__name__})"
        logger.error("Turn in conversation %s failed: %s", pending.conversation_id, reason)
        engine.rollback_turn(pending.conversation_id, pending.message_id, reason)
        _transition(TurnState.FAILED, reason)
        raise

    engine.finalize_turn(pending.conversation_id)
    turn.content = final
    _transition(TurnState.COMPLETED)
    return turn
