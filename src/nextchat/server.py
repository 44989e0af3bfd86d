"""FastMCP server exposing conversations and chat as tools."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from .client import ChatClient
from .config import STATE_PATH
from .errors import NextChatError

# Logging to stderr only; stdout is the MCP JSON-RPC transport
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)

mcp = FastMCP(
    "nextchat",
    instructions=(
        "Chat with the user's configured completion endpoint and manage their "
        "saved conversations. Use list_conversations to browse, get_conversation "
        "to read a transcript, new_conversation to start fresh and send_message "
        "to continue a conversation."
    ),
)

# Singleton client, reused across tool calls
_db_path: Path = STATE_PATH
_client: ChatClient | None = None


def use_database(path: Path):
    """Point the server at another state database. Closes any open client."""
    global _db_path, _client
    if _client is not None:
        _client.close()
        _client = None
    _db_path = path


def _get_client() -> ChatClient:
    global _client
    if _client is None:
        _client = ChatClient.open(_db_path)
    return _client


def _format_dt(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d %H:%M")


@mcp.tool()
def list_conversations(limit: int = 20, offset: int = 0) -> str:
    """List saved conversations, newest first.

    Args:
        limit: Maximum results (default 20)
        offset: Skip this many results (for pagination)
    """
    store = _get_client().store
    conversations = store.conversations[offset : offset + limit]
    if not conversations:
        return "No conversations found."

    lines = [f"Conversations (showing {offset + 1}–{offset + len(conversations)} of {len(store)}):\n"]
    for i, c in enumerate(conversations, offset + 1):
        active = " (active)" if c.id == store.active_id else ""
        lines.append(f"{i}. **{c.title}**{active} ({_format_dt(c.last_updated)})")
        lines.append(f"   ID: `{c.id}` | {len(c.messages)} msgs")

    if offset + limit < len(store):
        lines.append(f"\nMore available, use offset={offset + limit} to see the next page.")
    return "\n".join(lines)


@mcp.tool()
def get_conversation(conversation_id: str) -> str:
    """Retrieve a full conversation transcript.

    Args:
        conversation_id: The conversation ID (from list_conversations)
    """
    try:
        conv = _get_client().store.get(conversation_id)
    except KeyError:
        return f"Conversation not found: {conversation_id}"

    lines = [
        f"# {conv.title}",
        f"Updated: {_format_dt(conv.last_updated)}",
        f"Messages: {len(conv.messages)}",
        "",
        "---",
        "",
    ]
    for msg in conv.messages:
        role = "**User**" if msg.role == "user" else "**Assistant**"
        lines.append(f"{role} ({_format_dt(msg.timestamp)}):")
        lines.append(msg.content)
        lines.append("")

    if conv.error:
        lines.append(f"*Last error: {conv.error}*")
    return "\n".join(lines)


@mcp.tool()
def new_conversation(title: str | None = None) -> str:
    """Start a new, empty conversation and make it active.

    Args:
        title: Optional title for the conversation
    """
    store = _get_client().store
    conv = store.create_conversation()
    if title:
        conv = store.rename_conversation(conv.id, title)
    return f"Created conversation `{conv.id}` ({conv.title})"


@mcp.tool()
def send_message(message: str, conversation_id: str | None = None) -> str:
    """Send a message and return the assistant's full reply.

    The user's active conversation is left unchanged.

    Args:
        message: The user message
        conversation_id: Conversation to continue (default: the active one)
    """
    client = _get_client()
    store = client.store
    previous_id = store.active_id
    if conversation_id is not None:
        try:
            store.select_conversation(conversation_id)
        except KeyError:
            return f"Conversation not found: {conversation_id}"

    try:
        turn = client.send(message)
    except (NextChatError, ValueError) as e:
        return f"Request failed: {e}"
    finally:
        if store.active_id != previous_id and previous_id in store:
            store.select_conversation(previous_id)
    return turn.content


@mcp.tool()
def export_conversations() -> str:
    """Export every conversation as a JSON array."""
    return json.dumps(_get_client().store.export_all(), indent=2, ensure_ascii=False)
