"""CLI interface for nextchat."""

from __future__ import annotations

import logging
import shutil
import sys
from datetime import datetime
from pathlib import Path

import click

from . import __version__
from .client import ChatClient
from .config import DATA_DIR, STATE_DB_NAME
from .errors import NextChatError
from .models import Conversation
from .transfer import import_file, write_export


def _format_dt(dt: datetime) -> str:
    return dt.astimezone().strftime("%Y-%m-%d %H:%M")


def _client(ctx: click.Context) -> ChatClient:
    """Open the ChatClient for this invocation, closed when the command ends."""
    client = ctx.obj.get("client")
    if client is None:
        client = ChatClient.open(ctx.obj["data_dir"] / STATE_DB_NAME)
        ctx.obj["client"] = client
        ctx.call_on_close(client.close)
    return client


def _resolve(client: ChatClient, conversation_id: str | None) -> Conversation:
    if conversation_id is None:
        return client.store.active
    try:
        return client.store.get(conversation_id)
    except KeyError:
        raise click.ClickException(f"Conversation not found: {conversation_id}") from None


def _stream_reply(client: ChatClient, text: str):
    """Send ``text`` and echo the reply as it streams in."""
    printed = 0

    def on_update(content: str):
        nonlocal printed
        click.echo(content[printed:], nl=False)
        printed = len(content)

    click.echo(click.style("Assistant: ", fg="green", bold=True), nl=False)
    try:
        client.send(text, on_update=on_update)
    finally:
        click.echo()


@click.group()
@click.version_option(version=__version__, prog_name="nextchat")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=DATA_DIR,
    envvar="NEXTCHAT_DATA_DIR",
    show_default=True,
    help="Directory holding conversations and settings.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(ctx: click.Context, data_dir: Path, verbose: bool):
    """nextchat: chat with an OpenAI-compatible endpoint from your terminal.

    Conversations stream in as they are generated and are kept between
    sessions. Configure the endpoint first with `nextchat settings`.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir


@cli.command()
@click.pass_context
def chat(ctx: click.Context):
    """Start an interactive chat in the active conversation.

    Type 'quit' or 'exit' to leave, '/new' to start a new conversation.
    """
    client = _client(ctx)
    conv = client.store.active
    click.echo(click.style(f"{conv.title}", bold=True) + f" ({len(conv.messages)} messages)")
    click.echo("-" * 48)

    while True:
        try:
            user_input = click.prompt(click.style("\nYou", fg="blue", bold=True), prompt_suffix=": ")
        except (KeyboardInterrupt, EOFError, click.Abort):
            click.echo("\nGoodbye!")
            break

        user_input = user_input.strip()
        if not user_input:
            continue
        if user_input.lower() in ("quit", "exit"):
            click.echo("Goodbye!")
            break
        if user_input == "/new":
            conv = client.store.create_conversation()
            click.echo(f"Started new conversation {conv.id}")
            continue

        try:
            _stream_reply(client, user_input)
        except KeyboardInterrupt:
            click.echo(click.style("Reply interrupted; it was not saved.", fg="yellow"), err=True)
        except NextChatError as e:
            click.echo(click.style(f"Request failed: {e}", fg="red"), err=True)


@cli.command()
@click.argument("message")
@click.option("--conversation", "conversation_id", help="Conversation to send to (default: active).")
@click.pass_context
def send(ctx: click.Context, message: str, conversation_id: str | None):
    """Send one MESSAGE and print the streamed reply."""
    client = _client(ctx)
    if conversation_id is not None:
        client.store.select_conversation(_resolve(client, conversation_id).id)

    try:
        _stream_reply(client, message)
    except NextChatError as e:
        raise click.ClickException(f"Request failed: {e}") from e
    except ValueError as e:
        raise click.UsageError(str(e)) from e


@cli.command("list")
@click.pass_context
def list_cmd(ctx: click.Context):
    """List conversations, newest first."""
    client = _client(ctx)
    active_id = client.store.active_id

    for conv in client.store.conversations:
        marker = "*" if conv.id == active_id else " "
        line = f"{marker} {conv.id}  {conv.title}  ({len(conv.messages)} messages, {_format_dt(conv.last_updated)})"
        click.echo(click.style(line, bold=True) if conv.id == active_id else line)
        if conv.error:
            click.echo(click.style(f"    last error: {conv.error}", fg="red"))


@cli.command()
@click.pass_context
def new(ctx: click.Context):
    """Start a new conversation and make it active."""
    conv = _client(ctx).store.create_conversation()
    click.echo(f"Created conversation {conv.id}")


@cli.command()
@click.argument("conversation_id")
@click.pass_context
def select(ctx: click.Context, conversation_id: str):
    """Make CONVERSATION_ID the active conversation."""
    client = _client(ctx)
    conv = client.store.select_conversation(_resolve(client, conversation_id).id)
    click.echo(f"Active conversation: {conv.title} ({conv.id})")


@cli.command()
@click.argument("conversation_id", required=False)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def delete(ctx: click.Context, conversation_id: str | None, yes: bool):
    """Delete a conversation (default: active)."""
    client = _client(ctx)
    conv = _resolve(client, conversation_id)
    if not yes:
        click.confirm(f"Delete '{conv.title}' ({len(conv.messages)} messages)?", abort=True)

    client.store.delete_conversation(conv.id)
    click.echo(f"Deleted {conv.id}")


@cli.command()
@click.argument("conversation_id", required=False)
@click.option("--title", help="New title; prompted for when omitted.")
@click.pass_context
def rename(ctx: click.Context, conversation_id: str | None, title: str | None):
    """Change a conversation's title (default: active)."""
    client = _client(ctx)
    conv = _resolve(client, conversation_id)
    if title is None:
        title = click.prompt("New title", default=conv.title)

    conv = client.store.rename_conversation(conv.id, title)
    click.echo(f"Title: {conv.title}")


@cli.command()
@click.argument("conversation_id", required=False)
@click.pass_context
def clear(ctx: click.Context, conversation_id: str | None):
    """Remove every message from a conversation (default: active)."""
    client = _client(ctx)
    conv = _resolve(client, conversation_id)
    client.store.clear_messages(conv.id)
    click.echo(f"Cleared {conv.title}")


@cli.command()
@click.argument("conversation_id", required=False)
@click.pass_context
def show(ctx: click.Context, conversation_id: str | None):
    """Print a conversation transcript (default: active)."""
    conv = _resolve(_client(ctx), conversation_id)

    click.echo(click.style(conv.title, bold=True))
    click.echo(f"Updated {_format_dt(conv.last_updated)} | {len(conv.messages)} messages")
    click.echo()

    if not conv.messages:
        click.echo("Send a message to start the conversation...")
    for msg in conv.messages:
        label = "You" if msg.role == "user" else "Assistant"
        color = "blue" if msg.role == "user" else "green"
        click.echo(click.style(f"{label} ({_format_dt(msg.timestamp)}):", fg=color, bold=True))
        click.echo(msg.content)
        click.echo()

    if conv.error:
        click.echo(click.style(f"Last error: {conv.error}", fg="red"))


@cli.command("export")
@click.argument("directory", type=click.Path(file_okay=False, path_type=Path), default=".")
@click.pass_context
def export_cmd(ctx: click.Context, directory: Path):
    """Export all conversations to a JSON file in DIRECTORY."""
    client = _client(ctx)
    path = write_export(client.store, directory)
    click.echo(f"Exported {len(client.store)} conversations to {path}")


@cli.command("import")
@click.argument("json_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def import_cmd(ctx: click.Context, json_path: Path, yes: bool):
    """Replace all conversations with those in a JSON export file.

    Example:
        nextchat import ~/Downloads/nextchat-export-2024-12-28.json
    """
    client = _client(ctx)
    if not yes:
        click.confirm(f"This replaces all {len(client.store)} conversations. Continue?", abort=True)

    try:
        count = import_file(client.store, json_path)
    except NextChatError as e:
        raise click.ClickException(f"Import failed: {e}") from e

    click.echo(click.style("Import complete!", fg="green", bold=True) + f" {count} conversations")


@cli.command()
@click.option("--base-url", help="API base URL, e.g. https://api.openai.com/v1")
@click.option("--model", help="Model name, e.g. gpt-4o-mini")
@click.option("--api-key", help="Bearer credential for the endpoint")
@click.option("--temperature", type=float, help="Sampling temperature")
@click.pass_context
def settings(ctx: click.Context, base_url, model, api_key, temperature):
    """Show or change the API settings."""
    client = _client(ctx)
    if any(v is not None for v in (base_url, model, api_key, temperature)):
        client.configure(base_url=base_url, model=model, api_key=api_key, temperature=temperature)
        click.echo("Settings saved.")

    s = client.settings
    masked = f"{s.api_key[:3]}…{s.api_key[-4:]}" if len(s.api_key) > 8 else ("set" if s.api_key else "")
    click.echo()
    click.echo(click.style("API Settings", bold=True))
    click.echo(f"  Base URL:     {s.base_url or '(not set)'}")
    click.echo(f"  Model:        {s.model or '(not set)'}")
    click.echo(f"  API key:      {masked or '(not set)'}")
    click.echo(f"  Temperature:  {s.temperature}")

    missing = s.missing_fields()
    if missing:
        click.echo(click.style(f"\n  Missing: {', '.join(missing)}", fg="yellow"))
    click.echo()


@cli.command()
@click.pass_context
def serve(ctx: click.Context):
    """Start the MCP server (stdio transport)."""
    from . import server

    server.use_database(ctx.obj["data_dir"] / STATE_DB_NAME)
    server.mcp.run(transport="stdio")


@cli.command()
@click.confirmation_option(prompt="This will delete all conversations and settings. Are you sure?")
@click.pass_context
def reset(ctx: click.Context):
    """Delete all stored data and start fresh."""
    data_dir = ctx.obj["data_dir"]
    if data_dir.exists():
        shutil.rmtree(data_dir)
        click.echo(f"Deleted {data_dir}")
    else:
        click.echo("No data to delete.")
