"""Export and import of the full conversation list as a JSON file."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

from .config import EXPORT_PREFIX
from .errors import FormatError
from .storage import loads
from .store import ConversationStore

logger = logging.getLogger(__name__)


def export_filename(day: date | None = None) -> str:
    """``nextchat-export-<YYYY-MM-DD>.json`` for ``day`` (today, UTC, by default)."""
    day = day or datetime.now(timezone.utc).date()
    return f"{EXPORT_PREFIX}-{day.isoformat()}.json"


def write_export(store: ConversationStore, directory: Path, day: date | None = None) -> Path:
    """Write every conversation, pretty-printed, into ``directory``."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(day)
    path.write_text(json.dumps(store.export_all(), indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Exported %d conversations to %s", len(store), path)
    return path


def read_import(path: Path) -> Any:
    try:
        return loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FormatError(f"{path.name} is not a valid JSON file: {e}") from e


def import_file(store: ConversationStore, path: Path) -> int:
    """Replace every conversation with the contents of ``path``.

    Raises FormatError, leaving the store untouched, if the file does not
    hold a JSON array of conversations.
    """
    return store.import_all(read_import(path))
