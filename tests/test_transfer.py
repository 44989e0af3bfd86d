"""Tests for export/import files."""

import json
from datetime import date

import pytest

from nextchat.errors import FormatError
from nextchat.models import Message
from nextchat.store import ConversationStore
from nextchat.transfer import export_filename, import_file, write_export


def test_export_filename():
    assert export_filename(date(2024, 12, 28)) == "nextchat-export-2024-12-28.json"


def test_export_filename_defaults_to_today():
    name = export_filename()
    assert name.startswith("nextchat-export-") and name.endswith(".json")


def test_write_export_is_pretty_printed(tmp_path):
    store = ConversationStore()
    store.active.messages.append(Message(role="user", content="héllo"))

    path = write_export(store, tmp_path / "out", day=date(2024, 12, 28))

    text = path.read_text(encoding="utf-8")
    assert path.name == "nextchat-export-2024-12-28.json"
    assert text.startswith("[\n  {")
    assert "héllo" in text
    assert json.loads(text) == store.export_all()


def test_export_then_import_file(tmp_path):
    source = ConversationStore()
    source.rename_conversation(source.active_id, "Exported")
    source.active.messages.append(Message(role="user", content="hi"))
    path = write_export(source, tmp_path)

    target = ConversationStore()
    count = import_file(target, path)

    assert count == 1
    assert target.export_all() == source.export_all()
    assert target.active.title == "Exported"


def test_import_non_array_file(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text('{"conversations": []}', encoding="utf-8")
    store = ConversationStore()
    before = store.export_all()

    with pytest.raises(FormatError):
        import_file(store, path)

    assert store.export_all() == before


def test_import_invalid_json_file(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("[{", encoding="utf-8")

    with pytest.raises(FormatError):
        import_file(ConversationStore(), path)
