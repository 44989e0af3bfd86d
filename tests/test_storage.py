"""Tests for the key-value storage and API settings persistence."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from nextchat.config import SETTINGS_KEY
from nextchat.errors import ConfigurationError, PersistenceError
from nextchat.models import ApiSettings
from nextchat.settings import load_settings, require_complete, save_settings, update_settings
from nextchat.storage import StateStorage, loads


class TestStateStorage:
    def test_missing_key_returns_default(self, storage):
        assert storage.load("nothing") is None
        assert storage.load("nothing", default=[]) == []

    def test_save_and_load(self, storage):
        storage.save("blob", {"a": [1, 2, 3], "b": "ü"})
        assert storage.load("blob") == {"a": [1, 2, 3], "b": "ü"}

    def test_overwrite_keeps_one_row(self, storage):
        storage.save("k", 1)
        storage.save("k", 2)
        assert storage.load("k") == 2
        assert storage.keys() == ["k"]

    def test_date_fields_are_revived(self, storage):
        storage.save("c", [{"lastUpdated": "2024-12-28T17:56:33+00:00", "messages": [{"timestamp": "2024-12-28T17:56:30Z"}]}])

        loaded = storage.load("c")

        assert loaded[0]["lastUpdated"] == datetime(2024, 12, 28, 17, 56, 33, tzinfo=timezone.utc)
        assert loaded[0]["messages"][0]["timestamp"] == datetime(2024, 12, 28, 17, 56, 30, tzinfo=timezone.utc)

    def test_other_fields_and_bad_dates_untouched(self):
        loaded = loads('{"created": "2024-12-28T17:56:33Z", "timestamp": "yesterday"}')
        assert loaded == {"created": "2024-12-28T17:56:33Z", "timestamp": "yesterday"}

    def test_datetimes_are_serialized(self, storage):
        when = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        storage.save("d", {"timestamp": when})
        assert storage.load("d") == {"timestamp": when}

    def test_corrupt_json_falls_back_to_default(self, storage, caplog):
        storage.conn.execute(
            "INSERT INTO kv_state (key, value, updated_at) VALUES ('bad', '{oops', 'now')"
        )
        storage.conn.commit()

        assert storage.load("bad", default="fallback") == "fallback"
        assert "corrupt" in caplog.text

    def test_unserializable_value_raises(self, storage):
        with pytest.raises(PersistenceError):
            storage.save("x", {"obj": object()})

    def test_delete(self, storage):
        storage.save("k", 1)
        storage.delete("k")
        assert storage.load("k") is None

    def test_data_survives_reopen(self, tmp_path):
        path = tmp_path / "nested" / "state.db"
        first = StateStorage(path)
        first.save("k", {"v": 1})
        first.close()

        second = StateStorage(path)
        assert second.load("k") == {"v": 1}
        second.close()


class TestSettings:
    def test_missing_fields(self):
        s = ApiSettings(base_url="", model="gpt-4o", api_key="  ")
        assert s.missing_fields() == ["baseUrl", "apiKey"]
        assert not s.is_complete

    @pytest.mark.parametrize("blank", ["base_url", "model", "api_key"])
    def test_require_complete(self, settings, blank):
        incomplete = settings.model_copy(update={blank: ""})

        with pytest.raises(ConfigurationError) as exc_info:
            require_complete(incomplete)
        assert len(exc_info.value.missing) == 1

    def test_settings_are_frozen(self, settings):
        with pytest.raises(ValidationError):
            settings.model = "other"

    def test_save_and_load_round_trip(self, storage, settings):
        save_settings(storage, settings)

        assert storage.load(SETTINGS_KEY) == {
            "baseUrl": "https://api.example.com/v1",
            "model": "gpt-4o-mini",
            "apiKey": "sk-test-key",
            "temperature": 0.7,
        }
        assert load_settings(storage) == settings

    def test_invalid_stored_settings_fall_back(self, storage, caplog):
        storage.save(SETTINGS_KEY, {"temperature": "hot"})

        assert load_settings(storage) == ApiSettings()
        assert "invalid" in caplog.text

    def test_update_ignores_none(self, settings):
        updated = update_settings(settings, model="gpt-4o", api_key=None)

        assert updated.model == "gpt-4o"
        assert updated.api_key == "sk-test-key"
        assert settings.model == "gpt-4o-mini"

    def test_temperature_string_is_coerced(self, settings):
        assert update_settings(settings, temperature="0.2").temperature == 0.2
