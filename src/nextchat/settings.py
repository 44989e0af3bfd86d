"""Load, validate and persist API settings."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from .config import SETTINGS_KEY
from .errors import ConfigurationError, PersistenceError
from .models import ApiSettings
from .storage import StateStorage

logger = logging.getLogger(__name__)


def load_settings(storage: StateStorage) -> ApiSettings:
    """Return persisted settings, or environment defaults if none are usable."""
    raw = storage.load(SETTINGS_KEY)
    if raw is None:
        return ApiSettings()

    try:
        return ApiSettings.model_validate(raw)
    except ValidationError as e:
        err = PersistenceError(f"Stored API settings are invalid ({e.error_count()} errors)")
        logger.warning("%s; using defaults", err)
        return ApiSettings()


def save_settings(storage: StateStorage, settings: ApiSettings):
    storage.save(SETTINGS_KEY, settings.to_json())


def update_settings(current: ApiSettings, **changes) -> ApiSettings:
    """Return a validated copy of ``current`` with ``changes`` applied.

    Keys are the Python field names (``base_url``, ``api_key``, ...);
    ``None`` values are ignored.
    """
    merged = current.model_dump()
    merged.update({k: v for k, v in changes.items() if v is not None})
    return ApiSettings.model_validate(merged)


def require_complete(settings: ApiSettings):
    missing = settings.missing_fields()
    if missing:
        raise ConfigurationError(missing)
