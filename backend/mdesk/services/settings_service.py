# Overview: The single system-settings row and its cached read-only snapshot.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import SystemSettings
from ..models.settings import SYSTEM_SETTINGS_ID


SNAPSHOT_KEY = "mdesk_settings"


class SettingsError(ValueError):
    pass


@dataclass(frozen=True)
class SettingsSnapshot:
    """Immutable copy of the settings row handed to workflows."""
    automatic_invoicing: bool


def get_settings_row() -> SystemSettings:
    """Return the settings row, creating it with config defaults if missing."""
    row = db.session.get(SystemSettings, SYSTEM_SETTINGS_ID)
    if row is None:
        row = SystemSettings(
            id=SYSTEM_SETTINGS_ID,
            automatic_invoicing=bool(current_app.config.get("AUTOMATIC_INVOICING_DEFAULT", False)),
        )
        db.session.add(row)
        db.session.commit()
    return row


def _snapshot_of(row: SystemSettings) -> SettingsSnapshot:
    return SettingsSnapshot(automatic_invoicing=bool(row.automatic_invoicing))


def current_settings() -> SettingsSnapshot:
    """
    Cached snapshot for the running app. Loaded on first use and replaced
    whenever update_settings() commits.
    """
    snapshot = current_app.extensions.get(SNAPSHOT_KEY)
    if snapshot is None:
        snapshot = _snapshot_of(get_settings_row())
        current_app.extensions[SNAPSHOT_KEY] = snapshot
    return snapshot


def update_settings(payload: dict, *, user_id: int | None) -> SystemSettings:
    if not isinstance(payload, dict) or "automatic_invoicing" not in payload:
        raise SettingsError("automatic_invoicing is required")
    value = payload["automatic_invoicing"]
    if not isinstance(value, bool):
        raise SettingsError("automatic_invoicing must be true or false")

    row = get_settings_row()
    row.automatic_invoicing = value
    row.updated_by_user_id = user_id
    db.session.commit()

    current_app.extensions[SNAPSHOT_KEY] = _snapshot_of(row)
    return row
