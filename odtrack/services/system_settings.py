"""
Admin-editable system settings (auto-forward timeout and toggles).

Passed explicitly to the workflow and the auto-forward sweeper; nothing reads
them from module globals.
"""

import threading
from typing import Optional

from pydantic import BaseModel, Field

from odtrack.core.config import Settings
from odtrack.core.logging_config import logger

TABLE = "system_settings"
ROW_ID = 1


class SystemSettings(BaseModel):
    auto_forward_timeout_minutes: int = Field(default=30, ge=1)
    auto_forward_enabled: bool = True
    notification_enabled: bool = True

    @classmethod
    def from_config(cls, config: Settings) -> "SystemSettings":
        return cls(
            auto_forward_timeout_minutes=config.AUTO_FORWARD_TIMEOUT_MINUTES,
            auto_forward_enabled=config.AUTO_FORWARD_ENABLED,
            notification_enabled=config.NOTIFICATION_ENABLED,
        )


class SystemSettingsProvider:
    """In-memory holder; subclasses persist elsewhere."""

    def __init__(self, initial: Optional[SystemSettings] = None):
        self._current = initial or SystemSettings()
        self._lock = threading.Lock()

    def get(self) -> SystemSettings:
        with self._lock:
            return self._current.model_copy()

    def update(self, **changes) -> SystemSettings:
        changes = {k: v for k, v in changes.items() if v is not None}
        base = self.get()
        with self._lock:
            merged = SystemSettings.model_validate({**base.model_dump(), **changes})
            self._save(merged)
            self._current = merged
        logger.info(f"System settings updated: {changes}")
        return merged.model_copy()

    def _save(self, value: SystemSettings) -> None:
        pass

    def get_auto_forward_timeout(self) -> int:
        return self.get().auto_forward_timeout_minutes

    def is_auto_forward_enabled(self) -> bool:
        return self.get().auto_forward_enabled

    def is_notification_enabled(self) -> bool:
        return self.get().notification_enabled


class SupabaseSystemSettingsProvider(SystemSettingsProvider):
    """Single-row `system_settings` table, re-read on every get()."""

    def __init__(self, db, defaults: SystemSettings):
        super().__init__(defaults)
        self.db = db

    def get(self) -> SystemSettings:
        result = self.db.table(TABLE).select("*").eq("id", ROW_ID).execute()
        if result.data:
            row = {k: v for k, v in result.data[0].items() if k in SystemSettings.model_fields}
            with self._lock:
                self._current = SystemSettings.model_validate(row)
        return super().get()

    def _save(self, value: SystemSettings) -> None:
        self.db.table(TABLE).upsert({"id": ROW_ID, **value.model_dump()}).execute()
