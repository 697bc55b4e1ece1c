from dataclasses import dataclass, asdict
from typing import Any, Dict

from micromove.config import (
    DEFAULT_MODEL, DEFAULT_TIMER_MINUTES, SETTINGS_STORAGE_KEY
)

# Persisted blob key <-> attribute name
_BLOB_KEYS = {
    "apiKey": "api_key",
    "model": "model",
    "defaultTimerMinutes": "default_timer_minutes",
    "soundEnabled": "sound_enabled",
    "vibrationEnabled": "vibration_enabled",
}

@dataclass
class UserSettings:
    """
    User-editable preferences, persisted independently of the session.
    The API key and model override the server-side defaults on each request.
    """
    api_key: str = ""
    model: str = DEFAULT_MODEL
    default_timer_minutes: int = DEFAULT_TIMER_MINUTES
    sound_enabled: bool = True
    vibration_enabled: bool = True

    @property
    def timer_duration_seconds(self) -> int:
        return max(1, int(self.default_timer_minutes)) * 60

    def to_dict(self) -> Dict[str, Any]:
        values = asdict(self)
        return {blob_key: values[attr] for blob_key, attr in _BLOB_KEYS.items()}

    def update(self, **changes: Any):
        for attr, value in changes.items():
            if attr not in _BLOB_KEYS.values():
                raise AttributeError(f"Unknown setting: {attr}")
            setattr(self, attr, value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserSettings":
        """Saved keys win over defaults; unknown keys are ignored."""
        settings = cls()
        for blob_key, attr in _BLOB_KEYS.items():
            if blob_key in data:
                setattr(settings, attr, data[blob_key])
        return settings

    def load_from_db(self, db=None):
        """Loads saved settings over the current values."""
        from micromove.infrastructure.database import get_db
        db = db or get_db()

        saved = db.get_state(SETTINGS_STORAGE_KEY, {})
        if isinstance(saved, dict):
            loaded = UserSettings.from_dict({**self.to_dict(), **saved})
            for attr in _BLOB_KEYS.values():
                setattr(self, attr, getattr(loaded, attr))

    def save_to_db(self, db=None):
        from micromove.infrastructure.database import get_db
        db = db or get_db()
        db.save_state(SETTINGS_STORAGE_KEY, self.to_dict())
