"""Tests for UserSettings: defaults, persistence, updates."""

import pytest

from micromove.config import SETTINGS_STORAGE_KEY
from micromove.state import UserSettings


class TestDefaults:
    def test_defaults(self):
        s = UserSettings()
        assert s.api_key == ""
        assert s.model == "gpt-4o-mini"
        assert s.default_timer_minutes == 5
        assert s.sound_enabled is True
        assert s.vibration_enabled is True

    def test_timer_duration_seconds(self):
        assert UserSettings(default_timer_minutes=25).timer_duration_seconds == 1500

    def test_timer_duration_floor(self):
        assert UserSettings(default_timer_minutes=0).timer_duration_seconds == 60


class TestPersistence:
    def test_save_uses_camel_case_blob(self, tmp_db):
        UserSettings(api_key="k", sound_enabled=False).save_to_db(tmp_db)
        assert tmp_db.get_state(SETTINGS_STORAGE_KEY) == {
            "apiKey": "k",
            "model": "gpt-4o-mini",
            "defaultTimerMinutes": 5,
            "soundEnabled": False,
            "vibrationEnabled": True,
        }

    def test_round_trip(self, tmp_db):
        UserSettings(model="gpt-4o", default_timer_minutes=10).save_to_db(tmp_db)
        s = UserSettings()
        s.load_from_db(tmp_db)
        assert s.model == "gpt-4o"
        assert s.default_timer_minutes == 10

    def test_partial_blob_merges_over_defaults(self, tmp_db):
        tmp_db.save_state(SETTINGS_STORAGE_KEY, {"vibrationEnabled": False, "unknown": 1})
        s = UserSettings()
        s.load_from_db(tmp_db)
        assert s.vibration_enabled is False
        assert s.model == "gpt-4o-mini"

    def test_nothing_saved_keeps_defaults(self, tmp_db):
        s = UserSettings()
        s.load_from_db(tmp_db)
        assert s == UserSettings()

    def test_update_rejects_unknown_setting(self):
        with pytest.raises(AttributeError):
            UserSettings().update(theme="dark")
