"""
Tests for mkimg.config.settings module.

This test suite covers:
- Settings loading
- Default settings initialization
- Type conversion helpers (get_bool, get_int)
- Error handling for corrupted settings files
"""

import json

from mkimg.config import settings


class TestLoadSettings:
    """Tests for load_settings() function."""

    def test_load_defaults_when_no_file(self, tmp_path, monkeypatch):
        """Test that default settings are loaded when file doesn't exist."""
        monkeypatch.setattr(
            "mkimg.config.settings.SETTINGS_PATH", tmp_path / "nonexistent" / "settings.json"
        )

        settings.settings_store.values = {}
        settings.load_settings()

        assert settings.settings_store.values == settings.DEFAULT_SETTINGS

    def test_load_merges_with_defaults(self, tmp_path, monkeypatch):
        """Test that loaded settings merge with defaults."""
        settings_file = tmp_path / "settings.json"
        settings_file.write_text(json.dumps({"sector_size": 4096, "mkfs_fat_command": "mkdosfs"}))
        monkeypatch.setattr("mkimg.config.settings.SETTINGS_PATH", settings_file)

        settings.load_settings()

        assert settings.get_setting("sector_size") == 4096
        assert settings.get_setting("mkfs_fat_command") == "mkdosfs"
        assert settings.get_setting("first_sector") == 2048

    def test_load_corrupted_file_uses_defaults(self, tmp_path, monkeypatch):
        """Test that corrupted JSON falls back to defaults."""
        settings_file = tmp_path / "settings.json"
        settings_file.write_text("{ not json")
        monkeypatch.setattr("mkimg.config.settings.SETTINGS_PATH", settings_file)

        settings.load_settings()

        assert settings.settings_store.values == settings.DEFAULT_SETTINGS

    def test_load_ignores_non_object_json(self, tmp_path, monkeypatch):
        settings_file = tmp_path / "settings.json"
        settings_file.write_text("[1, 2, 3]")
        monkeypatch.setattr("mkimg.config.settings.SETTINGS_PATH", settings_file)

        settings.load_settings()

        assert settings.settings_store.values == settings.DEFAULT_SETTINGS


class TestTypedGetters:
    """Tests for get_bool() and get_int()."""

    def test_get_bool(self):
        assert settings.get_bool("debug") is False
        settings.settings_store.values["debug"] = 1
        assert settings.get_bool("debug") is True

    def test_get_bool_missing_key_uses_default(self):
        assert settings.get_bool("missing", default=True) is True

    def test_get_int_converts_strings(self):
        settings.settings_store.values["sector_size"] = "4096"
        assert settings.get_int("sector_size", 512) == 4096

    def test_get_int_invalid_value_uses_default(self):
        settings.settings_store.values["sector_size"] = "big"
        assert settings.get_int("sector_size", 512) == 512

    def test_get_setting_default(self):
        assert settings.get_setting("missing", "fallback") == "fallback"
