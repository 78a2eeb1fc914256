"""Tests for the config manager and the settings store.

Run: pytest tests/test_settings.py -v
"""
import json
import os
from unittest.mock import patch

import pytest

from config.settings_manager import ConfigManager, SettingsStore
from core.errors import SettingsSaveError
from core.models import AutoBackupConfig, BackupConfig, WebDAVConfig


class TestConfigManager:
    def test_missing_file_is_empty(self, config_manager):
        assert config_manager.config == {}
        assert config_manager.get("language") is None

    def test_set_persists(self, config_manager, config_path):
        assert config_manager.set("language", "zh")
        with open(config_path, encoding="utf-8") as f:
            assert json.load(f) == {"language": "zh"}
        assert ConfigManager(config_path).get("language") == "zh"

    def test_failed_write_keeps_memory(self, config_manager):
        config_manager.set("language", "en")
        with patch("config.settings_manager.safe_write_json", return_value=False):
            assert config_manager.set("language", "zh") is False
        assert config_manager.get("language") == "en"

    def test_reload_on_external_change(self, config_manager, config_path):
        config_manager.set("language", "en")
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump({"language": "zh"}, f)
        config_manager.load_config(force=True)
        assert config_manager.get("language") == "zh"

    def test_broken_file_keeps_last_good(self, config_manager, config_path):
        config_manager.set("language", "en")
        with open(config_path, "w", encoding="utf-8") as f:
            f.write("{not json")
        config_manager.load_config(force=True)
        assert config_manager.get("language") == "en"


class TestSettingsStore:
    def test_defaults(self, settings):
        assert settings.backup_config == BackupConfig()
        assert settings.auto_backup_config == AutoBackupConfig()
        assert settings.last_auto_backup_time is None

    def test_backup_settings_round_trip(self, settings, config_path):
        config = BackupConfig(
            backup_type="webdav", local_backup_path="/b",
            webdav=WebDAVConfig(url="https://h", username="u", password="p", remote_path="r"),
        )
        settings.set_backup_settings(config)

        fresh = SettingsStore(ConfigManager(config_path))
        fresh.initialize()
        assert fresh.backup_config == config

    def test_auto_backup_settings_are_clamped(self, settings, config_manager):
        auto = AutoBackupConfig(enabled=True, interval_days=3, max_keep=2)
        auto.interval_days = 0
        auto.max_keep = -4
        settings.set_auto_backup_settings(auto)
        assert config_manager.get("autoBackupIntervalDays") == 1
        assert config_manager.get("autoBackupMaxKeep") == 0

    def test_hand_edited_file_is_clamped_on_read(self, config_path):
        os.makedirs(os.path.dirname(config_path))
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump({"autoBackupIntervalDays": -3, "autoBackupMaxKeep": "lots"}, f)
        store = SettingsStore(ConfigManager(config_path))
        store.initialize()
        assert store.auto_backup_config.interval_days == 1
        assert store.auto_backup_config.max_keep == 0

    def test_save_failure_raises(self, settings):
        with patch("config.settings_manager.safe_write_json", return_value=False):
            with pytest.raises(SettingsSaveError):
                settings.set_last_auto_backup_time("2026-01-01T00:00:00+00:00")
        assert settings.last_auto_backup_time is None

    def test_snapshot_masks_password(self, settings):
        settings.set_backup_settings(BackupConfig(
            backup_type="webdav", webdav=WebDAVConfig(url="https://h", password="secret"),
        ))
        snapshot = settings.snapshot()
        assert snapshot["webdav"]["password"] == ""
        assert snapshot["webdav"]["hasPassword"] is True
        assert snapshot["backupType"] == "webdav"
        assert snapshot["autoBackupEnabled"] is False
