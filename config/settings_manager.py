import os
import threading
import logging
import json

from core.errors import SettingsSaveError
from core.models import AutoBackupConfig, BackupConfig
from utils.file_system import safe_write_json

logger = logging.getLogger(__name__)


class ConfigManager:
    """JSON settings file with a lock and mtime-based reload."""

    def __init__(self, config_path):
        self.config_path = config_path
        self.lock = threading.Lock()
        self.config = {}
        self.last_mtime = 0
        self.load_config()

    def load_config(self, force=False):
        """Loads the file, only when it changed on disk (or ``force``)."""
        with self.lock:
            if os.path.exists(self.config_path):
                try:
                    current_mtime = os.path.getmtime(self.config_path)
                    if current_mtime == self.last_mtime and not force:
                        return self.config

                    with open(self.config_path, 'r', encoding='utf-8') as f:
                        self.config = json.load(f)

                    self.last_mtime = current_mtime
                    logger.debug(f"Configuration loaded: {self.config_path}")
                except (OSError, ValueError) as e:
                    # Keep the last good config on a broken read
                    logger.error(f"Failed to load configuration: {e}")
                    if not self.config:
                        self.config = {}
            else:
                if self.last_mtime != 0:
                    logger.warning(f"Configuration file missing: {self.config_path}")
                self.config = {}
                self.last_mtime = 0
            return self.config

    def save_config(self, new_config=None):
        """Merges ``new_config`` and writes the file. Memory is only updated on success."""
        with self.lock:
            merged = dict(self.config)
            if new_config:
                merged.update(new_config)

            directory = os.path.dirname(self.config_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            if not safe_write_json(self.config_path, merged):
                logger.error(f"Failed to save configuration: {self.config_path}")
                return False

            self.config = merged
            try:
                self.last_mtime = os.path.getmtime(self.config_path)
            except OSError:
                self.last_mtime = 0
            logger.info("Configuration saved.")
            return True

    def get(self, key, default=None):
        """Thread-safe getter."""
        with self.lock:
            return self.config.get(key, default)

    def set(self, key, value):
        """Thread-safe setter (saves immediately)."""
        return self.save_config({key: value})

    def update(self, new_data):
        return self.save_config(new_data)


class SettingsStore:
    """
    Durable user configuration for backups.

    Reads and writes go through the shared ConfigManager, which is the single
    owner of the settings file. Each setter is one atomic commit.
    """

    def __init__(self, config_manager: ConfigManager):
        self.config_manager = config_manager
        self.is_initialized = False

    def initialize(self, reload=False):
        self.config_manager.load_config(force=reload)
        self.is_initialized = True
        logger.debug("Settings store initialized.")

    def reset(self):
        self.is_initialized = False

    @property
    def backup_config(self):
        with self.config_manager.lock:
            return BackupConfig.from_dict(self.config_manager.config)

    @property
    def auto_backup_config(self):
        with self.config_manager.lock:
            return AutoBackupConfig.from_dict(self.config_manager.config)

    @property
    def last_auto_backup_time(self):
        return self.config_manager.get("lastAutoBackupTime")

    def set_backup_settings(self, backup_config: BackupConfig):
        self._commit(backup_config.to_dict(), "backup settings")

    def set_auto_backup_settings(self, auto_config: AutoBackupConfig):
        # Re-run the clamping in case the caller mutated the instance after creation
        normalized = AutoBackupConfig(auto_config.enabled, auto_config.interval_days, auto_config.max_keep)
        self._commit(normalized.to_dict(), "auto-backup settings")

    def set_last_auto_backup_time(self, timestamp):
        self._commit({"lastAutoBackupTime": timestamp}, "last auto-backup time")

    def snapshot(self):
        """Web view representation; the WebDAV password is not echoed back."""
        data = self.backup_config.to_dict()
        data["webdav"]["password"] = ""
        data["webdav"]["hasPassword"] = bool(self.backup_config.webdav.password)
        data.update(self.auto_backup_config.to_dict())
        data["lastAutoBackupTime"] = self.last_auto_backup_time
        return data

    def _commit(self, values, what):
        if not self.config_manager.save_config(values):
            raise SettingsSaveError(f"Could not save {what}")
        logger.info(f"Saved {what}.")
