"""
Backup settings modal.

Holds the form state between open and save. The destination radio only
changes which fields are visible: local path and WebDAV values both survive a
switch. Nothing reaches the settings store until ``save``.
"""
import logging
import threading
from dataclasses import replace

from config.settings_manager import SettingsStore
from core.backup_client import BackupClient
from core.errors import CommandError, SettingsSaveError, parse_command_error
from core.models import (
    BACKUP_TYPE_LOCAL, BACKUP_TYPE_WEBDAV, BACKUP_TYPES,
    AutoBackupConfig, BackupConfig,
    clamp_interval_days, clamp_max_keep,
)
from gui.form_validation import FormValidationError, validate_backup_form
from gui.notifications import Notifier
from utils.i18n import tr

logger = logging.getLogger(__name__)

STATE_LOCAL = "local-selected"
STATE_WEBDAV = "webdav-selected"
STATE_AUTO_ENABLED = "auto-backup-enabled"
STATE_AUTO_DISABLED = "auto-backup-disabled"


class BackupSettingsModal:
    def __init__(self, settings: SettingsStore, client: BackupClient, notifier: Notifier):
        self.settings = settings
        self.client = client
        self.notifier = notifier
        self.lock = threading.Lock()
        self.is_open = False
        self.testing = False
        self.errors = {}
        self._reset_form()

    def _reset_form(self):
        backup = self.settings.backup_config
        auto = self.settings.auto_backup_config
        self.backup_type = backup.backup_type
        self.local_backup_path = backup.local_backup_path
        self.webdav = backup.webdav
        self.auto_backup_enabled = auto.enabled
        self.interval_days = auto.interval_days
        self.max_keep = auto.max_keep

    # --- Lifecycle ---

    def open(self):
        """Loads the current store values into the form."""
        self._reset_form()
        self.errors = {}
        self.is_open = True
        return self.view()

    def close(self):
        self.is_open = False
        self.errors = {}

    # --- Field edits ---

    def set_backup_type(self, backup_type):
        if backup_type not in BACKUP_TYPES:
            raise ValueError(f"Unknown backup type: {backup_type!r}")
        self.backup_type = backup_type

    def set_local_backup_path(self, path):
        self.local_backup_path = path or ""

    def select_folder(self):
        """Native folder dialog; a cancelled dialog keeps the current path."""
        selected = self.client.select_folder(title=tr("settings.backupSettings.selectFolder", "Select Folder"))
        if selected:
            self.local_backup_path = selected
        return self.local_backup_path

    def update_webdav(self, fields):
        """
        Applies a partial {url, username, password, remotePath} edit. The view
        never carries the stored password, so an empty one keeps it unless
        ``clearPassword`` is set.
        """
        fields = dict(fields or {})
        if fields.get("password") == "" and not fields.pop("clearPassword", False):
            fields["password"] = None
        self.webdav = self.webdav.merged(fields)
        for key in fields or {}:
            self.errors.pop(f"webdav.{key}", None)

    def set_auto_backup_enabled(self, enabled):
        self.auto_backup_enabled = bool(enabled)

    def set_interval_days(self, value):
        self.interval_days = clamp_interval_days(value)
        return self.interval_days

    def set_max_keep(self, value):
        self.max_keep = clamp_max_keep(value)
        return self.max_keep

    def apply(self, changes):
        """Applies a dict of form edits as sent by the web view."""
        if "backupType" in changes:
            self.set_backup_type(changes["backupType"])
        if "localBackupPath" in changes:
            self.set_local_backup_path(changes["localBackupPath"])
        if "webdav" in changes:
            self.update_webdav(changes["webdav"])
        if "autoBackupEnabled" in changes:
            self.set_auto_backup_enabled(changes["autoBackupEnabled"])
        if "autoBackupIntervalDays" in changes:
            self.set_interval_days(changes["autoBackupIntervalDays"])
        if "autoBackupMaxKeep" in changes:
            self.set_max_keep(changes["autoBackupMaxKeep"])
        return self.view()

    # --- Derived state ---

    @property
    def destination_state(self):
        return STATE_WEBDAV if self.backup_type == BACKUP_TYPE_WEBDAV else STATE_LOCAL

    @property
    def auto_backup_state(self):
        return STATE_AUTO_ENABLED if self.auto_backup_enabled else STATE_AUTO_DISABLED

    def backup_config(self):
        return BackupConfig(
            backup_type=self.backup_type,
            local_backup_path=self.local_backup_path,
            webdav=replace(self.webdav),
        )

    def auto_backup_config(self):
        return AutoBackupConfig(
            enabled=self.auto_backup_enabled,
            interval_days=self.interval_days,
            max_keep=self.max_keep,
        )

    def view(self):
        view = {
            "open": self.is_open,
            "state": self.destination_state,
            "autoBackupState": self.auto_backup_state,
            "testing": self.testing,
            "errors": dict(self.errors),
            "backupType": self.backup_type,
            "autoBackupEnabled": self.auto_backup_enabled,
        }
        if self.backup_type == BACKUP_TYPE_LOCAL:
            view["localBackupPath"] = self.local_backup_path
        else:
            webdav = self.webdav.to_dict()
            webdav["password"] = ""
            webdav["hasPassword"] = bool(self.webdav.password)
            view["webdav"] = webdav
        if self.auto_backup_enabled:
            view["autoBackupIntervalDays"] = self.interval_days
            view["autoBackupMaxKeep"] = self.max_keep
            view["unlimitedHint"] = self.max_keep == 0
        return view

    # --- Actions ---

    def test_connection(self):
        """
        Tests the WebDAV fields currently in the form. Returns True on success,
        False on failure, None when nothing was sent (no URL, or a test is
        already running).
        """
        webdav = replace(self.webdav)
        if not webdav.url.strip():
            self.notifier.warning(tr("settings.webdav.errors.checkUrl", "Please check the WebDAV URL"))
            return None

        with self.lock:
            if self.testing:
                return None
            self.testing = True
        try:
            self.client.test_webdav_connection(
                webdav.url, webdav.username or "", webdav.password or "", webdav.remote_path or ""
            )
            self.notifier.success(tr("settings.webdav.testSuccess", "Connection successful"))
            return True
        except CommandError as e:
            logger.error(f"WebDAV connection test failed: {e.payload}")
            message = parse_command_error(e).display()
            self.notifier.error(f"{tr('settings.webdav.testFailed', 'Connection failed')}: {message}")
            return False
        finally:
            with self.lock:
                self.testing = False

    def validate(self):
        errors = validate_backup_form(self.backup_config())
        self.errors = errors
        if errors:
            raise FormValidationError(errors)

    def save(self):
        """
        Validates, then commits the backup settings and the auto-backup
        settings in two calls. Returns True when the modal closed.
        """
        try:
            self.validate()
        except FormValidationError as e:
            logger.info(f"Backup settings not saved, invalid fields: {list(e.errors)}")
            return False

        try:
            self.settings.set_backup_settings(self.backup_config())
            self.settings.set_auto_backup_settings(self.auto_backup_config())
        except SettingsSaveError as e:
            # The first commit is not rolled back when the second one fails
            self.notifier.error(f"{tr('settings.backupSettings.saveFailed', 'Failed to save settings')}: {e}")
            return False

        self.close()
        return True
