import logging
import threading
from datetime import datetime, timedelta, timezone

from config.settings_manager import SettingsStore
from core.backup_client import BackupClient
from core.backup_engine import BackupEngine
from core.command_bridge import AUTO_BACKUP_COMPLETED_EVENT
from core.errors import CommandError
from core.models import BACKUP_TYPE_LOCAL, BACKUP_TYPE_WEBDAV

logger = logging.getLogger(__name__)

INITIAL_DELAY = 30
CHECK_INTERVAL = 600


def is_backup_due(last_time, interval_days, now=None):
    """Due when nothing ran yet, the timestamp is unreadable, or the interval elapsed."""
    if not last_time:
        return True
    if isinstance(last_time, str) and last_time.endswith(("Z", "z")):
        last_time = last_time[:-1] + "+00:00"
    try:
        last_dt = datetime.fromisoformat(last_time)
    except (TypeError, ValueError):
        return True
    if last_dt.tzinfo is None:
        last_dt = last_dt.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return now - last_dt >= timedelta(days=interval_days)


class BackupScheduler:
    def __init__(self, settings: SettingsStore, client: BackupClient, engine: BackupEngine,
                 initial_delay=INITIAL_DELAY, check_interval=CHECK_INTERVAL):
        self.settings = settings
        self.client = client
        self.engine = engine
        self.initial_delay = initial_delay
        self.check_interval = check_interval
        self.stop_event = threading.Event()
        self.thread = None

    def start(self):
        if self.thread and self.thread.is_alive():
            return
        self.stop_event.clear()
        self.thread = threading.Thread(target=self._run_loop, daemon=True, name="AutoBackupScheduler")
        self.thread.start()
        logger.info("Auto-backup scheduler started.")

    def stop(self):
        if self.thread:
            self.stop_event.set()
            self.thread.join(timeout=5)
            logger.info("Auto-backup scheduler stopped.")

    def _run_loop(self):
        if self.stop_event.wait(self.initial_delay):
            return
        while not self.stop_event.is_set():
            try:
                self.check_and_run()
            except Exception as e:
                logger.warning(f"Auto-backup check failed: {e}")
            if self.stop_event.wait(self.check_interval):
                break

    def check_and_run(self, now=None):
        """Runs one auto-backup if enabled and due. Returns True when a backup was made."""
        self.settings.initialize(reload=False)
        auto = self.settings.auto_backup_config
        if not auto.enabled:
            return False
        if not is_backup_due(self.settings.last_auto_backup_time, auto.interval_days, now):
            return False

        backup = self.settings.backup_config
        if backup.backup_type == BACKUP_TYPE_WEBDAV:
            if not backup.webdav.url:
                return False
            logger.info("Auto-backup is due, performing WebDAV backup...")
            webdav = backup.webdav
            self.client.backup_to_webdav(webdav.url, webdav.username, webdav.password, webdav.remote_path)
        else:
            if not backup.local_backup_path:
                return False
            logger.info("Auto-backup is due, performing local backup...")
            self.client.backup_database(backup.local_backup_path)

        timestamp = (now or datetime.now(timezone.utc)).isoformat()
        self.settings.set_last_auto_backup_time(timestamp)
        self.client.bridge.emit(AUTO_BACKUP_COMPLETED_EVENT, timestamp)
        logger.info("Auto-backup completed successfully.")

        if auto.max_keep > 0:
            self.cleanup(backup, auto.max_keep)
        return True

    def cleanup(self, backup, max_keep):
        """Deletes backups beyond the newest ``max_keep``. Failures are logged only."""
        if backup.backup_type == BACKUP_TYPE_LOCAL:
            return self.engine.apply_retention(backup.local_backup_path, max_keep)

        webdav = backup.webdav
        try:
            backups = self.client.list_webdav_backups(
                webdav.url, webdav.username, webdav.password, webdav.remote_path
            )
        except CommandError as e:
            logger.warning(f"Auto-backup cleanup failed: {e.payload}")
            return []

        to_delete = backups[max_keep:]
        if to_delete:
            logger.info(f"Auto-backup cleanup: deleting {len(to_delete)} old WebDAV backup(s)")
        deleted = []
        for item in to_delete:
            try:
                self.client.delete_webdav_backup(
                    webdav.url, webdav.username, webdav.password, webdav.remote_path, item.filename
                )
                deleted.append(item.filename)
            except CommandError as e:
                logger.warning(f"Failed to delete old backup {item.filename}: {e.payload}")
        return deleted
