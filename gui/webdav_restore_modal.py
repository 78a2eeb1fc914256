"""
WebDAV restore modal: remote backup list with select and delete.

Deletes update the displayed list optimistically (the entry is dropped
locally, the server is not asked again). A listing that completes after the
modal was closed or reopened is discarded.
"""
import logging
import threading

from core.backup_client import BackupClient
from core.errors import CommandError, parse_command_error
from core.models import WebDAVConfig
from gui.notifications import Notifier
from utils.file_system import format_backup_name, format_size
from utils.i18n import tr

logger = logging.getLogger(__name__)

STATE_CLOSED = "closed"
STATE_LOADING = "loading"
STATE_EMPTY = "empty"
STATE_LIST = "list"


class WebDAVRestoreModal:
    def __init__(self, client: BackupClient, notifier: Notifier):
        self.client = client
        self.notifier = notifier
        self.lock = threading.Lock()
        self.is_open = False
        self.loading = False
        self.backups = []
        self.webdav = WebDAVConfig()
        self.on_select = None
        self._session = 0

    @property
    def state(self):
        if not self.is_open:
            return STATE_CLOSED
        if self.loading:
            return STATE_LOADING
        return STATE_LIST if self.backups else STATE_EMPTY

    def open(self, webdav: WebDAVConfig, on_select=None):
        """Opens the modal and loads the remote list for ``webdav``."""
        with self.lock:
            self._session += 1
            session = self._session
            self.is_open = True
            self.webdav = webdav
            self.on_select = on_select
            self.backups = []
        self._load(session)
        return self.view()

    def close(self):
        with self.lock:
            self._session += 1
            self.is_open = False
            self.loading = False

    def _load(self, session):
        webdav = self.webdav
        if not webdav.url:
            self.notifier.warning(tr("settings.backupSettings.noWebDAVConfigured", "WebDAV is not configured"))
            return

        with self.lock:
            self.loading = True
        try:
            files = self.client.list_webdav_backups(
                webdav.url, webdav.username, webdav.password, webdav.remote_path
            )
        except CommandError as e:
            logger.error(f"Failed to list backups: {e.payload}")
            if not self._finish(session):
                return
            prefix = tr("settings.backupSettings.listBackupsFailed", "Failed to list backups")
            self.notifier.error(f"{prefix}: {parse_command_error(e).display()}")
            return

        with self.lock:
            if session != self._session:
                logger.debug("Discarding backup list for a closed modal")
                return
            self.backups = list(files)
            self.loading = False

    def _finish(self, session):
        """Ends the loading state; False when ``session`` is no longer current."""
        with self.lock:
            if session != self._session:
                return False
            self.loading = False
            return True

    def select(self, filename):
        """Hands ``filename`` to the selection handler, then closes."""
        handler = self.on_select
        if handler:
            handler(filename)
        self.close()

    def delete(self, filename):
        webdav = self.webdav
        try:
            self.client.delete_webdav_backup(
                webdav.url, webdav.username, webdav.password, webdav.remote_path, filename
            )
        except CommandError as e:
            logger.error(f"Failed to delete backup {filename}: {e.payload}")
            self.notifier.error(parse_command_error(e).display())
            return False

        self.notifier.success(tr("common.success", "Success"))
        with self.lock:
            self.backups = [b for b in self.backups if b.filename != filename]
        return True

    def view(self):
        with self.lock:
            backups = list(self.backups)
        return {
            "open": self.is_open,
            "state": self.state,
            "loading": self.loading,
            "items": [
                {
                    "filename": b.filename,
                    "title": format_backup_name(b.filename),
                    "size": b.size,
                    "sizeLabel": format_size(b.size),
                }
                for b in backups
            ],
        }
