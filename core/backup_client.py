"""
Backup service client.

Thin typed wrapper over the command bridge. No retries, no caching, and no
validation beyond rejecting an empty backup path.
"""
import logging

from core.command_bridge import CommandBridge
from core.errors import BackupClientError
from core.models import BackupFileInfo
from gui import dialogs

logger = logging.getLogger(__name__)


def _webdav_args(url, username, password, remote_path):
    return {
        "url": url,
        "username": username,
        "password": password,
        "remotePath": remote_path,
    }


class BackupClient:
    def __init__(self, bridge: CommandBridge, dialog_module=dialogs):
        self.bridge = bridge
        self.dialogs = dialog_module

    def backup_database(self, backup_path: str) -> str:
        """Returns the full path of the created archive."""
        if not backup_path:
            raise BackupClientError("Backup path is not configured")
        return self.bridge.invoke("backup_database", {"backupPath": backup_path})

    def restore_database(self, zip_file_path: str) -> None:
        self.bridge.invoke("restore_database", {"zipFilePath": zip_file_path})

    def get_database_path(self) -> str:
        return self.bridge.invoke("get_database_path")

    def select_backup_file(self):
        """Native file dialog for a backup archive; None when cancelled."""
        return self.dialogs.pick_file(
            title="Select Backup File", filetypes=[("Backup Files", "*.zip")]
        )

    def select_folder(self, title="Select Backup Folder"):
        return self.dialogs.pick_folder(title=title)

    def backup_to_webdav(self, url, username, password, remote_path) -> str:
        """Returns the created remote filename."""
        return self.bridge.invoke("backup_to_webdav", _webdav_args(url, username, password, remote_path))

    def list_webdav_backups(self, url, username, password, remote_path):
        result = self.bridge.invoke("list_webdav_backups", _webdav_args(url, username, password, remote_path))
        return [BackupFileInfo.from_dict(item) for item in result or []]

    def restore_from_webdav(self, url, username, password, remote_path, filename) -> None:
        args = _webdav_args(url, username, password, remote_path)
        args["filename"] = filename
        self.bridge.invoke("restore_from_webdav", args)

    def test_webdav_connection(self, url, username, password, remote_path) -> None:
        self.bridge.invoke("test_webdav_connection", _webdav_args(url, username, password, remote_path))

    def delete_webdav_backup(self, url, username, password, remote_path, filename) -> None:
        args = _webdav_args(url, username, password, remote_path)
        args["filename"] = filename
        self.bridge.invoke("delete_webdav_backup", args)
