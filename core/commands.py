"""Backup command handlers registered on the command bridge."""
import logging
from datetime import datetime

from core.backup_engine import BackupEngine
from core.command_bridge import CommandBridge
from core.errors import CommandError
from core.models import WebDAVConfig
from core.webdav import WebDAVClient
from utils.file_system import backup_filename

logger = logging.getLogger(__name__)


def _require(args, key):
    value = args.get(key)
    if not isinstance(value, str) or not value.strip():
        raise CommandError(f"Missing argument: {key}")
    return value


class BackupCommands:
    def __init__(self, engine: BackupEngine, client_factory=WebDAVClient):
        self.engine = engine
        self.client_factory = client_factory

    def register(self, bridge: CommandBridge):
        bridge.register("backup_database", self.backup_database)
        bridge.register("restore_database", self.restore_database)
        bridge.register("get_database_path", self.get_database_path)
        bridge.register("backup_to_webdav", self.backup_to_webdav)
        bridge.register("list_webdav_backups", self.list_webdav_backups)
        bridge.register("restore_from_webdav", self.restore_from_webdav)
        bridge.register("test_webdav_connection", self.test_webdav_connection)
        bridge.register("delete_webdav_backup", self.delete_webdav_backup)

    def _client(self, args):
        return self.client_factory(WebDAVConfig.from_dict(args))

    # --- Local ---

    def backup_database(self, args):
        backup_path = args.get("backupPath") or ""
        if not backup_path.strip():
            raise CommandError("Backup path is not configured")
        return self.engine.backup_to_directory(backup_path)

    def restore_database(self, args):
        self.engine.restore_from_archive(_require(args, "zipFilePath"))

    def get_database_path(self, args):
        return self.engine.db_dir

    # --- WebDAV ---

    def backup_to_webdav(self, args):
        with self._client(args) as client:
            data = self.engine.create_backup_bytes()
            filename = backup_filename()
            client.upload(filename, data)
            location = client.url_for(filename)
        self.engine.db_manager.add_history_entry(
            filename=filename,
            timestamp=datetime.now().isoformat(timespec="seconds"),
            size=len(data),
            destination="webdav",
            location=location,
        )
        return filename

    def list_webdav_backups(self, args):
        with self._client(args) as client:
            return [b.to_dict() for b in client.list_backups()]

    def restore_from_webdav(self, args):
        filename = _require(args, "filename")
        with self._client(args) as client:
            data = client.download(filename)
        self.engine.restore_from_bytes(data, filename, source="webdav")

    def test_webdav_connection(self, args):
        with self._client(args) as client:
            client.test_connection()

    def delete_webdav_backup(self, args):
        filename = _require(args, "filename")
        with self._client(args) as client:
            client.delete(filename)
