"""Tests for the backup commands as invoked through the bridge.

Run: pytest tests/test_commands.py -v
"""
import os
import zipfile
from unittest.mock import MagicMock

import pytest

from core.command_bridge import CommandBridge
from core.commands import BackupCommands
from core.errors import CommandError
from core.models import BackupFileInfo, WebDAVConfig

WEBDAV_ARGS = {
    "url": "https://dav.example.com",
    "username": "user",
    "password": "secret",
    "remotePath": "backups",
}


@pytest.fixture
def remote():
    """Stand-in for WebDAVClient returned by the client factory."""
    client = MagicMock()
    client.__enter__.return_value = client
    client.url_for.side_effect = lambda filename="": f"https://dav.example.com/backups/{filename}"
    return client


@pytest.fixture
def factory(remote):
    return MagicMock(return_value=remote)


@pytest.fixture
def remote_bridge(engine, factory):
    b = CommandBridge()
    BackupCommands(engine, client_factory=factory).register(b)
    return b


class TestLocalCommands:
    def test_backup_database(self, bridge, backup_dir):
        path = bridge.invoke("backup_database", {"backupPath": backup_dir})
        assert os.path.dirname(path) == backup_dir
        assert zipfile.is_zipfile(path)

    def test_backup_database_requires_path(self, bridge):
        with pytest.raises(CommandError, match="Backup path is not configured"):
            bridge.invoke("backup_database", {"backupPath": "  "})

    def test_restore_database(self, bridge, engine, backup_dir):
        path = bridge.invoke("backup_database", {"backupPath": backup_dir})
        bridge.invoke("restore_database", {"zipFilePath": path})
        assert engine.db_manager.get_history()[0]["action"] == "restore"

    def test_restore_database_requires_path(self, bridge):
        with pytest.raises(CommandError, match="zipFilePath"):
            bridge.invoke("restore_database", {})

    def test_get_database_path(self, bridge, engine):
        assert bridge.invoke("get_database_path") == engine.db_dir


class TestWebDAVCommands:
    def test_client_built_from_args(self, remote_bridge, factory):
        remote_bridge.invoke("test_webdav_connection", WEBDAV_ARGS)
        factory.assert_called_once_with(WebDAVConfig(
            url="https://dav.example.com", username="user",
            password="secret", remote_path="backups",
        ))

    def test_backup_to_webdav(self, remote_bridge, remote, engine):
        filename = remote_bridge.invoke("backup_to_webdav", WEBDAV_ARGS)

        assert filename.startswith("ai-toolbox-backup-")
        uploaded_name, data = remote.upload.call_args[0]
        assert uploaded_name == filename
        assert data[:2] == b"PK"
        entry = engine.db_manager.get_history()[0]
        assert entry["destination"] == "webdav"
        assert entry["location"] == f"https://dav.example.com/backups/{filename}"

    def test_list_webdav_backups(self, remote_bridge, remote):
        remote.list_backups.return_value = [BackupFileInfo("b.zip", 2), BackupFileInfo("a.zip", 1)]
        result = remote_bridge.invoke("list_webdav_backups", WEBDAV_ARGS)
        assert result == [{"filename": "b.zip", "size": 2}, {"filename": "a.zip", "size": 1}]

    def test_restore_from_webdav(self, remote_bridge, remote, engine):
        remote.download.return_value = engine.create_backup_bytes()
        remote_bridge.invoke("restore_from_webdav", dict(WEBDAV_ARGS, filename="x.zip"))

        remote.download.assert_called_once_with("x.zip")
        entry = engine.db_manager.get_history()[0]
        assert entry["action"] == "restore"
        assert entry["filename"] == "x.zip"

    def test_delete_requires_filename(self, remote_bridge, remote):
        with pytest.raises(CommandError, match="filename"):
            remote_bridge.invoke("delete_webdav_backup", WEBDAV_ARGS)
        remote.delete.assert_not_called()

    def test_delete(self, remote_bridge, remote):
        remote_bridge.invoke("delete_webdav_backup", dict(WEBDAV_ARGS, filename="x.zip"))
        remote.delete.assert_called_once_with("x.zip")

    def test_client_closed_after_failure(self, remote_bridge, remote):
        remote.test_connection.side_effect = CommandError("offline")
        with pytest.raises(CommandError):
            remote_bridge.invoke("test_webdav_connection", WEBDAV_ARGS)
        remote.__exit__.assert_called_once()

    def test_missing_url_is_structured(self, bridge):
        with pytest.raises(CommandError) as exc:
            bridge.invoke("test_webdav_connection", {"url": ""})
        assert "settings.webdav.errors.checkUrl" in exc.value.payload
