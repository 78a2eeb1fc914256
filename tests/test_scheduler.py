"""Tests for the auto-backup scheduler: due logic, runs and retention cleanup.

Run: pytest tests/test_scheduler.py -v
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from core.command_bridge import AUTO_BACKUP_COMPLETED_EVENT
from core.errors import CommandError
from core.models import AutoBackupConfig, BackupConfig, BackupFileInfo, WebDAVConfig
from core.scheduler import BackupScheduler, is_backup_due

NOW = datetime(2026, 5, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_client():
    return MagicMock()


@pytest.fixture
def mock_engine():
    return MagicMock()


@pytest.fixture
def scheduler(settings, mock_client, mock_engine):
    return BackupScheduler(settings, mock_client, mock_engine, initial_delay=0, check_interval=0)


def _enable(settings, backup, interval_days=1, max_keep=0):
    settings.set_backup_settings(backup)
    settings.set_auto_backup_settings(AutoBackupConfig(True, interval_days, max_keep))


class TestIsBackupDue:
    def test_never_ran(self):
        assert is_backup_due(None, 1, NOW)
        assert is_backup_due("", 1, NOW)

    def test_unreadable_timestamp(self):
        assert is_backup_due("yesterday", 1, NOW)

    def test_within_interval(self):
        last = (NOW - timedelta(hours=23)).isoformat()
        assert not is_backup_due(last, 1, NOW)

    def test_interval_elapsed(self):
        last = (NOW - timedelta(days=3)).isoformat()
        assert is_backup_due(last, 3, NOW)
        assert not is_backup_due(last, 4, NOW)

    def test_zulu_suffix(self):
        assert not is_backup_due("2026-05-10T06:00:00Z", 1, NOW)
        assert is_backup_due("2026-05-09T11:59:59Z", 1, NOW)

    def test_naive_timestamp_is_utc(self):
        assert not is_backup_due("2026-05-10T06:00:00", 1, NOW)
        assert is_backup_due("2026-05-09T11:59:59", 1, NOW)


class TestCheckAndRun:
    def test_disabled(self, scheduler, settings, mock_client):
        settings.set_backup_settings(BackupConfig(local_backup_path="/b"))
        assert scheduler.check_and_run(NOW) is False
        mock_client.backup_database.assert_not_called()

    def test_not_due(self, scheduler, settings, mock_client):
        _enable(settings, BackupConfig(local_backup_path="/b"))
        settings.set_last_auto_backup_time((NOW - timedelta(hours=1)).isoformat())
        assert scheduler.check_and_run(NOW) is False
        mock_client.backup_database.assert_not_called()

    def test_missing_destination(self, scheduler, settings, mock_client):
        _enable(settings, BackupConfig())
        assert scheduler.check_and_run(NOW) is False
        _enable(settings, BackupConfig(backup_type="webdav"))
        assert scheduler.check_and_run(NOW) is False
        mock_client.backup_database.assert_not_called()
        mock_client.backup_to_webdav.assert_not_called()

    def test_local_backup(self, scheduler, settings, mock_client, mock_engine):
        _enable(settings, BackupConfig(local_backup_path="/b"))

        assert scheduler.check_and_run(NOW) is True

        mock_client.backup_database.assert_called_once_with("/b")
        assert settings.last_auto_backup_time == NOW.isoformat()
        mock_client.bridge.emit.assert_called_once_with(AUTO_BACKUP_COMPLETED_EVENT, NOW.isoformat())
        mock_engine.apply_retention.assert_not_called()

    def test_webdav_backup(self, scheduler, settings, mock_client):
        _enable(settings, BackupConfig(
            backup_type="webdav",
            webdav=WebDAVConfig(url="https://h", username="u", password="p", remote_path="r"),
        ))
        assert scheduler.check_and_run(NOW) is True
        mock_client.backup_to_webdav.assert_called_once_with("https://h", "u", "p", "r")

    def test_failed_backup_keeps_last_time(self, scheduler, settings, mock_client):
        _enable(settings, BackupConfig(local_backup_path="/b"))
        mock_client.backup_database.side_effect = CommandError("disk full")
        with pytest.raises(CommandError):
            scheduler.check_and_run(NOW)
        assert settings.last_auto_backup_time is None
        mock_client.bridge.emit.assert_not_called()

    def test_local_retention(self, scheduler, settings, mock_engine):
        _enable(settings, BackupConfig(local_backup_path="/b"), max_keep=3)
        scheduler.check_and_run(NOW)
        mock_engine.apply_retention.assert_called_once_with("/b", 3)


class TestWebDAVCleanup:
    BACKUP = BackupConfig(
        backup_type="webdav",
        webdav=WebDAVConfig(url="https://h", username="u", password="p", remote_path="r"),
    )

    def _listing(self, count):
        return [BackupFileInfo(f"ai-toolbox-backup-2026010{i}-000000.zip", i) for i in range(count, 0, -1)]

    def test_deletes_beyond_max_keep(self, scheduler, mock_client):
        backups = self._listing(5)
        mock_client.list_webdav_backups.return_value = backups

        deleted = scheduler.cleanup(self.BACKUP, 2)

        assert deleted == [b.filename for b in backups[2:]]
        assert mock_client.delete_webdav_backup.call_count == 3
        mock_client.delete_webdav_backup.assert_any_call("https://h", "u", "p", "r", backups[4].filename)

    def test_failed_delete_continues(self, scheduler, mock_client):
        backups = self._listing(4)
        mock_client.list_webdav_backups.return_value = backups
        mock_client.delete_webdav_backup.side_effect = [CommandError("locked"), None]

        deleted = scheduler.cleanup(self.BACKUP, 2)

        assert deleted == [backups[3].filename]

    def test_failed_listing_is_logged_only(self, scheduler, mock_client):
        mock_client.list_webdav_backups.side_effect = CommandError("offline")
        assert scheduler.cleanup(self.BACKUP, 2) == []
        mock_client.delete_webdav_backup.assert_not_called()


class TestLifecycle:
    def test_start_and_stop(self, settings, mock_client, mock_engine):
        scheduler = BackupScheduler(settings, mock_client, mock_engine, initial_delay=60, check_interval=60)
        scheduler.start()
        assert scheduler.thread.is_alive()
        scheduler.stop()
        assert not scheduler.thread.is_alive()
        mock_client.backup_database.assert_not_called()
