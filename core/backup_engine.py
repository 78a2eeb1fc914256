import io
import os
import shutil
import zlib
import zipfile
import logging
import tempfile
import threading
from datetime import datetime

from core.database import DatabaseManager
from core.errors import CommandError
from core.models import BackupFileInfo
from utils.file_system import backup_filename, calculate_hash, is_backup_filename

logger = logging.getLogger(__name__)

ARCHIVE_DB_PREFIX = "db/"

SUGGEST_INVALID_ARCHIVE = "settings.backup.errors.invalidArchive"
SUGGEST_FILE_NOT_FOUND = "settings.backup.errors.fileNotFound"
SUGGEST_IO = "settings.backup.errors.io"


def validate_archive(zip_path):
    """
    A restorable archive is a readable zip with at least one ``db/`` file and
    no entry escaping the extraction directory.
    """
    if not os.path.isfile(zip_path):
        raise CommandError.structured(SUGGEST_FILE_NOT_FOUND, f"Backup file not found: {zip_path}")
    if not zipfile.is_zipfile(zip_path):
        raise CommandError.structured(SUGGEST_INVALID_ARCHIVE, "Not a zip archive")

    with zipfile.ZipFile(zip_path) as zf:
        names = zf.namelist()
        for name in names:
            parts = name.replace("\\", "/").split("/")
            if name.startswith(("/", "\\")) or ".." in parts or ":" in parts[0]:
                raise CommandError.structured(SUGGEST_INVALID_ARCHIVE, f"Unsafe archive entry: {name}")
        if not any(n.startswith(ARCHIVE_DB_PREFIX) and not n.endswith("/") for n in names):
            raise CommandError.structured(SUGGEST_INVALID_ARCHIVE, "Archive contains no database files")
        try:
            bad = zf.testzip()
        except (zipfile.BadZipFile, zlib.error, OSError) as e:
            raise CommandError.structured(SUGGEST_INVALID_ARCHIVE, f"Corrupt archive: {e}") from e
        if bad is not None:
            raise CommandError.structured(SUGGEST_INVALID_ARCHIVE, f"Corrupt archive entry: {bad}")


class BackupEngine:
    """Creates, validates and restores zip archives of the database directory."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager
        self.backup_lock = threading.Lock()

    @property
    def db_dir(self):
        return self.db_manager.db_dir

    # --- Archive creation ---

    def write_file_to_zip_chunked(self, zip_file, source_path, arcname, chunk_size=16*1024*1024):
        zinfo = zipfile.ZipInfo.from_file(source_path, arcname)
        zinfo.compress_type = zip_file.compression
        with zip_file.open(zinfo, 'w') as dest:
            with open(source_path, 'rb') as src:
                while True:
                    chunk = src.read(chunk_size)
                    if not chunk:
                        break
                    dest.write(chunk)

    def _write_archive(self, fileobj):
        self.db_manager.checkpoint()
        count = 0
        with zipfile.ZipFile(fileobj, 'w', compression=zipfile.ZIP_DEFLATED) as zf:
            for root, _dirs, files in os.walk(self.db_dir):
                for name in sorted(files):
                    full_path = os.path.join(root, name)
                    rel_path = os.path.relpath(full_path, self.db_dir).replace(os.sep, "/")
                    self.write_file_to_zip_chunked(zf, full_path, ARCHIVE_DB_PREFIX + rel_path)
                    count += 1
        logger.debug(f"Archived {count} file(s) from {self.db_dir}")

    def create_backup_bytes(self):
        """Archive of the database directory, in memory (for uploads)."""
        with self.backup_lock:
            buffer = io.BytesIO()
            try:
                self._write_archive(buffer)
            except OSError as e:
                raise CommandError.structured(SUGGEST_IO, f"Failed to create backup archive: {e}") from e
            return buffer.getvalue()

    def backup_to_directory(self, backup_dir, now=None):
        """Writes ``ai-toolbox-backup-<timestamp>.zip`` into ``backup_dir`` and returns its path."""
        filename = backup_filename(now)
        target = os.path.join(backup_dir, filename)
        with self.backup_lock:
            if os.path.exists(target):
                raise CommandError.structured(SUGGEST_IO, f"Backup file already exists: {target}")
            try:
                os.makedirs(backup_dir, exist_ok=True)
                temp_path = target + ".part"
                with open(temp_path, "wb") as f:
                    self._write_archive(f)
                os.replace(temp_path, target)
            except OSError as e:
                raise CommandError.structured(SUGGEST_IO, f"Failed to write backup file: {e}") from e

        size = os.path.getsize(target)
        logger.info(f"Backup saved to {target} ({size} bytes)")
        self.db_manager.add_history_entry(
            filename=filename,
            timestamp=datetime.now().isoformat(timespec="seconds"),
            size=size,
            sha256=calculate_hash(target),
            destination="local",
            location=target,
        )
        return target

    # --- Validation & restore ---

    def restore_from_archive(self, zip_path, source="local", filename=None):
        """Replaces the database directory with the archive contents."""
        validate_archive(zip_path)

        parent = os.path.dirname(os.path.abspath(self.db_dir))
        with self.backup_lock:
            staging = tempfile.mkdtemp(prefix=".restore-", dir=parent)
            previous = self.db_dir.rstrip(os.sep) + ".previous"
            try:
                with zipfile.ZipFile(zip_path) as zf:
                    members = [n for n in zf.namelist() if n.startswith(ARCHIVE_DB_PREFIX)]
                    zf.extractall(staging, members=members)
                restored = os.path.join(staging, ARCHIVE_DB_PREFIX.rstrip("/"))

                if os.path.exists(previous):
                    shutil.rmtree(previous, ignore_errors=True)
                if os.path.exists(self.db_dir):
                    os.replace(self.db_dir, previous)
                try:
                    os.replace(restored, self.db_dir)
                except OSError:
                    if os.path.exists(previous):
                        os.replace(previous, self.db_dir)
                    raise
                if os.path.exists(previous):
                    shutil.rmtree(previous, ignore_errors=True)
            except (OSError, zipfile.BadZipFile) as e:
                raise CommandError.structured(SUGGEST_IO, f"Failed to restore backup: {e}") from e
            finally:
                shutil.rmtree(staging, ignore_errors=True)

        self.db_manager.init_db()
        self.db_manager.add_history_entry(
            filename=filename or os.path.basename(zip_path),
            timestamp=datetime.now().isoformat(timespec="seconds"),
            size=os.path.getsize(zip_path),
            destination=source,
            location=zip_path,
            action="restore",
        )
        logger.info(f"Database restored from {zip_path}")

    def restore_from_bytes(self, data, filename, source="webdav"):
        fd, temp_path = tempfile.mkstemp(suffix=".zip")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            self.restore_from_archive(temp_path, source=source, filename=filename)
        finally:
            try:
                os.remove(temp_path)
            except OSError:
                pass
        logger.info(f"Restored {filename} from {source}")

    # --- Retention ---

    def list_local_backups(self, backup_dir):
        """Backups in ``backup_dir``, newest first by filename."""
        if not os.path.isdir(backup_dir):
            return []
        backups = []
        for name in os.listdir(backup_dir):
            path = os.path.join(backup_dir, name)
            if is_backup_filename(name) and os.path.isfile(path):
                backups.append(BackupFileInfo(filename=name, size=os.path.getsize(path)))
        backups.sort(key=lambda b: b.filename, reverse=True)
        return backups

    def apply_retention(self, backup_dir, max_keep):
        """Keeps the newest ``max_keep`` local backups. 0 keeps everything."""
        if max_keep <= 0:
            return []
        backups = self.list_local_backups(backup_dir)
        to_delete = backups[max_keep:]
        if to_delete:
            logger.info(f"Retention: deleting {len(to_delete)} old local backup(s)")
        deleted = []
        for backup in to_delete:
            try:
                os.remove(os.path.join(backup_dir, backup.filename))
                deleted.append(backup.filename)
            except OSError as e:
                logger.warning(f"Failed to delete old backup {backup.filename}: {e}")
        return deleted
