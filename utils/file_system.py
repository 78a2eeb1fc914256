import os
import re
import time
import json
import errno
import hashlib
import logging
from datetime import datetime

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "ai-toolbox-backup-"
BACKUP_SUFFIX = ".zip"
BACKUP_NAME_PATTERN = re.compile(
    r"ai-toolbox-backup-(\d{4})(\d{2})(\d{2})-(\d{2})(\d{2})(\d{2})\.zip"
)

SIZE_UNITS = ["B", "KB", "MB", "GB"]


def format_size(size):
    """Formats bytes as B/KB/MB/GB; bytes without decimals, larger units with one."""
    if size == 0:
        return "0 B"
    unit_index = 0
    while size >= 1024 and unit_index < len(SIZE_UNITS) - 1:
        size /= 1024
        unit_index += 1
    if unit_index == 0:
        return f"{size} {SIZE_UNITS[0]}"
    return f"{size:.1f} {SIZE_UNITS[unit_index]}"


def format_backup_name(filename):
    """ai-toolbox-backup-20260101-120000.zip -> 2026-01-01 12:00:00, anything else verbatim."""
    match = BACKUP_NAME_PATTERN.search(filename)
    if not match:
        return filename
    year, month, day, hour, minute, sec = match.groups()
    return f"{year}-{month}-{day} {hour}:{minute}:{sec}"


def backup_filename(now=None):
    now = now or datetime.now()
    return f"{BACKUP_PREFIX}{now.strftime('%Y%m%d-%H%M%S')}{BACKUP_SUFFIX}"


def is_backup_filename(name):
    return name.startswith(BACKUP_PREFIX) and name.endswith(BACKUP_SUFFIX)


def calculate_hash(file_path):
    """SHA-256 of a file, read in 8MB blocks."""
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(8 * 1024 * 1024)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()


def safe_write_json(file_path, data):
    """
    Writes JSON through a temp file and an atomic replace.
    Retries while another process holds the file (Windows sharing violations).
    """
    temp_path = file_path + ".tmp"
    for i in range(15):
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=4, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, file_path)
            return True
        except OSError as e:
            if e.errno == errno.EACCES:
                logger.warning(f"File locked, retrying... ({i+1}/15)")
                time.sleep(0.3)
            else:
                logger.error(f"OS error while writing {file_path}: {e}")
                break

    if os.path.exists(temp_path):
        try:
            os.remove(temp_path)
        except OSError:
            pass
    return False
