"""
Settings and listing types shared by the settings store, the modals and the
native backup handlers.
"""
import math
from dataclasses import dataclass, field

BACKUP_TYPE_LOCAL = "local"
BACKUP_TYPE_WEBDAV = "webdav"
BACKUP_TYPES = (BACKUP_TYPE_LOCAL, BACKUP_TYPE_WEBDAV)

DEFAULT_INTERVAL_DAYS = 1
DEFAULT_MAX_KEEP = 0


def _as_number(value):
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def clamp_interval_days(value):
    """Interval in whole days, never below 1."""
    number = _as_number(value)
    if number is None or number < 1:
        return 1
    return int(math.floor(number))


def clamp_max_keep(value):
    """Retention count in whole backups, never below 0 (0 = unlimited)."""
    number = _as_number(value)
    if number is None or number < 0:
        return 0
    return int(math.floor(number))


@dataclass
class WebDAVConfig:
    url: str = ""
    username: str = ""
    password: str = ""
    remote_path: str = ""

    def to_dict(self):
        return {
            "url": self.url,
            "username": self.username,
            "password": self.password,
            "remotePath": self.remote_path,
        }

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            url=str(data.get("url") or ""),
            username=str(data.get("username") or ""),
            password=str(data.get("password") or ""),
            remote_path=str(data.get("remotePath") or ""),
        )

    def merged(self, partial):
        """Returns a copy with the non-None fields of ``partial`` applied."""
        partial = partial or {}
        current = self.to_dict()
        current.update({k: v for k, v in partial.items() if k in current and v is not None})
        return WebDAVConfig.from_dict(current)


@dataclass
class BackupConfig:
    """
    Backup destination settings.

    Attributes:
        backup_type: Active destination, "local" or "webdav".
        local_backup_path: Target directory, only used for local backups.
        webdav: WebDAV credentials, kept even while local is active.
    """

    backup_type: str = BACKUP_TYPE_LOCAL
    local_backup_path: str = ""
    webdav: WebDAVConfig = field(default_factory=WebDAVConfig)

    def __post_init__(self):
        if self.backup_type not in BACKUP_TYPES:
            raise ValueError(f"Unknown backup type: {self.backup_type!r}")

    def to_dict(self):
        return {
            "backupType": self.backup_type,
            "localBackupPath": self.local_backup_path,
            "webdav": self.webdav.to_dict(),
        }

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        backup_type = data.get("backupType") or BACKUP_TYPE_LOCAL
        if backup_type not in BACKUP_TYPES:
            backup_type = BACKUP_TYPE_LOCAL
        return cls(
            backup_type=backup_type,
            local_backup_path=str(data.get("localBackupPath") or ""),
            webdav=WebDAVConfig.from_dict(data.get("webdav")),
        )


@dataclass
class AutoBackupConfig:
    enabled: bool = False
    interval_days: int = DEFAULT_INTERVAL_DAYS
    max_keep: int = DEFAULT_MAX_KEEP

    def __post_init__(self):
        self.enabled = bool(self.enabled)
        self.interval_days = clamp_interval_days(self.interval_days)
        self.max_keep = clamp_max_keep(self.max_keep)

    def to_dict(self):
        return {
            "autoBackupEnabled": self.enabled,
            "autoBackupIntervalDays": self.interval_days,
            "autoBackupMaxKeep": self.max_keep,
        }

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            enabled=data.get("autoBackupEnabled", False),
            interval_days=data.get("autoBackupIntervalDays", DEFAULT_INTERVAL_DAYS),
            max_keep=data.get("autoBackupMaxKeep", DEFAULT_MAX_KEEP),
        )


@dataclass(frozen=True)
class BackupFileInfo:
    filename: str
    size: int

    def to_dict(self):
        return {"filename": self.filename, "size": self.size}

    @classmethod
    def from_dict(cls, data):
        return cls(filename=str(data["filename"]), size=int(data.get("size") or 0))
