"""
Error types crossing the command bridge.

Bridge failures carry a string payload. Classified failures encode a JSON
object in that string with a ``suggestion`` localization key, everything else
is a plain message. ``parse_command_error`` is the single place that decides
which of the two it is.
"""
import json
from dataclasses import dataclass

from utils.i18n import tr

KIND_RAW = "raw"
KIND_STRUCTURED = "structured"


class CommandError(Exception):
    """Failure reported by a bridge command. ``payload`` is always a string."""

    def __init__(self, payload):
        self.payload = payload if isinstance(payload, str) else str(payload)
        super().__init__(self.payload)

    @classmethod
    def structured(cls, suggestion, detail=""):
        return cls(json.dumps({"error": detail, "suggestion": suggestion}))


class BackupClientError(Exception):
    """A client-side precondition failed; no bridge call was made."""


class SettingsSaveError(Exception):
    """The settings store could not persist a change."""


@dataclass(frozen=True)
class ErrorInfo:
    kind: str
    message: str
    suggestion_key: str = ""

    @property
    def is_structured(self):
        return self.kind == KIND_STRUCTURED

    def display(self):
        """User-facing text: the translated suggestion, or the raw message."""
        if self.is_structured:
            return tr(self.suggestion_key, self.message or self.suggestion_key)
        return self.message


def parse_command_error(error):
    payload = error.payload if isinstance(error, CommandError) else str(error)
    try:
        data = json.loads(payload)
    except (TypeError, ValueError):
        return ErrorInfo(kind=KIND_RAW, message=payload)
    if isinstance(data, dict) and data.get("suggestion"):
        return ErrorInfo(
            kind=KIND_STRUCTURED,
            message=str(data.get("error") or ""),
            suggestion_key=str(data["suggestion"]),
        )
    return ErrorInfo(kind=KIND_RAW, message=payload)
