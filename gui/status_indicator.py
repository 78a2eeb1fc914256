"""SSH sync status dot shown in the settings header."""

STATUS_IDLE = "idle"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"
STATUSES = (STATUS_IDLE, STATUS_SUCCESS, STATUS_ERROR)


def status_color(enabled, status):
    if not enabled:
        return "gray"
    if status == STATUS_ERROR:
        return "red"
    # never synced, or waiting for the next sync
    if status == STATUS_IDLE:
        return "orange"
    return "green"


def indicator_view(enabled, status):
    return {"label": "SSH", "enabled": bool(enabled), "status": status, "color": status_color(enabled, status)}
