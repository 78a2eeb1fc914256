import logging
import json
import sys

# --- Log Filtering & Formatting ---

# Polling endpoints of the web view; their 200 OK lines only clutter the console
POLLING_ENDPOINTS = (
    "/api/stream",
    "/api/get_config",
    "/api/backup_settings",
    "/api/webdav_restore",
    "/api/ssh_status",
    "/api/lang",
)


class JSONFormatter(logging.Formatter):
    """Formats records as JSON lines for machine processing."""
    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
            "thread": record.threadName
        }
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


class EndpointFilter(logging.Filter):
    """Drops successful polling requests from the console."""
    def filter(self, record):
        msg = record.getMessage()
        if " 200 " in msg and any(endpoint in msg for endpoint in POLLING_ENDPOINTS):
            return False
        # SSE clients reconnect often, their disconnects are harmless
        if "/api/stream" in msg and "Client disconnected while serving" in msg:
            return False
        return True


def setup_logging(log_file_path, debug_mode=False):
    """Console handler (plain text, filtered) plus a JSON-lines file handler."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Avoid duplicate handlers on re-initialisation
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if debug_mode else logging.INFO)
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    console_handler.addFilter(EndpointFilter())

    file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(JSONFormatter())

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    # requests/urllib3 connection chatter stays out of the log
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return logging.getLogger(__name__)
