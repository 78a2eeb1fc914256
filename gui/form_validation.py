"""Field validators for the settings forms."""
from urllib.parse import urlsplit

from core.models import BACKUP_TYPE_WEBDAV
from utils.i18n import tr


def _required(value):
    return isinstance(value, str) and bool(value.strip())


def _is_http_url(value):
    parts = urlsplit(value.strip())
    return parts.scheme.lower() in ("http", "https") and bool(parts.netloc)


# field -> [(check, message key, default text)], first failing rule wins
WEBDAV_RULES = {
    "url": [
        (_required, "settings.webdav.errors.checkUrl", "Please check the WebDAV URL"),
        (_is_http_url, "settings.webdav.errors.invalidUrl",
         "The WebDAV URL must start with http:// or https://"),
    ],
}


class FormValidationError(Exception):
    def __init__(self, errors):
        self.errors = errors
        super().__init__(", ".join(f"{k}: {v}" for k, v in errors.items()))


def validate_webdav(webdav):
    """Returns {"webdav.<field>": message} for every failing WebDAV field."""
    values = webdav.to_dict()
    errors = {}
    for field, rules in WEBDAV_RULES.items():
        for check, key, default in rules:
            if not check(values.get(field, "")):
                errors[f"webdav.{field}"] = tr(key, default)
                break
    return errors


def validate_backup_form(backup_config):
    """WebDAV fields are only required while WebDAV is the selected destination."""
    if backup_config.backup_type != BACKUP_TYPE_WEBDAV:
        return {}
    return validate_webdav(backup_config.webdav)
