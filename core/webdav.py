"""
WebDAV transport for remote backups.

Speaks the handful of verbs the backup commands need (MKCOL, PUT, PROPFIND,
GET, DELETE) over a ``requests`` session with basic auth. HTTP and network
failures are classified into ``CommandError`` payloads carrying a
``suggestion`` key so the UI can show a localized hint.
"""
import logging
import posixpath
import xml.etree.ElementTree as ET
from urllib.parse import quote, unquote, urlsplit

import requests

from core.errors import CommandError
from core.models import BackupFileInfo, WebDAVConfig
from utils.file_system import is_backup_filename

logger = logging.getLogger(__name__)

DAV_NS = "{DAV:}"
DEFAULT_TIMEOUT = 30

SUGGEST_CHECK_URL = "settings.webdav.errors.checkUrl"
SUGGEST_UNAUTHORIZED = "settings.webdav.errors.unauthorized"
SUGGEST_FORBIDDEN = "settings.webdav.errors.forbidden"
SUGGEST_NOT_FOUND = "settings.webdav.errors.notFound"
SUGGEST_CONNECTION = "settings.webdav.errors.connection"
SUGGEST_TIMEOUT = "settings.webdav.errors.timeout"
SUGGEST_SERVER = "settings.webdav.errors.server"

PROPFIND_BODY = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:propfind xmlns:d="DAV:"><d:prop>'
    '<d:resourcetype/><d:getcontentlength/>'
    '</d:prop></d:propfind>'
)


def build_remote_url(base_url, remote_path, filename=""):
    """base + remote path + filename, with exactly one slash between the parts."""
    parts = [base_url.rstrip("/")]
    remote = remote_path.strip("/")
    if remote:
        parts.append(remote)
    if filename:
        parts.append(quote(filename))
    return "/".join(parts)


def parse_propfind(xml_text):
    """
    Parses a PROPFIND multistatus body into (name, size, is_collection) tuples.
    The collection's own entry is included; callers filter it out.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise CommandError.structured(SUGGEST_SERVER, f"Invalid PROPFIND response: {e}") from e

    entries = []
    for response in root.iter(f"{DAV_NS}response"):
        href = response.findtext(f"{DAV_NS}href") or ""
        path = unquote(urlsplit(href).path).rstrip("/")
        name = posixpath.basename(path)

        is_collection = False
        size = 0
        for propstat in response.iter(f"{DAV_NS}propstat"):
            status = propstat.findtext(f"{DAV_NS}status") or ""
            if status and " 200 " not in f"{status} ":
                continue
            prop = propstat.find(f"{DAV_NS}prop")
            if prop is None:
                continue
            resourcetype = prop.find(f"{DAV_NS}resourcetype")
            if resourcetype is not None and resourcetype.find(f"{DAV_NS}collection") is not None:
                is_collection = True
            length = prop.findtext(f"{DAV_NS}getcontentlength")
            if length and length.strip().isdigit():
                size = int(length.strip())
        entries.append((name, size, is_collection))
    return entries


class WebDAVClient:
    def __init__(self, config: WebDAVConfig, session=None, timeout=DEFAULT_TIMEOUT):
        if not config.url.strip():
            raise CommandError.structured(SUGGEST_CHECK_URL, "WebDAV URL is not configured")
        scheme = urlsplit(config.url.strip()).scheme.lower()
        if scheme not in ("http", "https"):
            raise CommandError.structured(SUGGEST_CHECK_URL, f"Unsupported URL: {config.url}")

        self.config = config
        self.base_url = config.url.strip()
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.timeout = timeout
        if config.username:
            self.session.auth = (config.username, config.password)

    def close(self):
        """Closes the session if this client created it."""
        if self._owns_session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def url_for(self, filename=""):
        return build_remote_url(self.base_url, self.config.remote_path, filename)

    def _request(self, method, url, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        try:
            return self.session.request(method, url, **kwargs)
        except requests.exceptions.Timeout as e:
            raise CommandError.structured(SUGGEST_TIMEOUT, str(e)) from e
        except requests.exceptions.ConnectionError as e:
            raise CommandError.structured(SUGGEST_CONNECTION, str(e)) from e
        except requests.exceptions.RequestException as e:
            raise CommandError(f"WebDAV request failed: {e}") from e

    def _check(self, response, action, ok=()):
        status = response.status_code
        if 200 <= status < 300 or status in ok:
            return response
        detail = f"{action} failed with status: {status}"
        if status == 401:
            raise CommandError.structured(SUGGEST_UNAUTHORIZED, detail)
        if status == 403:
            raise CommandError.structured(SUGGEST_FORBIDDEN, detail)
        if status == 404:
            raise CommandError.structured(SUGGEST_NOT_FOUND, detail)
        if status >= 500:
            raise CommandError.structured(SUGGEST_SERVER, detail)
        raise CommandError(detail)

    def ensure_collection(self):
        """Creates the remote path segment by segment. 405 means it already exists."""
        segments = [s for s in self.config.remote_path.strip("/").split("/") if s]
        current = ""
        for segment in segments:
            current = f"{current}/{segment}" if current else segment
            url = build_remote_url(self.base_url, current) + "/"
            response = self._request("MKCOL", url)
            self._check(response, "Create remote folder", ok=(301, 405))

    def upload(self, filename, data):
        url = self.url_for(filename)
        logger.info(f"WebDAV: uploading {filename} ({len(data)} bytes) to {url}")
        self.ensure_collection()
        response = self._request(
            "PUT", url, data=data, headers={"Content-Type": "application/zip"}
        )
        self._check(response, "Upload")
        return filename

    def _propfind(self, depth):
        response = self._request(
            "PROPFIND",
            self.url_for() + "/",
            data=PROPFIND_BODY,
            headers={"Depth": str(depth), "Content-Type": "application/xml; charset=utf-8"},
        )
        return self._check(response, "PROPFIND")

    def list_backups(self):
        """Backup archives in the remote path, newest first by filename."""
        response = self._propfind(1)
        backups = []
        for name, size, is_collection in parse_propfind(response.text):
            if is_collection or not is_backup_filename(name):
                continue
            backups.append(BackupFileInfo(filename=name, size=size))
        backups.sort(key=lambda b: b.filename, reverse=True)
        logger.debug(f"WebDAV: {len(backups)} backup(s) found")
        return backups

    def download(self, filename):
        response = self._request("GET", self.url_for(filename))
        self._check(response, "Download")
        return response.content

    def delete(self, filename):
        logger.info(f"WebDAV: deleting {filename}")
        response = self._request("DELETE", self.url_for(filename))
        self._check(response, "Delete")

    def test_connection(self):
        self._propfind(0)
        logger.info(f"WebDAV: connection to {self.base_url} OK")
