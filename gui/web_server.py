from flask import Flask, request, jsonify, Response
import sys
import queue
import socket
import logging

from core.app_context import AppContext
from core.backup_client import BackupClient
from core.command_bridge import AUTO_BACKUP_COMPLETED_EVENT
from core.database import DatabaseManager
from core.errors import BackupClientError, CommandError, parse_command_error
from core.models import BACKUP_TYPE_WEBDAV
from gui.backup_settings_modal import BackupSettingsModal
from gui.notifications import MessageAnnouncer, Notifier
from gui.status_indicator import STATUS_IDLE, indicator_view
from gui.webdav_restore_modal import WebDAVRestoreModal
from utils.i18n import get_translation_dict, tr

logger = logging.getLogger(__name__)

# Suppress Flask/Werkzeug access logs (200 OKs)
logging.getLogger('werkzeug').setLevel(logging.ERROR)


def _error(message, code=400, **extra):
    payload = {"status": "error", "message": message}
    payload.update(extra)
    return jsonify(payload), code


def create_app(context: AppContext, client: BackupClient, db_manager: DatabaseManager, announcer=None):
    app = Flask(__name__)

    announcer = announcer or MessageAnnouncer()
    notifier = context.notifier or Notifier(announcer)
    context.notifier = notifier

    settings_modal = BackupSettingsModal(context.settings, client, notifier)
    restore_modal = WebDAVRestoreModal(client, notifier)

    app.context = context
    app.announcer = announcer
    app.notifier = notifier
    app.settings_modal = settings_modal
    app.restore_modal = restore_modal

    def report_command_error(prefix_key, prefix_default, e):
        message = parse_command_error(e).display()
        notifier.error(f"{tr(prefix_key, prefix_default)}: {message}")
        return _error(message, 502)

    def auto_backup_completed(timestamp):
        announcer.announce({"time": timestamp}, event_type=AUTO_BACKUP_COMPLETED_EVENT)

    context.bridge.listen(AUTO_BACKUP_COMPLETED_EVENT, auto_backup_completed)

    # --- App state ---

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok", "initialized": context.is_initialized})

    @app.route("/api/get_config")
    def get_config():
        return jsonify(context.snapshot())

    @app.route("/api/lang")
    def get_lang():
        lang = request.args.get("lang") or context.app.language
        return jsonify({"lang": lang, "translations": get_translation_dict(lang)})

    @app.route("/api/set_language", methods=["POST"])
    def set_language():
        lang = (request.json or {}).get("lang")
        if not lang:
            return _error("No language given")
        if not context.app.set_language(lang):
            return _error("Save failed", 500)
        return jsonify({"status": "success", "lang": lang})

    @app.route("/api/theme", methods=["POST"])
    def set_theme():
        data = request.json or {}
        try:
            if "system" in data:
                context.theme.update_system_theme(data["system"])
            if "mode" in data and not context.theme.set_mode(data["mode"]):
                return _error("Save failed", 500)
        except ValueError as e:
            return _error(str(e))
        return jsonify({"mode": context.theme.mode, "resolved": context.theme.resolved_theme})

    @app.route("/api/ssh_status")
    def ssh_status():
        ssh = context.config_manager.get("ssh") or {}
        return jsonify(indicator_view(ssh.get("enabled", False), ssh.get("status", STATUS_IDLE)))

    # --- Backup settings modal ---

    @app.route("/api/backup_settings")
    def backup_settings_view():
        return jsonify(settings_modal.view())

    @app.route("/api/backup_settings/open", methods=["POST"])
    def backup_settings_open():
        return jsonify(settings_modal.open())

    @app.route("/api/backup_settings/close", methods=["POST"])
    def backup_settings_close():
        settings_modal.close()
        return jsonify(settings_modal.view())

    @app.route("/api/backup_settings/update", methods=["POST"])
    def backup_settings_update():
        try:
            return jsonify(settings_modal.apply(request.json or {}))
        except ValueError as e:
            return _error(str(e))

    @app.route("/api/backup_settings/select_folder", methods=["POST"])
    def backup_settings_select_folder():
        settings_modal.select_folder()
        return jsonify(settings_modal.view())

    @app.route("/api/backup_settings/test_connection", methods=["POST"])
    def backup_settings_test_connection():
        result = settings_modal.test_connection()
        status = {True: "success", False: "error", None: "skipped"}[result]
        return jsonify({"status": status, "view": settings_modal.view()})

    @app.route("/api/backup_settings/save", methods=["POST"])
    def backup_settings_save():
        if settings_modal.save():
            return jsonify({"status": "success", "settings": context.settings.snapshot()})
        if settings_modal.errors:
            return _error("Validation failed", 400, errors=settings_modal.errors)
        return _error(tr("settings.backupSettings.saveFailed", "Failed to save settings"), 500)

    # --- Backup & restore actions ---

    @app.route("/api/backup_now", methods=["POST"])
    def backup_now():
        backup = context.settings.backup_config
        try:
            if backup.backup_type == BACKUP_TYPE_WEBDAV:
                webdav = backup.webdav
                if not webdav.url:
                    notifier.warning(tr("settings.backupSettings.noWebDAVConfigured", "WebDAV is not configured"))
                    return _error("WebDAV is not configured")
                result = client.backup_to_webdav(webdav.url, webdav.username, webdav.password, webdav.remote_path)
            else:
                result = client.backup_database(backup.local_backup_path)
        except BackupClientError:
            notifier.warning(tr("settings.backupSettings.noLocalPath", "Please select a local backup folder first"))
            return _error("Backup path is not configured")
        except CommandError as e:
            return report_command_error("settings.backupSettings.backupFailed", "Backup failed", e)

        notifier.success(tr("settings.backupSettings.backupSuccess", "Backup created: {path}", path=result))
        return jsonify({"status": "success", "result": result})

    @app.route("/api/restore_local", methods=["POST"])
    def restore_local():
        path = (request.json or {}).get("path") or client.select_backup_file()
        if not path:
            return jsonify({"status": "cancelled"})
        try:
            client.restore_database(path)
        except CommandError as e:
            return report_command_error("settings.backupSettings.restoreFailed", "Restore failed", e)
        notifier.success(tr("settings.backupSettings.restoreSuccess", "Restore completed, please restart the application"))
        return jsonify({"status": "success"})

    @app.route("/api/database_path")
    def database_path():
        try:
            return jsonify({"path": client.get_database_path()})
        except CommandError as e:
            return _error(parse_command_error(e).display(), 502)

    @app.route("/api/get_history")
    def get_history():
        return jsonify(db_manager.get_history())

    # --- WebDAV restore modal ---

    def restore_selected(filename):
        webdav = restore_modal.webdav
        try:
            client.restore_from_webdav(webdav.url, webdav.username, webdav.password, webdav.remote_path, filename)
        except CommandError as e:
            message = parse_command_error(e).display()
            notifier.error(f"{tr('settings.backupSettings.restoreFailed', 'Restore failed')}: {message}")
            return
        notifier.success(tr("settings.backupSettings.restoreSuccess", "Restore completed, please restart the application"))

    @app.route("/api/webdav_restore")
    def webdav_restore_view():
        return jsonify(restore_modal.view())

    @app.route("/api/webdav_restore/open", methods=["POST"])
    def webdav_restore_open():
        return jsonify(restore_modal.open(context.settings.backup_config.webdav, on_select=restore_selected))

    @app.route("/api/webdav_restore/close", methods=["POST"])
    def webdav_restore_close():
        restore_modal.close()
        return jsonify(restore_modal.view())

    @app.route("/api/webdav_restore/select", methods=["POST"])
    def webdav_restore_select():
        filename = (request.json or {}).get("filename")
        if not filename:
            return _error("No filename given")
        restore_modal.select(filename)
        return jsonify(restore_modal.view())

    @app.route("/api/webdav_restore/delete", methods=["POST"])
    def webdav_restore_delete():
        filename = (request.json or {}).get("filename")
        if not filename:
            return _error("No filename given")
        if not restore_modal.delete(filename):
            return _error("Delete failed", 502, view=restore_modal.view())
        return jsonify(restore_modal.view())

    # --- Events ---

    @app.route("/api/notifications")
    def notifications():
        return jsonify(notifier.recent(request.args.get("level")))

    @app.route("/api/stream")
    def stream():
        def event_stream():
            messages = announcer.listen()
            try:
                while True:
                    try:
                        msg = messages.get(timeout=5)
                        yield msg
                    except queue.Empty:
                        yield ": keepalive\n\n"
            except GeneratorExit:
                pass
            finally:
                announcer.remove_listener(messages)
        return Response(event_stream(), mimetype="text/event-stream")

    return app


def find_available_port(start_port=5000, max_tries=50):
    for port in range(start_port, start_port + max_tries):
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.bind(('127.0.0.1', port))
                return port
        except OSError:
            continue
    return start_port


class AccessLogFilter:
    def __init__(self, stream):
        self.stream = stream

    def write(self, message):
        if "GET /api/stream" in message and '" 200 ' in message:
            return
        self.stream.write(message)

    def flush(self):
        self.stream.flush()


def start_server(app, port=5000, host="127.0.0.1"):
    # Gevent first: best fit for the long-lived SSE stream
    try:
        from gevent.pywsgi import WSGIServer
    except ImportError:
        WSGIServer = None
    if WSGIServer is not None:
        logger.info(f"Starting server (gevent) on {host}:{port}...")
        WSGIServer((host, port), app, log=AccessLogFilter(sys.stdout)).serve_forever()
        return

    from waitress import serve
    logger.info(f"Starting server (waitress) on {host}:{port}...")
    serve(app, host=host, port=port, threads=6)
