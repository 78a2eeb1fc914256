"""Shared test fixtures for pytest suite.

Provides fixtures for:
- config_manager / settings: settings file in a temp directory
- db_manager / engine: database directory and backup engine in a temp directory
- bridge: command bridge with the real backup commands registered
- dialogs: mocked native pickers (cancelled by default)
- backup_client: client over the real bridge
- context: initialized application context
- app / client: Flask test app and test client
"""
import pytest
from unittest.mock import MagicMock

from config.settings_manager import ConfigManager, SettingsStore
from core.app_context import AppContext
from core.backup_client import BackupClient
from core.backup_engine import BackupEngine
from core.command_bridge import CommandBridge
from core.commands import BackupCommands
from core.database import DatabaseManager
from gui.notifications import Notifier
from gui.web_server import create_app


# ---------------------------------------------------------------------------
# Settings fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config_path(tmp_path):
    return str(tmp_path / "config" / "backup_config.json")


@pytest.fixture
def config_manager(config_path):
    """ConfigManager over a settings file that does not exist yet."""
    return ConfigManager(config_path)


@pytest.fixture
def settings(config_manager):
    store = SettingsStore(config_manager)
    store.initialize()
    return store


# ---------------------------------------------------------------------------
# Database / engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def db_manager(tmp_path):
    return DatabaseManager(str(tmp_path / "database"))


@pytest.fixture
def engine(db_manager):
    return BackupEngine(db_manager)


@pytest.fixture
def backup_dir(tmp_path):
    path = tmp_path / "backups"
    path.mkdir()
    return str(path)


# ---------------------------------------------------------------------------
# Bridge / client fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def bridge(engine):
    """CommandBridge with the real backup handlers."""
    b = CommandBridge()
    BackupCommands(engine).register(b)
    return b


@pytest.fixture
def dialogs():
    """Native pickers that behave like a cancelled dialog."""
    mock = MagicMock()
    mock.pick_file.return_value = None
    mock.pick_folder.return_value = None
    return mock


@pytest.fixture
def backup_client(bridge, dialogs):
    return BackupClient(bridge, dialog_module=dialogs)


@pytest.fixture
def notifier():
    return Notifier()


# ---------------------------------------------------------------------------
# Context / Flask fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def context(config_manager, bridge, notifier):
    ctx = AppContext(config_manager, bridge, notifier=notifier)
    ctx.initialize()
    yield ctx
    ctx.teardown()


@pytest.fixture
def app(context, backup_client, db_manager):
    """Flask test app wired to temp settings and a temp database."""
    application = create_app(context, backup_client, db_manager)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()
