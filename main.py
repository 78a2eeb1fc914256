import sys
import os

# Monkey patch for gevent (must happen before the other imports)
try:
    from gevent import monkey
    monkey.patch_all()
except ImportError:
    pass

import logging

# Ensure we can import from local modules
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from config.settings_manager import ConfigManager
from core.app_context import AppContext
from core.backup_client import BackupClient
from core.backup_engine import BackupEngine
from core.command_bridge import CommandBridge
from core.commands import BackupCommands
from core.database import DatabaseManager
from core.scheduler import BackupScheduler
from gui.notifications import MessageAnnouncer, Notifier
from gui.web_server import create_app, start_server, find_available_port
from utils.logger import setup_logging
from utils.i18n import init_translator


def main():
    base_dir = os.path.dirname(os.path.abspath(__file__))
    data_dir = os.environ.get("AI_TOOLBOX_DATA_DIR") or base_dir
    debug = os.environ.get("AI_TOOLBOX_DEBUG") == "1"
    os.makedirs(data_dir, exist_ok=True)

    setup_logging(os.path.join(data_dir, "ai_toolbox.log"), debug_mode=debug)
    logger = logging.getLogger("Main")
    logger.info("Starting AI Toolbox backup service...")

    init_translator(base_dir)

    config_manager = ConfigManager(os.path.join(data_dir, "config", "backup_config.json"))
    db_manager = DatabaseManager(os.path.join(data_dir, "database"))
    engine = BackupEngine(db_manager)

    bridge = CommandBridge()
    BackupCommands(engine).register(bridge)
    client = BackupClient(bridge)

    announcer = MessageAnnouncer()
    context = AppContext(config_manager, bridge, notifier=Notifier(announcer))
    context.initialize()

    scheduler = BackupScheduler(context.settings, client, engine)
    scheduler.start()

    app = create_app(context, client, db_manager, announcer=announcer)

    port = find_available_port(int(os.environ.get("AI_TOOLBOX_PORT", "5000")))
    logger.info(f"Web view API on http://127.0.0.1:{port}")
    try:
        start_server(app, port=port)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        scheduler.stop()
        context.teardown()


if __name__ == "__main__":
    main()
