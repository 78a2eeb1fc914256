"""
Application context: the stores shared by the web layer, passed explicitly
instead of living in module globals.

Initialization order is app -> settings -> theme. The ConfigManager handed in
is the only thing that touches the settings file.
"""
import logging

from config.settings_manager import ConfigManager, SettingsStore
from core.command_bridge import CONFIG_CHANGED_EVENT, CommandBridge
from utils.i18n import DEFAULT_LANG, set_lang

logger = logging.getLogger(__name__)

RELOAD_CATEGORY = "tray"

THEME_MODES = ("light", "dark", "system")
THEMES = ("light", "dark")


class AppStore:
    def __init__(self, config_manager: ConfigManager):
        self.config_manager = config_manager
        self.language = DEFAULT_LANG
        self.is_initialized = False

    def initialize(self):
        self.language = self.config_manager.get("language") or DEFAULT_LANG
        set_lang(self.language)
        self.is_initialized = True

    def reset(self):
        self.is_initialized = False

    def set_language(self, language):
        if not self.config_manager.set("language", language):
            return False
        self.language = language
        set_lang(language)
        return True


class ThemeStore:
    def __init__(self, config_manager: ConfigManager, system_theme="light"):
        self.config_manager = config_manager
        self.system_theme = system_theme
        self.mode = "system"
        self.resolved_theme = system_theme
        self.is_initialized = False

    def initialize(self):
        mode = self.config_manager.get("themeMode") or "system"
        self.mode = mode if mode in THEME_MODES else "system"
        self._resolve()
        self.is_initialized = True

    def reset(self):
        self.is_initialized = False

    def _resolve(self):
        self.resolved_theme = self.system_theme if self.mode == "system" else self.mode

    def set_mode(self, mode):
        if mode not in THEME_MODES:
            raise ValueError(f"Unknown theme mode: {mode!r}")
        if not self.config_manager.set("themeMode", mode):
            return False
        self.mode = mode
        self._resolve()
        return True

    def update_system_theme(self, theme):
        """Follows the OS setting; only visible while mode is 'system'."""
        if theme in THEMES:
            self.system_theme = theme
            self._resolve()


class AppContext:
    def __init__(self, config_manager: ConfigManager, bridge: CommandBridge, notifier=None):
        self.config_manager = config_manager
        self.bridge = bridge
        self.notifier = notifier
        self.app = AppStore(config_manager)
        self.settings = SettingsStore(config_manager)
        self.theme = ThemeStore(config_manager)
        self._unlisten = None

    @property
    def is_initialized(self):
        return self.app.is_initialized and self.settings.is_initialized and self.theme.is_initialized

    def initialize(self, reload=False):
        self.app.initialize()
        self.settings.initialize(reload=reload)
        self.theme.initialize()
        if self._unlisten is None:
            self._unlisten = self.bridge.listen(CONFIG_CHANGED_EVENT, self._on_config_changed)
        logger.info("Application context initialized.")

    def reinitialize(self):
        """Drops all store state and loads it again from disk."""
        for store in (self.app, self.settings, self.theme):
            store.reset()
        self.config_manager.load_config(force=True)
        self.initialize(reload=True)
        if self.notifier:
            self.notifier.broadcast("reload", {"reason": RELOAD_CATEGORY})

    def teardown(self):
        if self._unlisten:
            self._unlisten()
            self._unlisten = None
        for store in (self.app, self.settings, self.theme):
            store.reset()

    def _on_config_changed(self, category):
        if category == RELOAD_CATEGORY:
            logger.info("Configuration changed from the tray, reloading.")
            self.reinitialize()

    def snapshot(self):
        return {
            "initialized": self.is_initialized,
            "language": self.app.language,
            "theme": {"mode": self.theme.mode, "resolved": self.theme.resolved_theme},
            "settings": self.settings.snapshot(),
        }
