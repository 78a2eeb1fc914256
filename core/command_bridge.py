"""
Command bridge between the UI layer and the privileged backup handlers.

Handlers are registered by name and invoked with a structured argument dict.
Whatever a handler raises reaches the caller as a ``CommandError`` with a
string payload, so the UI only ever deals with one error type.
"""
import logging
import threading

from core.errors import CommandError

logger = logging.getLogger(__name__)

CONFIG_CHANGED_EVENT = "config-changed"
AUTO_BACKUP_COMPLETED_EVENT = "auto-backup-completed"


class EventBus:
    """One-way named events. ``listen`` returns the matching unsubscribe callable."""

    def __init__(self):
        self.lock = threading.Lock()
        self.listeners = {}

    def listen(self, event, callback):
        with self.lock:
            self.listeners.setdefault(event, []).append(callback)

        def unlisten():
            self.remove_listener(event, callback)

        return unlisten

    def remove_listener(self, event, callback):
        with self.lock:
            try:
                self.listeners.get(event, []).remove(callback)
            except ValueError:
                pass

    def emit(self, event, payload=None):
        with self.lock:
            callbacks = list(self.listeners.get(event, []))
        for callback in callbacks:
            try:
                callback(payload)
            except Exception:
                # Listeners never get to break the emitter
                logger.exception(f"Listener for '{event}' failed")


class CommandBridge:
    def __init__(self, events=None):
        self.handlers = {}
        self.events = events or EventBus()

    def register(self, name, handler):
        if name in self.handlers:
            raise ValueError(f"Command already registered: {name}")
        self.handlers[name] = handler

    def commands(self):
        return sorted(self.handlers)

    def invoke(self, name, args=None):
        handler = self.handlers.get(name)
        if handler is None:
            raise CommandError(f"Unknown command: {name}")

        logger.debug(f"Invoking command '{name}'")
        try:
            return handler(dict(args or {}))
        except CommandError as e:
            logger.warning(f"Command '{name}' failed: {e.payload}")
            raise
        except Exception as e:
            logger.exception(f"Command '{name}' crashed")
            raise CommandError(str(e)) from e

    def listen(self, event, callback):
        return self.events.listen(event, callback)

    def emit(self, event, payload=None):
        self.events.emit(event, payload)
