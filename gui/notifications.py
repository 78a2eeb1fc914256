import json
import queue
import logging
import threading
from collections import deque
from datetime import datetime

logger = logging.getLogger(__name__)

SUCCESS = "success"
INFO = "info"
WARNING = "warning"
ERROR = "error"


class MessageAnnouncer:
    """Fan-out of server-sent events to every connected web view."""

    def __init__(self):
        self.listeners = []

    def listen(self):
        q = queue.Queue(maxsize=1000)
        self.listeners.append(q)
        return q

    def remove_listener(self, q):
        try:
            self.listeners.remove(q)
        except ValueError:
            pass

    def announce(self, msg, event_type=None):
        if isinstance(msg, dict):
            data_str = json.dumps(msg)
        else:
            data_str = str(msg)

        if event_type:
            sse_msg = f"event: {event_type}\ndata: {data_str}\n\n"
        else:
            sse_msg = f"data: {data_str}\n\n"

        for q in list(self.listeners):
            try:
                q.put_nowait(sse_msg)
            except queue.Full:
                # Slow client: drop its oldest message instead of disconnecting it
                try:
                    q.get_nowait()
                    q.put_nowait(sse_msg)
                except (queue.Empty, queue.Full):
                    pass


class Notifier:
    """
    Transient user notifications (the toast messages of the web view).

    Every message is kept in a short history and, when an announcer is
    attached, pushed to the web view as a ``notification`` event.
    """

    def __init__(self, announcer=None, history_size=50):
        self.announcer = announcer
        self.lock = threading.Lock()
        self.history = deque(maxlen=history_size)

    def notify(self, level, message):
        entry = {
            "level": level,
            "message": message,
            "time": datetime.now().isoformat(timespec="seconds"),
        }
        with self.lock:
            self.history.append(entry)
        log = logger.error if level == ERROR else logger.info
        log(f"[{level}] {message}")
        if self.announcer:
            self.announcer.announce(entry, event_type="notification")
        return entry

    def success(self, message):
        return self.notify(SUCCESS, message)

    def info(self, message):
        return self.notify(INFO, message)

    def warning(self, message):
        return self.notify(WARNING, message)

    def error(self, message):
        return self.notify(ERROR, message)

    def recent(self, level=None):
        with self.lock:
            entries = list(self.history)
        if level:
            entries = [e for e in entries if e["level"] == level]
        return entries

    def broadcast(self, event_type, payload):
        """Non-notification events for the web view (e.g. ``reload``)."""
        if self.announcer:
            self.announcer.announce(payload, event_type=event_type)
