import sqlite3
import os
import logging
from contextlib import closing

logger = logging.getLogger(__name__)

DB_FILENAME = "app.db"


class DatabaseManager:
    """
    The application database. Lives inside the database directory, which is
    what backups archive and restores replace.
    """

    def __init__(self, db_dir):
        self.db_dir = db_dir
        self.db_path = os.path.join(db_dir, DB_FILENAME)
        self.init_db()

    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self):
        """Creates the directory and the schema if missing."""
        os.makedirs(self.db_dir, exist_ok=True)
        with closing(self._connect()) as conn:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous = NORMAL;")
            conn.execute('''CREATE TABLE IF NOT EXISTS history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                filename TEXT,
                timestamp TEXT,
                size INTEGER,
                sha256 TEXT,
                destination TEXT,
                location TEXT,
                action TEXT DEFAULT 'backup'
            )''')

            columns = [info[1] for info in conn.execute("PRAGMA table_info(history)")]
            if "action" not in columns:
                conn.execute("ALTER TABLE history ADD COLUMN action TEXT DEFAULT 'backup'")
                logger.info("Added column 'action' to history.")
            conn.commit()

    def checkpoint(self):
        """Flushes the WAL into the main file so an archive of the directory is consistent."""
        if not os.path.exists(self.db_path):
            return
        with closing(self._connect()) as conn:
            conn.execute("PRAGMA wal_checkpoint(TRUNCATE);")

    def get_history(self, limit=100):
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(
                    "SELECT * FROM history ORDER BY timestamp DESC, id DESC LIMIT ?", (limit,)
                ).fetchall()
            return [dict(row) for row in rows]
        except sqlite3.Error as e:
            logger.error(f"DB read error: {e}")
            return []

    def add_history_entry(self, **kwargs):
        """Records a backup or restore. History is informational, failures are only logged."""
        try:
            with closing(self._connect()) as conn:
                conn.execute(
                    '''INSERT INTO history
                    (filename, timestamp, size, sha256, destination, location, action)
                    VALUES (?, ?, ?, ?, ?, ?, ?)''',
                    (
                        kwargs.get("filename", ""),
                        kwargs.get("timestamp", ""),
                        kwargs.get("size", 0),
                        kwargs.get("sha256", ""),
                        kwargs.get("destination", ""),
                        kwargs.get("location", ""),
                        kwargs.get("action", "backup"),
                    )
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"DB write error: {e}")
