import sqlite3
import threading
from contextlib import contextmanager
from typing import Optional, Dict, Iterable, Iterator, List, Tuple

# Bumped when the table layout below changes
STORAGE_FORMAT = 1


class StorageDB:
    """
    SQLite key/value store holding the ledger aggregate as JSON documents.

    Keys: 'ledger', 'acct:<principal>', 'asset:<id>'.
    """

    def __init__(self, db_path: str):
        self.path = db_path
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.cursor = self.conn.cursor()
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        with self._lock:
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS ledger_kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            ''')
            self.cursor.execute(f'PRAGMA user_version = {STORAGE_FORMAT}')
            self.conn.commit()

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Cursor]:
        """Holds the lock for one commit; any failure rolls the whole write back."""
        with self._lock:
            try:
                yield self.cursor
                self.conn.commit()
            except sqlite3.Error:
                self.conn.rollback()
                raise

    def get_state(self, key: str) -> Optional[str]:
        with self._lock:
            self.cursor.execute('SELECT value FROM ledger_kv WHERE key = ?', (key,))
            row = self.cursor.fetchone()
        return row[0] if row else None

    def set_state(self, key: str, value: str):
        self.set_many([(key, value)])

    def set_many(self, items: Iterable[Tuple[str, str]]):
        """Every item lands or none does."""
        rows = list(items)
        with self._write() as cur:
            cur.executemany('INSERT OR REPLACE INTO ledger_kv (key, value) VALUES (?, ?)', rows)

    def delete_state(self, key: str):
        with self._write() as cur:
            cur.execute('DELETE FROM ledger_kv WHERE key = ?', (key,))

    def get_state_by_prefix(self, prefix: str) -> Dict[str, str]:
        # substr() instead of LIKE: principals may contain '%' or '_'
        with self._lock:
            self.cursor.execute(
                'SELECT key, value FROM ledger_kv WHERE substr(key, 1, ?) = ?',
                (len(prefix), prefix),
            )
            rows = self.cursor.fetchall()
        return dict(rows)

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(self.get_state_by_prefix(prefix))

    def format_version(self) -> int:
        with self._lock:
            self.cursor.execute('PRAGMA user_version')
            return self.cursor.fetchone()[0]

    def clear_state(self):
        with self._write() as cur:
            cur.execute('DELETE FROM ledger_kv')

    def close(self):
        with self._lock:
            self.conn.close()
