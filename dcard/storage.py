"""
Card storage for dcard.

Imported cards are kept keyed by fingerprint. Writes to the same fingerprint
replace the previous record (last write wins).
"""

import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .util import utc_now_iso


@dataclass(frozen=True)
class CardRecord:
    """A stored card with the verdict it was imported under."""
    fingerprint: str
    document: Dict[str, Any]
    verified: bool
    unsigned: bool
    added_at: str = field(default="")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fingerprint": self.fingerprint,
            "document": self.document,
            "verified": self.verified,
            "unsigned": self.unsigned,
            "added_at": self.added_at,
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "CardRecord":
        return cls(
            fingerprint=row["fingerprint"],
            document=json.loads(row["document_json"]),
            verified=bool(row["verified"]),
            unsigned=bool(row["unsigned"]),
            added_at=row["added_at"],
        )


class CardStore(ABC):
    """Abstract key-value store of cards keyed by fingerprint."""

    @abstractmethod
    def save_card(self, record: CardRecord) -> CardRecord:
        """
        Store a card, replacing any record with the same fingerprint.

        Returns the stored record (with ``added_at`` filled in).
        """
        pass

    @abstractmethod
    def get_card(self, fingerprint: str) -> Optional[CardRecord]:
        pass

    @abstractmethod
    def list_cards(self) -> List[CardRecord]:
        pass


def _stamped(record: CardRecord) -> CardRecord:
    return record if record.added_at else replace(record, added_at=utc_now_iso())


class InMemoryCardStore(CardStore):
    """Process-local store, for tests and hosts without a database."""

    def __init__(self):
        self._cards: Dict[str, CardRecord] = {}
        self._lock = threading.RLock()

    def save_card(self, record: CardRecord) -> CardRecord:
        record = _stamped(record)
        with self._lock:
            self._cards[record.fingerprint] = record
        return record

    def get_card(self, fingerprint: str) -> Optional[CardRecord]:
        with self._lock:
            return self._cards.get(fingerprint)

    def list_cards(self) -> List[CardRecord]:
        with self._lock:
            return sorted(self._cards.values(), key=lambda r: r.added_at)


class SqliteCardStore(CardStore):
    """
    SQLite-backed card store.

    Connections are thread-local and reused within the same thread.
    """

    def __init__(self, db_path: Union[str, Path] = "data/dcard.db"):
        self.db_path = Path(db_path)
        self._local = threading.local()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a thread-local database connection."""
        if getattr(self._local, 'conn', None) is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
        return self._local.conn

    @contextmanager
    def _transaction(self):
        """
        Context manager for database transactions.
        Automatically commits on success, rolls back on failure.
        """
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def init_db(self) -> None:
        """
        Initialize database schema.
        Safe to call multiple times (uses IF NOT EXISTS).
        """
        with self._transaction() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS cards (
                fingerprint TEXT PRIMARY KEY,
                document_json TEXT NOT NULL,
                verified INTEGER NOT NULL DEFAULT 0,
                unsigned INTEGER NOT NULL DEFAULT 0,
                added_at TEXT NOT NULL
            );""")
            conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_cards_added_at
            ON cards(added_at);""")

    def save_card(self, record: CardRecord) -> CardRecord:
        record = _stamped(record)
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO cards(fingerprint, document_json, verified, unsigned, added_at) "
                "VALUES(?,?,?,?,?)",
                (
                    record.fingerprint,
                    json.dumps(record.document),
                    int(record.verified),
                    int(record.unsigned),
                    record.added_at,
                )
            )
        return record

    def get_card(self, fingerprint: str) -> Optional[CardRecord]:
        conn = self._get_connection()
        cur = conn.execute(
            "SELECT fingerprint, document_json, verified, unsigned, added_at FROM cards WHERE fingerprint=?",
            (fingerprint,)
        )
        row = cur.fetchone()
        return CardRecord.from_row(row) if row else None

    def list_cards(self) -> List[CardRecord]:
        conn = self._get_connection()
        cur = conn.execute(
            "SELECT fingerprint, document_json, verified, unsigned, added_at FROM cards "
            "ORDER BY added_at ASC"
        )
        return [CardRecord.from_row(row) for row in cur.fetchall()]

    def reset_db(self) -> None:
        """Clear all cards but keep the schema (test isolation)."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM cards")

    def close_connection(self) -> None:
        """Close the thread-local connection (for cleanup)."""
        if getattr(self._local, 'conn', None) is not None:
            self._local.conn.close()
            self._local.conn = None
