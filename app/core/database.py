"""
Database module for persistent storage.
Uses SQLite for account balances, the balance journal, rooms and games.

Balance and room-status writes are single conditional UPDATE statements so
concurrent requests cannot overdraw an account or move a room twice;
multi-step operations run inside `transaction()`.
"""

import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from app.core.logger import get_logger

logger = get_logger("database")


SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id TEXT PRIMARY KEY,
        identity TEXT UNIQUE NOT NULL,
        display_name TEXT NOT NULL,
        balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS rooms (
        id TEXT PRIMARY KEY,
        host_id TEXT NOT NULL,
        stake INTEGER NOT NULL CHECK (stake > 0),
        status TEXT NOT NULL DEFAULT 'WAITING'
            CHECK (status IN ('WAITING', 'PLAYING', 'FINISHED')),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY (host_id) REFERENCES accounts(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS games (
        id TEXT PRIMARY KEY,
        room_id TEXT UNIQUE NOT NULL,
        player1_id TEXT NOT NULL,
        player2_id TEXT,
        winner_id TEXT,
        stake INTEGER NOT NULL,
        played_at TEXT NOT NULL,
        resolved_at TEXT,
        FOREIGN KEY (room_id) REFERENCES rooms(id),
        FOREIGN KEY (player1_id) REFERENCES accounts(id),
        FOREIGN KEY (player2_id) REFERENCES accounts(id),
        FOREIGN KEY (winner_id) REFERENCES accounts(id)
    )
    """,
    # room_id is informational only so the journal outlives deleted rooms
    """
    CREATE TABLE IF NOT EXISTS ledger_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        account_id TEXT NOT NULL,
        kind TEXT NOT NULL,
        amount INTEGER NOT NULL,
        balance_after INTEGER NOT NULL,
        room_id TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (account_id) REFERENCES accounts(id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_rooms_status ON rooms(status, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_entries_account ON ledger_entries(account_id, id)",
)

ROOM_SUMMARY_SELECT = """
    SELECT r.id, r.stake, r.status, r.created_at,
           a.id AS host_id, a.display_name AS host_display_name,
           a.identity AS host_identity
    FROM rooms r
    JOIN accounts a ON a.id = r.host_id
"""


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


class Database:
    """Thread-safe SQLite store: one connection per thread, shared file."""

    def __init__(self, db_path: Path, timeout: float = 5.0):
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initializing database at {self.db_path}")
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "connection", None)
        if conn is None:
            # isolation_level=None: autocommit, transactions are opened explicitly
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.timeout,
                check_same_thread=False,
                isolation_level=None,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            self._local.connection = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    def _init_db(self):
        conn = self._get_connection()
        conn.execute("PRAGMA journal_mode = WAL")
        with self.transaction():
            for statement in SCHEMA:
                conn.execute(statement)

    def close(self):
        """Close every connection opened by this store."""
        with self._connections_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()
        logger.info(f"Closed database at {self.db_path}")

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run a block as one write transaction.

        BEGIN IMMEDIATE takes the write lock up front, so reads inside the
        block see the state the writes will commit against. Nested calls join
        the outer transaction.
        """
        conn = self._get_connection()
        if conn.in_transaction:
            yield conn
            return

        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            # SQLite may already have rolled back on its own (e.g. after I/O errors)
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise

    # ==================== Accounts ====================

    def get_account_by_identity(self, identity: str) -> Optional[Dict]:
        cursor = self._get_connection().execute(
            "SELECT * FROM accounts WHERE identity = ?", (identity,)
        )
        row = cursor.fetchone()
        return dict(row) if row else None

    def get_account_by_id(self, account_id: str) -> Optional[Dict]:
        cursor = self._get_connection().execute(
            "SELECT * FROM accounts WHERE id = ?", (account_id,)
        )
        row = cursor.fetchone()
        return dict(row) if row else None

    def insert_account(self, identity: str, display_name: str) -> Dict:
        """Insert an account unless the identity exists; return the stored row."""
        now = utcnow()
        self._get_connection().execute(
            """
            INSERT OR IGNORE INTO accounts (id, identity, display_name, balance, created_at, updated_at)
            VALUES (?, ?, ?, 0, ?, ?)
            """,
            (new_id(), identity, display_name, now, now),
        )
        return self.get_account_by_identity(identity)

    def update_display_name(self, account_id: str, display_name: str):
        self._get_connection().execute(
            "UPDATE accounts SET display_name = ?, updated_at = ? WHERE id = ?",
            (display_name, utcnow(), account_id),
        )

    def add_to_balance(self, account_id: str, delta: int, max_balance: int) -> Optional[int]:
        """
        Add a signed delta to a balance in one statement.

        Returns the new balance, or None when the account is missing or the
        result would fall outside 0..max_balance (nothing is written in that
        case). Call inside `transaction()` so the read-back sees this write.
        """
        with self.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE accounts SET balance = balance + ?, updated_at = ?
                WHERE id = ? AND balance + ? BETWEEN 0 AND ?
                """,
                (delta, utcnow(), account_id, delta, max_balance),
            )
            if cursor.rowcount == 0:
                return None
            row = conn.execute(
                "SELECT balance FROM accounts WHERE id = ?", (account_id,)
            ).fetchone()
        return row["balance"]

    # ==================== Ledger Journal ====================

    def log_entry(
        self,
        account_id: str,
        kind: str,
        amount: int,
        balance_after: int,
        room_id: str = None,
    ):
        self._get_connection().execute(
            """
            INSERT INTO ledger_entries (account_id, kind, amount, balance_after, room_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (account_id, kind, amount, balance_after, room_id, utcnow()),
        )

    def get_entries(self, account_id: str, limit: int = 50) -> List[Dict]:
        cursor = self._get_connection().execute(
            """
            SELECT id, kind, amount, balance_after, room_id, created_at
            FROM ledger_entries WHERE account_id = ?
            ORDER BY id DESC LIMIT ?
            """,
            (account_id, limit),
        )
        return [dict(row) for row in cursor.fetchall()]

    # ==================== Rooms ====================

    def insert_room(self, host_id: str, stake: int) -> Dict:
        room_id = new_id()
        now = utcnow()
        self._get_connection().execute(
            """
            INSERT INTO rooms (id, host_id, stake, status, created_at, updated_at)
            VALUES (?, ?, ?, 'WAITING', ?, ?)
            """,
            (room_id, host_id, stake, now, now),
        )
        return self.get_room(room_id)

    def get_room(self, room_id: str) -> Optional[Dict]:
        cursor = self._get_connection().execute(
            "SELECT * FROM rooms WHERE id = ?", (room_id,)
        )
        row = cursor.fetchone()
        return dict(row) if row else None

    def get_room_summary(self, room_id: str) -> Optional[Dict]:
        cursor = self._get_connection().execute(
            ROOM_SUMMARY_SELECT + " WHERE r.id = ?", (room_id,)
        )
        row = cursor.fetchone()
        return dict(row) if row else None

    def list_rooms(self, statuses: Iterable[str]) -> List[Dict]:
        statuses = list(statuses)
        placeholders = ", ".join("?" for _ in statuses)
        cursor = self._get_connection().execute(
            f"SELECT * FROM rooms WHERE status IN ({placeholders})"
            " ORDER BY created_at DESC, rowid DESC",
            statuses,
        )
        return [dict(row) for row in cursor.fetchall()]

    def list_room_summaries(self, statuses: Iterable[str]) -> List[Dict]:
        statuses = list(statuses)
        placeholders = ", ".join("?" for _ in statuses)
        cursor = self._get_connection().execute(
            ROOM_SUMMARY_SELECT
            + f" WHERE r.status IN ({placeholders})"
            + " ORDER BY r.created_at DESC, r.rowid DESC",
            statuses,
        )
        return [dict(row) for row in cursor.fetchall()]

    def compare_and_set_status(self, room_id: str, expected: str, new: str) -> bool:
        """Move a room from `expected` to `new`; False if it was not in `expected`."""
        cursor = self._get_connection().execute(
            "UPDATE rooms SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
            (new, utcnow(), room_id, expected),
        )
        return cursor.rowcount == 1

    def delete_room(self, room_id: str) -> bool:
        """Delete a room and its game. Returns False if the room did not exist."""
        with self.transaction() as conn:
            conn.execute("DELETE FROM games WHERE room_id = ?", (room_id,))
            cursor = conn.execute("DELETE FROM rooms WHERE id = ?", (room_id,))
            return cursor.rowcount == 1

    # ==================== Games ====================

    def insert_game(self, room_id: str, player1_id: str, player2_id: str, stake: int) -> Dict:
        game_id = new_id()
        self._get_connection().execute(
            """
            INSERT INTO games (id, room_id, player1_id, player2_id, stake, played_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (game_id, room_id, player1_id, player2_id, stake, utcnow()),
        )
        return self.get_game_by_room(room_id)

    def get_game_by_room(self, room_id: str) -> Optional[Dict]:
        cursor = self._get_connection().execute(
            "SELECT * FROM games WHERE room_id = ?", (room_id,)
        )
        row = cursor.fetchone()
        return dict(row) if row else None

    def set_winner(self, room_id: str, winner_id: str) -> bool:
        """Record a winner once; False if the game is missing or already decided."""
        cursor = self._get_connection().execute(
            """
            UPDATE games SET winner_id = ?, resolved_at = ?
            WHERE room_id = ? AND winner_id IS NULL
            """,
            (winner_id, utcnow(), room_id),
        )
        return cursor.rowcount == 1

    # ==================== Admin Functions ====================

    def get_stats(self) -> Dict:
        conn = self._get_connection()
        accounts = conn.execute(
            "SELECT COUNT(*) AS n, COALESCE(SUM(balance), 0) AS total FROM accounts"
        ).fetchone()
        rooms = conn.execute(
            "SELECT status, COUNT(*) AS n FROM rooms GROUP BY status"
        ).fetchall()
        return {
            "accounts": accounts["n"],
            "total_balance": accounts["total"],
            "rooms": {row["status"]: row["n"] for row in rooms},
        }

    def clear_all_data(self):
        """Delete everything, children before parents."""
        with self.transaction() as conn:
            conn.execute("DELETE FROM games")
            conn.execute("DELETE FROM rooms")
            conn.execute("DELETE FROM ledger_entries")
            conn.execute("DELETE FROM accounts")
        logger.warning("All ledger data cleared")
