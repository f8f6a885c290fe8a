import sqlite3
import threading
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from lotauction.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for persistent auction storage.

    Provides:
    1. Auction records (JSON document per auction)
    2. Bids, one row per bidder in first-bid order
    3. The event log of every auction

    Amounts can exceed 64 bits, so they are stored as decimal TEXT.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        # Ensure directory exists
        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            # Enable WAL mode for better concurrency
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            # 1. Auction records
            conn.execute("""
                CREATE TABLE IF NOT EXISTS auctions (
                    auction_id TEXT PRIMARY KEY,
                    record TEXT NOT NULL,
                    updated_at INTEGER NOT NULL
                )
            """)

            # 2. Bids (registry + escrow)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS bids (
                    auction_id TEXT NOT NULL,
                    bidder TEXT NOT NULL,
                    insertion_index INTEGER NOT NULL,
                    amount TEXT NOT NULL,
                    redeemed INTEGER NOT NULL DEFAULT 0,
                    withdrawn INTEGER NOT NULL DEFAULT 0,
                    winner_round INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (auction_id, bidder)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_bids_order ON bids(auction_id, insertion_index);"
            )

            # 3. Event log
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    auction_id TEXT NOT NULL,
                    seq INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    PRIMARY KEY (auction_id, seq)
                )
            """)

    def close(self):
        """Close the connection of the current thread."""
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn

    # =========================================================================
    # Auction Operations
    # =========================================================================

    def save_auction(
        self,
        auction_id: str,
        record: str,
        updated_at: int,
        bids: Iterable[Tuple[str, int, int, bool, bool, int]],
        events: Iterable[Tuple[int, str, str]],
    ):
        """
        Atomically replace everything stored for an auction.

        Args:
            auction_id: Auction address
            record: JSON auction record
            updated_at: Clock reading at save time
            bids: (bidder, insertion_index, amount, redeemed, withdrawn, winner_round)
            events: (seq, name, JSON payload)
        """
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO auctions (auction_id, record, updated_at) VALUES (?, ?, ?)",
                (auction_id, record, updated_at)
            )

            conn.execute("DELETE FROM bids WHERE auction_id = ?", (auction_id,))
            conn.executemany(
                "INSERT INTO bids (auction_id, bidder, insertion_index, amount, redeemed, withdrawn, winner_round) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    (auction_id, bidder, index, str(amount), int(redeemed), int(withdrawn), winner_round)
                    for bidder, index, amount, redeemed, withdrawn, winner_round in bids
                ]
            )

            conn.execute("DELETE FROM events WHERE auction_id = ?", (auction_id,))
            conn.executemany(
                "INSERT INTO events (auction_id, seq, name, payload) VALUES (?, ?, ?, ?)",
                [(auction_id, seq, name, payload) for seq, name, payload in events]
            )

    def get_auction_record(self, auction_id: str) -> Optional[str]:
        """Get the JSON record of an auction."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT record FROM auctions WHERE auction_id = ?", (auction_id,))
        row = cursor.fetchone()
        return row['record'] if row else None

    def get_bids(self, auction_id: str) -> List[Tuple[str, int, int, bool, bool, int]]:
        """Get all bids of an auction in first-bid order."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT bidder, insertion_index, amount, redeemed, withdrawn, winner_round "
            "FROM bids WHERE auction_id = ? ORDER BY insertion_index ASC",
            (auction_id,)
        )
        return [
            (row['bidder'], row['insertion_index'], int(row['amount']),
             bool(row['redeemed']), bool(row['withdrawn']), row['winner_round'])
            for row in cursor
        ]

    def get_events(self, auction_id: str) -> List[Tuple[str, str]]:
        """Get (name, payload) of every event of an auction in order."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT name, payload FROM events WHERE auction_id = ? ORDER BY seq ASC",
            (auction_id,)
        )
        return [(row['name'], row['payload']) for row in cursor]

    def list_auctions(self) -> List[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT auction_id FROM auctions ORDER BY updated_at ASC, auction_id ASC")
        return [row['auction_id'] for row in cursor]

    def delete_auction(self, auction_id: str):
        conn = self._get_conn()
        with conn:
            conn.execute("DELETE FROM auctions WHERE auction_id = ?", (auction_id,))
            conn.execute("DELETE FROM bids WHERE auction_id = ?", (auction_id,))
            conn.execute("DELETE FROM events WHERE auction_id = ?", (auction_id,))
