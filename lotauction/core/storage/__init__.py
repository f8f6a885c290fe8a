"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Auction records (lot, price proposal, validation progress)
- Bids (first-bid order, escrowed amounts, claim flags)
- Event logs
"""

from lotauction.core.storage.sqlite_adapter import SQLiteAdapter
from lotauction.core.storage.storage_manager import AuctionSnapshot, StorageManager

__all__ = ["SQLiteAdapter", "StorageManager", "AuctionSnapshot"]
