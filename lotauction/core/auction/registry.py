"""
Bidder Registry - Ordered identities of auction participants.

This module provides:
- Append-only registration in first-bid order (the ranking tie-break)
- Per-bidder redemption flags
- Winner marks tagged with the price round that confirmed them
- Balance lookup through the escrow ledger
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from lotauction.core.auction.escrow import EscrowLedger
from lotauction.core.auction.journal import UndoJournal
from lotauction.utils.logger import get_logger

logger = get_logger("registry")


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class Bidder:
    """
    A registered bidder.

    Attributes:
        address: Checksummed bidder address
        insertion_index: Position in first-bid order, never changes
        redeemed: Redeemed an item (set once)
        withdrawn: Withdrew the bid after settlement/timeout (set once)
        winner_round: Price round in which validation confirmed this bidder
            as a winner (0 = never)
    """
    address: str
    insertion_index: int
    redeemed: bool = False
    withdrawn: bool = False
    winner_round: int = 0

    @property
    def has_claimed(self) -> bool:
        return self.redeemed or self.withdrawn


# =============================================================================
# Bidder Registry
# =============================================================================


@dataclass
class BidderRegistry:
    """
    Append-only list of distinct bidders.

    Entries are never removed or reordered, also when a bid is cancelled
    and placed again. While a journal is attached, every change is recorded
    in it so the running call can be undone.
    """
    escrow: EscrowLedger
    order: List[str] = field(default_factory=list)
    entries: Dict[str, Bidder] = field(default_factory=dict)
    journal: Optional[UndoJournal] = field(default=None, repr=False, compare=False)

    def register(self, address: str) -> Bidder:
        """Return the bidder, appending it on first bid."""
        entry = self.entries.get(address)
        if entry is None:
            if self.journal is not None:
                self.journal.remember_length(self.order)
                self.journal.remember_key(self.entries, address)
            entry = Bidder(address=address, insertion_index=len(self.order))
            self.order.append(address)
            self.entries[address] = entry
            logger.debug(f"Registered bidder #{entry.insertion_index}: {address}")
        return entry

    def _update(self, address: str, **changes) -> Bidder:
        entry = self.entries[address]
        if self.journal is not None:
            self.journal.remember_attrs(entry, *changes)
        for name, value in changes.items():
            setattr(entry, name, value)
        return entry

    def mark_redeemed(self, address: str) -> Bidder:
        return self._update(address, redeemed=True)

    def mark_withdrawn(self, address: str) -> Bidder:
        return self._update(address, withdrawn=True)

    def mark_winner(self, address: str, round_: int) -> Bidder:
        return self._update(address, winner_round=round_)

    def get(self, address: str) -> Optional[Bidder]:
        return self.entries.get(address)

    def is_registered(self, address: str) -> bool:
        return address in self.entries

    def balance_of(self, address: str) -> int:
        return self.escrow.balance_of(address)

    def at(self, index: int) -> str:
        return self.order[index]

    def __len__(self) -> int:
        return len(self.order)

    def __iter__(self) -> Iterator[Bidder]:
        return (self.entries[a] for a in self.order)

    def winners(self, round_: int) -> List[str]:
        """Bidders confirmed in the given price round, in insertion order."""
        if round_ <= 0:
            return []
        return [b.address for b in self if b.winner_round == round_]
