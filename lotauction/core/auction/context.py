"""
Auction context - The state and collaborators every component works on.

One context is owned by one ClearingPriceAuction; the clearing engine and
the settlement ledger receive it by reference and mutate nothing else.
"""

from dataclasses import dataclass, fields
from functools import partial
from typing import Callable

from lotauction.core.auction.escrow import EscrowLedger
from lotauction.core.auction.events import AuctionEvent, EventLog
from lotauction.core.auction.journal import UndoJournal
from lotauction.core.auction.registry import BidderRegistry
from lotauction.core.auction.state import AuctionPhase, AuctionRecord
from lotauction.core.collaborators import AccessControl, ItemLedger, ValueTransfer
from lotauction.core.config import AuctionConfig
from lotauction.core.errors import InvalidState, Unauthorized

ESCROW_TOTALS = ("deposited", "refunded", "retained", "collected")


@dataclass
class AuctionContext:
    address: str
    items: ItemLedger
    access: AccessControl
    bank: ValueTransfer
    clock: Callable[[], int]
    config: AuctionConfig
    record: AuctionRecord
    escrow: EscrowLedger
    registry: BidderRegistry
    events: EventLog

    def now(self) -> int:
        return int(self.clock())

    def phase(self) -> AuctionPhase:
        return self.record.phase(self.now())

    def emit(self, event: AuctionEvent) -> None:
        self.events.emit(event)

    # =========================================================================
    # Guards
    # =========================================================================

    def require_manager(self, caller: str) -> None:
        if not self.access.is_manager(caller):
            raise Unauthorized(f"{caller} is not the manager")

    def require_owner(self, caller: str) -> None:
        if not self.access.is_owner(caller):
            raise Unauthorized(f"{caller} is not the owner")

    def require_initialized(self) -> None:
        if self.record.destroyed:
            raise InvalidState("Auction was destroyed")
        if not self.record.initialized:
            raise InvalidState("Auction is not initialized")

    def is_safety_timeout_elapsed(self) -> bool:
        record = self.record
        if not record.initialized or record.cancelled or record.proposal.validated:
            return False
        deadline = record.lot.bidding_end_time + self.config.safety_timeout_period
        return self.now() >= deadline

    # =========================================================================
    # Rollback
    # =========================================================================

    def checkpoint(self) -> UndoJournal:
        """
        Start journaling a call.

        The record, the proposal and the escrow totals are small and saved
        up front. Per-bidder changes are journaled by the escrow and the
        registry as they happen.
        """
        journal = UndoJournal()
        record = self.record
        journal.remember_attrs(record, *(f.name for f in fields(record)))
        journal.remember_attrs(record.proposal, *(f.name for f in fields(record.proposal)))
        journal.remember_attrs(self.escrow, *ESCROW_TOTALS)
        journal.on_rollback(partial(self.events.truncate, len(self.events)))
        self.escrow.journal = journal
        self.registry.journal = journal
        return journal

    def release(self) -> None:
        """Stop journaling."""
        self.escrow.journal = None
        self.registry.journal = None
