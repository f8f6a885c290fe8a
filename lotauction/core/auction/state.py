"""
Auction state - Phases, the auctioned lot and the fixed auction record.

The phase is never stored: it is derived from the record and the clock
reading at call time, so time-based transitions (bidding end, safety
timeout) need no scheduler.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, Tuple


class AuctionPhase(IntEnum):
    """Phase of a clearing-price auction (ordered)."""
    UNINITIALIZED = 0    # Deployed, no lot yet
    OPEN = 1             # Accepting bids
    BIDDING_CLOSED = 2   # Window elapsed, no price proposed
    PRICE_SET = 3        # Price proposed, validation not started
    VALIDATING = 4       # Validation in progress (cursor > 0)
    PRICE_VALIDATED = 5  # Winners fixed, settlement open
    CANCELLED = 6        # Cancelled by the manager
    DESTROYED = 7        # Retired by the owner


@dataclass(frozen=True)
class AuctionLot:
    """
    Items auctioned together.

    All items belong to one series and were custodied by the auction when
    it was initialized.
    """
    item_ids: Tuple[int, ...]
    series_id: int
    created_time: int
    bidding_end_time: int

    @property
    def item_count(self) -> int:
        return len(self.item_ids)


@dataclass
class PriceProposal:
    """
    Proposed clearing price and validation progress.

    Reset whenever the price changes; frozen in place once validated.
    `cursor` indexes the bidder registry and only moves forward within a
    round. Until `validated` is set, `cursor` and `num_winners_confirmed`
    are partial progress only.
    """
    price: int = 0
    validated: bool = False
    num_items_sellable: int = 0
    num_winners_confirmed: int = 0
    cursor: int = 0
    round: int = 0


@dataclass
class AuctionRecord:
    """Small fixed record holding everything but per-bidder data."""
    initialized: bool = False
    cancelled: bool = False
    destroyed: bool = False
    lot: Optional[AuctionLot] = None
    proposal: PriceProposal = field(default_factory=PriceProposal)
    max_iterations: int = 500
    num_items_transferred: int = 0
    operator_withdrawn: bool = False

    def phase(self, now: int) -> AuctionPhase:
        """Derive the phase at time `now`."""
        if self.destroyed:
            return AuctionPhase.DESTROYED
        if self.cancelled:
            return AuctionPhase.CANCELLED
        if not self.initialized or self.lot is None:
            return AuctionPhase.UNINITIALIZED
        if self.proposal.validated:
            return AuctionPhase.PRICE_VALIDATED
        if self.proposal.price > 0:
            if self.proposal.cursor > 0:
                return AuctionPhase.VALIDATING
            return AuctionPhase.PRICE_SET
        if now >= self.lot.bidding_end_time:
            return AuctionPhase.BIDDING_CLOSED
        return AuctionPhase.OPEN

    @property
    def item_count(self) -> int:
        return self.lot.item_count if self.lot else 0
