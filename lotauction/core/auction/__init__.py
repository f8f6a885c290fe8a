"""
lotauction Auction Module.

This module provides the clearing-price auction:
- Phases, the lot and the fixed auction record
- Escrow ledger and bidder registry, with per-call undo journaling
- Bounded, resumable price validation
- Settlement (redeem, withdraw, operator withdraw)
- The ClearingPriceAuction facade
"""

from lotauction.core.auction.state import (
    AuctionPhase,
    AuctionLot,
    AuctionRecord,
    PriceProposal,
)

from lotauction.core.auction.journal import UndoJournal
from lotauction.core.auction.escrow import EscrowLedger
from lotauction.core.auction.registry import Bidder, BidderRegistry
from lotauction.core.auction.events import AuctionEvent, EventLog, event_from_dict

from lotauction.core.auction.clearing import (
    ClearingEngine,
    ValidationStep,
    advance_validation,
)

from lotauction.core.auction.settlement import SettlementLedger
from lotauction.core.auction.machine import ClearingPriceAuction

__all__ = [
    # State
    "AuctionPhase",
    "AuctionLot",
    "AuctionRecord",
    "PriceProposal",
    # Bookkeeping
    "UndoJournal",
    "EscrowLedger",
    "Bidder",
    "BidderRegistry",
    "AuctionEvent",
    "EventLog",
    "event_from_dict",
    # Clearing
    "ClearingEngine",
    "ValidationStep",
    "advance_validation",
    # Settlement
    "SettlementLedger",
    "ClearingPriceAuction",
]
