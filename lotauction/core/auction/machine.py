"""
Clearing-Price Auction - Lifecycle of one escrowed multi-item auction.

This module ties the pieces together:
- AuctionRecord / AuctionLot for the lifecycle and the lot
- EscrowLedger and BidderRegistry for bids
- ClearingEngine for price proposal and bounded validation
- SettlementLedger for redeem / withdraw / operator withdraw

Lifecycle:
    initialize -> bid (until bidding_end_time) -> set_price -> validate...
    -> redeem_item / withdraw_bid / operator_withdraw

Every mutating call is atomic: if it raises, the record, escrow, registry
and event log are restored to what they were before the call. A mutating
call made while another one is still running (e.g. from a value
recipient's receive hook) is rejected with ReentrantCall.
"""

import functools
from dataclasses import replace
from typing import Callable, List, Optional, Sequence

from lotauction.core.auction import events
from lotauction.core.auction.clearing import ClearingEngine, ValidationStep
from lotauction.core.auction.context import AuctionContext
from lotauction.core.auction.escrow import EscrowLedger
from lotauction.core.auction.events import AuctionEvent, EventLog
from lotauction.core.auction.registry import BidderRegistry
from lotauction.core.auction.settlement import SettlementLedger
from lotauction.core.auction.state import (
    AuctionLot,
    AuctionPhase,
    AuctionRecord,
    PriceProposal,
)
from lotauction.core.clock import SystemClock
from lotauction.core.collaborators import AccessControl, ItemLedger, ValueTransfer
from lotauction.core.config import AuctionConfig, config as default_config
from lotauction.core.errors import (
    AlreadyDone,
    AuctionError,
    InvalidArgument,
    InvalidDuration,
    InvalidItemSet,
    InvalidState,
    ItemsNotCustodied,
    NotEligible,
    ReentrantCall,
    ResourceConflict,
    UnknownItem,
)
from lotauction.crypto import ZERO_ADDRESS, to_checksum_address
from lotauction.utils.logger import get_logger
from lotauction.utils.validation import (
    validate_address,
    validate_amount,
    validate_item_ids,
    validate_timestamp,
)

logger = get_logger("auction")


def _address(value: str, name: str = "caller") -> str:
    valid, err = validate_address(value, name)
    if not valid:
        raise InvalidArgument(err)
    address = to_checksum_address(value)
    if address == ZERO_ADDRESS:
        raise InvalidArgument(f"{name} must not be the zero address")
    return address


def mutating(method):
    """Run a state-changing call atomically and without re-entrance."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if self._entered:
            raise ReentrantCall(f"{method.__name__} called during another auction call")
        self._entered = True
        journal = self.ctx.checkpoint()
        try:
            return method(self, *args, **kwargs)
        except Exception as e:
            journal.rollback()
            if isinstance(e, AuctionError):
                logger.warning(f"{method.__name__} rejected: {type(e).__name__}: {e}")
            else:
                logger.error(f"{method.__name__} failed: {type(e).__name__}: {e}")
            raise
        finally:
            self.ctx.release()
            self._entered = False

    return wrapper


class ClearingPriceAuction:
    """
    Incremental clearing-price auction for a lot of identical items.

    Winners are the first `item_count` bidders, in first-bid order, whose
    escrowed amount is at least the validated price. Each winner redeems
    one item and gets back `amount - price`; everybody else withdraws the
    full bid.
    """

    def __init__(
        self,
        address: str,
        items: ItemLedger,
        access: AccessControl,
        bank: ValueTransfer,
        clock: Optional[Callable[[], int]] = None,
        config: Optional[AuctionConfig] = None,
    ):
        config = config or default_config
        escrow = EscrowLedger()
        self.ctx = AuctionContext(
            address=_address(address, "address"),
            items=items,
            access=access,
            bank=bank,
            clock=clock or SystemClock(),
            config=config,
            record=AuctionRecord(max_iterations=config.default_max_validation_iterations),
            escrow=escrow,
            registry=BidderRegistry(escrow=escrow),
            events=EventLog(),
        )
        self.clearing = ClearingEngine(self.ctx)
        self.settlement = SettlementLedger(self.ctx, self.clearing)
        self._entered = False

        logger.debug(f"Auction created at {self.address}")

    @property
    def address(self) -> str:
        return self.ctx.address

    def restore(
        self,
        record: AuctionRecord,
        escrow: EscrowLedger,
        registry: BidderRegistry,
        past_events: Sequence[AuctionEvent] = (),
    ) -> None:
        """Load persisted state into a freshly created auction."""
        if self.ctx.record.initialized or len(self.ctx.events):
            raise InvalidState("Can only restore into a fresh auction")
        if registry.escrow is not escrow:
            raise ValueError("registry must be backed by the given escrow")
        self.ctx.record = record
        self.ctx.escrow = escrow
        self.ctx.registry = registry
        for event in past_events:
            self.ctx.events.emit(event)
        logger.info(f"Auction {self.address} restored in phase {self.phase().name}")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @mutating
    def initialize(self, item_ids: Sequence[int], bidding_end_time: int, caller: str) -> None:
        """
        Open the auction for a lot the auction already custodies.

        Args:
            item_ids: Items of one series, in redemption order
            bidding_end_time: Unix time when bidding stops
            caller: Manager address
        """
        ctx = self.ctx
        caller = _address(caller)
        ctx.require_manager(caller)
        if ctx.record.destroyed:
            raise InvalidState("Auction was destroyed")
        if ctx.record.initialized:
            raise InvalidState("Auction is already initialized")

        valid, err = validate_item_ids(item_ids)
        if not valid:
            raise InvalidItemSet(err)
        item_ids = tuple(item_ids)

        try:
            series = {ctx.items.series_of(item_id) for item_id in item_ids}
        except UnknownItem as e:
            raise InvalidItemSet(str(e)) from e
        if len(series) != 1:
            raise InvalidItemSet("All items must belong to the same series")
        if not ctx.items.is_custodied_by(ctx.address, item_ids):
            raise ItemsNotCustodied("The auction does not hold every item of the lot")

        valid, err = validate_timestamp(bidding_end_time, "bidding_end_time")
        if not valid:
            raise InvalidArgument(err)
        now = ctx.now()
        if bidding_end_time <= now:
            raise InvalidDuration("Bidding end time must be in the future")
        duration = bidding_end_time - now
        if duration < ctx.config.min_auction_period:
            raise InvalidDuration(
                f"Auction period {duration}s is below the minimum {ctx.config.min_auction_period}s")
        if duration > ctx.config.max_auction_period:
            raise InvalidDuration(
                f"Auction period {duration}s exceeds the maximum {ctx.config.max_auction_period}s")

        ctx.record.lot = AuctionLot(
            item_ids=item_ids,
            series_id=series.pop(),
            created_time=now,
            bidding_end_time=bidding_end_time,
        )
        ctx.record.initialized = True
        ctx.emit(events.AuctionInitialized(item_ids=item_ids, bidding_end_time=bidding_end_time))
        logger.info(f"Auction initialized: {len(item_ids)} items, bidding ends at {bidding_end_time}")

    @mutating
    def extend_deadline(self, new_end_time: int, caller: str) -> None:
        """Push the bidding end time later (before any price is proposed)."""
        ctx = self.ctx
        caller = _address(caller)
        ctx.require_manager(caller)
        ctx.require_initialized()

        if ctx.phase() not in (AuctionPhase.OPEN, AuctionPhase.BIDDING_CLOSED):
            raise InvalidState(f"Cannot extend in phase {ctx.phase().name}")
        if ctx.is_safety_timeout_elapsed():
            raise InvalidState("Safety timeout elapsed")

        valid, err = validate_timestamp(new_end_time, "new_end_time")
        if not valid:
            raise InvalidArgument(err)
        lot = ctx.record.lot
        if new_end_time <= lot.bidding_end_time:
            raise InvalidDuration("New end time must be later than the current one")
        if new_end_time <= ctx.now():
            raise InvalidDuration("New end time must be in the future")
        if new_end_time - lot.created_time > ctx.config.max_auction_period:
            raise InvalidDuration("Extension exceeds the maximum auction period")

        ctx.record.lot = replace(lot, bidding_end_time=new_end_time)
        ctx.emit(events.AuctionExtended(new_bidding_end_time=new_end_time))
        logger.info(f"Bidding extended to {new_end_time}")

    @mutating
    def cancel_auction(self, caller: str) -> None:
        """Cancel for good and hand every item back to the manager."""
        ctx = self.ctx
        caller = _address(caller)
        ctx.require_manager(caller)
        ctx.require_initialized()
        record = ctx.record

        if record.cancelled:
            raise AlreadyDone("Auction is already cancelled")
        if record.proposal.validated:
            raise InvalidState("Cannot cancel after the price is validated")
        if not ctx.items.is_custodied_by(ctx.address, record.lot.item_ids):
            raise ItemsNotCustodied("The auction does not hold every item of the lot")

        record.cancelled = True
        ctx.emit(events.AuctionCancelled())

        for item_id in record.lot.item_ids:
            ctx.items.transfer_item(item_id, caller, ctx.address)
        logger.info(f"Auction cancelled, {record.item_count} items returned to {caller}")

    @mutating
    def destroy(self, caller: str) -> None:
        """Retire an empty auction (owner only)."""
        ctx = self.ctx
        caller = _address(caller)
        ctx.require_owner(caller)
        record = ctx.record

        if record.destroyed:
            raise InvalidState("Auction was destroyed")
        if ctx.bank.balance_of(ctx.address) != 0:
            raise ResourceConflict("The auction still holds value")
        if record.lot is not None and any(
            ctx.items.is_custodied_by(ctx.address, [item_id]) for item_id in record.lot.item_ids
        ):
            raise ResourceConflict("The auction still holds lot items")

        record.destroyed = True
        ctx.emit(events.AuctionDestroyed())
        logger.info(f"Auction {ctx.address} destroyed")

    # =========================================================================
    # Bidding
    # =========================================================================

    @mutating
    def bid(self, caller: str, amount: int) -> int:
        """
        Escrow `amount` for the caller; repeated bids accumulate.

        Returns:
            The caller's accumulated escrowed amount
        """
        ctx = self.ctx
        caller = _address(caller)
        ctx.require_initialized()
        if ctx.record.cancelled:
            raise InvalidState("Auction was cancelled")
        if ctx.phase() != AuctionPhase.OPEN:
            raise InvalidState("Bidding is closed")
        if ctx.access.is_paused():
            raise InvalidState("Auction is paused")
        valid, err = validate_amount(amount, "bid amount")
        if not valid:
            raise InvalidArgument(err)

        ctx.bank.transfer(caller, ctx.address, amount)
        ctx.registry.register(caller)
        total = ctx.escrow.deposit(caller, amount)
        ctx.emit(events.Bid(bidder=caller, bid_amount=amount, accumulated_bid_amount=total))

        logger.info(f"Bid {amount} from {caller} (accumulated {total})")
        return total

    @mutating
    def cancel_bid(self, caller: str) -> int:
        """
        Take the whole bid back before a price is proposed, or after cancel.

        The bidder keeps their place in first-bid order and may bid again.

        Returns:
            The refunded amount
        """
        ctx = self.ctx
        caller = _address(caller)
        ctx.require_initialized()

        amount = ctx.escrow.balance_of(caller)
        if amount == 0:
            raise NotEligible(f"{caller} has no bid to cancel")
        if not ctx.record.cancelled and ctx.phase() > AuctionPhase.BIDDING_CLOSED:
            raise InvalidState("Bids cannot be cancelled once a price is proposed")

        ctx.escrow.release_all(caller)
        ctx.emit(events.BidCancelled(bidder=caller, amount=amount))

        ctx.bank.transfer(ctx.address, caller, amount)
        logger.info(f"Bid of {amount} cancelled by {caller}")
        return amount

    # =========================================================================
    # Clearing
    # =========================================================================

    @mutating
    def set_price(self, price: int, caller: str) -> None:
        self.clearing.set_price(price, _address(caller))

    @mutating
    def validate(self, caller: str) -> ValidationStep:
        return self.clearing.validate(_address(caller))

    @mutating
    def set_max_iterations(self, max_iterations: int, caller: str) -> None:
        self.clearing.set_max_iterations(max_iterations, _address(caller))

    # =========================================================================
    # Settlement
    # =========================================================================

    @mutating
    def redeem_item(self, caller: str) -> int:
        return self.settlement.redeem_item(_address(caller))

    @mutating
    def withdraw_bid(self, caller: str) -> int:
        return self.settlement.withdraw_bid(_address(caller))

    @mutating
    def operator_withdraw(self, caller: str) -> int:
        return self.settlement.operator_withdraw(_address(caller))

    # =========================================================================
    # Queries
    # =========================================================================

    def phase(self) -> AuctionPhase:
        return self.ctx.phase()

    def is_safety_timeout_elapsed(self) -> bool:
        return self.ctx.is_safety_timeout_elapsed()

    def is_winner(self, bidder: str) -> bool:
        return self.clearing.is_winner(_address(bidder, "bidder"))

    @property
    def lot(self) -> Optional[AuctionLot]:
        return self.ctx.record.lot

    @property
    def proposal(self) -> PriceProposal:
        return self.ctx.record.proposal

    @property
    def bidders(self) -> List[str]:
        return list(self.ctx.registry.order)

    def winners(self) -> List[str]:
        """Confirmed winners of the validated price, in first-bid order."""
        if not self.proposal.validated:
            return []
        return self.ctx.registry.winners(self.proposal.round)

    def bid_amount_of(self, bidder: str) -> int:
        return self.ctx.escrow.balance_of(_address(bidder, "bidder"))

    def has_redeemed(self, bidder: str) -> bool:
        entry = self.ctx.registry.get(_address(bidder, "bidder"))
        return entry is not None and entry.redeemed

    def has_withdrawn(self, bidder: str) -> bool:
        entry = self.ctx.registry.get(_address(bidder, "bidder"))
        return entry is not None and entry.withdrawn

    @property
    def num_items_transferred(self) -> int:
        return self.ctx.record.num_items_transferred

    @property
    def operator_withdrawn(self) -> bool:
        return self.ctx.record.operator_withdrawn

    @property
    def max_iterations(self) -> int:
        return self.ctx.record.max_iterations

    @property
    def events(self) -> EventLog:
        return self.ctx.events

    def stats(self) -> dict:
        record = self.ctx.record
        proposal = record.proposal
        lot = record.lot
        return {
            "address": self.address,
            "phase": self.phase().name,
            "item_count": record.item_count,
            "series_id": lot.series_id if lot else None,
            "bidding_end_time": lot.bidding_end_time if lot else None,
            "bidders": len(self.ctx.registry),
            "price": proposal.price,
            "validated": proposal.validated,
            "cursor": proposal.cursor,
            "num_winners_confirmed": proposal.num_winners_confirmed,
            "num_items_sellable": proposal.num_items_sellable,
            "num_items_transferred": record.num_items_transferred,
            "operator_withdrawn": record.operator_withdrawn,
            "max_iterations": record.max_iterations,
            "safety_timeout_elapsed": self.is_safety_timeout_elapsed(),
            "escrow": self.ctx.escrow.stats(),
            "events": len(self.ctx.events),
        }
