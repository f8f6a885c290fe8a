"""
Tests for the auction lifecycle.

Tests cover:
1. Initialization checks
2. Deadline extension
3. Bidding and bid cancellation
4. Auction cancellation and destruction
5. Phase derivation and the safety timeout
"""

import pytest

from lotauction.core.auction import AuctionPhase
from lotauction.core.config import AuctionConfig, DAY, HOUR
from lotauction.core.errors import (
    AlreadyDone,
    InvalidArgument,
    InvalidDuration,
    InvalidItemSet,
    InvalidState,
    ItemsNotCustodied,
    NotEligible,
    ResourceConflict,
    Unauthorized,
)
from lotauction.core.errors import InsufficientFunds
from lotauction.crypto import ZERO_ADDRESS


# =============================================================================
# Initialization
# =============================================================================


class TestInitialize:
    """Tests for initialize()."""

    def test_initialize(self, fresh_world):
        w = fresh_world
        end = w.clock() + 2 * HOUR
        w.auction.initialize(w.item_ids, end, w.manager)

        assert w.auction.phase() == AuctionPhase.OPEN
        assert w.auction.lot.item_ids == tuple(w.item_ids)
        assert w.auction.lot.bidding_end_time == end
        assert w.auction.lot.created_time == w.clock()
        event = w.auction.events.last
        assert event.name == "AuctionInitialized"
        assert event.item_ids == tuple(w.item_ids)

    def test_only_manager(self, fresh_world):
        w = fresh_world
        with pytest.raises(Unauthorized):
            w.auction.initialize(w.item_ids, w.clock() + 2 * HOUR, w.owner)

    def test_twice(self, world):
        with pytest.raises(InvalidState):
            world.auction.initialize(world.item_ids, world.clock() + 2 * HOUR, world.manager)

    def test_empty_lot(self, fresh_world):
        w = fresh_world
        with pytest.raises(InvalidItemSet):
            w.auction.initialize([], w.clock() + 2 * HOUR, w.manager)

    def test_duplicate_items(self, fresh_world):
        w = fresh_world
        with pytest.raises(InvalidItemSet):
            w.auction.initialize([w.item_ids[0], w.item_ids[0]], w.clock() + 2 * HOUR, w.manager)

    def test_unknown_item(self, fresh_world):
        w = fresh_world
        with pytest.raises(InvalidItemSet):
            w.auction.initialize([9999], w.clock() + 2 * HOUR, w.manager)

    def test_mixed_series(self, fresh_world):
        w = fresh_world
        other = w.items.create_series(1)
        w.items.mint([500], other, w.auction.address)
        with pytest.raises(InvalidItemSet):
            w.auction.initialize(w.item_ids + [500], w.clock() + 2 * HOUR, w.manager)

    def test_items_not_custodied(self, fresh_world):
        w = fresh_world
        w.items.owners[w.item_ids[0]] = w.manager
        with pytest.raises(ItemsNotCustodied):
            w.auction.initialize(w.item_ids, w.clock() + 2 * HOUR, w.manager)

    def test_end_in_past(self, fresh_world):
        w = fresh_world
        with pytest.raises(InvalidDuration):
            w.auction.initialize(w.item_ids, w.clock(), w.manager)

    def test_period_too_short(self, fresh_world):
        w = fresh_world
        with pytest.raises(InvalidDuration):
            w.auction.initialize(w.item_ids, w.clock() + HOUR - 1, w.manager)

    def test_period_too_long(self, fresh_world):
        w = fresh_world
        with pytest.raises(InvalidDuration):
            w.auction.initialize(w.item_ids, w.clock() + 31 * DAY, w.manager)

    def test_rejection_leaves_no_trace(self, fresh_world):
        w = fresh_world
        with pytest.raises(InvalidDuration):
            w.auction.initialize(w.item_ids, w.clock(), w.manager)
        assert w.auction.phase() == AuctionPhase.UNINITIALIZED
        assert len(w.auction.events) == 0

    def test_bid_before_initialize(self, fresh_world):
        w = fresh_world
        with pytest.raises(InvalidState):
            w.auction.bid(w.new_bidder(), 10)


# =============================================================================
# Deadline Extension
# =============================================================================


class TestExtendDeadline:
    """Tests for extend_deadline()."""

    def test_extend_while_open(self, world):
        new_end = world.auction.lot.bidding_end_time + HOUR
        world.auction.extend_deadline(new_end, world.manager)
        assert world.auction.lot.bidding_end_time == new_end
        assert world.auction.events.last.new_bidding_end_time == new_end

    def test_extend_reopens_bidding(self, world):
        world.close_bidding()
        assert world.auction.phase() == AuctionPhase.BIDDING_CLOSED
        world.auction.extend_deadline(world.clock() + HOUR, world.manager)
        assert world.auction.phase() == AuctionPhase.OPEN

    def test_must_be_later(self, world):
        with pytest.raises(InvalidDuration):
            world.auction.extend_deadline(world.auction.lot.bidding_end_time, world.manager)

    def test_must_be_in_future(self, world):
        world.clock.advance(3 * HOUR)
        with pytest.raises(InvalidDuration):
            world.auction.extend_deadline(world.clock() - 1, world.manager)

    def test_max_period(self, world):
        too_far = world.auction.lot.created_time + world.config.max_auction_period + 1
        with pytest.raises(InvalidDuration):
            world.auction.extend_deadline(too_far, world.manager)

    def test_after_price_set(self, world):
        world.auction.bid(world.new_bidder(), 10)
        world.close_bidding()
        world.auction.set_price(10, world.manager)
        with pytest.raises(InvalidState):
            world.auction.extend_deadline(world.clock() + HOUR, world.manager)

    def test_after_safety_timeout(self, world):
        world.close_bidding()
        world.clock.advance(world.config.safety_timeout_period)
        with pytest.raises(InvalidState):
            world.auction.extend_deadline(world.clock() + HOUR, world.manager)

    def test_only_manager(self, world):
        with pytest.raises(Unauthorized):
            world.auction.extend_deadline(world.clock() + 3 * HOUR, world.owner)


# =============================================================================
# Bidding
# =============================================================================


class TestBid:
    """Tests for bid()."""

    def test_bid_escrows_value(self, world):
        bidder = world.new_bidder(funds=100)
        assert world.auction.bid(bidder, 30) == 30
        assert world.bank.balance_of(bidder) == 70
        assert world.bank.balance_of(world.auction.address) == 30
        assert world.auction.bid_amount_of(bidder) == 30

    def test_bids_accumulate(self, world):
        bidder = world.new_bidder()
        world.auction.bid(bidder, 10)
        assert world.auction.bid(bidder, 5) == 15
        assert world.auction.bidders == [bidder]
        event = world.auction.events.last
        assert (event.bid_amount, event.accumulated_bid_amount) == (5, 15)

    def test_zero_amount(self, world):
        with pytest.raises(InvalidArgument):
            world.auction.bid(world.new_bidder(), 0)

    def test_amount_above_uint256(self, world):
        with pytest.raises(InvalidArgument):
            world.auction.bid(world.new_bidder(), 2**256)

    def test_invalid_address(self, world):
        with pytest.raises(InvalidArgument):
            world.auction.bid("0x1234", 10)

    def test_zero_address(self, world):
        with pytest.raises(InvalidArgument):
            world.auction.bid(ZERO_ADDRESS, 10)
        with pytest.raises(InvalidArgument):
            world.auction.withdraw_bid(ZERO_ADDRESS)
        assert world.auction.bidders == []

    def test_lowercase_address_is_same_bidder(self, world):
        bidder = world.new_bidder()
        world.auction.bid(bidder.lower(), 10)
        world.auction.bid(bidder, 10)
        assert world.auction.bidders == [bidder]
        assert world.auction.bid_amount_of(bidder.lower()) == 20

    def test_insufficient_funds(self, world):
        bidder = world.new_bidder(funds=5)
        with pytest.raises(InsufficientFunds):
            world.auction.bid(bidder, 10)
        assert world.auction.bidders == []
        assert world.bank.balance_of(bidder) == 5

    def test_after_window(self, world):
        world.close_bidding()
        with pytest.raises(InvalidState):
            world.auction.bid(world.new_bidder(), 10)

    def test_when_paused(self, world):
        world.access.pause(world.manager)
        with pytest.raises(InvalidState):
            world.auction.bid(world.new_bidder(), 10)
        world.access.unpause(world.owner)
        world.auction.bid(world.new_bidder(), 10)

    def test_after_cancel(self, world):
        world.auction.cancel_auction(world.manager)
        with pytest.raises(InvalidState):
            world.auction.bid(world.new_bidder(), 10)


class TestCancelBid:
    """Tests for cancel_bid()."""

    def test_cancel_refunds(self, world):
        bidder = world.new_bidder(funds=100)
        world.auction.bid(bidder, 40)
        assert world.auction.cancel_bid(bidder) == 40
        assert world.bank.balance_of(bidder) == 100
        assert world.auction.bid_amount_of(bidder) == 0
        assert world.auction.events.last.name == "BidCancelled"

    def test_keeps_insertion_order(self, world):
        """A cancelled bidder who bids again keeps their place."""
        a, b = world.new_bidder(), world.new_bidder()
        world.auction.bid(a, 10)
        world.auction.bid(b, 10)
        world.auction.cancel_bid(a)
        world.auction.bid(a, 10)
        assert world.auction.bidders == [a, b]

    def test_without_bid(self, world):
        with pytest.raises(NotEligible):
            world.auction.cancel_bid(world.new_bidder())

    def test_after_bidding_closed(self, world):
        bidder = world.new_bidder()
        world.auction.bid(bidder, 10)
        world.close_bidding()
        assert world.auction.cancel_bid(bidder) == 10

    def test_after_price_set(self, world):
        bidder = world.new_bidder()
        world.auction.bid(bidder, 10)
        world.close_bidding()
        world.auction.set_price(10, world.manager)
        with pytest.raises(InvalidState):
            world.auction.cancel_bid(bidder)

    def test_after_auction_cancelled(self, world):
        bidder = world.new_bidder()
        world.auction.bid(bidder, 10)
        world.close_bidding()
        world.auction.set_price(10, world.manager)
        world.auction.cancel_auction(world.manager)
        assert world.auction.cancel_bid(bidder) == 10


# =============================================================================
# Cancel / Destroy
# =============================================================================


class TestCancelAuction:
    """Tests for cancel_auction()."""

    def test_returns_items(self, world):
        world.auction.cancel_auction(world.manager)
        assert world.items.items_of(world.manager) == world.item_ids
        assert world.auction.phase() == AuctionPhase.CANCELLED
        assert world.auction.events.last.name == "AuctionCancelled"

    def test_twice(self, world):
        world.auction.cancel_auction(world.manager)
        with pytest.raises(AlreadyDone):
            world.auction.cancel_auction(world.manager)

    def test_only_manager(self, world):
        with pytest.raises(Unauthorized):
            world.auction.cancel_auction(world.owner)

    def test_after_validation(self, world):
        world.auction.bid(world.new_bidder(), 10)
        world.settle_price(10)
        with pytest.raises(InvalidState):
            world.auction.cancel_auction(world.manager)

    def test_items_missing(self, world):
        world.items.owners[world.item_ids[-1]] = world.owner
        with pytest.raises(ItemsNotCustodied):
            world.auction.cancel_auction(world.manager)
        assert world.auction.phase() == AuctionPhase.OPEN


class TestDestroy:
    """Tests for destroy()."""

    def test_destroy_empty_auction(self, world):
        world.auction.cancel_auction(world.manager)
        world.auction.destroy(world.owner)
        assert world.auction.phase() == AuctionPhase.DESTROYED
        with pytest.raises(InvalidState):
            world.auction.bid(world.new_bidder(), 10)

    def test_only_owner(self, world):
        world.auction.cancel_auction(world.manager)
        with pytest.raises(Unauthorized):
            world.auction.destroy(world.manager)

    def test_while_holding_items(self, world):
        with pytest.raises(ResourceConflict):
            world.auction.destroy(world.owner)

    def test_while_holding_value(self, world):
        world.auction.bid(world.new_bidder(), 10)
        world.auction.cancel_auction(world.manager)
        with pytest.raises(ResourceConflict):
            world.auction.destroy(world.owner)

    def test_twice(self, world):
        world.auction.cancel_auction(world.manager)
        world.auction.destroy(world.owner)
        with pytest.raises(InvalidState):
            world.auction.destroy(world.owner)


# =============================================================================
# Phases
# =============================================================================


class TestPhases:
    """Tests for phase derivation and the safety timeout."""

    def test_phase_progression(self, world):
        auction = world.auction
        assert auction.phase() == AuctionPhase.OPEN
        for _ in range(2):
            auction.bid(world.new_bidder(), 10)
        world.close_bidding()
        assert auction.phase() == AuctionPhase.BIDDING_CLOSED

        auction.set_max_iterations(1, world.manager)
        auction.set_price(10, world.manager)
        assert auction.phase() == AuctionPhase.PRICE_SET
        auction.validate(world.manager)
        assert auction.phase() == AuctionPhase.VALIDATING
        auction.validate(world.manager)
        assert auction.phase() == AuctionPhase.PRICE_VALIDATED

    def test_phases_are_ordered(self):
        assert AuctionPhase.OPEN < AuctionPhase.BIDDING_CLOSED < AuctionPhase.PRICE_VALIDATED

    def test_safety_timeout(self, world):
        assert not world.auction.is_safety_timeout_elapsed()
        world.close_bidding()
        world.clock.advance(world.config.safety_timeout_period - 1)
        assert not world.auction.is_safety_timeout_elapsed()
        world.clock.advance(1)
        assert world.auction.is_safety_timeout_elapsed()

    def test_no_timeout_once_validated(self, world):
        world.auction.bid(world.new_bidder(), 10)
        world.settle_price(10)
        world.clock.advance(world.config.safety_timeout_period)
        assert not world.auction.is_safety_timeout_elapsed()

    def test_no_timeout_when_cancelled(self, world):
        world.auction.cancel_auction(world.manager)
        world.close_bidding()
        world.clock.advance(world.config.safety_timeout_period)
        assert not world.auction.is_safety_timeout_elapsed()

    def test_custom_config(self, make_world):
        cfg = AuctionConfig(min_auction_period=60, max_auction_period=120, safety_timeout_period=30)
        w = make_world(config=cfg, initialize=False)
        w.initialize(duration=90)
        w.clock.advance(120)
        assert w.auction.is_safety_timeout_elapsed()

    def test_stats(self, world):
        world.auction.bid(world.new_bidder(), 10)
        stats = world.auction.stats()
        assert stats["phase"] == "OPEN"
        assert stats["bidders"] == 1
        assert stats["item_count"] == 5
        assert stats["escrow"]["total_escrowed"] == 10
