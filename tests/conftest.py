"""
Shared fixtures: an in-memory world with items, roles, a bank and an
auction that custodies its lot.
"""

from dataclasses import dataclass
from typing import List, Optional

import pytest

from lotauction.core.auction import ClearingPriceAuction
from lotauction.core.clock import ManualClock
from lotauction.core.collaborators import ItemRegistry, NativeBank, RoleControl
from lotauction.core.config import AuctionConfig, HOUR
from lotauction.crypto import to_checksum_address


START_TIME = 1_700_000_000
DEFAULT_FUNDS = 10**21


def address_for(n: int) -> str:
    """Deterministic checksummed address (fast, no key derivation)."""
    return to_checksum_address("0x" + format(n, "040x"))


@dataclass
class World:
    clock: ManualClock
    config: AuctionConfig
    items: ItemRegistry
    access: RoleControl
    bank: NativeBank
    auction: ClearingPriceAuction
    owner: str
    manager: str
    treasurer: str
    item_ids: List[int]
    _next_account: int = 0x1000

    def new_bidder(self, funds: int = DEFAULT_FUNDS) -> str:
        address = address_for(self._next_account)
        self._next_account += 1
        self.bank.mint(address, funds)
        return address

    def initialize(self, duration: int = 2 * HOUR) -> None:
        self.auction.initialize(self.item_ids, self.clock() + duration, self.manager)

    def close_bidding(self) -> None:
        self.clock.set(max(self.clock(), self.auction.lot.bidding_end_time))

    def validate_all(self) -> int:
        calls = 0
        while True:
            calls += 1
            if self.auction.validate(self.manager).done:
                return calls

    def settle_price(self, price: int) -> None:
        self.close_bidding()
        self.auction.set_price(price, self.manager)
        self.validate_all()


def build_world(
    item_count: int = 5,
    config: Optional[AuctionConfig] = None,
    initialize: bool = True,
) -> World:
    config = config or AuctionConfig()
    clock = ManualClock(START_TIME)
    owner, manager, treasurer = address_for(1), address_for(2), address_for(3)
    auction_address = address_for(0xA0C7)

    items = ItemRegistry()
    series = items.create_series(item_count)
    item_ids = list(range(100, 100 + item_count))
    items.mint(item_ids, series, manager)
    for item_id in item_ids:
        items.transfer_item(item_id, auction_address, manager)

    access = RoleControl(owner=owner, manager=manager, treasurer=treasurer)
    bank = NativeBank()
    auction = ClearingPriceAuction(auction_address, items, access, bank, clock=clock, config=config)

    world = World(
        clock=clock,
        config=config,
        items=items,
        access=access,
        bank=bank,
        auction=auction,
        owner=owner,
        manager=manager,
        treasurer=treasurer,
        item_ids=item_ids,
    )
    if initialize:
        world.initialize()
    return world


@pytest.fixture
def make_world():
    return build_world


@pytest.fixture
def world():
    return build_world()


@pytest.fixture
def fresh_world():
    """World whose auction is not initialized yet."""
    return build_world(initialize=False)
