"""
Unit tests for SQLite storage.
"""

import json

import pytest

from lotauction.core.storage import AuctionSnapshot, SQLiteAdapter, StorageManager


BIDDER = "0x00000000000000000000000000000000000000A1"


class TestSQLiteAdapter:
    """Tests for the raw adapter."""

    def test_save_and_read(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "sub" / "test.db")
        adapter.save_auction(
            "auction-1",
            json.dumps({"initialized": True}),
            100,
            [(BIDDER, 0, 2**200, False, True, 3)],
            [(0, "Bid", json.dumps({"bidder": BIDDER}))],
        )

        assert json.loads(adapter.get_auction_record("auction-1")) == {"initialized": True}
        assert adapter.get_bids("auction-1") == [(BIDDER, 0, 2**200, False, True, 3)]
        assert adapter.get_events("auction-1") == [("Bid", json.dumps({"bidder": BIDDER}))]
        assert adapter.list_auctions() == ["auction-1"]
        adapter.close()

    def test_save_replaces(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "test.db")
        adapter.save_auction("a", "{}", 1, [(BIDDER, 0, 5, False, False, 0)], [])
        adapter.save_auction("a", "{}", 2, [], [])
        assert adapter.get_bids("a") == []

    def test_missing(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "test.db")
        assert adapter.get_auction_record("nope") is None

    def test_delete(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "test.db")
        adapter.save_auction("a", "{}", 1, [(BIDDER, 0, 5, False, False, 0)], [(0, "Bid", "{}")])
        adapter.delete_auction("a")
        assert adapter.list_auctions() == []
        assert adapter.get_events("a") == []


class TestStorageManager:
    """Tests for saving and loading auctions."""

    def test_roundtrip_mid_validation(self, world, tmp_path):
        bidders = [world.new_bidder() for _ in range(4)]
        for i, bidder in enumerate(bidders):
            world.auction.bid(bidder, 10 + i)
        world.auction.set_max_iterations(2, world.manager)
        world.close_bidding()
        world.auction.set_price(11, world.manager)
        world.auction.validate(world.manager)

        storage = StorageManager(tmp_path)
        storage.save_auction(world.auction)
        loaded = storage.load_auction(
            world.auction.address, world.items, world.access, world.bank,
            clock=world.clock, config=world.config,
        )

        assert loaded.phase() == world.auction.phase()
        assert loaded.bidders == bidders
        assert loaded.proposal == world.auction.proposal
        assert loaded.lot == world.auction.lot
        assert loaded.max_iterations == 2
        assert [e.to_dict() for e in loaded.events] == [e.to_dict() for e in world.auction.events]
        assert loaded.ctx.escrow.stats() == world.auction.ctx.escrow.stats()

    def test_load_unknown(self, world, tmp_path):
        storage = StorageManager(tmp_path)
        assert storage.load_auction(world.auction.address, world.items, world.access, world.bank) is None

    def test_summary(self, world, tmp_path):
        world.auction.bid(world.new_bidder(), 10)
        storage = StorageManager(tmp_path)
        storage.save_auction(world.auction)

        snapshot, num_bidders = storage.get_auction_summary(world.auction.address.lower())
        assert isinstance(snapshot, AuctionSnapshot)
        assert snapshot.initialized
        assert snapshot.deposited == 10
        assert num_bidders == 1
        assert storage.list_auctions() == [world.auction.address]

    def test_unbalanced_escrow_rejected(self, world, tmp_path):
        bidder = world.new_bidder()
        world.auction.bid(bidder, 10)
        storage = StorageManager(tmp_path)
        storage.save_auction(world.auction)

        raw = json.loads(storage.adapter.get_auction_record(world.auction.address))
        raw["deposited"] = 11
        storage.adapter.save_auction(
            world.auction.address, json.dumps(raw), 0,
            storage.adapter.get_bids(world.auction.address), [],
        )
        with pytest.raises(ValueError):
            storage.load_auction(world.auction.address, world.items, world.access, world.bank)

    def test_delete_any_case(self, world, tmp_path):
        world.auction.bid(world.new_bidder(), 10)
        storage = StorageManager(tmp_path)
        storage.save_auction(world.auction)

        storage.delete_auction(world.auction.address.lower())
        assert storage.list_auctions() == []
        assert storage.adapter.get_bids(world.auction.address) == []

    def test_non_checksummed_bidder_rejected(self, world, tmp_path):
        bidder = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
        world.bank.mint(bidder, 100)
        world.auction.bid(bidder, 10)
        storage = StorageManager(tmp_path)
        storage.save_auction(world.auction)

        adapter = storage.adapter
        rows = [(b.lower(), *rest) for b, *rest in adapter.get_bids(world.auction.address)]
        adapter.save_auction(
            world.auction.address, adapter.get_auction_record(world.auction.address), 0, rows, [],
        )
        with pytest.raises(ValueError):
            storage.load_auction(world.auction.address, world.items, world.access, world.bank)
