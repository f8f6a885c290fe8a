import json
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel, Field

from lotauction.core.auction.escrow import EscrowLedger
from lotauction.core.auction.events import event_from_dict
from lotauction.core.auction.machine import ClearingPriceAuction
from lotauction.core.auction.registry import Bidder, BidderRegistry
from lotauction.core.auction.state import AuctionLot, AuctionRecord, PriceProposal
from lotauction.core.collaborators import AccessControl, ItemLedger, ValueTransfer
from lotauction.core.config import AuctionConfig
from lotauction.core.storage.sqlite_adapter import SQLiteAdapter
from lotauction.crypto import is_checksum_address, to_checksum_address
from lotauction.utils.logger import get_logger

logger = get_logger("storage.manager")


# =============================================================================
# Snapshot Models
# =============================================================================


class LotSnapshot(BaseModel):
    item_ids: List[int]
    series_id: int
    created_time: int
    bidding_end_time: int


class ProposalSnapshot(BaseModel):
    price: int = Field(default=0, ge=0)
    validated: bool = False
    num_items_sellable: int = Field(default=0, ge=0)
    num_winners_confirmed: int = Field(default=0, ge=0)
    cursor: int = Field(default=0, ge=0)
    round: int = Field(default=0, ge=0)


class AuctionSnapshot(BaseModel):
    """Everything but per-bidder rows and events."""
    initialized: bool = False
    cancelled: bool = False
    destroyed: bool = False
    lot: Optional[LotSnapshot] = None
    proposal: ProposalSnapshot = Field(default_factory=ProposalSnapshot)
    max_iterations: int = Field(default=500, gt=0)
    num_items_transferred: int = Field(default=0, ge=0)
    operator_withdrawn: bool = False

    # Escrow totals
    deposited: int = Field(default=0, ge=0)
    refunded: int = Field(default=0, ge=0)
    retained: int = Field(default=0, ge=0)
    collected: int = Field(default=0, ge=0)

    @classmethod
    def capture(cls, auction: ClearingPriceAuction) -> "AuctionSnapshot":
        record = auction.ctx.record
        escrow = auction.ctx.escrow
        lot = record.lot
        proposal = record.proposal
        return cls(
            initialized=record.initialized,
            cancelled=record.cancelled,
            destroyed=record.destroyed,
            lot=LotSnapshot(
                item_ids=list(lot.item_ids),
                series_id=lot.series_id,
                created_time=lot.created_time,
                bidding_end_time=lot.bidding_end_time,
            ) if lot else None,
            proposal=ProposalSnapshot(
                price=proposal.price,
                validated=proposal.validated,
                num_items_sellable=proposal.num_items_sellable,
                num_winners_confirmed=proposal.num_winners_confirmed,
                cursor=proposal.cursor,
                round=proposal.round,
            ),
            max_iterations=record.max_iterations,
            num_items_transferred=record.num_items_transferred,
            operator_withdrawn=record.operator_withdrawn,
            deposited=escrow.deposited,
            refunded=escrow.refunded,
            retained=escrow.retained,
            collected=escrow.collected,
        )

    def to_record(self) -> AuctionRecord:
        lot = None
        if self.lot is not None:
            lot = AuctionLot(
                item_ids=tuple(self.lot.item_ids),
                series_id=self.lot.series_id,
                created_time=self.lot.created_time,
                bidding_end_time=self.lot.bidding_end_time,
            )
        return AuctionRecord(
            initialized=self.initialized,
            cancelled=self.cancelled,
            destroyed=self.destroyed,
            lot=lot,
            proposal=PriceProposal(**self.proposal.model_dump()),
            max_iterations=self.max_iterations,
            num_items_transferred=self.num_items_transferred,
            operator_withdrawn=self.operator_withdrawn,
        )


# =============================================================================
# Storage Manager
# =============================================================================


class StorageManager:
    """
    Persists auctions so that an interrupted one can be resumed.

    Handles:
    - The fixed auction record (with escrow totals)
    - Per-bidder rows (order, escrowed amount, flags, winner round)
    - The event log
    """

    def __init__(self, data_dir: Path, db_name: str = "auctions.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"StorageManager initialized at {self.db_path}")

    def save_auction(self, auction: ClearingPriceAuction) -> None:
        """Persist the full state of an auction under its address."""
        snapshot = AuctionSnapshot.capture(auction)
        escrow = auction.ctx.escrow
        bids = [
            (b.address, b.insertion_index, escrow.balance_of(b.address),
             b.redeemed, b.withdrawn, b.winner_round)
            for b in auction.ctx.registry
        ]
        events = [
            (seq, event.name, json.dumps(event.to_dict()))
            for seq, event in enumerate(auction.events)
        ]
        self.adapter.save_auction(
            auction.address,
            json.dumps(snapshot.model_dump()),
            auction.ctx.now(),
            bids,
            events,
        )
        logger.debug(f"Saved auction {auction.address}: {len(bids)} bids, {len(events)} events")

    def load_auction(
        self,
        auction_id: str,
        items: ItemLedger,
        access: AccessControl,
        bank: ValueTransfer,
        clock: Optional[Callable[[], int]] = None,
        config: Optional[AuctionConfig] = None,
    ) -> Optional[ClearingPriceAuction]:
        """
        Rebuild a persisted auction on top of the given collaborators.

        Returns:
            The auction, or None if nothing is stored under auction_id
        """
        auction_id = to_checksum_address(auction_id)
        raw = self.adapter.get_auction_record(auction_id)
        if raw is None:
            return None
        snapshot = AuctionSnapshot.model_validate(json.loads(raw))

        escrow = EscrowLedger(
            deposited=snapshot.deposited,
            refunded=snapshot.refunded,
            retained=snapshot.retained,
            collected=snapshot.collected,
        )
        registry = BidderRegistry(escrow=escrow)
        for bidder, index, amount, redeemed, withdrawn, winner_round in self.adapter.get_bids(auction_id):
            if not is_checksum_address(bidder):
                raise ValueError(f"Stored bidder {bidder!r} of {auction_id} is not a checksummed address")
            if index != len(registry.order):
                raise ValueError(f"Corrupt bid order for {auction_id} at {bidder}")
            registry.order.append(bidder)
            registry.entries[bidder] = Bidder(
                address=bidder,
                insertion_index=index,
                redeemed=redeemed,
                withdrawn=withdrawn,
                winner_round=winner_round,
            )
            if amount:
                escrow.balances[bidder] = amount

        if not escrow.is_conserved():
            raise ValueError(f"Stored escrow of {auction_id} does not balance")

        events = [event_from_dict(name, json.loads(payload))
                  for name, payload in self.adapter.get_events(auction_id)]

        auction = ClearingPriceAuction(auction_id, items, access, bank, clock=clock, config=config)
        auction.restore(snapshot.to_record(), escrow, registry, events)
        return auction

    def list_auctions(self) -> List[str]:
        return self.adapter.list_auctions()

    def get_auction_summary(self, auction_id: str) -> Optional[Tuple[AuctionSnapshot, int]]:
        """Stored record and bidder count, without collaborators."""
        auction_id = to_checksum_address(auction_id)
        raw = self.adapter.get_auction_record(auction_id)
        if raw is None:
            return None
        return AuctionSnapshot.model_validate(json.loads(raw)), len(self.adapter.get_bids(auction_id))

    def delete_auction(self, auction_id: str) -> None:
        auction_id = to_checksum_address(auction_id)
        self.adapter.delete_auction(auction_id)
        logger.info(f"Deleted auction {auction_id}")

    def close(self) -> None:
        self.adapter.close()
