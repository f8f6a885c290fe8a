"""
Auction events - Observable record of every accepted state change.

Events are appended to an EventLog in call order. A rejected call leaves
no event behind.
"""

from dataclasses import asdict, dataclass, fields
from typing import ClassVar, Dict, Iterator, List, Tuple, Type


@dataclass(frozen=True)
class AuctionEvent:
    """Base event."""
    name: ClassVar[str] = "AuctionEvent"

    def to_dict(self) -> dict:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, tuple):
                data[key] = list(value)
        return data


@dataclass(frozen=True)
class Bid(AuctionEvent):
    name: ClassVar[str] = "Bid"
    bidder: str
    bid_amount: int
    accumulated_bid_amount: int


@dataclass(frozen=True)
class BidCancelled(AuctionEvent):
    name: ClassVar[str] = "BidCancelled"
    bidder: str
    amount: int


@dataclass(frozen=True)
class AuctionInitialized(AuctionEvent):
    name: ClassVar[str] = "AuctionInitialized"
    item_ids: Tuple[int, ...]
    bidding_end_time: int


@dataclass(frozen=True)
class AuctionExtended(AuctionEvent):
    name: ClassVar[str] = "AuctionExtended"
    new_bidding_end_time: int


@dataclass(frozen=True)
class AuctionCancelled(AuctionEvent):
    name: ClassVar[str] = "AuctionCancelled"


@dataclass(frozen=True)
class AuctionDestroyed(AuctionEvent):
    name: ClassVar[str] = "AuctionDestroyed"


@dataclass(frozen=True)
class PriceProposed(AuctionEvent):
    name: ClassVar[str] = "PriceProposed"
    price: int


@dataclass(frozen=True)
class PriceValidated(AuctionEvent):
    name: ClassVar[str] = "PriceValidated"
    price: int
    num_items_sellable: int


@dataclass(frozen=True)
class ItemRedeemed(AuctionEvent):
    name: ClassVar[str] = "ItemRedeemed"
    redeemer: str
    item_id: int
    bid_excess_amount: int


@dataclass(frozen=True)
class BidWithdrawn(AuctionEvent):
    name: ClassVar[str] = "BidWithdrawn"
    withdrawer: str
    amount: int


@dataclass(frozen=True)
class OperatorWithdrawal(AuctionEvent):
    name: ClassVar[str] = "OperatorWithdrawal"
    ether: int
    items: int


EVENT_TYPES: Dict[str, Type[AuctionEvent]] = {
    cls.name: cls
    for cls in (
        Bid,
        BidCancelled,
        AuctionInitialized,
        AuctionExtended,
        AuctionCancelled,
        AuctionDestroyed,
        PriceProposed,
        PriceValidated,
        ItemRedeemed,
        BidWithdrawn,
        OperatorWithdrawal,
    )
}


def event_from_dict(name: str, data: dict) -> AuctionEvent:
    """Rebuild an event from its name and `to_dict()` payload."""
    cls = EVENT_TYPES[name]
    kwargs = {}
    for f in fields(cls):
        value = data[f.name]
        kwargs[f.name] = tuple(value) if isinstance(value, list) else value
    return cls(**kwargs)


class EventLog:
    """Append-only, truncatable (for rollback) list of events."""

    def __init__(self):
        self._events: List[AuctionEvent] = []

    def emit(self, event: AuctionEvent) -> None:
        self._events.append(event)

    def truncate(self, length: int) -> None:
        del self._events[length:]

    def named(self, name: str) -> List[AuctionEvent]:
        return [e for e in self._events if e.name == name]

    @property
    def last(self) -> AuctionEvent:
        return self._events[-1]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[AuctionEvent]:
        return iter(self._events)

    def __getitem__(self, index):
        return self._events[index]
