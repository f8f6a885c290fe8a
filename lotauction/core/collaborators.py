"""
Collaborators - The item ledger, access control and value transfer the
auction depends on.

The auction only relies on the Protocol interfaces below. The in-memory
implementations back the CLI demo and the tests:

- ItemRegistry: series-grouped item ownership
- RoleControl: owner / manager / treasurer roles and pausing
- NativeBank: native value accounts; recipients may run code on receipt,
  the way a contract recipient would
"""

from typing import Callable, Dict, Iterable, List, Optional, Protocol

from lotauction.core.errors import (
    InsufficientFunds,
    ItemNotOwned,
    UnknownItem,
)
from lotauction.crypto import to_checksum_address
from lotauction.utils.logger import get_logger

logger = get_logger("collaborators")


# =============================================================================
# Interfaces
# =============================================================================


class ItemLedger(Protocol):
    def owner_of(self, item_id: int) -> str: ...

    def series_of(self, item_id: int) -> int: ...

    def is_custodied_by(self, address: str, item_ids: Iterable[int]) -> bool: ...

    def transfer_item(self, item_id: int, to: str, sender: str) -> None: ...


class AccessControl(Protocol):
    treasurer: str

    def is_manager(self, address: str) -> bool: ...

    def is_owner(self, address: str) -> bool: ...

    def is_paused(self) -> bool: ...


class ValueTransfer(Protocol):
    def balance_of(self, address: str) -> int: ...

    def transfer(self, sender: str, recipient: str, amount: int) -> None: ...


# =============================================================================
# Item Registry
# =============================================================================


class ItemRegistry:
    """
    Minimal non-fungible item ledger.

    Items are grouped in series; every item has exactly one owner.
    """

    def __init__(self):
        # item_id -> owner address
        self.owners: Dict[int, str] = {}
        # item_id -> series id
        self.series: Dict[int, int] = {}
        # series id -> maximum number of items
        self.series_max_items: Dict[int, int] = {}

    def create_series(self, max_items: int) -> int:
        """Create a new series and return its id."""
        if max_items <= 0:
            raise ValueError("A series needs at least one item")
        series_id = len(self.series_max_items)
        self.series_max_items[series_id] = max_items
        return series_id

    def mint(self, item_ids: Iterable[int], series_id: int, owner: str) -> None:
        """Mint items of a series to an owner."""
        if series_id not in self.series_max_items:
            raise ValueError(f"Unknown series {series_id}")
        item_ids = list(item_ids)
        existing = sum(1 for s in self.series.values() if s == series_id)
        if existing + len(item_ids) > self.series_max_items[series_id]:
            raise ValueError(f"Series {series_id} is full")
        for item_id in item_ids:
            if item_id in self.owners:
                raise ValueError(f"Item {item_id} already exists")
        owner = to_checksum_address(owner)
        for item_id in item_ids:
            self.owners[item_id] = owner
            self.series[item_id] = series_id

    def owner_of(self, item_id: int) -> str:
        if item_id not in self.owners:
            raise UnknownItem(f"Unknown item {item_id}")
        return self.owners[item_id]

    def series_of(self, item_id: int) -> int:
        if item_id not in self.series:
            raise UnknownItem(f"Unknown item {item_id}")
        return self.series[item_id]

    def is_custodied_by(self, address: str, item_ids: Iterable[int]) -> bool:
        address = to_checksum_address(address)
        return all(self.owners.get(item_id) == address for item_id in item_ids)

    def items_of(self, owner: str) -> List[int]:
        owner = to_checksum_address(owner)
        return sorted(i for i, o in self.owners.items() if o == owner)

    def transfer_item(self, item_id: int, to: str, sender: str) -> None:
        """Move an item; only its current owner can send it."""
        if self.owner_of(item_id) != to_checksum_address(sender):
            raise ItemNotOwned(f"Item {item_id} is not owned by {sender}")
        self.owners[item_id] = to_checksum_address(to)
        logger.debug(f"Item {item_id} transferred {sender} -> {to}")


# =============================================================================
# Role Control
# =============================================================================


class RoleControl:
    """
    Owner / manager roles and the pause switch.

    The manager can pause; only the owner can unpause.
    """

    def __init__(self, owner: str, manager: str, treasurer: str):
        owner = to_checksum_address(owner)
        manager = to_checksum_address(manager)
        if owner == manager:
            raise ValueError("Owner and manager cannot be the same account")
        self.owner = owner
        self.manager = manager
        self.treasurer = to_checksum_address(treasurer)
        self.paused = False

    def is_manager(self, address: str) -> bool:
        return to_checksum_address(address) == self.manager

    def is_owner(self, address: str) -> bool:
        return to_checksum_address(address) == self.owner

    def is_paused(self) -> bool:
        return self.paused

    def pause(self, caller: str) -> None:
        if not (self.is_owner(caller) or self.is_manager(caller)):
            raise PermissionError("Only owner or manager can pause")
        self.paused = True

    def unpause(self, caller: str) -> None:
        if not self.is_owner(caller):
            raise PermissionError("Only owner can unpause")
        if not self.paused:
            raise ValueError("Not paused")
        self.paused = False


# =============================================================================
# Native Bank
# =============================================================================


ReceiveHook = Callable[[str, int], None]


class NativeBank:
    """
    Accounts in the native value currency.

    A transfer either fully happens or not at all: if the recipient's
    receive hook raises, balances are restored and the error propagates.
    """

    def __init__(self):
        self.balances: Dict[str, int] = {}
        self.receive_hooks: Dict[str, ReceiveHook] = {}

    def mint(self, address: str, amount: int) -> None:
        """Credit an account out of thin air (faucet)."""
        if amount < 0:
            raise ValueError("Amount cannot be negative")
        address = to_checksum_address(address)
        self.balances[address] = self.balances.get(address, 0) + amount

    def balance_of(self, address: str) -> int:
        return self.balances.get(to_checksum_address(address), 0)

    def register_receiver(self, address: str, hook: Optional[ReceiveHook]) -> None:
        """Run `hook(sender, amount)` whenever `address` receives value."""
        address = to_checksum_address(address)
        if hook is None:
            self.receive_hooks.pop(address, None)
        else:
            self.receive_hooks[address] = hook

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Amount cannot be negative")
        sender = to_checksum_address(sender)
        recipient = to_checksum_address(recipient)

        available = self.balances.get(sender, 0)
        if available < amount:
            raise InsufficientFunds(f"{sender} has {available}, needs {amount}")

        self.balances[sender] = available - amount
        self.balances[recipient] = self.balances.get(recipient, 0) + amount

        hook = self.receive_hooks.get(recipient)
        if hook is not None:
            try:
                hook(sender, amount)
            except Exception:
                self.balances[recipient] -= amount
                self.balances[sender] += amount
                raise

    def total_supply(self) -> int:
        return sum(self.balances.values())


__all__ = [
    "ItemLedger",
    "AccessControl",
    "ValueTransfer",
    "ItemRegistry",
    "RoleControl",
    "NativeBank",
]
