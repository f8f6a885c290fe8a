"""
Escrow Ledger - Per-bidder escrowed balances.

Conceptual Background:
---------------------
Bids are paid up front. The auction holds the value on the bidder's behalf
until one of three things happens:

1. **release_all**: the whole balance goes back (cancelled bid, withdrawal)
2. **settle**: a winner redeems; the clearing price is retained and the
   excess goes back
3. nothing yet: the balance stays escrowed

Conservation:
------------
    deposited == sum(balances) + refunded + retained

holds after every operation. `collected` (proceeds paid to the treasurer)
is tracked separately: the auction's own account always holds
`deposited - refunded - collected`.

The ledger only does bookkeeping; moving value is the caller's job.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from lotauction.core.auction.journal import UndoJournal
from lotauction.utils.logger import get_logger

logger = get_logger("escrow")


@dataclass
class EscrowLedger:
    """
    Escrowed balances plus running totals.

    Attributes:
        balances: bidder address -> escrowed amount (zero entries removed)
        deposited: total value ever deposited
        refunded: total value returned to bidders
        retained: clearing-price portions kept from settled winners
        collected: proceeds paid out to the treasurer
        journal: undo log of the running call, if any
    """
    balances: Dict[str, int] = field(default_factory=dict)
    deposited: int = 0
    refunded: int = 0
    retained: int = 0
    collected: int = 0
    journal: Optional[UndoJournal] = field(default=None, repr=False, compare=False)

    def _touch(self, bidder: str) -> None:
        if self.journal is not None:
            self.journal.remember_key(self.balances, bidder)

    def balance_of(self, bidder: str) -> int:
        return self.balances.get(bidder, 0)

    def deposit(self, bidder: str, amount: int) -> int:
        """
        Add to a bidder's escrow.

        Returns:
            The accumulated balance
        """
        if amount <= 0:
            raise ValueError(f"Deposit must be positive, got {amount}")
        self._touch(bidder)
        total = self.balances.get(bidder, 0) + amount
        self.balances[bidder] = total
        self.deposited += amount
        logger.debug(f"Escrowed {amount} for {bidder} (total {total})")
        return total

    def release_all(self, bidder: str) -> int:
        """Zero a balance and book it as refunded. Returns the amount."""
        self._touch(bidder)
        amount = self.balances.pop(bidder, 0)
        self.refunded += amount
        return amount

    def settle(self, bidder: str, price: int) -> int:
        """
        Consume a winner's balance at the clearing price.

        Returns:
            The excess to refund (balance - price)
        """
        amount = self.balances.get(bidder, 0)
        if amount < price:
            raise ValueError(f"Balance {amount} of {bidder} is below price {price}")
        self._touch(bidder)
        del self.balances[bidder]
        excess = amount - price
        self.retained += price
        self.refunded += excess
        return excess

    def collect(self, amount: int) -> None:
        """Book proceeds paid to the treasurer."""
        if amount > self.held:
            raise ValueError(f"Cannot collect {amount}, only {self.held} held")
        self.collected += amount

    @property
    def total_escrowed(self) -> int:
        return sum(self.balances.values())

    @property
    def held(self) -> int:
        """Value the auction's account should currently hold."""
        return self.deposited - self.refunded - self.collected

    def is_conserved(self) -> bool:
        return self.deposited == self.total_escrowed + self.refunded + self.retained

    def stats(self) -> dict:
        return {
            "bidders_with_balance": len(self.balances),
            "total_escrowed": self.total_escrowed,
            "deposited": self.deposited,
            "refunded": self.refunded,
            "retained": self.retained,
            "collected": self.collected,
            "held": self.held,
        }
