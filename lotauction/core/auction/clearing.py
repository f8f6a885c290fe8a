"""
Clearing Engine - Resource-bounded, resumable winner determination.

Validation scans the bidder registry in insertion order, at most
`max_iterations` bidders per call, starting from the persisted cursor:

    for each bidder in registry[cursor : cursor + max_iterations]:
        if 0 < amount(bidder) and amount(bidder) >= price:
            confirm bidder as winner
            if confirmed == item_count:
                cursor = len(registry)   # nobody further down can win
                stop

When the cursor reaches the end of the registry the price is validated and
`num_items_sellable = min(confirmed, item_count)`.

Winners are therefore the first `item_count` qualifying bidders by
first-bid order, whatever the size of their bids. Running the scan in one
call or in many yields the same winners: every call resumes exactly where
the previous one stopped and no bidder's balance can change while a price
is proposed.
"""

from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

from lotauction.core.auction import events
from lotauction.core.auction.context import AuctionContext
from lotauction.core.auction.state import AuctionPhase, PriceProposal
from lotauction.core.errors import (
    AlreadyDone,
    AlreadyValidated,
    InvalidArgument,
    InvalidState,
    NoBidders,
    PriceUnchanged,
    ZeroPrice,
)
from lotauction.utils.logger import get_logger
from lotauction.utils.validation import validate_integer, MAX_AMOUNT

logger = get_logger("clearing")


@dataclass(frozen=True)
class ValidationStep:
    """Outcome of one bounded validation call."""
    processed: int                 # Bidders examined in this call
    confirmed: Tuple[str, ...]     # Winners confirmed in this call
    cursor: int                    # Cursor after the call
    num_winners_confirmed: int     # Winners confirmed so far
    done: bool                     # Registry exhausted, price validated


def advance_validation(
    proposal: PriceProposal,
    bidders: Sequence[str],
    balance_of: Callable[[str], int],
    item_count: int,
    max_iterations: int,
) -> ValidationStep:
    """
    Run one bounded batch of the validation scan.

    Pure: reads the proposal and balances, returns the new progress without
    modifying anything.

    Args:
        proposal: Current price proposal (cursor and count are the resume point)
        bidders: Registry addresses in insertion order
        balance_of: Escrowed amount lookup
        item_count: Number of items in the lot
        max_iterations: Maximum bidders to examine

    Returns:
        ValidationStep
    """
    total = len(bidders)
    cursor = proposal.cursor
    confirmed_count = proposal.num_winners_confirmed
    confirmed = []
    processed = 0

    end = min(total, cursor + max_iterations)
    while cursor < end:
        bidder = bidders[cursor]
        cursor += 1
        processed += 1
        amount = balance_of(bidder)
        if amount > 0 and amount >= proposal.price:
            confirmed_count += 1
            confirmed.append(bidder)
            if confirmed_count >= item_count:
                cursor = total
                break

    return ValidationStep(
        processed=processed,
        confirmed=tuple(confirmed),
        cursor=cursor,
        num_winners_confirmed=confirmed_count,
        done=cursor >= total,
    )


class ClearingEngine:
    """
    Price proposal and validation state machine.

    propose price -> validate in bounded batches -> locked
    """

    def __init__(self, ctx: AuctionContext):
        self.ctx = ctx

    @property
    def proposal(self) -> PriceProposal:
        return self.ctx.record.proposal

    # =========================================================================
    # Price Proposal
    # =========================================================================

    def set_price(self, price: int, caller: str) -> None:
        """
        Propose a clearing price (manager only, after bidding closed).

        Resets validation progress; earlier winner marks become stale
        because the round number changes.
        """
        ctx = self.ctx
        ctx.require_manager(caller)
        ctx.require_initialized()
        record = ctx.record

        if record.cancelled:
            raise InvalidState("Auction was cancelled")
        if ctx.phase() < AuctionPhase.BIDDING_CLOSED:
            raise InvalidState("Bidding has not ended yet")
        if self.proposal.validated:
            raise AlreadyValidated(f"Price {self.proposal.price} is already validated")
        if ctx.is_safety_timeout_elapsed():
            raise InvalidState("Safety timeout elapsed, price can no longer be set")
        if price == 0:
            raise ZeroPrice("Price must be greater than 0")
        valid, err = validate_integer(price, "price", 1, MAX_AMOUNT)
        if not valid:
            raise InvalidArgument(err)
        if len(ctx.registry) == 0:
            raise NoBidders("There are no bidders")
        if price == self.proposal.price:
            raise PriceUnchanged(f"Price is already {price}")

        record.proposal = PriceProposal(
            price=price,
            validated=False,
            num_items_sellable=min(len(ctx.registry), record.item_count),
            num_winners_confirmed=0,
            cursor=0,
            round=self.proposal.round + 1,
        )
        ctx.emit(events.PriceProposed(price=price))
        logger.info(f"Price proposed: {price} (round {record.proposal.round})")

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self, caller: str) -> ValidationStep:
        """
        Advance validation by one bounded batch (manager only).

        Call repeatedly until the returned step is `done`.
        """
        ctx = self.ctx
        ctx.require_manager(caller)
        ctx.require_initialized()

        if ctx.record.cancelled:
            raise InvalidState("Auction was cancelled")
        if self.proposal.price == 0:
            raise InvalidState("No price has been proposed")
        if self.proposal.validated:
            raise AlreadyValidated(f"Price {self.proposal.price} is already validated")
        if ctx.is_safety_timeout_elapsed():
            raise InvalidState("Safety timeout elapsed, price can no longer be validated")

        proposal = self.proposal
        step = advance_validation(
            proposal,
            ctx.registry.order,
            ctx.registry.balance_of,
            ctx.record.item_count,
            ctx.record.max_iterations,
        )

        for address in step.confirmed:
            ctx.registry.mark_winner(address, proposal.round)
        proposal.cursor = step.cursor
        proposal.num_winners_confirmed = step.num_winners_confirmed

        if step.done:
            proposal.validated = True
            proposal.num_items_sellable = min(step.num_winners_confirmed, ctx.record.item_count)
            ctx.emit(events.PriceValidated(
                price=proposal.price,
                num_items_sellable=proposal.num_items_sellable,
            ))
            logger.info(f"Price {proposal.price} validated: "
                        f"{proposal.num_items_sellable}/{ctx.record.item_count} items sellable")
        else:
            logger.debug(f"Validation progress: cursor={step.cursor}/{len(ctx.registry)}, "
                         f"winners={step.num_winners_confirmed}")
        return step

    def set_max_iterations(self, max_iterations: int, caller: str) -> None:
        """Change how many bidders one validate() call examines."""
        ctx = self.ctx
        ctx.require_manager(caller)
        valid, err = validate_integer(max_iterations, "max_iterations", 1, 2**32 - 1)
        if not valid:
            raise InvalidArgument(err)
        if max_iterations == ctx.record.max_iterations:
            raise AlreadyDone(f"max_iterations is already {max_iterations}")
        ctx.record.max_iterations = max_iterations
        logger.info(f"max_iterations set to {max_iterations}")

    # =========================================================================
    # Queries
    # =========================================================================

    def is_winner(self, bidder: str) -> bool:
        proposal = self.proposal
        if not proposal.validated:
            return False
        entry = self.ctx.registry.get(bidder)
        if entry is None or entry.winner_round != proposal.round:
            return False
        amount = self.ctx.registry.balance_of(bidder)
        return amount > 0 and amount >= proposal.price
