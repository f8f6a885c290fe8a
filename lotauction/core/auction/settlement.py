"""
Settlement Ledger - Payouts once the clearing price is validated.

Every operation books its effects (flags, balances, counters) before it
calls out to the item ledger or the value bank, so a recipient that calls
back into the auction always sees the settled state.
"""

from lotauction.core.auction import events
from lotauction.core.auction.clearing import ClearingEngine
from lotauction.core.auction.context import AuctionContext
from lotauction.core.errors import (
    AlreadyClaimed,
    AlreadyDone,
    ItemsNotCustodied,
    NotEligible,
    NotValidated,
    NotWinner,
    SoldOut,
)
from lotauction.utils.logger import get_logger

logger = get_logger("settlement")


class SettlementLedger:
    """Redeem, withdraw and operator withdraw."""

    def __init__(self, ctx: AuctionContext, clearing: ClearingEngine):
        self.ctx = ctx
        self.clearing = clearing

    def redeem_item(self, caller: str) -> int:
        """
        Winner claims the next item of the lot and the bid excess.

        Returns:
            The redeemed item id
        """
        ctx = self.ctx
        ctx.require_initialized()
        record = ctx.record
        proposal = record.proposal

        if not proposal.validated:
            raise NotValidated("Price has not been validated yet")
        entry = ctx.registry.get(caller)
        if entry is not None and entry.has_claimed:
            raise AlreadyClaimed(f"{caller} already redeemed or withdrew")
        if not self.clearing.is_winner(caller):
            raise NotWinner(f"{caller} is not a winner")
        if record.num_items_transferred >= record.item_count:
            raise SoldOut("All items have been redeemed")

        item_id = record.lot.item_ids[record.num_items_transferred]
        if not ctx.items.is_custodied_by(ctx.address, [item_id]):
            raise ItemsNotCustodied(f"Item {item_id} is not held by the auction")

        ctx.registry.mark_redeemed(caller)
        excess = ctx.escrow.settle(caller, proposal.price)
        record.num_items_transferred += 1
        ctx.emit(events.ItemRedeemed(redeemer=caller, item_id=item_id, bid_excess_amount=excess))

        # Value first: the item transfer cannot fail once custody is checked
        if excess > 0:
            ctx.bank.transfer(ctx.address, caller, excess)
        ctx.items.transfer_item(item_id, caller, ctx.address)

        logger.info(f"{caller} redeemed item {item_id}, excess {excess}")
        return item_id

    def withdraw_bid(self, caller: str) -> int:
        """
        Reclaim the full escrowed bid.

        Open to non-winners once the price is validated, to winners only
        when every item is gone, and to everybody after the safety timeout.

        Returns:
            The refunded amount
        """
        ctx = self.ctx
        ctx.require_initialized()
        record = ctx.record

        entry = ctx.registry.get(caller)
        if entry is None:
            raise NotEligible(f"{caller} never bid")
        if entry.has_claimed:
            raise AlreadyClaimed(f"{caller} already redeemed or withdrew")
        amount = ctx.escrow.balance_of(caller)
        if amount == 0:
            raise NotEligible(f"{caller} has nothing to withdraw")

        if not ctx.is_safety_timeout_elapsed():
            if not record.proposal.validated:
                raise NotValidated("Price has not been validated yet")
            if (self.clearing.is_winner(caller)
                    and record.num_items_transferred < record.item_count):
                raise NotEligible("Winners must redeem until items are sold out")

        ctx.registry.mark_withdrawn(caller)
        ctx.escrow.release_all(caller)
        ctx.emit(events.BidWithdrawn(withdrawer=caller, amount=amount))

        ctx.bank.transfer(ctx.address, caller, amount)

        logger.info(f"{caller} withdrew bid of {amount}")
        return amount

    def operator_withdraw(self, caller: str) -> int:
        """
        Manager collects proceeds (to the treasurer) and unsold items.

        Returns:
            The proceeds amount
        """
        ctx = self.ctx
        ctx.require_manager(caller)
        ctx.require_initialized()
        record = ctx.record
        proposal = record.proposal

        if not proposal.validated:
            raise NotValidated("Price has not been validated yet")
        if record.operator_withdrawn:
            raise AlreadyDone("Proceeds were already withdrawn")

        unsold = record.lot.item_ids[proposal.num_items_sellable:]
        if not ctx.items.is_custodied_by(ctx.address, unsold):
            raise ItemsNotCustodied("Unsold items are not all held by the auction")

        proceeds = proposal.price * proposal.num_items_sellable
        treasurer = ctx.access.treasurer

        record.operator_withdrawn = True
        ctx.escrow.collect(proceeds)
        ctx.emit(events.OperatorWithdrawal(ether=proceeds, items=len(unsold)))

        if proceeds > 0:
            ctx.bank.transfer(ctx.address, treasurer, proceeds)
        for item_id in unsold:
            ctx.items.transfer_item(item_id, caller, ctx.address)

        logger.info(f"Operator withdrew {proceeds} to {treasurer} and {len(unsold)} unsold items")
        return proceeds
