"""
Error taxonomy for auction operations.

Every rejected call raises one of these and leaves the auction exactly as
it was before the call.
"""


class AuctionError(Exception):
    """Base class of every rejected auction call."""


# =============================================================================
# Taxonomy
# =============================================================================


class Unauthorized(AuctionError):
    """Caller lacks the required role."""


class InvalidState(AuctionError):
    """Operation is not valid in the current phase."""


class InvalidArgument(AuctionError):
    """Zero amount, zero price, bad item set, out-of-range duration..."""


class AlreadyDone(AuctionError):
    """Repeated one-shot operation."""


class NotEligible(AuctionError):
    """Caller does not qualify for the operation."""


class ResourceConflict(AuctionError):
    """Items are not custodied as required."""


# =============================================================================
# Specific errors
# =============================================================================


class NotValidated(InvalidState):
    pass


class SoldOut(InvalidState):
    pass


class NoBidders(InvalidState):
    pass


class ReentrantCall(InvalidState):
    """A mutating call was made while another one is still running."""


class InvalidItemSet(InvalidArgument):
    pass


class InvalidDuration(InvalidArgument):
    pass


class ZeroPrice(InvalidArgument):
    pass


class AlreadyClaimed(AlreadyDone):
    """Bidder already redeemed an item or withdrew the bid."""


class AlreadyValidated(AlreadyDone):
    pass


class PriceUnchanged(AlreadyDone):
    pass


class NotWinner(NotEligible):
    pass


class ItemsNotCustodied(ResourceConflict):
    pass


# =============================================================================
# Collaborator errors
# =============================================================================


class CollaboratorError(Exception):
    """Raised by the in-memory item ledger and value bank."""


class InsufficientFunds(CollaboratorError):
    pass


class ItemNotOwned(CollaboratorError):
    pass


class UnknownItem(CollaboratorError):
    pass


__all__ = [
    "AuctionError",
    "Unauthorized",
    "InvalidState",
    "InvalidArgument",
    "AlreadyDone",
    "NotEligible",
    "ResourceConflict",
    "NotValidated",
    "SoldOut",
    "NoBidders",
    "ReentrantCall",
    "InvalidItemSet",
    "InvalidDuration",
    "ZeroPrice",
    "AlreadyClaimed",
    "AlreadyValidated",
    "PriceUnchanged",
    "NotWinner",
    "ItemsNotCustodied",
    "CollaboratorError",
    "InsufficientFunds",
    "ItemNotOwned",
    "UnknownItem",
]
