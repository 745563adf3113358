"""
VIT Token Sale SDK - Errors

Every failed ledger operation raises one specific error kind, so callers
(and the REST layer) can tell a cap problem from a timing problem.
"""


class SaleError(Exception):
    """Base class for ledger failures."""
    code = "sale_error"

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class InvalidConfiguration(SaleError, ValueError):
    """Sale configuration is invalid."""
    code = "invalid_configuration"


class InvalidContribution(SaleError):
    """Contribution rejected (amount, timing or sold out)."""
    code = "invalid_contribution"


class CapExceeded(InvalidContribution):
    """Restricted period participation cap reached."""
    code = "cap_exceeded"


class InvalidAmount(SaleError):
    """Amount must be positive."""
    code = "invalid_amount"


class InvalidAddress(SaleError, ValueError):
    """Address is null or malformed."""
    code = "invalid_address"


class ClaimExceeded(SaleError):
    """Claim larger than the claimable token balance."""
    code = "claim_exceeded"


class RefundExceeded(SaleError):
    """Refund larger than the refundable ether balance."""
    code = "refund_exceeded"


class RefundWindowClosed(SaleError):
    """Refund window is not open."""
    code = "refund_window_closed"


class RefundPeriodActive(SaleError):
    """Refund period has not ended yet."""
    code = "refund_period_active"


class SaleNotFinalized(SaleError):
    """Sale has not been finalized."""
    code = "sale_not_finalized"


class SaleNotEnded(SaleError):
    """Sale has not ended and is not sold out."""
    code = "sale_not_ended"


class AlreadyFinalized(SaleError):
    """Sale was already finalized."""
    code = "already_finalized"


class AlreadyFinalizedRefund(SaleError):
    """Refunds were already finalized."""
    code = "already_finalized_refund"


class NotOwner(SaleError):
    """Caller is not the sale owner."""
    code = "not_owner"


# Token / ether sink failures

class TokenError(SaleError):
    """Token operation failed."""
    code = "token_error"


class MintingFinished(TokenError):
    """Minting has already finished."""
    code = "minting_finished"


class TransfersLocked(TokenError):
    """Transfers are locked until minting finishes."""
    code = "transfers_locked"


class InsufficientBalance(TokenError):
    """Balance too low for transfer."""
    code = "insufficient_balance"
