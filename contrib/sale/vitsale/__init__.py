"""
VIT Token Sale SDK

Contribution accounting for the VIT token sale, plus the tooling around it.

Architecture:
  - ContributionLedger keeps caps, claimable tokens and refundable ether
  - MintableToken / EtherVault are the balances the ledger moves funds through
  - Whitelist tiers come from presale registrations scanned on-chain
  - The audit console reports on sale contracts running on a dev chain

Sale Timeline:
  - Restricted period: each participant limited to its whitelist cap
  - Open period: anyone contributes until end time or sell out
  - Refund window: after the sale, ether can be refunded until refund end

Usage:
    from vitsale import ContributionLedger, SaleConfig, ETH, DAY

    config = SaleConfig(funding_recipient="0xwallet", start_time=start,
                        end_time=start + 10 * DAY, exchange_rate=3000,
                        refund_period_duration=30 * DAY)
    ledger = ContributionLedger(config, owner="0xowner", now=now)
    ledger.set_restricted_participation_cap("0xowner", ["0xabc"], 10 * ETH)
    ledger.contribute("0xabc", 1 * ETH, now=start)
"""

from .errors import (
    SaleError,
    InvalidConfiguration,
    InvalidContribution,
    CapExceeded,
    InvalidAmount,
    InvalidAddress,
    ClaimExceeded,
    RefundExceeded,
    RefundWindowClosed,
    RefundPeriodActive,
    SaleNotFinalized,
    SaleNotEnded,
    AlreadyFinalized,
    AlreadyFinalizedRefund,
    NotOwner,
    TokenError,
    MintingFinished,
    TransfersLocked,
    InsufficientBalance,
)
from .sale_types import (
    DAY,
    ETH,
    HOUR,
    MINUTE,
    TOKEN_UNIT,
    MAX_TOKENS_SOLD,
    RESTRICTED_PERIOD_DURATION,
    STRATEGIC_PARTNERS_POOL_ALLOCATION,
    SaleConfig,
    SaleState,
    SalePhase,
    ParticipantRecord,
    SaleEvent,
    ContributionAccepted,
    TokensClaimed,
    EtherRefunded,
    ParticipationCapSet,
    Finalized,
    RefundsFinalized,
    TokensReclaimed,
)
from .balances import MintableToken, EtherVault
from .ledger import ContributionLedger
from .rpc_client import DevNodeRPC, RPCError
from .chain import ChainClient, TxStatus
from .whitelist import Tier, DEFAULT_TIERS, scan_registrations, bucket_registrants
from .audit import AccountBook, AuditConsole
from .config import Config, config_from_env

__version__ = "0.1.0"
__all__ = [
    # Errors
    "SaleError", "InvalidConfiguration", "InvalidContribution", "CapExceeded",
    "InvalidAmount", "InvalidAddress", "ClaimExceeded", "RefundExceeded",
    "RefundWindowClosed", "RefundPeriodActive", "SaleNotFinalized", "SaleNotEnded",
    "AlreadyFinalized", "AlreadyFinalizedRefund", "NotOwner",
    "TokenError", "MintingFinished", "TransfersLocked", "InsufficientBalance",
    # Units
    "DAY", "ETH", "HOUR", "MINUTE", "TOKEN_UNIT", "MAX_TOKENS_SOLD",
    "RESTRICTED_PERIOD_DURATION", "STRATEGIC_PARTNERS_POOL_ALLOCATION",
    # Types
    "SaleConfig", "SaleState", "SalePhase", "ParticipantRecord",
    "SaleEvent", "ContributionAccepted", "TokensClaimed", "EtherRefunded",
    "ParticipationCapSet", "Finalized", "RefundsFinalized", "TokensReclaimed",
    # Core
    "MintableToken", "EtherVault", "ContributionLedger",
    # Chain tooling
    "DevNodeRPC", "RPCError", "ChainClient", "TxStatus",
    "Tier", "DEFAULT_TIERS", "scan_registrations", "bucket_registrants",
    "AccountBook", "AuditConsole",
    # Config
    "Config", "config_from_env",
]
