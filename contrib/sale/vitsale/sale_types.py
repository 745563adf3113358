"""
VIT Token Sale SDK - Data Types

Sale configuration, participant records, lifecycle phases and ledger events.
All amounts are integers: wei for ether, base units for tokens.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional, Tuple, Dict, Any
import json

from .errors import InvalidConfiguration


MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR

ETH = 10 ** 18
TOKEN_UNIT = 10 ** 18

MAX_TOKENS_SOLD = 2 * (10 ** 9) * TOKEN_UNIT
RESTRICTED_PERIOD_DURATION = 1 * DAY
STRATEGIC_PARTNERS_POOL_ALLOCATION = 100 * (10 ** 6) * TOKEN_UNIT

NULL_ADDRESS = "0x0000000000000000000000000000000000000000"


def is_null_address(address: Optional[str]) -> bool:
    """True for None, empty or all-zero addresses."""
    if not address:
        return True
    stripped = address.lower()
    if stripped.startswith("0x"):
        stripped = stripped[2:]
    return stripped == "" or set(stripped) == {"0"}


def normalize_address(address: Optional[str]) -> Optional[str]:
    """Ledger key for an address: checksummed and plain hex map to the same account."""
    if not address:
        return address
    return address.strip().lower()


class SalePhase(Enum):
    """Sale lifecycle phase, derived from (config, state, now)"""
    PENDING = "pending"
    OPEN = "open"
    ENDED = "ended"
    FINALIZED = "finalized"
    REFUND_FINALIZED = "refund_finalized"


@dataclass(frozen=True)
class SaleConfig:
    """
    Immutable sale parameters.

    Timeline:
      start_time <= now < end_time               - contributions accepted
      start_time + restricted_period_duration    - end of capped period
      end_time < now <= refund_end_time          - refunds allowed

    Either refund_end_time is fixed here, or refund_period_duration is
    given and the refund end is set when the sale is finalized.
    """
    funding_recipient: str
    start_time: int
    end_time: int
    exchange_rate: int
    refund_end_time: Optional[int] = None
    refund_period_duration: Optional[int] = None
    max_tokens_sold: int = MAX_TOKENS_SOLD
    restricted_period_duration: int = RESTRICTED_PERIOD_DURATION
    strategic_partner_pools: Tuple[str, ...] = ()
    strategic_partner_pool_allocation: int = STRATEGIC_PARTNERS_POOL_ALLOCATION

    def validate(self, now: int):
        """
        Check construction invariants.

        Args:
            now: Construction time

        Raises:
            InvalidConfiguration: On the first violated invariant
        """
        if is_null_address(self.funding_recipient):
            raise InvalidConfiguration("Funding recipient must not be null")
        if self.exchange_rate <= 0:
            raise InvalidConfiguration("Exchange rate must be positive")
        if self.max_tokens_sold <= 0:
            raise InvalidConfiguration("Max tokens sold must be positive")
        if self.restricted_period_duration < 0:
            raise InvalidConfiguration("Restricted period duration must not be negative")
        if self.start_time <= now:
            raise InvalidConfiguration("Start time must be in the future")
        if self.end_time <= self.start_time:
            raise InvalidConfiguration("End time must be after start time")
        if self.end_time <= self.start_time + self.restricted_period_duration:
            raise InvalidConfiguration("End time must be after the restricted period")

        if self.refund_end_time is None:
            if self.refund_period_duration is None or self.refund_period_duration <= 0:
                raise InvalidConfiguration("Refund end time or a positive refund period is required")
        elif self.refund_end_time <= self.end_time:
            raise InvalidConfiguration("Refund end time must be after end time")

        if self.strategic_partner_pool_allocation < 0:
            raise InvalidConfiguration("Pool allocation must not be negative")
        for pool in self.strategic_partner_pools:
            if is_null_address(pool):
                raise InvalidConfiguration("Strategic partner pool must not be null")

    @property
    def restricted_end_time(self) -> int:
        return self.start_time + self.restricted_period_duration

    @property
    def max_tokens(self) -> int:
        """Total supply once everything is sold and pools are granted."""
        return self.max_tokens_sold + \
            len(self.strategic_partner_pools) * self.strategic_partner_pool_allocation

    def to_dict(self) -> dict:
        data = asdict(self)
        data["strategic_partner_pools"] = list(self.strategic_partner_pools)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SaleConfig":
        """Create SaleConfig from dictionary (e.g. a JSON config file)."""
        refund_end = data.get("refund_end_time")
        refund_period = data.get("refund_period_duration")
        return cls(
            funding_recipient=data["funding_recipient"],
            start_time=int(data["start_time"]),
            end_time=int(data["end_time"]),
            exchange_rate=int(data["exchange_rate"]),
            refund_end_time=int(refund_end) if refund_end is not None else None,
            refund_period_duration=int(refund_period) if refund_period is not None else None,
            max_tokens_sold=int(data.get("max_tokens_sold", MAX_TOKENS_SOLD)),
            restricted_period_duration=int(data.get("restricted_period_duration",
                                                    RESTRICTED_PERIOD_DURATION)),
            strategic_partner_pools=tuple(data.get("strategic_partner_pools", [])),
            strategic_partner_pool_allocation=int(data.get("strategic_partner_pool_allocation",
                                                           STRATEGIC_PARTNERS_POOL_ALLOCATION)),
        )


@dataclass
class ParticipantRecord:
    """
    Per-contributor balances.

    participation_history only grows during the restricted period and is
    frozen afterwards. Records are never deleted.
    """
    address: str
    participation_history: int = 0
    participation_cap: int = 0
    claimable_tokens: int = 0
    refundable_ether: int = 0

    @property
    def remaining_cap(self) -> int:
        return self.participation_cap - self.participation_history

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ParticipantRecord":
        return cls(
            address=data["address"],
            participation_history=int(data.get("participation_history", 0)),
            participation_cap=int(data.get("participation_cap", 0)),
            claimable_tokens=int(data.get("claimable_tokens", 0)),
            refundable_ether=int(data.get("refundable_ether", 0)),
        )


@dataclass
class SaleState:
    """Mutable sale totals and one-way flags."""
    tokens_sold: int = 0
    total_claimable_tokens: int = 0
    finalized: bool = False
    finalized_refund: bool = False
    refund_end_time: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SaleState":
        refund_end = data.get("refund_end_time")
        return cls(
            tokens_sold=int(data.get("tokens_sold", 0)),
            total_claimable_tokens=int(data.get("total_claimable_tokens", 0)),
            finalized=bool(data.get("finalized", False)),
            finalized_refund=bool(data.get("finalized_refund", False)),
            refund_end_time=int(refund_end) if refund_end is not None else None,
        )


# ═══════════════════════════════════════════════════════════════════════════
# EVENTS
# ═══════════════════════════════════════════════════════════════════════════

class SaleEvent:
    """Base for ledger events. Subclasses are dataclasses."""

    @property
    def kind(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict:
        data = asdict(self)
        data["event"] = self.kind
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class ContributionAccepted(SaleEvent):
    participant: str
    issued_tokens: int
    actual_contribution: int
    timestamp: int = 0


@dataclass
class TokensClaimed(SaleEvent):
    participant: str
    amount: int
    timestamp: int = 0


@dataclass
class EtherRefunded(SaleEvent):
    participant: str
    wei_amount: int
    timestamp: int = 0


@dataclass
class ParticipationCapSet(SaleEvent):
    participant: str
    cap: int
    timestamp: int = 0


@dataclass
class Finalized(SaleEvent):
    unsold_tokens: int
    refund_end_time: int
    timestamp: int = 0


@dataclass
class RefundsFinalized(SaleEvent):
    swept_wei: int
    timestamp: int = 0


@dataclass
class TokensReclaimed(SaleEvent):
    token: str
    amount: int
    timestamp: int = 0


EVENT_TYPES: Dict[str, type] = {
    cls.__name__: cls for cls in (
        ContributionAccepted, TokensClaimed, EtherRefunded, ParticipationCapSet,
        Finalized, RefundsFinalized, TokensReclaimed,
    )
}


def event_from_dict(data: Dict[str, Any]) -> SaleEvent:
    """Rebuild an event from its to_dict() form."""
    fields = dict(data)
    kind = fields.pop("event")
    if kind not in EVENT_TYPES:
        raise ValueError(f"Unknown event kind: {kind}")
    return EVENT_TYPES[kind](**fields)
