"""
VIT Token Sale SDK - Contribution Ledger

Tiered contribution accounting for the token sale:
  - ETH contributions are converted into claimable tokens
  - During the restricted period every participant is held to its own cap
  - After the sale, tokens can be claimed and ether refunded
  - finalize() settles unsold tokens, finalize_refunds() sweeps the ether

Time is never read from a clock here; every operation takes `now` from the
caller (wall clock or block timestamp).
"""

import json
import logging
import os
import threading
from typing import Dict, Iterable, List, Optional

from .balances import EtherVault, MintableToken
from .errors import (
    AlreadyFinalized,
    AlreadyFinalizedRefund,
    CapExceeded,
    ClaimExceeded,
    InvalidAddress,
    InvalidAmount,
    InvalidContribution,
    NotOwner,
    RefundExceeded,
    RefundPeriodActive,
    RefundWindowClosed,
    SaleNotEnded,
    SaleNotFinalized,
)
from .sale_types import (
    ContributionAccepted,
    EtherRefunded,
    Finalized,
    ParticipantRecord,
    ParticipationCapSet,
    RefundsFinalized,
    SaleConfig,
    SaleEvent,
    SalePhase,
    SaleState,
    TokensClaimed,
    TokensReclaimed,
    event_from_dict,
    is_null_address,
    normalize_address,
)

log = logging.getLogger(__name__)

LEDGER_FORMAT_VERSION = "1.0"


class ContributionLedger:
    """
    Sale ledger: participants, caps, claimable tokens and refundable ether.

    Tokens issued for a contribution are minted to the ledger's own address
    and held there until claimed (or forfeited to the funding recipient on
    refund). Accepted ether sits in the ledger's vault balance.

    Usage:
        ledger = ContributionLedger(config, owner="0xowner", now=now)

        ledger.set_restricted_participation_cap("0xowner", ["0xabc"], 10 * ETH)
        ledger.contribute("0xabc", 1 * ETH, now=config.start_time)

        ledger.finalize(now=config.end_time + 1)
        ledger.claim_all_tokens("0xabc", now=config.end_time + 1)
    """

    def __init__(self, config: SaleConfig, owner: str, now: int,
                 address: str = "sale",
                 token: Optional[MintableToken] = None,
                 ether: Optional[EtherVault] = None):
        """
        Create a ledger and grant the strategic partner pools.

        Args:
            config: Sale parameters (validated against `now`)
            owner: Address allowed to set caps and reclaim tokens
            now: Construction time
            address: The ledger's own account in the token and ether books
            token: Token sink (a fresh MintableToken owned by the ledger by default)
            ether: Ether sink (a fresh EtherVault by default)
        """
        config.validate(now)
        if is_null_address(owner):
            raise InvalidAddress("Owner must not be null")

        self.config = config
        self.owner = normalize_address(owner)
        self.address = address
        self.token = token if token is not None else MintableToken(owner=address)
        self.ether = ether if ether is not None else EtherVault()
        self.state = SaleState(refund_end_time=config.refund_end_time)
        self.participants: Dict[str, ParticipantRecord] = {}
        self.events: List[SaleEvent] = []
        self._lock = threading.RLock()

        for pool in config.strategic_partner_pools:
            self.token.mint(pool, config.strategic_partner_pool_allocation)

        log.info(f"Sale ledger created: start={config.start_time} end={config.end_time} "
                 f"rate={config.exchange_rate} cap={config.max_tokens_sold}")

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def refund_end_time(self) -> Optional[int]:
        """Fixed at construction, or resolved by finalize()."""
        return self.state.refund_end_time

    def phase(self, now: int) -> SalePhase:
        if self.state.finalized_refund:
            return SalePhase.REFUND_FINALIZED
        if self.state.finalized:
            return SalePhase.FINALIZED
        if now < self.config.start_time:
            return SalePhase.PENDING
        if now < self.config.end_time:
            return SalePhase.OPEN
        return SalePhase.ENDED

    def is_restricted(self, now: int) -> bool:
        """True while per-participant caps apply."""
        return self.config.start_time <= now <= self.config.restricted_end_time

    def is_sold_out(self) -> bool:
        """All tokens sold; finalize() may be called before end_time."""
        return self.state.tokens_sold >= self.config.max_tokens_sold

    # ═══════════════════════════════════════════════════════════════════════
    # PARTICIPANTS
    # ═══════════════════════════════════════════════════════════════════════

    def participant(self, address: str) -> ParticipantRecord:
        """Copy of a participant record (zeroed for unknown addresses)."""
        address = normalize_address(address)
        record = self.participants.get(address)
        if record is None:
            return ParticipantRecord(address=address)
        return ParticipantRecord.from_dict(record.to_dict())

    def _record(self, address: str) -> ParticipantRecord:
        address = normalize_address(address)
        record = self.participants.get(address)
        if record is None:
            record = ParticipantRecord(address=address)
            self.participants[address] = record
        return record

    def set_restricted_participation_cap(self, caller: str, participants: Iterable[str],
                                         cap: int, now: int = 0) -> int:
        """
        Set the restricted period cap of several participants at once.

        Args:
            caller: Must be the sale owner
            participants: Addresses to update (may be empty)
            cap: Wei ceiling during the restricted period
            now: Timestamp recorded on the emitted events

        Returns:
            Number of participants updated
        """
        with self._lock:
            caller = normalize_address(caller)
            if caller != self.owner:
                raise NotOwner(f"{caller} is not the sale owner")
            if cap < 0:
                raise InvalidAmount("Cap must not be negative")

            participants = [normalize_address(a) for a in participants]
            for address in participants:
                if is_null_address(address):
                    raise InvalidAddress(f"Invalid participant address: {address!r}")

            for address in participants:
                self._record(address).participation_cap = cap
                self.events.append(ParticipationCapSet(participant=address, cap=cap, timestamp=now))

            if participants:
                log.info(f"Restricted cap {cap} set for {len(participants)} participant(s)")
            return len(participants)

    # ═══════════════════════════════════════════════════════════════════════
    # CONTRIBUTIONS
    # ═══════════════════════════════════════════════════════════════════════

    def contribute(self, participant: str, wei_amount: int, now: int) -> ContributionAccepted:
        """
        Accept an ETH contribution.

        The accepted amount may be smaller than `wei_amount`: it is limited by
        the participant's remaining cap (restricted period only) and by the
        tokens left for sale. Whatever is not accepted is not kept.

        Args:
            participant: Contributor address
            wei_amount: Wei sent
            now: Current time

        Returns:
            ContributionAccepted event with issued tokens and accepted wei

        Raises:
            InvalidContribution: Bad amount, outside the sale window, or sold out
            CapExceeded: Restricted period cap already used up (or never set)
        """
        with self._lock:
            participant = normalize_address(participant)
            if is_null_address(participant):
                raise InvalidAddress("Participant must not be null")
            if wei_amount <= 0:
                raise InvalidContribution("Contribution must be positive")
            if now < self.config.start_time:
                raise InvalidContribution("Sale has not started")
            if now >= self.config.end_time:
                raise InvalidContribution("Sale has ended")
            if self.state.finalized:
                raise InvalidContribution("Sale is finalized")
            if self.is_sold_out():
                raise InvalidContribution("All tokens were sold")

            rate = self.config.exchange_rate
            current = self.participant(participant)
            restricted = self.is_restricted(now)

            if restricted:
                allowed = min(wei_amount, current.remaining_cap)
                if allowed <= 0:
                    log.debug(f"Cap reached for {participant}: "
                              f"{current.participation_history}/{current.participation_cap}")
                    raise CapExceeded(f"{participant} reached its participation cap "
                                      f"({current.participation_cap} wei)")
            else:
                allowed = wei_amount

            tokens = allowed * rate
            issued = min(tokens, self.config.max_tokens_sold - self.state.tokens_sold)
            actual = issued // rate

            # Sinks first: if minting is refused nothing below has happened yet
            self.token.mint(self.address, issued)
            self.ether.receive(self.address, actual)

            record = self._record(participant)
            self.state.tokens_sold += issued
            self.state.total_claimable_tokens += issued
            record.claimable_tokens += issued
            record.refundable_ether += actual
            if restricted:
                record.participation_history += actual

            event = ContributionAccepted(
                participant=participant,
                issued_tokens=issued,
                actual_contribution=actual,
                timestamp=now,
            )
            self.events.append(event)

            log.info(f"Contribution {participant}: {actual}/{wei_amount} wei accepted, "
                     f"{issued} tokens issued{' (restricted)' if restricted else ''}")
            if self.is_sold_out():
                log.info("All tokens sold - sale can be finalized")
            return event

    # ═══════════════════════════════════════════════════════════════════════
    # CLAIMS AND REFUNDS
    # ═══════════════════════════════════════════════════════════════════════

    @staticmethod
    def _ether_for_tokens(record: ParticipantRecord, tokens: int, rate: int) -> int:
        # Draining the tokens releases all remaining ether, so no dust is left
        if tokens == record.claimable_tokens:
            return record.refundable_ether
        return min(tokens // rate, record.refundable_ether)

    @staticmethod
    def _tokens_for_ether(record: ParticipantRecord, wei: int, rate: int) -> int:
        if wei == record.refundable_ether:
            return record.claimable_tokens
        return min(wei * rate, record.claimable_tokens)

    def claim_tokens(self, participant: str, amount: int, now: int) -> TokensClaimed:
        """
        Transfer claimable tokens to the participant.

        Ether backing the claimed tokens is released to the funding
        recipient while the refund window is open; after it closes the
        ether stays until finalize_refunds() sweeps it.

        Args:
            participant: Claiming address
            amount: Tokens to claim
            now: Current time

        Returns:
            TokensClaimed event
        """
        with self._lock:
            participant = normalize_address(participant)
            if not self.state.finalized:
                raise SaleNotFinalized()
            if now <= self.config.end_time:
                raise SaleNotEnded("Tokens can be claimed after the sale ends")
            if amount <= 0:
                raise InvalidAmount("Claim amount must be positive")

            current = self.participant(participant)
            if amount > current.claimable_tokens:
                raise ClaimExceeded(f"{participant} can claim {current.claimable_tokens} tokens, "
                                    f"requested {amount}")

            released = self._ether_for_tokens(current, amount, self.config.exchange_rate)
            if now <= self.refund_end_time:
                self.ether.send(self.address, self.config.funding_recipient, released)
            self.token.transfer(self.address, participant, amount)

            record = self._record(participant)
            record.claimable_tokens -= amount
            record.refundable_ether -= released
            self.state.total_claimable_tokens -= amount

            event = TokensClaimed(participant=participant, amount=amount, timestamp=now)
            self.events.append(event)
            log.info(f"Claim {participant}: {amount} tokens, {released} wei released")
            return event

    def claim_all_tokens(self, participant: str, now: int) -> TokensClaimed:
        with self._lock:
            participant = normalize_address(participant)
            claimable = self.participant(participant).claimable_tokens
            if claimable == 0 and self.state.finalized and now > self.config.end_time:
                raise ClaimExceeded(f"{participant} has no tokens to claim")
            return self.claim_tokens(participant, claimable, now)

    def refund_ether(self, participant: str, amount: int, now: int) -> EtherRefunded:
        """
        Return refundable ether; the matching tokens go to the funding recipient.

        Args:
            participant: Refunded address
            amount: Wei to refund
            now: Current time

        Returns:
            EtherRefunded event
        """
        with self._lock:
            participant = normalize_address(participant)
            if self.state.finalized_refund:
                raise RefundWindowClosed("Refunds were finalized")
            refund_end = self.refund_end_time
            if refund_end is None:
                raise SaleNotFinalized("Refund window starts once the sale is finalized")
            if now <= self.config.end_time or now > refund_end:
                raise RefundWindowClosed(f"Refunds are open after {self.config.end_time} "
                                         f"until {refund_end}")
            if amount <= 0:
                raise InvalidAmount("Refund amount must be positive")

            current = self.participant(participant)
            if amount > current.refundable_ether:
                raise RefundExceeded(f"{participant} can refund {current.refundable_ether} wei, "
                                     f"requested {amount}")

            forfeited = self._tokens_for_ether(current, amount, self.config.exchange_rate)
            self.token.transfer(self.address, self.config.funding_recipient, forfeited)
            self.ether.send(self.address, participant, amount)

            record = self._record(participant)
            record.refundable_ether -= amount
            record.claimable_tokens -= forfeited
            self.state.total_claimable_tokens -= forfeited

            event = EtherRefunded(participant=participant, wei_amount=amount, timestamp=now)
            self.events.append(event)
            log.info(f"Refund {participant}: {amount} wei, {forfeited} tokens forfeited")
            return event

    def refund_all_ether(self, participant: str, now: int) -> EtherRefunded:
        with self._lock:
            participant = normalize_address(participant)
            refundable = self.participant(participant).refundable_ether
            if refundable == 0:
                # Window errors take precedence over the empty balance
                if self.state.finalized_refund:
                    raise RefundWindowClosed("Refunds were finalized")
                refund_end = self.refund_end_time
                if refund_end is not None and self.config.end_time < now <= refund_end:
                    raise RefundExceeded(f"{participant} has no ether to refund")
            return self.refund_ether(participant, refundable, now)

    # ═══════════════════════════════════════════════════════════════════════
    # FINALIZATION
    # ═══════════════════════════════════════════════════════════════════════

    def finalize(self, now: int) -> Finalized:
        """
        Close the sale: unsold tokens go to the funding recipient and
        minting is disabled. Allowed after end_time, or earlier once sold out.
        """
        with self._lock:
            if self.state.finalized:
                raise AlreadyFinalized()
            if now <= self.config.end_time and not self.is_sold_out():
                raise SaleNotEnded("Sale can be finalized after it ends or sells out")

            unsold = self.config.max_tokens_sold - self.state.tokens_sold
            refund_end = self.state.refund_end_time
            if refund_end is None:
                refund_end = max(now, self.config.end_time) + self.config.refund_period_duration

            if unsold > 0:
                self.token.mint(self.config.funding_recipient, unsold)
            if not self.token.minting_finished:
                self.token.finish_minting()

            self.state.refund_end_time = refund_end
            self.state.finalized = True

            event = Finalized(unsold_tokens=unsold, refund_end_time=refund_end, timestamp=now)
            self.events.append(event)
            log.info(f"Sale finalized: sold={self.state.tokens_sold} unsold={unsold} "
                     f"refunds until {refund_end}")
            return event

    def finalize_refunds(self, now: int) -> RefundsFinalized:
        """Sweep all remaining ether to the funding recipient after the refund window."""
        with self._lock:
            if self.state.finalized_refund:
                raise AlreadyFinalizedRefund()
            if not self.state.finalized:
                raise SaleNotFinalized()
            if now <= self.refund_end_time:
                raise RefundPeriodActive(f"Refund period ends at {self.refund_end_time}")

            swept = self.ether.balance_of(self.address)
            self.ether.send(self.address, self.config.funding_recipient, swept)
            self.state.finalized_refund = True

            event = RefundsFinalized(swept_wei=swept, timestamp=now)
            self.events.append(event)
            log.info(f"Refunds finalized: {swept} wei swept to {self.config.funding_recipient}")
            return event

    def reclaim_token(self, caller: str, token: MintableToken, now: int = 0) -> TokensReclaimed:
        """
        Hand tokens held by the ledger back to the owner.

        For the sale token only the excess over what participants can still
        claim is returned.
        """
        with self._lock:
            caller = normalize_address(caller)
            if caller != self.owner:
                raise NotOwner(f"{caller} is not the sale owner")

            balance = token.balance_of(self.address)
            if token is self.token:
                amount = max(0, balance - self.state.total_claimable_tokens)
            else:
                amount = balance

            if amount > 0:
                token.transfer(self.address, self.owner, amount)

            event = TokensReclaimed(token=token.address, amount=amount, timestamp=now)
            self.events.append(event)
            return event

    # ═══════════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════════

    def get_events(self, kind: Optional[str] = None, since: Optional[int] = None,
                   until: Optional[int] = None) -> List[SaleEvent]:
        """
        Past events, optionally filtered.

        Args:
            kind: Event class name (e.g. "TokensClaimed")
            since: Inclusive lower timestamp bound
            until: Inclusive upper timestamp bound

        Returns:
            Matching events in emission order
        """
        result = []
        for event in self.events:
            if kind and event.kind != kind:
                continue
            if since is not None and event.timestamp < since:
                continue
            if until is not None and event.timestamp > until:
                continue
            result.append(event)
        return result

    def participant_info(self, address: str) -> dict:
        return self.participant(address).to_dict()

    def sale_info(self, now: int) -> dict:
        """Snapshot of configuration, totals and phase at `now`."""
        phase = self.phase(now)
        return {
            "owner": self.owner,
            "address": self.address,
            "funding_recipient": self.config.funding_recipient,
            "exchange_rate": self.config.exchange_rate,
            "start_time": self.config.start_time,
            "end_time": self.config.end_time,
            "restricted_end_time": self.config.restricted_end_time,
            "refund_end_time": self.refund_end_time,
            "max_tokens_sold": self.config.max_tokens_sold,
            "tokens_sold": self.state.tokens_sold,
            "total_claimable_tokens": self.state.total_claimable_tokens,
            "finalized": self.state.finalized,
            "finalized_refund": self.state.finalized_refund,
            "phase": phase.value,
            "restricted": phase == SalePhase.OPEN and self.is_restricted(now),
            "sold_out": self.is_sold_out(),
            "participants": len(self.participants),
            "ether_balance": self.ether.balance_of(self.address),
            "token_supply": self.token.total_supply,
            "minting_finished": self.token.minting_finished,
        }

    # ═══════════════════════════════════════════════════════════════════════
    # PERSISTENCE
    # ═══════════════════════════════════════════════════════════════════════

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "version": LEDGER_FORMAT_VERSION,
                "address": self.address,
                "owner": self.owner,
                "config": self.config.to_dict(),
                "state": self.state.to_dict(),
                "participants": [p.to_dict() for p in self.participants.values()],
                "events": [e.to_dict() for e in self.events],
                "token": self.token.to_dict(),
                "ether": self.ether.to_dict(),
            }

    @classmethod
    def from_dict(cls, data: dict) -> "ContributionLedger":
        """Restore a ledger snapshot (no construction-time validation)."""
        ledger = cls.__new__(cls)
        ledger.config = SaleConfig.from_dict(data["config"])
        ledger.owner = data["owner"]
        ledger.address = data.get("address", "sale")
        ledger.token = MintableToken.from_dict(data["token"])
        ledger.ether = EtherVault.from_dict(data["ether"])
        ledger.state = SaleState.from_dict(data["state"])
        ledger.participants = {}
        for record_data in data.get("participants", []):
            record = ParticipantRecord.from_dict(record_data)
            ledger.participants[record.address] = record
        ledger.events = [event_from_dict(e) for e in data.get("events", [])]
        ledger._lock = threading.RLock()
        return ledger

    def save(self, path: str):
        """Write a JSON snapshot to `path`, replacing the previous one atomically."""
        tmp_path = f"{path}.tmp"
        with self._lock:
            with open(tmp_path, "w") as f:
                json.dump(self.to_dict(), f, indent=2)
            os.replace(tmp_path, path)

    @classmethod
    def load(cls, path: str) -> "ContributionLedger":
        with open(path, "r") as f:
            return cls.from_dict(json.load(f))
