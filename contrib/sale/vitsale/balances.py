"""
VIT Token Sale SDK - Token and Ether Sinks

In-memory stand-ins for the token contract and the ether balances the
ledger moves funds through. Both keep integer balances per address.
"""

import logging
from typing import Dict, Optional

from .errors import InsufficientBalance, InvalidAmount, MintingFinished, TransfersLocked

log = logging.getLogger(__name__)


class MintableToken:
    """
    Mintable token with transfers locked until minting finishes.

    The owner (the sale ledger) may move its own balance while minting is
    still enabled; every other holder has to wait for finish_minting().

    Usage:
        token = MintableToken(owner="sale")
        token.mint("sale", 1000)
        token.finish_minting()
        token.transfer("sale", "0xabc...", 400)
    """

    def __init__(self, owner: str, name: str = "Vice", symbol: str = "VIT",
                 decimals: int = 18):
        self.owner = owner
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.total_supply = 0
        self.minting_finished = False
        self.balances: Dict[str, int] = {}

    @property
    def address(self) -> str:
        return self.symbol

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def mint(self, to: str, amount: int) -> int:
        """
        Mint new tokens.

        Args:
            to: Recipient
            amount: Base units to mint

        Returns:
            New balance of the recipient
        """
        if self.minting_finished:
            raise MintingFinished()
        if amount < 0:
            raise InvalidAmount("Mint amount must not be negative")

        self.balances[to] = self.balance_of(to) + amount
        self.total_supply += amount
        log.debug(f"Mint {amount} {self.symbol} -> {to}")
        return self.balances[to]

    def finish_minting(self):
        """Disable minting for good (and unlock transfers)."""
        if self.minting_finished:
            raise MintingFinished("Minting was already finished")
        self.minting_finished = True
        log.debug(f"{self.symbol} minting finished, supply={self.total_supply}")

    def transfer(self, sender: str, to: str, amount: int):
        if amount < 0:
            raise InvalidAmount("Transfer amount must not be negative")
        if not self.minting_finished and sender != self.owner:
            raise TransfersLocked()
        if self.balance_of(sender) < amount:
            raise InsufficientBalance(
                f"{sender} holds {self.balance_of(sender)} {self.symbol}, needs {amount}")

        self.balances[sender] = self.balance_of(sender) - amount
        self.balances[to] = self.balance_of(to) + amount

    def to_dict(self) -> dict:
        return {
            "owner": self.owner,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": self.total_supply,
            "minting_finished": self.minting_finished,
            "balances": dict(self.balances),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MintableToken":
        token = cls(
            owner=data["owner"],
            name=data.get("name", "Vice"),
            symbol=data.get("symbol", "VIT"),
            decimals=int(data.get("decimals", 18)),
        )
        token.total_supply = int(data.get("total_supply", 0))
        token.minting_finished = bool(data.get("minting_finished", False))
        token.balances = {k: int(v) for k, v in data.get("balances", {}).items()}
        return token


class EtherVault:
    """Wei balances of the accounts the ledger pays in and out."""

    def __init__(self, balances: Optional[Dict[str, int]] = None):
        self.balances: Dict[str, int] = dict(balances or {})

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def receive(self, to: str, amount: int):
        """Credit ether arriving from outside (a contribution)."""
        if amount < 0:
            raise InvalidAmount("Amount must not be negative")
        self.balances[to] = self.balance_of(to) + amount

    def send(self, sender: str, to: str, amount: int):
        if amount < 0:
            raise InvalidAmount("Amount must not be negative")
        if self.balance_of(sender) < amount:
            raise InsufficientBalance(
                f"{sender} holds {self.balance_of(sender)} wei, needs {amount}")

        self.balances[sender] = self.balance_of(sender) - amount
        self.balances[to] = self.balance_of(to) + amount
        log.debug(f"Send {amount} wei {sender} -> {to}")

    def to_dict(self) -> dict:
        return {"balances": dict(self.balances)}

    @classmethod
    def from_dict(cls, data: dict) -> "EtherVault":
        return cls({k: int(v) for k, v in data.get("balances", {}).items()})
