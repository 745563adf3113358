"""
VIT Token Sale SDK - Chain Client

Thin web3 wrapper used by the whitelist scanner and the audit console:
balances, blocks, transactions, receipts and contract events.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from web3 import Web3

log = logging.getLogger(__name__)


@dataclass
class TxStatus:
    """Outcome of a mined transaction."""
    tx_hash: str
    block_number: int
    status: int
    gas: int
    gas_used: int
    gas_price: int

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @property
    def gas_cost(self) -> int:
        """Wei paid for gas."""
        return self.gas_used * self.gas_price

    @property
    def used_all_gas(self) -> bool:
        # A throw in old EVMs burns the whole gas allowance
        return self.gas == self.gas_used

    def to_dict(self) -> dict:
        return {
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
            "status": self.status,
            "gas": self.gas,
            "gas_used": self.gas_used,
            "gas_price": self.gas_price,
            "gas_cost": self.gas_cost,
        }


def _hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if hasattr(value, "hex") and not isinstance(value, str):
        text = value.hex()
        return text if text.startswith("0x") else "0x" + text
    return str(value)


class ChainClient:
    """
    Read-only access to an Ethereum node.

    Usage:
        chain = ChainClient("http://localhost:8545")
        chain.block_number()
        chain.get_balance("0xabc...")
    """

    def __init__(self, rpc_url: Optional[str] = None, w3: Optional[Web3] = None):
        if w3 is None:
            if not rpc_url:
                raise ValueError("rpc_url or w3 is required")
            w3 = Web3(Web3.HTTPProvider(rpc_url))
        self.w3 = w3
        self.rpc_url = rpc_url

    def is_connected(self) -> bool:
        return self.w3.is_connected()

    @staticmethod
    def checksum(address: str) -> str:
        return Web3.to_checksum_address(address)

    def accounts(self) -> List[str]:
        return list(self.w3.eth.accounts)

    def block_number(self) -> int:
        return self.w3.eth.block_number

    def get_balance(self, address: str, block: Any = "latest") -> int:
        """Wei balance of `address`."""
        return self.w3.eth.get_balance(self.checksum(address), block)

    def get_block(self, number: Any = "latest", full: bool = False):
        return self.w3.eth.get_block(number, full_transactions=full)

    def iter_transactions(self, start_block: int, end_block: int) -> Iterator[Any]:
        """Yield every transaction in the inclusive block range."""
        for number in range(start_block, end_block + 1):
            block = self.get_block(number, full=True)
            for tx in block["transactions"]:
                yield tx
            if number % 1000 == 0:
                log.debug(f"Scanned block {number}/{end_block}")

    def get_transaction(self, tx_hash: str):
        return self.w3.eth.get_transaction(tx_hash)

    def get_receipt(self, tx_hash: str):
        return self.w3.eth.get_transaction_receipt(tx_hash)

    def tx_status(self, tx_hash: str) -> TxStatus:
        """Combine transaction and receipt into a TxStatus."""
        tx = self.get_transaction(tx_hash)
        receipt = self.get_receipt(tx_hash)
        gas_price = receipt.get("effectiveGasPrice") or tx.get("gasPrice") or 0
        return TxStatus(
            tx_hash=_hex(tx_hash),
            block_number=receipt["blockNumber"],
            status=receipt["status"],
            gas=tx["gas"],
            gas_used=receipt["gasUsed"],
            gas_price=gas_price,
        )

    def contract(self, address: str, abi: List[Dict]):
        return self.w3.eth.contract(address=self.checksum(address), abi=abi)

    def get_events(self, contract, name: str, from_block: int = 0,
                   to_block: Any = "latest") -> List[Dict]:
        """
        Decoded contract events.

        Args:
            contract: web3 contract (see contract())
            name: Event name in the ABI
            from_block: First block (inclusive)
            to_block: Last block (inclusive)

        Returns:
            List of {"event", "block_number", "tx_hash", "args"} dicts
        """
        event = getattr(contract.events, name)
        entries = event().get_logs(from_block=from_block, to_block=to_block)
        return [
            {
                "event": entry["event"],
                "block_number": entry["blockNumber"],
                "tx_hash": _hex(entry["transactionHash"]),
                "args": dict(entry["args"]),
            }
            for entry in entries
        ]

    def wait_for_block(self, number: int, poll_interval: float = 1.0,
                       timeout: float = 120.0) -> int:
        """Poll until the chain reaches block `number`."""
        deadline = time.time() + timeout
        current = self.block_number()
        while current < number:
            if time.time() > deadline:
                raise TimeoutError(f"Block {number} not reached (at {current})")
            time.sleep(poll_interval)
            current = self.block_number()
        return current
