"""
VIT Token Sale SDK - Dev Node RPC Client

JSON-RPC client for the development chain (ganache / hardhat style) used
when rehearsing the sale: time travel, block mining and snapshots.
"""

import requests
from typing import Any, List, Optional, Tuple


class RPCError(Exception):
    """RPC call failed."""
    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"RPC Error {code}: {message}")


class DevNodeRPC:
    """
    JSON-RPC client for a development node.

    Usage:
        rpc = DevNodeRPC("http://localhost:8545")
        rpc.increase_time(86400)
        rpc.mine()
        accounts = rpc.eth_accounts()
    """

    def __init__(self, url: str = "http://localhost:8545",
                 auth: Optional[Tuple[str, str]] = None, timeout: int = 30):
        self.url = url
        self.auth = auth
        self.timeout = timeout
        self._id = 0

    def _call(self, method: str, params: list = None) -> Any:
        """Make RPC call."""
        self._id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._id,
            "method": method,
            "params": params or []
        }

        try:
            response = requests.post(
                self.url,
                json=payload,
                auth=self.auth,
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise RPCError(-1, f"Connection failed: {e}")

        result = response.json()

        if "error" in result and result["error"]:
            raise RPCError(result["error"].get("code", -1), result["error"].get("message", ""))

        return result.get("result")

    def __getattr__(self, name: str):
        """Allow calling RPC methods as attributes."""
        if name.startswith("_"):
            raise AttributeError(name)

        def method(*args):
            return self._call(name, list(args))
        return method

    # ═══════════════════════════════════════════════════════════════════════
    # CHAIN QUERIES
    # ═══════════════════════════════════════════════════════════════════════

    def eth_blockNumber(self) -> int:
        """Get current block height."""
        return int(self._call("eth_blockNumber"), 16)

    def eth_accounts(self) -> List[str]:
        """Get unlocked node accounts."""
        return self._call("eth_accounts")

    # ═══════════════════════════════════════════════════════════════════════
    # DEV NODE CONTROL
    # ═══════════════════════════════════════════════════════════════════════

    def increase_time(self, seconds: int) -> int:
        """
        Move the node clock forward.

        Args:
            seconds: Seconds to add to the next block timestamp

        Returns:
            Total offset reported by the node
        """
        return self._call("evm_increaseTime", [seconds])

    def mine(self) -> Any:
        """Mine one block (applies pending time increases)."""
        return self._call("evm_mine")

    def snapshot(self) -> str:
        """Snapshot chain state; returns the snapshot id."""
        return self._call("evm_snapshot")

    def revert(self, snapshot_id: str) -> bool:
        """Restore a snapshot taken with snapshot()."""
        return bool(self._call("evm_revert", [snapshot_id]))

    def unlock_account(self, address: str, password: str = "", duration: int = 0) -> bool:
        return bool(self._call("personal_unlockAccount", [address, password, duration]))

    def test_connection(self) -> bool:
        """Test if node is reachable."""
        try:
            self.eth_blockNumber()
            return True
        except RPCError:
            return False
