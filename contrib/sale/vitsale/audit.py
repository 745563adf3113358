"""
VIT Token Sale SDK - Audit Console

Report helpers for rehearsing the sale against a dev chain. Every report
line starts with "RESULT:" (or "JSONSUMMARY:" for the summary) so runs can
be grepped and diffed.

Usage:
    chain = ChainClient("http://localhost:8545")
    book = AccountBook.from_accounts(chain.accounts())
    console = AuditConsole(chain, book, token_address=..., sale_address=...)
    console.print_balances()
    console.print_tx_data("Contribute #3", tx_hash)
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

log = logging.getLogger(__name__)

# ETH/USD used for gas cost estimates
ETH_PRICE_USD = Decimal("863.49")

DEFAULT_ACCOUNT_NAMES = {
    0: "Miner",
    1: "Contract Owner",
    2: "Wallet",
}


# ═══════════════════════════════════════════════════════════════════════════
# CONTRACT ABIs (only what the reports read)
# ═══════════════════════════════════════════════════════════════════════════

def _view(name: str, inputs: Iterable[str] = (), output: str = "uint256") -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [{"name": f"arg{i}", "type": t} for i, t in enumerate(inputs)],
        "outputs": [{"name": "", "type": output}],
    }


def _event(name: str, inputs: Iterable[tuple]) -> dict:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [{"name": n, "type": t, "indexed": indexed} for n, t, indexed in inputs],
    }


TOKEN_ABI = [
    _view("owner", output="address"),
    _view("name", output="string"),
    _view("symbol", output="string"),
    _view("decimals", output="uint8"),
    _view("totalSupply"),
    _view("mintingFinished", output="bool"),
    _view("balanceOf", ["address"]),
    _event("Mint", [("to", "address", True), ("amount", "uint256", False)]),
    _event("MintFinished", []),
    _event("Transfer", [("from", "address", True), ("to", "address", True), ("value", "uint256", False)]),
]

SALE_ABI = [
    _view("owner", output="address"),
    _view("vitToken", output="address"),
    _view("fundingRecipient", output="address"),
    _view("MAX_TOKENS_SOLD"),
    _view("vitPerWei"),
    _view("RESTRICTED_PERIOD_DURATION"),
    _view("startTime"),
    _view("endTime"),
    _view("refundEndTime"),
    _view("tokensSold"),
    _view("totalClaimableTokens"),
    _view("finalizedRefund", output="bool"),
    _view("claimableTokens", ["address"]),
    _view("refundableEther", ["address"]),
    _view("participationHistory", ["address"]),
    _view("participationCaps", ["address"]),
    _event("TokensIssued", [("to", "address", True), ("tokens", "uint256", False)]),
    _event("TokensClaimed", [("from", "address", True), ("tokens", "uint256", False)]),
    _event("EtherRefunded", [("from", "address", True), ("weiAmount", "uint256", False)]),
    _event("Finalized", []),
    _event("FinalizedRefunds", []),
]

TOKEN_EVENTS = ("Mint", "MintFinished", "Transfer")
SALE_EVENTS = ("TokensIssued", "TokensClaimed", "EtherRefunded", "Finalized", "FinalizedRefunds")

SALE_PARTICIPANT_VIEWS = ("refundableEther", "claimableTokens", "participationHistory", "participationCaps")


# ═══════════════════════════════════════════════════════════════════════════
# FORMATTING
# ═══════════════════════════════════════════════════════════════════════════

def from_wei(value: int, decimals: int = 18) -> Decimal:
    return Decimal(int(value)).scaleb(-decimals).normalize()


def fmt(value: Decimal) -> str:
    """Plain decimal notation, no exponent and no trailing zeros."""
    return format(value.normalize(), "f")


def pad2(value: int) -> str:
    return f"{value:>2}"


def pad(wei: int) -> str:
    """Ether amount, 18 decimals, right aligned to 27 chars."""
    return f"{from_wei(wei):.18f}".rjust(27)


def pad_token(amount: int, decimals: int) -> str:
    return f"{from_wei(amount, decimals):.{decimals}f}".rjust(decimals + 12)


def utc_string(timestamp: int) -> str:
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).strftime("%a, %d %b %Y %H:%M:%S GMT")


# ═══════════════════════════════════════════════════════════════════════════
# ACCOUNTS
# ═══════════════════════════════════════════════════════════════════════════

class AccountBook:
    """Named accounts, kept in insertion order."""

    def __init__(self):
        self.addresses: List[str] = []
        self.names: Dict[str, str] = {}

    @classmethod
    def from_accounts(cls, accounts: Iterable[str],
                      names: Optional[Dict[int, str]] = None) -> "AccountBook":
        """Name node accounts "Account #<i>", with a role suffix where known."""
        names = DEFAULT_ACCOUNT_NAMES if names is None else names
        book = cls()
        for i, address in enumerate(accounts):
            label = f"Account #{i}"
            if i in names:
                label += f" - {names[i]}"
            book.add(address, label)
        return book

    def add(self, address: str, name: str):
        if address not in self.names:
            self.addresses.append(address)
        self.names[address] = name

    def name_of(self, address: str) -> str:
        return self.names.get(address, address)

    def __iter__(self):
        return iter(self.addresses)

    def __len__(self):
        return len(self.addresses)


# ═══════════════════════════════════════════════════════════════════════════
# CONSOLE
# ═══════════════════════════════════════════════════════════════════════════

class AuditConsole:
    """Prints RESULT: report lines about accounts, transactions and contracts."""

    SEPARATOR = ("-- ------------------------------------------ --------------------------- "
                 "------------------------------ ---------------------------")

    def __init__(self, chain, book: AccountBook,
                 token_address: Optional[str] = None,
                 sale_address: Optional[str] = None,
                 base_block: int = 0,
                 eth_price_usd: Decimal = ETH_PRICE_USD,
                 stream=None):
        self.chain = chain
        self.book = book
        self.token_address = token_address
        self.sale_address = sale_address
        self.base_block = base_block
        self.eth_price_usd = Decimal(str(eth_price_usd))
        self.stream = stream
        self.token_from_block = 0
        self.sale_from_block = 0

        self.token = chain.contract(token_address, TOKEN_ABI) if token_address else None
        self.sale = chain.contract(sale_address, SALE_ABI) if sale_address else None

    def result(self, text: str = ""):
        print(f"RESULT: {text}", file=self.stream or sys.stdout)

    def _token_decimals(self) -> int:
        if self.token is None:
            return 18
        return int(self.token.functions.decimals().call())

    # Balances ---------------------------------------------------------------

    def print_balances(self):
        """Ether change since base_block and token balance of every account."""
        decimals = self._token_decimals()
        total = 0

        self.result(" # Account                                             EtherBalanceChange"
                    "                          Token Name")
        self.result(self.SEPARATOR)
        for i, address in enumerate(self.book):
            base = self.chain.get_balance(address, self.base_block)
            change = self.chain.get_balance(address) - base
            tokens = 0 if self.token is None else \
                int(self.token.functions.balanceOf(self.chain.checksum(address)).call())
            total += tokens
            self.result(f"{pad2(i)} {address} {pad(change)} {pad_token(tokens, decimals)} "
                        f"{self.book.name_of(address)}")
        self.result(self.SEPARATOR)
        self.result(" " * 74 + f"{pad_token(total, decimals)} Total Token Balances")
        self.result(self.SEPARATOR)
        self.result()
        return total

    def assert_ether_balance(self, account: str, expected_eth) -> bool:
        balance = from_wei(self.chain.get_balance(account))
        expected = Decimal(str(expected_eth))
        if balance == expected:
            self.result(f"OK {account} has expected balance {fmt(expected)}")
            return True
        self.result(f"FAILURE {account} has balance {fmt(balance)} <> expected {fmt(expected)}")
        return False

    # Transactions -----------------------------------------------------------

    def print_tx_data(self, name: str, tx_hash: str):
        status = self.chain.tx_status(tx_hash)
        tx = self.chain.get_transaction(tx_hash)
        block = self.chain.get_block(status.block_number)

        cost_eth = from_wei(status.gas_cost)
        cost_usd = cost_eth * self.eth_price_usd
        self.result(
            f"{name} status={status.status} {'Success' if status.succeeded else 'Failure'} "
            f"gas={status.gas} gasUsed={status.gas_used} costETH={fmt(cost_eth)} costUSD={fmt(cost_usd)} "
            f"@ ETH/USD={self.eth_price_usd} gasPrice={fmt(from_wei(status.gas_price, 9))} gwei "
            f"block={status.block_number} txIx={tx.get('transactionIndex')} txId={status.tx_hash} "
            f"@ {block['timestamp']} {utc_string(block['timestamp'])}")
        return status

    def _check(self, passed: bool, msg: str) -> int:
        self.result(f"{'PASS' if passed else 'FAIL'} {msg}")
        return 1 if passed else 0

    def fail_if_tx_status_error(self, tx_hash: str, msg: str) -> int:
        """PASS when the transaction succeeded."""
        return self._check(self.chain.tx_status(tx_hash).succeeded, msg)

    def pass_if_tx_status_error(self, tx_hash: str, msg: str) -> int:
        """PASS when the transaction failed (expected rejection)."""
        return self._check(not self.chain.tx_status(tx_hash).succeeded, msg)

    def fail_if_gas_equals_gas_used(self, tx_hash: str, msg: str) -> int:
        return self._check(not self.chain.tx_status(tx_hash).used_all_gas, msg)

    def pass_if_gas_equals_gas_used(self, tx_hash: str, msg: str) -> int:
        return self._check(self.chain.tx_status(tx_hash).used_all_gas, msg)

    # Contracts --------------------------------------------------------------

    def print_events(self, contract, names: Iterable[str], from_block: int, to_block: int) -> int:
        """Print each named event in the block range; returns the number printed."""
        count = 0
        for name in names:
            for i, entry in enumerate(self.chain.get_events(contract, name, from_block, to_block)):
                args = json.dumps(entry["args"], sort_keys=True, default=str)
                self.result(f"{name} {i} #{entry['block_number']} {args}")
                count += 1
        return count

    def print_token_details(self):
        self.result(f"tokenContractAddress={self.token_address}")
        if self.token is None:
            return

        fn = self.token.functions
        decimals = int(fn.decimals().call())
        self.result(f"token.owner={fn.owner().call()}")
        self.result(f"token.symbol={fn.symbol().call()}")
        self.result(f"token.name={fn.name().call()}")
        self.result(f"token.decimals={decimals}")
        self.result(f"token.totalSupply={fmt(from_wei(fn.totalSupply().call(), decimals))}")
        self.result(f"token.mintingFinished={fn.mintingFinished().call()}")

        latest = self.chain.block_number()
        self.print_events(self.token, TOKEN_EVENTS, self.token_from_block, latest)
        self.token_from_block = latest + 1

    def print_sale_details(self, participants: Optional[Iterable[str]] = None):
        """Sale contract state, per-participant balances, then new events."""
        self.result(f"crowdsaleContractAddress={self.sale_address}")
        if self.sale is None:
            return

        fn = self.sale.functions
        self.result(f"crowdsale.owner={fn.owner().call()}")
        self.result(f"crowdsale.vitToken={fn.vitToken().call()}")
        self.result(f"crowdsale.fundingRecipient={fn.fundingRecipient().call()}")
        for view in ("MAX_TOKENS_SOLD", "vitPerWei", "tokensSold", "totalClaimableTokens"):
            value = getattr(fn, view)().call()
            self.result(f"crowdsale.{view}={value} {fmt(from_wei(value))}")
        self.result(f"crowdsale.RESTRICTED_PERIOD_DURATION={fn.RESTRICTED_PERIOD_DURATION().call()}")
        for view in ("startTime", "endTime", "refundEndTime"):
            value = getattr(fn, view)().call()
            self.result(f"crowdsale.{view}={value} {utc_string(value)}")
        self.result(f"crowdsale.finalizedRefund={fn.finalizedRefund().call()}")

        if participants is None:
            participants = self.book.addresses[3:8]
        for view in SALE_PARTICIPANT_VIEWS:
            for address in participants:
                value = getattr(fn, view)(self.chain.checksum(address)).call()
                self.result(f"crowdsale.{view}('{address}')={value} {fmt(from_wei(value))}")

        latest = self.chain.block_number()
        self.print_events(self.sale, SALE_EVENTS, self.sale_from_block, latest)
        self.sale_from_block = latest + 1

    def print_ledger_summary(self, ledger, now: int) -> dict:
        """JSONSUMMARY: lines describing an off-chain ContributionLedger."""
        summary = ledger.sale_info(now)
        summary["participants"] = {
            address: ledger.participant_info(address) for address in ledger.participants
        }
        out = self.stream or sys.stdout
        for line in json.dumps(summary, indent=2, sort_keys=True).splitlines():
            print(f"JSONSUMMARY: {line}", file=out)
        return summary


def main(argv=None):
    from .chain import ChainClient
    from .config import config_from_env

    config = config_from_env()

    parser = argparse.ArgumentParser(description="Audit VIT sale contracts on a dev chain")
    parser.add_argument("--rpc", default=config.rpc_url, help="Ethereum node RPC URL")
    parser.add_argument("--sale", default=config.sale_address, help="Sale contract address")
    parser.add_argument("--token", default=config.token_address, help="Token contract address")
    parser.add_argument("--base-block", type=int, default=0, help="Block for balance changes")
    parser.add_argument("--eth-price", default=str(ETH_PRICE_USD), help="ETH/USD for gas costs")
    parser.add_argument("--tx", action="append", default=[], help="Transaction hash to report")
    parser.add_argument("--log-level", default=config.log_level)
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO),
                        format='%(asctime)s [%(levelname)s] %(message)s')

    chain = ChainClient(args.rpc)
    if not chain.is_connected():
        log.error(f"Cannot connect to {args.rpc}")
        return 1

    book = AccountBook.from_accounts(chain.accounts())
    console = AuditConsole(chain, book,
                           token_address=args.token or None,
                           sale_address=args.sale or None,
                           base_block=args.base_block,
                           eth_price_usd=Decimal(args.eth_price))

    for i, tx_hash in enumerate(args.tx):
        console.print_tx_data(f"Tx #{i}", tx_hash)
    console.print_balances()
    console.print_token_details()
    console.print_sale_details()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
