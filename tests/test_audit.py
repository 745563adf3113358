"""
Audit Console Tests
"""

import io
import json
from unittest.mock import MagicMock

import pytest

from vitsale import ETH
from vitsale.audit import AccountBook, AuditConsole, pad, pad2, pad_token, utc_string
from vitsale.chain import TxStatus

from conftest import OPEN_TIME

A0 = "0x" + "00" * 19 + "a0"
A1 = "0x" + "00" * 19 + "a1"


def lines(stream):
    return stream.getvalue().splitlines()


@pytest.fixture
def chain():
    chain = MagicMock()
    balances = {(A0, 0): 10 * ETH, (A0, "latest"): 12 * ETH,
                (A1, 0): 5 * ETH, (A1, "latest"): 4 * ETH}
    chain.get_balance.side_effect = lambda address, block="latest": balances[(address, block)]
    chain.tx_status.return_value = TxStatus(tx_hash="0xfeed", block_number=3, status=1,
                                            gas=100000, gas_used=50000, gas_price=10 ** 9)
    chain.get_transaction.return_value = {"transactionIndex": 2}
    chain.get_block.return_value = {"timestamp": 0}
    chain.block_number.return_value = 3
    return chain


@pytest.fixture
def book():
    return AccountBook.from_accounts([A0, A1])


class TestFormatting:

    def test_pad(self):
        assert pad(ETH) == "1.000000000000000000".rjust(27)
        assert len(pad(-ETH // 2)) == 27

    def test_pad_token(self):
        assert pad_token(15 * 10 ** 17, 18) == "1.500000000000000000".rjust(30)
        assert pad_token(1, 2) == "0.01".rjust(14)

    def test_pad2(self):
        assert pad2(3) == " 3"

    def test_utc_string(self):
        assert utc_string(0) == "Thu, 01 Jan 1970 00:00:00 GMT"


class TestAccountBook:

    def test_names(self, book):
        assert list(book) == [A0, A1]
        assert book.name_of(A0) == "Account #0 - Miner"
        assert book.name_of(A1) == "Account #1 - Contract Owner"
        assert book.name_of("0xother") == "0xother"

    def test_rename_keeps_order(self, book):
        book.add(A0, "Deployer")
        assert list(book) == [A0, A1]
        assert len(book) == 2
        assert book.name_of(A0) == "Deployer"


class TestAuditConsole:

    def test_print_balances(self, chain, book):
        token = MagicMock()
        token.functions.decimals.return_value.call.return_value = 18
        token.functions.balanceOf.return_value.call.return_value = 3 * ETH
        chain.contract.return_value = token
        out = io.StringIO()
        console = AuditConsole(chain, book, token_address=A1, stream=out)

        total = console.print_balances()

        assert total == 6 * ETH
        output = lines(out)
        assert all(line.startswith("RESULT:") for line in output)
        assert output[2].startswith(f"RESULT:  0 {A0} {pad(2 * ETH)} {pad_token(3 * ETH, 18)}")
        assert output[2].endswith("Account #0 - Miner")
        assert f"{pad(-1 * ETH)}" in output[3]
        assert output[5].endswith("Total Token Balances")

    def test_assert_ether_balance(self, chain, book):
        out = io.StringIO()
        console = AuditConsole(chain, book, stream=out)

        assert console.assert_ether_balance(A0, 12)
        assert not console.assert_ether_balance(A1, "4.5")
        assert lines(out) == [
            f"RESULT: OK {A0} has expected balance 12",
            f"RESULT: FAILURE {A1} has balance 4 <> expected 4.5",
        ]

    def test_status_checks(self, chain, book):
        out = io.StringIO()
        console = AuditConsole(chain, book, stream=out)

        assert console.fail_if_tx_status_error("0xfeed", "Contribute") == 1
        assert console.pass_if_tx_status_error("0xfeed", "Contribute too early") == 0
        assert console.fail_if_gas_equals_gas_used("0xfeed", "No throw") == 1
        assert console.pass_if_gas_equals_gas_used("0xfeed", "Throw") == 0
        assert lines(out) == [
            "RESULT: PASS Contribute",
            "RESULT: FAIL Contribute too early",
            "RESULT: PASS No throw",
            "RESULT: FAIL Throw",
        ]

    def test_print_tx_data(self, chain, book):
        out = io.StringIO()
        AuditConsole(chain, book, stream=out).print_tx_data("Contribute", "0xfeed")

        line = lines(out)[0]
        assert line.startswith("RESULT: Contribute status=1 Success gas=100000 gasUsed=50000")
        assert "costETH=0.00005 " in line
        assert "gasPrice=1 gwei" in line
        assert "txIx=2 txId=0xfeed" in line

    def test_print_events(self, chain, book):
        chain.get_events.return_value = [{"event": "Finalized", "block_number": 3, "tx_hash": "0x1", "args": {}}]
        out = io.StringIO()
        console = AuditConsole(chain, book, sale_address=A1, stream=out)

        assert console.print_events(console.sale, ["Finalized"], 0, 3) == 1
        assert lines(out) == ["RESULT: Finalized 0 #3 {}"]

    def test_print_sale_details_advances_from_block(self, chain, book):
        chain.get_events.return_value = []
        console = AuditConsole(chain, book, sale_address=A1, stream=io.StringIO())
        console.sale.functions.startTime.return_value.call.return_value = 0

        console.print_sale_details(participants=[A0])

        assert console.sale_from_block == 4

    def test_print_ledger_summary(self, chain, book, ledger):
        ledger.contribute(A0, 1 * ETH, OPEN_TIME)
        out = io.StringIO()

        summary = AuditConsole(chain, book, stream=out).print_ledger_summary(ledger, OPEN_TIME)

        output = lines(out)
        assert all(line.startswith("JSONSUMMARY: ") for line in output)
        parsed = json.loads("\n".join(line[len("JSONSUMMARY: "):] for line in output))
        assert parsed["tokens_sold"] == 1000 * ETH
        assert parsed["participants"][A0]["refundable_ether"] == ETH
        assert summary["phase"] == "open"
