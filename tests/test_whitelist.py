"""
Presale Whitelist Tests
"""

from unittest.mock import Mock

import pytest

from vitsale import ETH
from vitsale.whitelist import (
    DEFAULT_TIERS,
    apply_tiers,
    bucket_registrants,
    read_tier_file,
    scan_registrations,
    tier_for,
    write_tier_files,
)

from conftest import OWNER, NOW

REGISTRATION = "0x7F0d52c707CAde2666bca774140440EaAe121160"


@pytest.fixture
def chain():
    txs = [
        {"from": "0xa1", "to": REGISTRATION.lower(), "value": ETH // 20},
        {"from": "0xa1", "to": REGISTRATION.upper(), "value": ETH // 20},
        {"from": "0xb2", "to": REGISTRATION, "value": ETH // 20},
        {"from": "0xc3", "to": REGISTRATION, "value": ETH // 1000},
        {"from": "0xd4", "to": REGISTRATION, "value": ETH // 1000 - 1},
        {"from": "0xe5", "to": "0x1111111111111111111111111111111111111111", "value": ETH},
        {"from": "0xf6", "to": None, "value": ETH},
    ]
    chain = Mock()
    chain.iter_transactions.return_value = iter(txs)
    return chain


class TestScan:

    def test_sums_deposits_per_sender(self, chain):
        registrants = scan_registrations(chain, REGISTRATION, 10, 20)

        chain.iter_transactions.assert_called_once_with(10, 20)
        assert registrants == {
            "0xa1": ETH // 10,
            "0xb2": ETH // 20,
            "0xc3": ETH // 1000,
            "0xd4": ETH // 1000 - 1,
        }


class TestTiers:

    @pytest.mark.parametrize("deposit,expected", [
        (ETH, 1),
        (ETH // 10, 1),
        (ETH // 10 - 1, 2),
        (ETH // 20, 2),
        (ETH // 20 - 1, 3),
        (ETH // 1000, 3),
        (ETH // 1000 - 1, None),
        (0, None),
    ])
    def test_tier_boundaries(self, deposit, expected):
        tier = tier_for(deposit)
        assert (tier.number if tier else None) == expected

    def test_tier_caps(self):
        assert [t.cap for t in DEFAULT_TIERS] == [10 * ETH, 5 * ETH, 1 * ETH]

    def test_bucket(self, chain):
        buckets = bucket_registrants(scan_registrations(chain, REGISTRATION, 1, 2))
        assert buckets == {1: ["0xa1"], 2: ["0xb2"], 3: ["0xc3"]}


class TestTierFiles:

    def test_write_files(self, tmp_path):
        buckets = {1: ["0xa1"], 2: [], 3: ["0xc3", "0xd4"]}

        paths = write_tier_files(buckets, str(tmp_path), 4894530, 4904581)

        assert [p.rsplit("/", 1)[-1] for p in paths] == [
            "tier1_4894530-4904581.csv",
            "tier2_4894530-4904581.csv",
            "tier3_4894530-4904581.csv",
        ]
        assert (tmp_path / "tier1_4894530-4904581.csv").read_text() == f"0xa1,{10 * ETH}\n"
        assert (tmp_path / "tier2_4894530-4904581.csv").read_text() == ""
        assert read_tier_file(paths[2]) == {"0xc3": ETH, "0xd4": ETH}

    def test_apply_tiers(self, ledger):
        updated = apply_tiers(ledger, OWNER, {1: ["0xa1"], 2: [], 3: ["0xc3"]}, now=NOW)

        assert updated == 2
        assert ledger.participant("0xa1").participation_cap == 10 * ETH
        assert ledger.participant("0xc3").participation_cap == 1 * ETH
