"""
VIT Token Sale SDK Test Fixtures
"""

import dataclasses

import pytest

from vitsale import ContributionLedger, SaleConfig, DAY, HOUR


START = 1_700_000_000
NOW = START - HOUR
RESTRICTED_END = START + DAY
OPEN_TIME = START + 2 * DAY
END = START + 10 * DAY
REFUND_END = START + 40 * DAY

OWNER = "0x00000000000000000000000000000000000000a1"
FUND = "0x00000000000000000000000000000000000000f1"
ALICE = "0x000000000000000000000000000000000000a11c"
BOB = "0x0000000000000000000000000000000000000b0b"


@pytest.fixture
def sale_config() -> SaleConfig:
    """Rate 1000, one day restricted period, fixed refund end."""
    return SaleConfig(
        funding_recipient=FUND,
        start_time=START,
        end_time=END,
        exchange_rate=1000,
        refund_end_time=REFUND_END,
    )


@pytest.fixture
def make_ledger(sale_config):
    """Build a ledger from the default config with field overrides."""
    def factory(**overrides) -> ContributionLedger:
        config = dataclasses.replace(sale_config, **overrides)
        return ContributionLedger(config, owner=OWNER, now=NOW)
    return factory


@pytest.fixture
def ledger(make_ledger) -> ContributionLedger:
    return make_ledger()
