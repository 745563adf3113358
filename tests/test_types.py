"""
Sale Types and Balance Sink Tests
"""

import json

import pytest

from vitsale import (
    EtherVault,
    MintableToken,
    ParticipantRecord,
    SaleConfig,
    TokensClaimed,
    ETH,
    MAX_TOKENS_SOLD,
    RESTRICTED_PERIOD_DURATION,
    InsufficientBalance,
    InvalidAmount,
    MintingFinished,
    TransfersLocked,
    CapExceeded,
    InvalidContribution,
    SaleError,
)
from vitsale.sale_types import event_from_dict, is_null_address


class TestAddresses:

    @pytest.mark.parametrize("address", [None, "", "0x", "0x0", "0x" + "0" * 40])
    def test_null(self, address):
        assert is_null_address(address)

    @pytest.mark.parametrize("address", ["0xabc", "sale", "0x" + "0" * 39 + "1"])
    def test_not_null(self, address):
        assert not is_null_address(address)


class TestSaleConfig:

    def test_defaults(self):
        config = SaleConfig(funding_recipient="0xfund", start_time=10, end_time=20,
                            exchange_rate=3000, refund_end_time=30)
        assert config.max_tokens_sold == MAX_TOKENS_SOLD == 2 * 10 ** 9 * 10 ** 18
        assert config.restricted_period_duration == RESTRICTED_PERIOD_DURATION == 86400
        assert config.restricted_end_time == 10 + 86400

    def test_from_dict_json(self):
        raw = json.loads(json.dumps({
            "funding_recipient": "0xfund",
            "start_time": 100,
            "end_time": 200000,
            "exchange_rate": "3000",
            "refund_period_duration": 3600,
            "strategic_partner_pools": ["0xp1", "0xp2"],
        }))
        config = SaleConfig.from_dict(raw)

        assert config.exchange_rate == 3000
        assert config.refund_end_time is None
        assert config.strategic_partner_pools == ("0xp1", "0xp2")
        assert config.max_tokens == config.max_tokens_sold + 2 * config.strategic_partner_pool_allocation
        assert SaleConfig.from_dict(config.to_dict()) == config


class TestParticipantRecord:

    def test_remaining_cap(self):
        record = ParticipantRecord(address="0xabc", participation_cap=10, participation_history=4)
        assert record.remaining_cap == 6
        assert ParticipantRecord.from_dict(record.to_dict()) == record


class TestEvents:

    def test_to_dict_and_back(self):
        event = TokensClaimed(participant="0xabc", amount=5, timestamp=42)
        data = event.to_dict()

        assert data["event"] == "TokensClaimed"
        assert event_from_dict(data) == event
        assert json.loads(event.to_json())["amount"] == 5

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            event_from_dict({"event": "Nope"})


class TestErrors:

    def test_codes_and_hierarchy(self):
        error = CapExceeded()
        assert isinstance(error, InvalidContribution)
        assert isinstance(error, SaleError)
        assert error.code == "cap_exceeded"
        assert error.message == "Restricted period participation cap reached."

    def test_custom_message(self):
        assert str(InvalidAmount("bad")) == "bad"


class TestMintableToken:

    def test_mint_and_supply(self):
        token = MintableToken(owner="sale")
        assert token.mint("sale", 100) == 100
        token.mint("0xabc", 5)
        assert token.total_supply == 105

    def test_mint_negative(self):
        with pytest.raises(InvalidAmount):
            MintableToken(owner="sale").mint("sale", -1)

    def test_finish_minting_once(self):
        token = MintableToken(owner="sale")
        token.finish_minting()
        with pytest.raises(MintingFinished):
            token.finish_minting()
        with pytest.raises(MintingFinished):
            token.mint("sale", 1)

    def test_transfers_locked_until_minting_finished(self):
        token = MintableToken(owner="sale")
        token.mint("sale", 100)
        token.transfer("sale", "0xabc", 40)

        with pytest.raises(TransfersLocked):
            token.transfer("0xabc", "0xdef", 1)

        token.finish_minting()
        token.transfer("0xabc", "0xdef", 10)
        assert token.balance_of("0xabc") == 30
        assert token.balance_of("0xdef") == 10

    def test_insufficient_balance(self):
        token = MintableToken(owner="sale")
        token.mint("sale", 1)
        with pytest.raises(InsufficientBalance):
            token.transfer("sale", "0xabc", 2)

    def test_roundtrip(self):
        token = MintableToken(owner="sale", symbol="FOO", decimals=6)
        token.mint("0xabc", 7)
        token.finish_minting()
        restored = MintableToken.from_dict(token.to_dict())
        assert restored.to_dict() == token.to_dict()


class TestEtherVault:

    def test_receive_and_send(self):
        vault = EtherVault()
        vault.receive("sale", 2 * ETH)
        vault.send("sale", "0xabc", ETH)

        assert vault.balance_of("sale") == ETH
        assert vault.balance_of("0xabc") == ETH

    def test_send_too_much(self):
        vault = EtherVault({"sale": 1})
        with pytest.raises(InsufficientBalance):
            vault.send("sale", "0xabc", 2)

    def test_negative(self):
        with pytest.raises(InvalidAmount):
            EtherVault().receive("sale", -1)
