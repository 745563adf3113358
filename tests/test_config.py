"""
Configuration Tests
"""

import json
import os

import pytest

from vitsale.config import Config, config_from_env, load_env_file, load_sale_config


class TestConfigFromEnv:

    def test_defaults(self):
        config = config_from_env(env={})
        assert config == Config()
        assert config.rpc_url == "http://localhost:8545"

    def test_overrides(self):
        config = config_from_env(env={
            "VITSALE_RPC_URL": "http://node:8545",
            "VITSALE_HTTP_PORT": "9000",
            "VITSALE_OWNER": "0xowner",
            "VITSALE_LOG_LEVEL": "",
        })
        assert config.rpc_url == "http://node:8545"
        assert config.http_port == 9000
        assert config.owner == "0xowner"
        assert config.log_level == "INFO"

    def test_bad_integer(self):
        with pytest.raises(ValueError):
            config_from_env(env={"VITSALE_HTTP_PORT": "soon"})


class TestEnvFile:

    def test_load_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("VITSALE_SALE_ADDRESS", raising=False)
        monkeypatch.setenv("VITSALE_TOKEN_ADDRESS", "0xkept")
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# sale deployment\n"
            "VITSALE_SALE_ADDRESS='0xsale'\n"
            "VITSALE_TOKEN_ADDRESS=0xignored\n"
        )

        assert load_env_file(str(env_file)) == 2
        assert os.environ["VITSALE_SALE_ADDRESS"] == "0xsale"
        assert os.environ["VITSALE_TOKEN_ADDRESS"] == "0xkept"

        config = config_from_env(env_file=None)
        assert config.sale_address == "0xsale"
        monkeypatch.delenv("VITSALE_SALE_ADDRESS")

    def test_missing_env_file(self, tmp_path):
        assert load_env_file(str(tmp_path / "missing.env")) == 0


class TestSaleConfigFile:

    def test_load_sale_config(self, tmp_path):
        path = tmp_path / "sale.json"
        path.write_text(json.dumps({
            "funding_recipient": "0xfund",
            "start_time": 1000,
            "end_time": 1000 + 10 * 86400,
            "exchange_rate": 3000,
            "refund_end_time": 1000 + 40 * 86400,
        }))

        config = load_sale_config(str(path))
        assert config.exchange_rate == 3000
        assert config.refund_end_time == 1000 + 40 * 86400
