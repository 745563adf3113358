"""
VIT Token Sale SDK - Configuration

Settings come from (lowest to highest priority): defaults, a .env file,
VITSALE_* environment variables, then CLI flags applied by each tool.
"""

import json
import logging
import os
from dataclasses import dataclass, fields
from typing import Dict, Optional

from .sale_types import SaleConfig

log = logging.getLogger(__name__)

ENV_PREFIX = "VITSALE_"


@dataclass
class Config:
    # Ethereum node (mainnet node or local dev chain)
    rpc_url: str = "http://localhost:8545"

    # Deployed contracts
    sale_address: str = ""
    token_address: str = ""
    registration_address: str = "0x7F0d52c707CAde2666bca774140440EaAe121160"

    # Ledger server
    sale_config_path: str = "sale.json"
    storage_path: str = "ledger.json"
    http_host: str = "0.0.0.0"
    http_port: int = 8090
    owner: str = ""

    # Logging
    log_level: str = "INFO"


def load_env_file(path: str) -> int:
    """
    Load KEY=VALUE lines into os.environ without overriding existing values.

    Args:
        path: .env file (chmod 600 recommended!)

    Returns:
        Number of keys read (0 when the file is missing)
    """
    if not os.path.exists(path):
        return 0

    log.info(f"Loading config from {path}")
    count = 0
    with open(path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                os.environ.setdefault(key.strip(), value.strip().strip('"').strip("'"))
                count += 1
    return count


def config_from_env(env: Optional[Dict[str, str]] = None,
                    env_file: Optional[str] = ".env") -> Config:
    """Build a Config from VITSALE_* variables (e.g. VITSALE_RPC_URL)."""
    if env is None:
        if env_file:
            load_env_file(env_file)
        env = os.environ

    config = Config()
    for f in fields(Config):
        raw = env.get(ENV_PREFIX + f.name.upper())
        if raw is None or raw == "":
            continue
        if f.type in (int, "int"):
            try:
                value = int(raw)
            except ValueError:
                raise ValueError(f"{ENV_PREFIX}{f.name.upper()} must be an integer, got {raw!r}")
        else:
            value = raw
        setattr(config, f.name, value)
    return config


def load_sale_config(path: str) -> SaleConfig:
    """Read sale parameters from a JSON file."""
    with open(path) as f:
        return SaleConfig.from_dict(json.load(f))
