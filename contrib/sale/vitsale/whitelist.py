"""
VIT Token Sale SDK - Presale Whitelist

Builds the restricted period whitelist from presale registrations: every
address that sent ether to the registration address is placed in a tier
by its total deposit, and each tier maps to a participation cap.

Output files (one per tier):
    tier1_<start>-<end>.csv    address,cap
"""

import argparse
import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .sale_types import ETH

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tier:
    """Registration tier: minimum deposit -> restricted period cap (wei)."""
    number: int
    min_deposit: int
    cap: int


DEFAULT_TIERS = (
    Tier(number=1, min_deposit=ETH // 10, cap=10 * ETH),
    Tier(number=2, min_deposit=ETH // 20, cap=5 * ETH),
    Tier(number=3, min_deposit=ETH // 1000, cap=1 * ETH),
)


def scan_registrations(chain, address: str, start_block: int, end_block: int) -> Dict[str, int]:
    """
    Sum deposits per sender to the registration address.

    Args:
        chain: ChainClient (anything with iter_transactions())
        address: Registration address (case-insensitive)
        start_block: First block (inclusive)
        end_block: Last block (inclusive)

    Returns:
        {sender: total wei}
    """
    target = address.lower()
    log.info(f"Searching for transactions to {address} within blocks {start_block} and {end_block}")

    registrants: Dict[str, int] = {}
    for tx in chain.iter_transactions(start_block, end_block):
        to = tx["to"]
        if to is None or to.lower() != target:
            continue

        sender = tx["from"]
        value = int(tx["value"])
        log.debug(f"Found {sender} ({value / ETH} ETH)")
        registrants[sender] = registrants.get(sender, 0) + value

    log.info(f"Found {len(registrants)} registrant(s)")
    return registrants


def tier_for(deposit: int, tiers: Iterable[Tier] = DEFAULT_TIERS) -> Optional[Tier]:
    """Highest tier whose minimum the deposit meets, or None."""
    for tier in sorted(tiers, key=lambda t: t.min_deposit, reverse=True):
        if deposit >= tier.min_deposit:
            return tier
    return None


def bucket_registrants(registrants: Dict[str, int],
                       tiers: Iterable[Tier] = DEFAULT_TIERS) -> Dict[int, List[str]]:
    """Group registrants by tier number. Deposits below every tier are dropped."""
    tiers = list(tiers)
    buckets: Dict[int, List[str]] = {tier.number: [] for tier in tiers}
    for sender, deposit in registrants.items():
        tier = tier_for(deposit, tiers)
        if tier is not None:
            buckets[tier.number].append(sender)
    return buckets


def tier_file_name(tier_number: int, start_block: int, end_block: int) -> str:
    return f"tier{tier_number}_{start_block}-{end_block}.csv"


def write_tier_files(buckets: Dict[int, List[str]], output_dir: str,
                     start_block: int, end_block: int,
                     tiers: Iterable[Tier] = DEFAULT_TIERS) -> List[str]:
    """
    Write one address,cap CSV per tier.

    Returns:
        Paths written (empty tiers still get an empty file)
    """
    caps = {tier.number: tier.cap for tier in tiers}
    os.makedirs(output_dir, exist_ok=True)

    paths = []
    for number in sorted(buckets):
        path = os.path.join(output_dir, tier_file_name(number, start_block, end_block))
        with open(path, "w") as f:
            for sender in buckets[number]:
                f.write(f"{sender},{caps[number]}\n")
        log.info(f"Tier {number}: {len(buckets[number])} address(es) -> {path}")
        paths.append(path)
    return paths


def read_tier_file(path: str) -> Dict[str, int]:
    """Parse an address,cap CSV back into {address: cap}."""
    caps = {}
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            address, cap = line.split(",", 1)
            caps[address] = int(cap)
    return caps


def apply_tiers(ledger, owner: str, buckets: Dict[int, List[str]],
                tiers: Iterable[Tier] = DEFAULT_TIERS, now: int = 0) -> int:
    """
    Set ledger participation caps tier by tier.

    Returns:
        Number of participants updated
    """
    caps = {tier.number: tier.cap for tier in tiers}
    updated = 0
    for number in sorted(buckets):
        if buckets[number]:
            updated += ledger.set_restricted_participation_cap(owner, buckets[number], caps[number], now=now)
    return updated


def main(argv=None):
    from .chain import ChainClient
    from .config import config_from_env

    config = config_from_env()

    parser = argparse.ArgumentParser(description="Build the VIT presale whitelist tiers")
    parser.add_argument("--rpc", default=config.rpc_url, help="Ethereum node RPC URL")
    parser.add_argument("--address", default=config.registration_address,
                        help="Presale registration address")
    parser.add_argument("--start-block", type=int, default=1)
    parser.add_argument("--end-block", type=int, default=None, help="Default: latest block")
    parser.add_argument("--output-dir", default=".", help="Directory for tier CSV files")
    parser.add_argument("--log-level", default=config.log_level)
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO),
                        format='%(asctime)s [%(levelname)s] %(message)s')

    chain = ChainClient(args.rpc)
    end_block = args.end_block if args.end_block is not None else chain.block_number()

    registrants = scan_registrations(chain, args.address, args.start_block, end_block)
    buckets = bucket_registrants(registrants)
    write_tier_files(buckets, args.output_dir, args.start_block, end_block)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
