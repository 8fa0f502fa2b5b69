"""
notamperdata command line

Usage:
    # Anchoring address for the configured network
    notamperdata address

    # Was this hash anchored?
    notamperdata verify a1b2c3...

    # Funding units held by the agent
    notamperdata holdings

Environment Variables Required:
    BLOCKFROST_PROJECT_ID   Your Blockfrost project ID
    CARDANO_NETWORK         Preview, Preprod, Mainnet (defaults to Preview)
    ANCHOR_AGENT_ADDRESS    Agent address (holdings only)

Anchoring needs the agent's signing keys and is only available through
AnchorService in code.
"""

import argparse
import logging
import sys

from .address import AuthorizationScript, derive_address
from .config import AnchorConfig
from .errors import AnchorError
from .funding_pool import FundingPool
from .ledger_client import BlockfrostClient, LedgerError
from .verifier import HashVerifier

log = logging.getLogger("notamperdata")


def cmd_address(config: AnchorConfig, args) -> int:
    script = AuthorizationScript.from_blueprint(args.blueprint or config.blueprint_path,
                                                config.validator_title)
    print(derive_address(script, config.network))
    return 0


def cmd_verify(config: AnchorConfig, args) -> int:
    client = BlockfrostClient(config.api_url, config.blockfrost_project_id)
    result = HashVerifier(client).find_by_hash(args.hash)
    print(result.to_json())
    return 0 if result.matched else 1


def cmd_holdings(config: AnchorConfig, args) -> int:
    client = BlockfrostClient(config.api_url, config.blockfrost_project_id)
    pool = FundingPool(client, config.require_agent_address())
    pool.refresh_from_ledger()
    units = pool.snapshot()
    for unit in units:
        print(f"{unit.identifier}  {unit.value / 1_000_000:>14.6f} ADA")
    print(f"{len(units)} unit(s), {pool.total_available() / 1_000_000:.6f} ADA available")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="notamperdata",
                                     description="Anchor and verify hashes on Cardano")
    parser.add_argument("--env-file", help="Load settings from this .env file")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_address = sub.add_parser("address", help="Print the anchoring address")
    p_address.add_argument("--blueprint", help="Path to plutus.json")
    p_address.set_defaults(func=cmd_address)

    p_verify = sub.add_parser("verify", help="Look up an anchored hash")
    p_verify.add_argument("hash", help="64-char hex digest")
    p_verify.set_defaults(func=cmd_verify)

    p_holdings = sub.add_parser("holdings", help="List the agent's funding units")
    p_holdings.set_defaults(func=cmd_holdings)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    try:
        config = AnchorConfig.from_env(dotenv_path=args.env_file)
        return args.func(config, args)
    except (AnchorError, LedgerError) as e:
        log.error(f"{args.command} failed: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
