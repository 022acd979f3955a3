#!/usr/bin/env python3
"""Look up or create Privy server wallets."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

import requests

from privy_stacks_signer.config import load_privy_settings
from privy_stacks_signer.privy import PrivyAPIError, PrivyWalletClient


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect or create Privy server wallets.")
    commands = parser.add_subparsers(dest="command", required=True)

    get_cmd = commands.add_parser("get", help="Fetch a wallet by id.")
    get_cmd.add_argument("wallet_id", help="Privy wallet id.")

    create_cmd = commands.add_parser("create", help="Create a wallet owned by a Privy user.")
    create_cmd.add_argument("--user-id", required=True, help="Privy user id that will own the wallet.")
    create_cmd.add_argument(
        "--chain-type",
        default="bitcoin-segwit",
        help="Privy chain type; bitcoin-segwit wallets expose secp256k1 keys usable on Stacks.",
    )
    return parser


def main(argv: Sequence[str] | None = None, *, client: Optional[PrivyWalletClient] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if client is None:
        client = PrivyWalletClient(load_privy_settings())

    try:
        if args.command == "get":
            wallet = client.get_wallet(args.wallet_id)
        else:
            wallet = client.create_wallet(args.user_id, chain_type=args.chain_type)
    except (PrivyAPIError, requests.RequestException) as exc:
        logging.error("Privy %s failed: %s", args.command, exc)
        return 1

    json.dump({"success": True, "wallet": wallet}, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
