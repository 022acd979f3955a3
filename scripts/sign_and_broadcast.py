#!/usr/bin/env python3
"""Sign an unsigned Stacks transaction with a Privy wallet and broadcast it.

The raw signature Privy returns has no recovery byte, so every recovery
marker is tried in turn until the node accepts one.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

import requests

from privy_stacks_signer.config import load_privy_settings, resolve_stacks_api_url
from privy_stacks_signer.privy import PrivyAPIError, PrivyWalletClient, signature_from
from privy_stacks_signer.recovery import find_matching_marker
from privy_stacks_signer.resolver import resolve
from privy_stacks_signer.responses import build_broadcast_response
from privy_stacks_signer.signatures import SignatureFormatError, generate_candidates
from privy_stacks_signer.stacks import (
    STACKS_API_URLS,
    StacksNodeClient,
    StacksTransactionError,
    decode_transaction,
    presign_sighash,
    signature_factory,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Raw-sign an unsigned single-signature Stacks transaction through Privy and "
            "broadcast it, resolving the signature's recovery ID against the node."
        )
    )
    parser.add_argument("wallet_id", help="Privy wallet id that owns the transaction's origin key.")
    parser.add_argument("transaction", help="Serialized unsigned transaction as hex (0x prefix optional).")
    parser.add_argument(
        "--network",
        choices=sorted(STACKS_API_URLS),
        default="testnet",
        help="Stacks network used to pick the default API URL.",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Override the Stacks API URL (falls back to STACKS_API_URL, then the network default).",
    )
    parser.add_argument(
        "--public-key",
        default=None,
        help="Wallet public key; when given, report which recovery ID recovers it locally.",
    )
    parser.add_argument("--label", default="STX-TRANSFER", help="Label attached to log records.")
    parser.add_argument("--json", action="store_true", help="Emit the response body as JSON.")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging verbosity (DEBUG, INFO, WARNING)",
    )
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )


def main(
    argv: Sequence[str] | None = None,
    *,
    privy_client: Optional[PrivyWalletClient] = None,
    node_client: Optional[StacksNodeClient] = None,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        unsigned_tx = decode_transaction(args.transaction)
        sighash = presign_sighash(unsigned_tx)
        construct = signature_factory(unsigned_tx)
    except StacksTransactionError as exc:
        parser.error(str(exc))
        return 2

    if privy_client is None:
        privy_client = PrivyWalletClient(load_privy_settings())
    if node_client is None:
        node_client = StacksNodeClient(args.api_url or resolve_stacks_api_url(args.network))

    payload = f"0x{sighash}"
    try:
        sign_response = privy_client.raw_sign(args.wallet_id, payload)
        signature = signature_from(sign_response)
        candidates = generate_candidates(signature)
    except (PrivyAPIError, SignatureFormatError, requests.RequestException) as exc:
        logging.error("Privy raw_sign failed for wallet %s: %s", args.wallet_id, exc)
        return 1

    if args.public_key:
        try:
            marker = find_matching_marker(candidates, sighash, args.public_key)
        except ValueError as exc:
            logging.warning("Skipping local recovery check: %s", exc)
        else:
            logging.info("Locally recovered recovery ID: %s", "none" if marker is None else f"{marker:02x}")

    outcome = resolve(signature, construct, node_client.broadcast, args.label)
    status, body = build_broadcast_response(
        outcome,
        walletId=args.wallet_id,
        hash=payload,
        signature=signature,
        network=args.network,
    )

    if args.json:
        json.dump(body, sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        print(body["note"])
        if body.get("txid"):
            print(f"txid: {body['txid']}")
    return 0 if status < 400 else 1


if __name__ == "__main__":
    sys.exit(main())
