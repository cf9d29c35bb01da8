from __future__ import annotations

import argparse
import sys

from loguru import logger
from solders.pubkey import Pubkey

from lp_watch.config import AppSettings
from lp_watch.errors import MetadataError
from lp_watch.metadata.resolver import MetadataResolver, derive_metadata_address


def main() -> int:
    p = argparse.ArgumentParser(description="Resolve the Metaplex name/symbol of a token mint")
    p.add_argument("mint", help="Mint address (base58)")
    p.add_argument("--rpc", help="RPC endpoint (default: SOLANA_RPC from env/.env)")
    p.add_argument("--pda-only", action="store_true", help="Only print the derived metadata address")
    args = p.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="WARNING")

    try:
        mint = Pubkey.from_string(args.mint)
    except ValueError:
        print(f"Invalid mint address: {args.mint}", file=sys.stderr)
        return 2

    if args.pda_only:
        print(derive_metadata_address(mint))
        return 0

    settings = AppSettings(solana_rpc=args.rpc) if args.rpc else AppSettings()
    resolver = MetadataResolver.create(settings)
    try:
        meta = resolver.resolve(mint)
    except MetadataError as e:
        print(f"Error fetching token metadata: {e}", file=sys.stderr)
        return 1
    print(f"Token Name:   {meta.name}")
    print(f"Token Symbol: {meta.symbol}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
