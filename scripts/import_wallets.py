from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import yaml
from solders.pubkey import Pubkey


def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in (".yaml", ".yml")


def load_config(path: Path) -> dict:
    if not path.exists():
        return {"lp_wallets": []}
    text = path.read_text()
    data = yaml.safe_load(text) if _is_yaml(path) else json.loads(text or "{}")
    return data or {"lp_wallets": []}


def save_config(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if _is_yaml(path):
        path.write_text(yaml.safe_dump(data, sort_keys=False))
    else:
        path.write_text(json.dumps(data, indent=2) + "\n")


def parse_addresses(payload: Any) -> list[str]:
    # Accept a list of strings, list of objects with 'address', or newline-separated strings
    if isinstance(payload, list):
        if all(isinstance(x, str) for x in payload):
            return [x.strip() for x in payload if x.strip()]
        if all(isinstance(x, dict) for x in payload):
            addrs: list[str] = []
            for row in payload:
                a = row.get("address") or row.get("wallet") or row.get("owner")
                if a:
                    addrs.append(a.strip())
            return addrs
    if isinstance(payload, dict) and isinstance(payload.get("lp_wallets"), list):
        return parse_addresses(payload["lp_wallets"])
    if isinstance(payload, str):
        return [line.strip() for line in payload.splitlines() if line.strip()]
    return []


def split_valid(addresses: list[str]) -> tuple[list[str], list[str]]:
    valid: list[str] = []
    invalid: list[str] = []
    for a in addresses:
        try:
            Pubkey.from_string(a)
        except ValueError:
            invalid.append(a)
        else:
            valid.append(a)
    return valid, invalid


def merge(existing: list[str], new: list[str]) -> list[str]:
    out = list(existing)
    for a in new:
        if a not in out:
            out.append(a)
    return out


def main() -> int:
    p = argparse.ArgumentParser(description="Import LP wallets into the watchlist config")
    p.add_argument("--input", "-i", help="Input file (JSON array or newline-separated addresses). If omitted, reads stdin.")
    p.add_argument("--config", default="config.json", help="Watchlist file (.json or .yaml)")
    p.add_argument("--replace", action="store_true", help="Replace the existing list instead of merging")
    args = p.parse_args()

    raw = Path(args.input).read_text() if args.input else sys.stdin.read()
    try:
        payload = json.loads(raw)
    except ValueError:
        payload = raw

    valid, invalid = split_valid(parse_addresses(payload))
    for a in invalid:
        print(f"Skipping invalid address: {a}", file=sys.stderr)
    if not valid:
        print("No addresses parsed from input", file=sys.stderr)
        return 1

    path = Path(args.config)
    data = load_config(path)
    current = [] if args.replace else list(data.get("lp_wallets") or [])
    data["lp_wallets"] = merge(current, valid)
    save_config(path, data)
    print(f"Imported {len(valid)} addresses into {path} ({len(data['lp_wallets'])} total)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
