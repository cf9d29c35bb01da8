from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import yaml
from loguru import logger
from pydantic import BaseModel
from solders.pubkey import Pubkey


class WatchlistFile(BaseModel):
    lp_wallets: list[str]


def _read_document(path: Path):
    text = path.read_text()
    if path.suffix.lower() in (".yaml", ".yml"):
        return yaml.safe_load(text)
    return json.loads(text)


@dataclass(frozen=True)
class Watchlist:
    """Read-only set of LP wallet addresses, loaded once at startup."""

    addresses: frozenset[Pubkey] = frozenset()

    @classmethod
    def from_strings(cls, items: Iterable[str]) -> Watchlist:
        # Raises ValueError on the first entry that is not a base58 pubkey
        return cls(addresses=frozenset(Pubkey.from_string(s.strip()) for s in items))

    @classmethod
    def load(cls, source: str | Path) -> Watchlist:
        """Load the watchlist file; any failure degrades to an empty watchlist."""
        path = Path(source)
        try:
            doc = WatchlistFile.model_validate(_read_document(path))
        except OSError as e:
            logger.error("Error opening config file {}: {}", path, e)
            return cls()
        except (ValueError, yaml.YAMLError) as e:
            logger.error("Error parsing config file {}: {}", path, e)
            return cls()
        try:
            watchlist = cls.from_strings(doc.lp_wallets)
        except ValueError as e:
            logger.error("Invalid LP wallet address in {}: {}", path, e)
            return cls()
        logger.info("Loaded {} LP wallets from config", len(watchlist))
        return watchlist

    def __len__(self) -> int:
        return len(self.addresses)

    def __contains__(self, address: object) -> bool:
        return address in self.addresses

    def contains(self, address: Pubkey) -> bool:
        return address in self.addresses

    def any_in(self, addresses: Iterable[Pubkey]) -> bool:
        return any(a in self.addresses for a in addresses)

    def matches(self, addresses: Iterable[Pubkey]) -> list[Pubkey]:
        return [a for a in addresses if a in self.addresses]
