from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable

from solders.pubkey import Pubkey

from lp_watch.errors import MetadataError
from lp_watch.models import TokenMetadata

Loader = Callable[[Pubkey], TokenMetadata]


@dataclass
class _Entry:
    expires_at: float
    value: TokenMetadata | None = None
    error: MetadataError | None = None


@dataclass
class _Flight:
    done: threading.Event = field(default_factory=threading.Event)
    value: TokenMetadata | None = None
    error: Exception | None = None


class MetadataCache:
    """
    Bounded LRU of mint -> metadata (or the lookup error), shared by threads.

    Only one fetch per mint is in flight at a time; concurrent callers for the
    same mint wait for it and share its outcome.
    """

    def __init__(
        self,
        ttl_sec: float,
        negative_ttl_sec: float = 30.0,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_sec = ttl_sec
        self.negative_ttl_sec = negative_ttl_sec
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[Pubkey, _Entry] = OrderedDict()
        self._flights: dict[Pubkey, _Flight] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_or_load(self, mint: Pubkey, loader: Loader) -> TokenMetadata:
        with self._lock:
            entry = self._entries.get(mint)
            if entry is not None and entry.expires_at > self._clock():
                self._entries.move_to_end(mint)
                if entry.error is not None:
                    raise entry.error
                return entry.value
            flight = self._flights.get(mint)
            leader = flight is None
            if leader:
                flight = self._flights[mint] = _Flight()

        if not leader:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.value

        try:
            flight.value = loader(mint)
        except MetadataError as e:
            flight.error = e
            self._store(mint, _Entry(expires_at=self._clock() + self.negative_ttl_sec, error=e))
            raise
        except Exception as e:
            flight.error = e
            raise
        else:
            self._store(mint, _Entry(expires_at=self._clock() + self.ttl_sec, value=flight.value))
            return flight.value
        finally:
            with self._lock:
                self._flights.pop(mint, None)
            flight.done.set()

    def _store(self, mint: Pubkey, entry: _Entry) -> None:
        if entry.error is not None and self.negative_ttl_sec <= 0:
            return
        with self._lock:
            self._entries[mint] = entry
            self._entries.move_to_end(mint)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
