from __future__ import annotations

import json
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterator

import base58
from loguru import logger
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment
from solders.pubkey import Pubkey
from solders.signature import Signature

from lp_watch.config import AppSettings
from lp_watch.dlmm.decoder import decode_instruction
from lp_watch.dlmm.instructions import DecodedInstruction
from lp_watch.errors import DecodeError
from lp_watch.models import TransactionContext
from lp_watch.processor import InstructionProcessor


def _result(resp: Any) -> Any:
    # solana-py returns typed solders responses; tests hand in plain dicts
    if isinstance(resp, dict):
        return resp.get("result")
    return json.loads(resp.to_json()).get("result")


@dataclass
class SeenSignatures:
    maxlen: int = 10_000
    _order: deque = field(default_factory=deque, init=False)
    _set: set = field(default_factory=set, init=False)

    def __contains__(self, sig: str) -> bool:
        return sig in self._set

    def add(self, sig: str) -> None:
        if sig in self._set:
            return
        self._order.append(sig)
        self._set.add(sig)
        while len(self._order) > self.maxlen:
            self._set.discard(self._order.popleft())


@dataclass
class SolanaWatcher:
    settings: AppSettings
    client: Client
    processor: InstructionProcessor
    program_id: Pubkey | None = None

    def __post_init__(self):
        if self.program_id is None:
            self.program_id = Pubkey.from_string(self.settings.dlmm_program_id)

    @classmethod
    def create(cls, settings: AppSettings, processor: InstructionProcessor) -> SolanaWatcher:
        client = Client(settings.solana_rpc, commitment=Commitment(settings.commitment))
        return cls(settings=settings, client=client, processor=processor)

    def run(self):
        logger.info("Starting Meteora DLMM watcher: {} ({})", self.program_id, self.settings.solana_rpc)
        seen = SeenSignatures()
        while True:
            try:
                handled = self.poll_once(seen)
                if handled:
                    logger.debug("Processed {} new transaction(s)", handled)
                time.sleep(self.settings.poll_interval_sec)
            except KeyboardInterrupt:
                logger.info("DLMM watcher interrupted; shutting down.")
                break
            except Exception as e:
                logger.exception("DLMM watcher error: {}", e)
                time.sleep(2)

    def poll_once(self, seen: SeenSignatures) -> int:
        sigs = _result(
            self.client.get_signatures_for_address(
                self.program_id,
                limit=max(1, self.settings.poll_batch_limit),
                commitment=Commitment(self.settings.commitment),
            )
        )
        if not isinstance(sigs, list):
            logger.debug("Unexpected signatures payload for {}: {}", self.program_id, sigs)
            return 0
        handled = 0
        # RPC returns newest first; replay in chain order
        for s in reversed(sigs):
            sig = s.get("signature")
            if not sig or sig in seen:
                continue
            if s.get("err") is not None:
                seen.add(sig)
                continue
            txr = self.client.get_transaction(
                Signature.from_string(sig),
                encoding="json",
                commitment=Commitment(self.settings.commitment),
                max_supported_transaction_version=0,
            )
            res = _result(txr)
            if not res:
                # not served yet; retried on the next poll
                continue
            seen.add(sig)
            self.process_transaction(sig, res)
            handled += 1
        return handled

    def process_transaction(self, signature: str, res: dict) -> int:
        meta = res.get("meta") or {}
        if meta.get("err") is not None:
            logger.debug("Skipping failed transaction {}", signature)
            return 0
        message = (res.get("transaction") or {}).get("message") or {}
        static_keys = [Pubkey.from_string(k) for k in message.get("accountKeys") or []]
        if not static_keys:
            return 0
        loaded = meta.get("loadedAddresses") or {}
        all_keys = static_keys + [
            Pubkey.from_string(k) for k in (loaded.get("writable") or []) + (loaded.get("readonly") or [])
        ]
        inner = meta.get("innerInstructions")
        context = TransactionContext(
            signature=signature,
            fee_payer=static_keys[0],
            account_keys=tuple(static_keys),
            has_inner_instructions=None if inner is None else bool(inner),
        )

        processed = 0
        for raw in self._program_instructions(message.get("instructions") or [], inner or []):
            try:
                decoded = self._decode(raw, all_keys)
                if decoded is None:
                    continue
                self.processor.process(context, decoded)
                processed += 1
            except Exception as e:
                logger.error("Failed to process instruction in {}: {}", signature, e)
        return processed

    def _program_instructions(self, top_level: list, inner: list) -> Iterator[dict]:
        by_index: dict[int, list] = {}
        for group in inner:
            by_index.setdefault(int(group.get("index", -1)), []).extend(group.get("instructions") or [])
        for i, ix in enumerate(top_level):
            yield ix
            yield from by_index.get(i, [])

    def _decode(self, raw: dict, keys: list[Pubkey]) -> DecodedInstruction | None:
        idx = raw.get("programIdIndex")
        if idx is None or idx >= len(keys) or keys[idx] != self.program_id:
            return None
        try:
            ix = decode_instruction(base58.b58decode(raw.get("data") or ""))
        except DecodeError as e:
            logger.warning("Undecodable DLMM instruction: {}", e)
            return None
        if ix is None:
            return None
        indices = raw.get("accounts") or []
        bad = [a for a in indices if not 0 <= a < len(keys)]
        if bad:
            logger.warning(
                "Skipping {}: account indices {} out of range ({} keys)", type(ix).__name__, bad, len(keys)
            )
            return None
        accounts = tuple(keys[a] for a in indices)
        return DecodedInstruction(program_id=self.program_id, data=ix, accounts=accounts)
