from __future__ import annotations

import struct

import base58
from solders.pubkey import Pubkey
from solders.signature import Signature

PROGRAM = Pubkey.new_unique()
OTHER_PROGRAM = Pubkey.new_unique()


def _data(raw: bytes) -> str:
    return base58.b58encode(raw).decode()


def _swap_data() -> str:
    from lp_watch.dlmm.decoder import discriminator

    return _data(discriminator("global", "swap") + struct.pack("<QQ", 1000, 950))


def _event_data() -> str:
    from lp_watch.dlmm.decoder import EVENT_IX_TAG, discriminator

    body = bytes(Pubkey.new_unique()) * 3 + struct.pack("<QQi", 1, 2, 3)
    return _data(EVENT_IX_TAG + discriminator("event", "AddLiquidity") + body)


def _tx(keys, instructions, inner=None, err=None):
    meta = {"err": err, "loadedAddresses": {"writable": [], "readonly": []}}
    if inner is not None:
        meta["innerInstructions"] = inner
    return {
        "meta": meta,
        "transaction": {
            "message": {"accountKeys": [str(k) for k in keys], "instructions": instructions}
        },
    }


class RecordingProcessor:
    def __init__(self, fail_on: set[str] | None = None):
        self.calls = []
        self.fail_on = fail_on or set()

    def process(self, context, decoded):
        name = type(decoded.data).__name__
        if name in self.fail_on:
            raise RuntimeError("boom")
        self.calls.append((context, decoded))


class FakeClient:
    def __init__(self, sigs, txs):
        self.sigs = sigs
        self.txs = txs
        self.fetched = []

    def get_signatures_for_address(self, address, limit=None, commitment=None):
        return {"result": self.sigs}

    def get_transaction(self, sig, encoding=None, commitment=None, max_supported_transaction_version=None):
        assert isinstance(sig, Signature)
        self.fetched.append(str(sig))
        return {"result": self.txs.get(str(sig))}


def _watcher(client, processor):
    from lp_watch.chains.solana_watcher import SolanaWatcher
    from lp_watch.config import AppSettings

    settings = AppSettings(solana_rpc="http://localhost:8899", poll_interval_sec=0)
    return SolanaWatcher(settings=settings, client=client, processor=processor, program_id=PROGRAM)


def _keys(n=16):
    payer = Pubkey.new_unique()
    return [payer] + [Pubkey.new_unique() for _ in range(n - 2)] + [PROGRAM]


def test_process_transaction_walks_top_level_and_inner():
    from lp_watch.dlmm.instructions import AddLiquidityEvent, Swap

    keys = _keys()
    prog = len(keys) - 1
    res = _tx(
        keys,
        [
            {"programIdIndex": prog, "accounts": list(range(15)), "data": _swap_data()},
            {"programIdIndex": 1, "accounts": [], "data": _swap_data()},
        ],
        inner=[{"index": 0, "instructions": [{"programIdIndex": prog, "accounts": [], "data": _event_data()}]}],
    )
    processor = RecordingProcessor()
    count = _watcher(FakeClient([], {}), processor).process_transaction("sig", res)

    assert count == 2
    (ctx, first), (_, second) = processor.calls
    assert isinstance(first.data, Swap)
    assert first.accounts == tuple(keys[:15])
    assert isinstance(second.data, AddLiquidityEvent)
    assert ctx.fee_payer == keys[0]
    assert ctx.has_inner_instructions is True
    assert ctx.signature == "sig"


def test_missing_inner_instructions_is_unknown():
    keys = _keys()
    res = _tx(keys, [{"programIdIndex": len(keys) - 1, "accounts": [], "data": _swap_data()}])
    processor = RecordingProcessor()
    _watcher(FakeClient([], {}), processor).process_transaction("sig", res)
    assert processor.calls[0][0].has_inner_instructions is None


def test_failed_transaction_skipped():
    keys = _keys()
    res = _tx(
        keys,
        [{"programIdIndex": len(keys) - 1, "accounts": [], "data": _swap_data()}],
        err={"InstructionError": [0, "Custom"]},
    )
    processor = RecordingProcessor()
    assert _watcher(FakeClient([], {}), processor).process_transaction("sig", res) == 0
    assert processor.calls == []


def test_undecodable_and_unknown_data_skipped():
    from lp_watch.dlmm.decoder import discriminator

    keys = _keys()
    prog = len(keys) - 1
    truncated = _data(discriminator("global", "swap") + b"\x01")
    res = _tx(
        keys,
        [
            {"programIdIndex": prog, "accounts": [], "data": truncated},
            {"programIdIndex": prog, "accounts": [], "data": _data(b"\x09" * 16)},
            {"programIdIndex": prog, "accounts": [], "data": _swap_data()},
        ],
    )
    processor = RecordingProcessor()
    assert _watcher(FakeClient([], {}), processor).process_transaction("sig", res) == 1


def test_one_failing_instruction_does_not_stop_the_rest():
    keys = _keys()
    prog = len(keys) - 1
    res = _tx(
        keys,
        [
            {"programIdIndex": prog, "accounts": [], "data": _swap_data()},
            {"programIdIndex": prog, "accounts": [], "data": _event_data()},
        ],
    )
    processor = RecordingProcessor(fail_on={"Swap"})
    assert _watcher(FakeClient([], {}), processor).process_transaction("sig", res) == 1
    assert type(processor.calls[0][1].data).__name__ == "AddLiquidityEvent"


def test_poll_once_chain_order_dedupe_and_errors():
    from lp_watch.chains.solana_watcher import SeenSignatures

    sig_new, sig_old, sig_failed = (str(Signature.new_unique()) for _ in range(3))
    keys = _keys()
    tx = _tx(keys, [{"programIdIndex": len(keys) - 1, "accounts": [], "data": _swap_data()}])
    client = FakeClient(
        sigs=[
            {"signature": sig_new, "err": None},
            {"signature": sig_failed, "err": {"InstructionError": [0, "Custom"]}},
            {"signature": sig_old, "err": None},
        ],
        txs={sig_new: tx, sig_old: tx},
    )
    processor = RecordingProcessor()
    watcher = _watcher(client, processor)
    seen = SeenSignatures()

    assert watcher.poll_once(seen) == 2
    assert client.fetched == [sig_old, sig_new]
    assert [c[0].signature for c in processor.calls] == [sig_old, sig_new]

    assert watcher.poll_once(seen) == 0
    assert client.fetched == [sig_old, sig_new]


def test_transient_fetch_failure_is_retried_next_poll():
    import pytest

    from lp_watch.chains.solana_watcher import SeenSignatures

    sig = str(Signature.new_unique())
    keys = _keys()
    tx = _tx(keys, [{"programIdIndex": len(keys) - 1, "accounts": [], "data": _swap_data()}])

    class FlakyClient(FakeClient):
        failures = 1

        def get_transaction(self, sig, **kw):
            if self.failures:
                self.failures -= 1
                raise ConnectionError("rpc timeout")
            return super().get_transaction(sig, **kw)

    client = FlakyClient(sigs=[{"signature": sig, "err": None}], txs={})
    processor = RecordingProcessor()
    watcher = _watcher(client, processor)
    seen = SeenSignatures()

    with pytest.raises(ConnectionError):
        watcher.poll_once(seen)
    assert sig not in seen

    # node has not served the transaction yet
    assert watcher.poll_once(seen) == 0
    assert sig not in seen

    client.txs[sig] = tx
    assert watcher.poll_once(seen) == 1
    assert sig in seen
    assert watcher.poll_once(seen) == 0
    assert len(processor.calls) == 1


def test_out_of_range_account_index_rejects_instruction():
    keys = _keys()
    prog = len(keys) - 1
    accounts = list(range(15))
    accounts[3] = len(keys) + 5
    res = _tx(
        keys,
        [
            {"programIdIndex": prog, "accounts": accounts, "data": _swap_data()},
            {"programIdIndex": prog, "accounts": list(range(15)), "data": _swap_data()},
        ],
    )
    processor = RecordingProcessor()
    assert _watcher(FakeClient([], {}), processor).process_transaction("sig", res) == 1
    assert processor.calls[0][1].accounts == tuple(keys[:15])


def test_seen_signatures_bounded():
    from lp_watch.chains.solana_watcher import SeenSignatures

    seen = SeenSignatures(maxlen=2)
    for s in ("a", "b", "c"):
        seen.add(s)
    assert "a" not in seen
    assert "b" in seen and "c" in seen


def test_run_stops_on_keyboard_interrupt(monkeypatch):
    class InterruptingClient(FakeClient):
        def get_signatures_for_address(self, *a, **kw):
            raise KeyboardInterrupt

    watcher = _watcher(InterruptingClient([], {}), RecordingProcessor())
    watcher.run()


def test_run_survives_poll_errors(monkeypatch):
    calls = {"n": 0}

    class FlakyClient(FakeClient):
        def get_signatures_for_address(self, *a, **kw):
            calls["n"] += 1
            if calls["n"] == 1:
                raise ConnectionError("rpc down")
            raise KeyboardInterrupt

    monkeypatch.setattr("time.sleep", lambda s: None)
    _watcher(FlakyClient([], {}), RecordingProcessor()).run()
    assert calls["n"] == 2
