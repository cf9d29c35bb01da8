"""
Minimal Anchor decoder for the Meteora DLMM program.

Only the instructions and events the watcher reacts to are decoded in full;
every other known discriminator decodes to ``Other(<name>)`` so logs still
carry the instruction type.
"""

from __future__ import annotations

import hashlib
import struct

from solders.pubkey import Pubkey

from lp_watch.dlmm.instructions import (
    AddLiquidity,
    AddLiquidityEvent,
    BinLiquidityDistribution,
    BinLiquidityReduction,
    Instruction,
    Other,
    RemoveLiquidity,
    RemoveLiquidityEvent,
    Swap,
)
from lp_watch.errors import DecodeError

# Prefix of self-CPI event instructions emitted through emit_cpi!
EVENT_IX_TAG = bytes.fromhex("e445a52e51cb9a1d")

INSTRUCTION_NAMES = (
    "initialize_lb_pair",
    "initialize_permission_lb_pair",
    "initialize_customizable_permissionless_lb_pair",
    "initialize_bin_array_bitmap_extension",
    "initialize_bin_array",
    "add_liquidity",
    "add_liquidity_by_weight",
    "add_liquidity_by_strategy",
    "add_liquidity_by_strategy_one_side",
    "add_liquidity_one_side",
    "add_liquidity_one_side_precise",
    "remove_liquidity",
    "remove_liquidity_by_range",
    "remove_all_liquidity",
    "initialize_position",
    "initialize_position_pda",
    "initialize_position_by_operator",
    "update_position_operator",
    "swap",
    "swap_exact_out",
    "swap_with_price_impact",
    "withdraw_protocol_fee",
    "initialize_reward",
    "fund_reward",
    "update_reward_funder",
    "update_reward_duration",
    "claim_reward",
    "claim_fee",
    "close_position",
    "update_fee_parameters",
    "increase_oracle_length",
    "initialize_preset_parameter",
    "close_preset_parameter",
    "toggle_pair_status",
    "migrate_position",
    "migrate_bin_array",
    "update_fees_and_rewards",
    "withdraw_ineligible_reward",
    "set_activation_point",
    "set_pre_activation_duration",
    "set_pre_activation_swap_address",
    "go_to_a_bin",
    # Token-2022 aware variants
    "initialize_lb_pair2",
    "initialize_customizable_permissionless_lb_pair2",
    "initialize_preset_parameter2",
    "close_preset_parameter2",
    "initialize_token_badge",
    "create_claim_protocol_fee_operator",
    "close_claim_protocol_fee_operator",
    "add_liquidity2",
    "add_liquidity_by_strategy2",
    "add_liquidity_one_side_precise2",
    "remove_liquidity2",
    "remove_liquidity_by_range2",
    "swap2",
    "swap_exact_out2",
    "swap_with_price_impact2",
    "claim_fee2",
    "claim_reward2",
    "close_position2",
    "close_position_if_empty",
    "update_fees_and_reward2",
)

EVENT_NAMES = (
    "AddLiquidity",
    "RemoveLiquidity",
    "Swap",
    "ClaimReward",
    "FundReward",
    "InitializeReward",
    "UpdateRewardDuration",
    "UpdateRewardFunder",
    "PositionClose",
    "ClaimFee",
    "LbPairCreate",
    "PositionCreate",
    "FeeParameterUpdate",
    "IncreaseObservation",
    "WithdrawIneligibleReward",
    "UpdatePositionOperator",
    "UpdatePositionLockReleasePoint",
    "GoToABin",
    "CompositionFee",
    "DynamicFeeParameterUpdate",
)


def discriminator(namespace: str, name: str) -> bytes:
    return hashlib.sha256(f"{namespace}:{name}".encode()).digest()[:8]


def _camel(snake: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in snake.split("_"))


_INSTRUCTIONS = {discriminator("global", n): n for n in INSTRUCTION_NAMES}
_EVENTS = {discriminator("event", n): n for n in EVENT_NAMES}


class _Reader:
    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def _unpack(self, fmt: str):
        try:
            (value,) = struct.unpack_from(fmt, self.data, self.offset)
        except struct.error as e:
            raise DecodeError(f"payload truncated at offset {self.offset}") from e
        self.offset += struct.calcsize(fmt)
        return value

    def u16(self) -> int:
        return self._unpack("<H")

    def u32(self) -> int:
        return self._unpack("<I")

    def i32(self) -> int:
        return self._unpack("<i")

    def u64(self) -> int:
        return self._unpack("<Q")

    def pubkey(self) -> Pubkey:
        raw = self.data[self.offset : self.offset + 32]
        if len(raw) < 32:
            raise DecodeError(f"payload truncated at offset {self.offset}")
        self.offset += 32
        return Pubkey(raw)


def _liquidity_event(cls, r: _Reader):
    return cls(
        lb_pair=r.pubkey(),
        from_=r.pubkey(),
        position=r.pubkey(),
        amounts=(r.u64(), r.u64()),
        active_bin_id=r.i32(),
    )


def _decode_event(body: bytes) -> Instruction | None:
    name = _EVENTS.get(body[:8])
    if name is None:
        return None
    r = _Reader(body[8:])
    if name == "AddLiquidity":
        return _liquidity_event(AddLiquidityEvent, r)
    if name == "RemoveLiquidity":
        return _liquidity_event(RemoveLiquidityEvent, r)
    return Other(name=f"{name}Event")


def decode_instruction(data: bytes) -> Instruction | None:
    """Decode raw instruction data; None for discriminators we do not know."""
    if data[:8] == EVENT_IX_TAG:
        return _decode_event(data[8:])
    name = _INSTRUCTIONS.get(data[:8])
    if name is None:
        return None
    r = _Reader(data[8:])
    if name == "swap":
        return Swap(amount_in=r.u64(), min_amount_out=r.u64())
    if name == "add_liquidity":
        amount_x, amount_y = r.u64(), r.u64()
        dist = tuple(
            BinLiquidityDistribution(bin_id=r.i32(), distribution_x=r.u16(), distribution_y=r.u16())
            for _ in range(r.u32())
        )
        return AddLiquidity(amount_x=amount_x, amount_y=amount_y, bin_liquidity_dist=dist)
    if name == "remove_liquidity":
        removal = tuple(
            BinLiquidityReduction(bin_id=r.i32(), bps_to_remove=r.u16()) for _ in range(r.u32())
        )
        return RemoveLiquidity(bin_liquidity_removal=removal)
    return Other(name=_camel(name))
