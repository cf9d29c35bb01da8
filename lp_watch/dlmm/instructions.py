from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

from solders.pubkey import Pubkey


@dataclass(frozen=True)
class AddLiquidityEvent:
    lb_pair: Pubkey
    from_: Pubkey
    position: Pubkey
    amounts: tuple[int, int]
    active_bin_id: int


@dataclass(frozen=True)
class RemoveLiquidityEvent:
    lb_pair: Pubkey
    from_: Pubkey
    position: Pubkey
    amounts: tuple[int, int]
    active_bin_id: int


@dataclass(frozen=True)
class BinLiquidityDistribution:
    bin_id: int
    distribution_x: int
    distribution_y: int


@dataclass(frozen=True)
class AddLiquidity:
    amount_x: int
    amount_y: int
    bin_liquidity_dist: tuple[BinLiquidityDistribution, ...] = ()


@dataclass(frozen=True)
class BinLiquidityReduction:
    bin_id: int
    bps_to_remove: int


@dataclass(frozen=True)
class RemoveLiquidity:
    bin_liquidity_removal: tuple[BinLiquidityReduction, ...] = ()


@dataclass(frozen=True)
class Swap:
    amount_in: int
    min_amount_out: int


@dataclass(frozen=True)
class Other:
    name: str


Instruction = Union[
    AddLiquidityEvent, RemoveLiquidityEvent, AddLiquidity, RemoveLiquidity, Swap, Other
]


@dataclass(frozen=True)
class DecodedInstruction:
    program_id: Pubkey
    data: Instruction
    accounts: tuple[Pubkey, ...] = ()


def instruction_name(ix: Instruction) -> str:
    if isinstance(ix, Other):
        return ix.name
    return type(ix).__name__


# Account order from the DLMM IDL; only the prefix we use is listed
LIQUIDITY_ACCOUNTS = (
    "position",
    "lb_pair",
    "bin_array_bitmap_extension",
    "user_token_x",
    "user_token_y",
    "reserve_x",
    "reserve_y",
    "token_x_mint",
    "token_y_mint",
    "bin_array_lower",
    "bin_array_upper",
    "sender",
    "token_x_program",
    "token_y_program",
    "event_authority",
    "program",
)

SWAP_ACCOUNTS = (
    "lb_pair",
    "bin_array_bitmap_extension",
    "reserve_x",
    "reserve_y",
    "user_token_in",
    "user_token_out",
    "token_x_mint",
    "token_y_mint",
    "oracle",
    "host_fee_in",
    "user",
    "token_x_program",
    "token_y_program",
    "event_authority",
    "program",
)

ACCOUNT_ROLES: dict[type, tuple[str, ...]] = {
    AddLiquidity: LIQUIDITY_ACCOUNTS,
    RemoveLiquidity: LIQUIDITY_ACCOUNTS,
    Swap: SWAP_ACCOUNTS,
}


def arrange_accounts(ix: Instruction, accounts: Sequence[Pubkey]) -> dict[str, Pubkey] | None:
    """Map a positional account list to named roles; None if it is too short."""
    roles = ACCOUNT_ROLES.get(type(ix))
    if roles is None or len(accounts) < len(roles):
        return None
    return dict(zip(roles, accounts))
