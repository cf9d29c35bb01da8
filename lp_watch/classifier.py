from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Protocol

from loguru import logger
from solders.pubkey import Pubkey

from lp_watch.dlmm.instructions import (
    AddLiquidity,
    AddLiquidityEvent,
    Instruction,
    RemoveLiquidity,
    RemoveLiquidityEvent,
    Swap,
    instruction_name,
)
from lp_watch.errors import MetadataError
from lp_watch.models import Event, EventKind, TokenMetadata, TransactionContext
from lp_watch.watchlist import Watchlist


class Resolver(Protocol):
    def resolve(self, mint: Pubkey) -> TokenMetadata:
        ...


@dataclass
class Classifier:
    """Turns one decoded DLMM instruction into an Event, or None when irrelevant."""

    watchlist: Watchlist
    resolver: Resolver
    gate_enabled: bool = False

    def detect_lp_activity(self, context: TransactionContext) -> Event | None:
        fee_payer_is_lp = self.watchlist.contains(context.fee_payer)
        lp_keys = self.watchlist.matches(context.account_keys)
        if not fee_payer_is_lp and not lp_keys:
            return None
        return Event(
            kind=EventKind.LP_ACTIVITY_DETECTED,
            instruction="",
            signature=context.signature,
            fee_payer_is_lp=fee_payer_is_lp,
            lp_accounts=tuple(lp_keys),
        )

    def classify(
        self,
        instruction: Instruction,
        accounts: Mapping[str, Pubkey] | None,
        context: TransactionContext,
    ) -> Event | None:
        name = instruction_name(instruction)
        activity = self.detect_lp_activity(context)
        if self.gate_enabled and activity is None:
            logger.debug("Skipping {} in {}: no LP wallet in transaction", name, context.signature)
            return None
        if activity is not None:
            log_lp_activity(activity, context)
        lp = {
            "fee_payer_is_lp": activity.fee_payer_is_lp if activity else False,
            "lp_accounts": activity.lp_accounts if activity else (),
        }

        if isinstance(instruction, (AddLiquidityEvent, RemoveLiquidityEvent)):
            return Event(
                kind=EventKind.INFORMATIONAL,
                instruction=name,
                signature=context.signature,
                addresses={
                    "lb_pair": instruction.lb_pair,
                    "from": instruction.from_,
                    "position": instruction.position,
                },
                amounts={"amount_x": instruction.amounts[0], "amount_y": instruction.amounts[1]},
                active_bin_id=instruction.active_bin_id,
                **lp,
            )

        if isinstance(instruction, (AddLiquidity, RemoveLiquidity, Swap)):
            if accounts is None:
                logger.warning(
                    "Cannot arrange accounts for {} in {}; skipping", name, context.signature
                )
                return None
            token_x = accounts["token_x_mint"]
            token_y = accounts["token_y_mint"]
            symbol_x = self._symbol(token_x, "token_x", name, context)
            symbol_y = self._symbol(token_y, "token_y", name, context)
            if isinstance(instruction, AddLiquidity):
                amounts = {"amount_x": instruction.amount_x, "amount_y": instruction.amount_y}
            elif isinstance(instruction, RemoveLiquidity):
                amounts = {"bin_liquidity_removal_len": len(instruction.bin_liquidity_removal)}
            else:
                amounts = {
                    "amount_in": instruction.amount_in,
                    "min_amount_out": instruction.min_amount_out,
                }
            notable = isinstance(instruction, Swap) and symbol_x is not None and symbol_y is not None
            return Event(
                kind=EventKind.SWAP_NOTABLE if notable else EventKind.INFORMATIONAL,
                instruction=name,
                signature=context.signature,
                addresses={"token_x_mint": token_x, "token_y_mint": token_y},
                symbol_x=symbol_x,
                symbol_y=symbol_y,
                amounts=amounts,
                **lp,
            )

        return Event(
            kind=EventKind.INFORMATIONAL, instruction=name, signature=context.signature, **lp
        )

    def _symbol(self, mint: Pubkey, side: str, name: str, context: TransactionContext) -> str | None:
        try:
            return self.resolver.resolve(mint).symbol
        except MetadataError as e:
            logger.error(
                "Failed to fetch {} metadata for {} ({} in {}): {}",
                side,
                mint,
                name,
                context.signature,
                e,
            )
            return None


def log_lp_activity(activity: Event, context: TransactionContext) -> None:
    logger.info("LP wallet detected in transaction {}", activity.signature)
    if activity.fee_payer_is_lp:
        logger.info("  LP fee_payer: {}", context.fee_payer)
    for acc in activity.lp_accounts:
        logger.info("  LP account key: {}", acc)
