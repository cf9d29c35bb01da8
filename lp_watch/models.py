from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from solders.pubkey import Pubkey


@dataclass(frozen=True)
class TransactionContext:
    signature: str
    fee_payer: Pubkey
    account_keys: tuple[Pubkey, ...] = ()
    # None when the node did not report inner instructions at all
    has_inner_instructions: bool | None = None


@dataclass(frozen=True)
class TokenMetadata:
    name: str
    symbol: str


class EventKind(str, Enum):
    LP_ACTIVITY_DETECTED = "lp_activity_detected"
    SWAP_NOTABLE = "swap_notable"
    INFORMATIONAL = "informational"


@dataclass(frozen=True)
class Event:
    kind: EventKind
    instruction: str
    signature: str
    addresses: dict[str, Pubkey] = field(default_factory=dict)
    symbol_x: str | None = None
    symbol_y: str | None = None
    amounts: dict[str, int] = field(default_factory=dict)
    active_bin_id: int | None = None
    fee_payer_is_lp: bool = False
    lp_accounts: tuple[Pubkey, ...] = ()

    @property
    def needs_notification(self) -> bool:
        return self.kind is EventKind.SWAP_NOTABLE


@dataclass(frozen=True)
class NotificationMessage:
    text: str
    chat_id: int | None = None  # None -> notifier's default destination
