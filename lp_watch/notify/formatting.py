"""Plain-text rendering of events for logs and Telegram."""

from __future__ import annotations

from lp_watch.models import Event, NotificationMessage

# Telegram rejects message text above 4096 characters
MAX_MESSAGE_CHARS = 4096


def format_swap(event: Event) -> str:
    return (
        "Swap Instruction:\n"
        f"Token X: {event.symbol_x}\n"
        f"Token Y: {event.symbol_y}\n"
        f"Amount In: {event.amounts.get('amount_in')}\n"
        f"Min Amount Out: {event.amounts.get('min_amount_out')}"
    )


def to_message(event: Event, chat_id: int | None = None) -> NotificationMessage:
    text = format_swap(event) if event.instruction == "Swap" else describe(event)
    return NotificationMessage(text=text[:MAX_MESSAGE_CHARS], chat_id=chat_id)


def describe(event: Event) -> str:
    """One-line summary used by the log sink."""
    parts = [f"{event.instruction or 'LP activity'} [{event.kind.value}] sig={event.signature}"]
    for role, addr in event.addresses.items():
        parts.append(f"{role}={addr}")
    if event.symbol_x is not None:
        parts.append(f"symbol_x={event.symbol_x}")
    if event.symbol_y is not None:
        parts.append(f"symbol_y={event.symbol_y}")
    for key, value in event.amounts.items():
        parts.append(f"{key}={value}")
    if event.active_bin_id is not None:
        parts.append(f"active_bin_id={event.active_bin_id}")
    return " ".join(parts)
