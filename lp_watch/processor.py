from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from loguru import logger

from lp_watch.classifier import Classifier
from lp_watch.dlmm.instructions import DecodedInstruction, arrange_accounts
from lp_watch.errors import DeliveryError
from lp_watch.models import Event, NotificationMessage, TransactionContext
from lp_watch.notify.formatting import describe, to_message


class Notifier(Protocol):
    def dispatch(self, message: NotificationMessage) -> None:
        ...


@dataclass
class InstructionProcessor:
    """
    Entry point for one decoded instruction: classify, log, notify.

    Holds no per-call state, so the feed may call ``process`` from several
    threads at once.
    """

    classifier: Classifier
    notifier: Notifier

    def process(self, context: TransactionContext, decoded: DecodedInstruction) -> Event | None:
        logger.debug("Decoded instruction data: {}", decoded.data)
        roles = arrange_accounts(decoded.data, decoded.accounts)
        event = self.classifier.classify(decoded.data, roles, context)
        if event is not None:
            logger.info("{}", describe(event))
            if event.needs_notification:
                self.notify(event)
        log_inner_instructions(context)
        return event

    def notify(self, event: Event) -> bool:
        try:
            self.notifier.dispatch(to_message(event))
        except DeliveryError as e:
            logger.error("Failed to send {} notification for {}: {}", event.instruction, event.signature, e)
            return False
        logger.info("Notification sent for {} {}", event.instruction, event.signature)
        return True


def log_inner_instructions(context: TransactionContext) -> None:
    if context.has_inner_instructions:
        logger.info("Transaction signature: {} (has inner instructions)", context.signature)
    else:
        logger.info("This transaction has no inner instructions")
