from loguru import logger
from pydantic import ValidationError

from lp_watch.chains.solana_watcher import SolanaWatcher
from lp_watch.classifier import Classifier
from lp_watch.config import AppSettings
from lp_watch.errors import ConfigError
from lp_watch.metadata.resolver import MetadataResolver
from lp_watch.notify.telegram import TelegramNotifier
from lp_watch.processor import InstructionProcessor
from lp_watch.watchlist import Watchlist


def build_processor(settings: AppSettings) -> InstructionProcessor:
    notifier = TelegramNotifier.create(settings)
    watchlist = Watchlist.load(settings.lp_wallets_config)
    classifier = Classifier(
        watchlist=watchlist,
        resolver=MetadataResolver.create(settings),
        gate_enabled=settings.client_account_filtering,
    )
    logger.info(
        "LP wallet filtering {} ({} wallets)",
        "enabled" if settings.client_account_filtering else "disabled",
        len(watchlist),
    )
    return InstructionProcessor(classifier=classifier, notifier=notifier)


def main():
    try:
        settings = AppSettings()
    except ValidationError as e:
        logger.error("Cannot start watcher: invalid settings: {}", e)
        raise SystemExit(1) from e
    logger.remove()
    logger.add(lambda m: print(m, end=""), level=settings.log_level)

    try:
        processor = build_processor(settings)
    except ConfigError as e:
        logger.error("Cannot start watcher: {}", e)
        raise SystemExit(1) from e

    watcher = SolanaWatcher.create(settings, processor)
    watcher.run()


if __name__ == "__main__":
    main()
