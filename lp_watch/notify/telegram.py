from __future__ import annotations

import threading
from dataclasses import dataclass, field

import requests
from loguru import logger

from lp_watch.config import AppSettings
from lp_watch.errors import ConfigError, DeliveryError
from lp_watch.models import NotificationMessage
from lp_watch.notify.throttle import Throttle


@dataclass
class TelegramNotifier:
    """Sends plain-text messages through the Telegram Bot API, throttled per chat."""

    bot_token: str
    chat_id: int
    api_url: str = "https://api.telegram.org"
    limits: tuple[tuple[int, float], ...] = ((1, 1.0), (20, 60.0))
    timeout: float = 10.0
    _throttles: dict[int, Throttle] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @classmethod
    def create(cls, settings: AppSettings) -> TelegramNotifier:
        if not settings.telegram_bot_token:
            raise ConfigError("TELEGRAM_BOT_TOKEN is not set")
        if settings.telegram_group_id is None:
            raise ConfigError("TELEGRAM_GROUP_ID is not set")
        try:
            chat_id = int(settings.telegram_group_id)
        except ValueError:
            raise ConfigError(
                f"TELEGRAM_GROUP_ID must be an integer chat id, got {settings.telegram_group_id!r}"
            ) from None
        return cls(
            bot_token=settings.telegram_bot_token,
            chat_id=chat_id,
            api_url=settings.telegram_api_url.rstrip("/"),
            limits=settings.throttle_limits(),
            timeout=settings.telegram_timeout_sec,
        )

    def _endpoint(self) -> str:
        return f"{self.api_url}/bot{self.bot_token}/sendMessage"

    def _redact(self, text: str) -> str:
        return text.replace(self.bot_token, "***")

    def throttle_for(self, chat_id: int) -> Throttle:
        with self._lock:
            throttle = self._throttles.get(chat_id)
            if throttle is None:
                throttle = self._throttles[chat_id] = Throttle(self.limits)
            return throttle

    def dispatch(self, message: NotificationMessage) -> None:
        chat_id = self.chat_id if message.chat_id is None else message.chat_id
        waited = self.throttle_for(chat_id).acquire()
        if waited > 0:
            logger.debug("Telegram message to {} throttled for {:.2f}s", chat_id, waited)
        try:
            r = requests.post(
                self._endpoint(),
                json={"chat_id": chat_id, "text": message.text},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise DeliveryError(self._redact(f"Telegram request failed: {e}")) from None
        if not r.ok:
            raise DeliveryError(self._redact(f"Telegram API error {r.status_code}: {r.text}"))
        try:
            body = r.json()
        except ValueError:
            body = {}
        if isinstance(body, dict) and body.get("ok") is False:
            raise DeliveryError(self._redact(f"Telegram API error: {body.get('description')}"))

    def send_message(self, text: str) -> None:
        self.dispatch(NotificationMessage(text=text))

    def send_message_to_group(self, chat_id: int, text: str) -> None:
        self.dispatch(NotificationMessage(text=text, chat_id=chat_id))
