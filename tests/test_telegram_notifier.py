from __future__ import annotations

import pytest
import requests

TOKEN = "123456:SECRET"


class FakeResp:
    def __init__(self, status_code=200, data=None, text=""):
        self.status_code = status_code
        self._data = {"ok": True, "result": {}} if data is None else data
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        return self._data


def _notifier(**kw):
    from lp_watch.notify.telegram import TelegramNotifier

    return TelegramNotifier(bot_token=TOKEN, chat_id=-1001, limits=(), **kw)


def test_create_requires_token_and_group():
    from lp_watch.config import AppSettings
    from lp_watch.errors import ConfigError
    from lp_watch.notify.telegram import TelegramNotifier

    with pytest.raises(ConfigError):
        TelegramNotifier.create(AppSettings(telegram_bot_token="", telegram_group_id="-1001"))
    with pytest.raises(ConfigError):
        TelegramNotifier.create(AppSettings(telegram_bot_token=TOKEN, telegram_group_id=""))

    n = TelegramNotifier.create(
        AppSettings(
            telegram_bot_token=TOKEN,
            telegram_group_id="-1001",
            telegram_api_url="http://tg.local/",
        )
    )
    assert n.chat_id == -1001
    assert n.api_url == "http://tg.local"
    assert n.limits == ((1, 1.0), (20, 60.0))


@pytest.mark.parametrize("group", ["not-a-number", "-100.5", "@mygroup"])
def test_create_rejects_non_integer_group(group):
    from lp_watch.config import AppSettings
    from lp_watch.errors import ConfigError
    from lp_watch.notify.telegram import TelegramNotifier

    with pytest.raises(ConfigError, match="TELEGRAM_GROUP_ID"):
        TelegramNotifier.create(AppSettings(telegram_bot_token=TOKEN, telegram_group_id=group))


def test_send_message_posts_plain_text(monkeypatch):
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json, timeout))
        return FakeResp()

    monkeypatch.setattr("requests.post", fake_post)
    _notifier().send_message("Swap Instruction:\nToken X: USDC")

    assert calls == [
        (
            f"https://api.telegram.org/bot{TOKEN}/sendMessage",
            {"chat_id": -1001, "text": "Swap Instruction:\nToken X: USDC"},
            10.0,
        )
    ]


def test_send_message_to_group_overrides_chat(monkeypatch):
    seen = []
    monkeypatch.setattr("requests.post", lambda url, json=None, timeout=None: seen.append(json) or FakeResp())
    _notifier().send_message_to_group(-2002, "hi")
    assert seen[0]["chat_id"] == -2002


def test_http_error_is_delivery_error(monkeypatch):
    from lp_watch.errors import DeliveryError

    monkeypatch.setattr(
        "requests.post",
        lambda url, json=None, timeout=None: FakeResp(429, {"ok": False}, "Too Many Requests"),
    )
    with pytest.raises(DeliveryError) as exc:
        _notifier().send_message("x")
    assert "429" in str(exc.value)


def test_ok_false_is_delivery_error(monkeypatch):
    from lp_watch.errors import DeliveryError

    monkeypatch.setattr(
        "requests.post",
        lambda url, json=None, timeout=None: FakeResp(200, {"ok": False, "description": "chat not found"}),
    )
    with pytest.raises(DeliveryError, match="chat not found"):
        _notifier().send_message("x")


def test_transport_error_redacts_token(monkeypatch):
    from lp_watch.errors import DeliveryError

    def boom(url, json=None, timeout=None):
        raise requests.ConnectionError(f"cannot reach {url}")

    monkeypatch.setattr("requests.post", boom)
    with pytest.raises(DeliveryError) as exc:
        _notifier().send_message("x")
    assert TOKEN not in str(exc.value)
    assert "***" in str(exc.value)


def test_throttle_shared_per_chat():
    n = _notifier()
    assert n.throttle_for(-1001) is n.throttle_for(-1001)
    assert n.throttle_for(-1001) is not n.throttle_for(-2002)


def test_dispatch_waits_on_throttle(monkeypatch):
    from lp_watch.models import NotificationMessage
    from lp_watch.notify.telegram import TelegramNotifier
    from lp_watch.notify.throttle import Throttle

    slept = []
    monkeypatch.setattr("requests.post", lambda url, json=None, timeout=None: FakeResp())
    n = TelegramNotifier(bot_token=TOKEN, chat_id=-1001)
    n._throttles[-1001] = Throttle(n.limits, clock=lambda: 0.0, sleep=slept.append)

    for _ in range(3):
        n.dispatch(NotificationMessage(text="x"))
    assert slept == [1.0, 2.0]
