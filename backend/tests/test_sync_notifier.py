import logging

import httpx
import pytest
from flask import Flask

from stockledger.services import sync_notifier as sync_module
from stockledger.services.sync_notifier import (
    SyncEvent,
    SyncNotifier,
    WebhookSink,
    log_sink,
)


def make_app(**config):
    app = Flask(__name__)
    app.config.update(config)
    return app


def test_inline_delivery():
    events = []
    notifier = SyncNotifier(make_app(SYNC_NOTIFIER_ASYNC=False))
    notifier.set_sink(events.append)

    assert notifier.notify(4, "INVENTORY_MOVEMENT", {"initiated_by": "u1"}) is None

    assert events == [SyncEvent(4, "INVENTORY_MOVEMENT", {"initiated_by": "u1"})]


def test_async_delivery_runs_on_worker_pool():
    events = []
    notifier = SyncNotifier(make_app(SYNC_NOTIFIER_ASYNC=True, SYNC_NOTIFIER_WORKERS=1))
    notifier.set_sink(events.append)
    try:
        future = notifier.notify(9, "INVENTORY_TRANSFER")
        assert future is not None
        future.result(timeout=5)
    finally:
        notifier.shutdown()

    assert [e.variant_id for e in events] == [9]


def test_failures_are_logged_not_raised(caplog):
    notifier = SyncNotifier(make_app(SYNC_NOTIFIER_ASYNC=False))

    def boom(event):
        raise ConnectionError("downstream unavailable")

    notifier.set_sink(boom)
    with caplog.at_level(logging.ERROR, logger=sync_module.__name__):
        notifier.notify(3, "INVENTORY_ADJUSTMENT_MANUAL")

    assert "Failed to deliver inventory sync for variant 3" in caplog.text


def test_notify_many_dedupes_in_order():
    events = []
    notifier = SyncNotifier(make_app(SYNC_NOTIFIER_ASYNC=False))
    notifier.set_sink(events.append)

    notifier.notify_many([5, 2, 5, 7, 2], "INVENTORY_ADJUSTMENT_BULK", {"message": "Recount"})

    assert [e.variant_id for e in events] == [5, 2, 7]
    assert all(e.context == {"message": "Recount"} for e in events)


def test_sink_selection_from_config():
    plain = SyncNotifier(make_app(SYNC_NOTIFIER_ASYNC=False))
    assert plain.sink is log_sink

    hooked = SyncNotifier(make_app(SYNC_NOTIFIER_ASYNC=False, SYNC_WEBHOOK_URL="https://erp.example/hook"))
    assert isinstance(hooked.sink, WebhookSink)
    assert hooked.sink.url == "https://erp.example/hook"


def test_webhook_sink_posts_event(monkeypatch):
    calls = []

    def fake_post(url, json, timeout):
        calls.append((url, json, timeout))
        return httpx.Response(202, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", fake_post)

    WebhookSink("https://erp.example/hook", timeout=2.0)(SyncEvent(1, "INVENTORY_FEED_IMPORT", {"sku": "X"}))

    assert calls == [(
        "https://erp.example/hook",
        {"variant_id": 1, "trigger_reason": "INVENTORY_FEED_IMPORT", "context": {"sku": "X"}},
        2.0,
    )]


def test_webhook_sink_raises_on_error_status(monkeypatch):
    def fake_post(url, json, timeout):
        return httpx.Response(500, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", fake_post)

    with pytest.raises(httpx.HTTPStatusError):
        WebhookSink("https://erp.example/hook")(SyncEvent(1, "INVENTORY_MOVEMENT"))
