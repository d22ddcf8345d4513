# Overview: Fire-and-forget downstream (ERP/accounting) sync notifications.

"""
Sync Notifier Invariants (authoritative)

- notify() is only called after the ledger transaction has committed.
- Delivery runs on a worker pool; callers never wait for it.
- Every delivery failure is caught and logged here. Nothing is re-raised,
  and a failed notification never affects the ledger write it describes.
- No retries are attempted on the caller's behalf. Delivery is
  at-least-attempted, not exactly-once.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

import httpx

logger = logging.getLogger(__name__)

TRIGGER_MANUAL_ADJUSTMENT = "INVENTORY_ADJUSTMENT_MANUAL"
TRIGGER_BULK_ADJUSTMENT = "INVENTORY_ADJUSTMENT_BULK"
TRIGGER_MOVEMENT = "INVENTORY_MOVEMENT"
TRIGGER_TRANSFER = "INVENTORY_TRANSFER"
TRIGGER_FEED_IMPORT = "INVENTORY_FEED_IMPORT"


@dataclass(frozen=True)
class SyncEvent:
    variant_id: int
    trigger_reason: str
    context: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "variant_id": self.variant_id,
            "trigger_reason": self.trigger_reason,
            "context": self.context,
        }


class WebhookSink:
    """POST each event as JSON to the configured downstream URL."""

    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    def __call__(self, event: SyncEvent) -> None:
        response = httpx.post(self.url, json=event.to_dict(), timeout=self.timeout)
        response.raise_for_status()


def log_sink(event: SyncEvent) -> None:
    logger.info(
        "Inventory sync queued for variant %s (%s)",
        event.variant_id,
        event.trigger_reason,
    )


class SyncNotifier:
    """
    Flask extension dispatching SyncEvents to a sink.

    The sink defaults to WebhookSink when SYNC_WEBHOOK_URL is set and to
    log_sink otherwise; tests and integrations may swap it with set_sink().
    """

    def __init__(self, app=None):
        self.sink: Callable[[SyncEvent], None] = log_sink
        self.run_async = True
        self._executor: Optional[ThreadPoolExecutor] = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        url = app.config.get("SYNC_WEBHOOK_URL")
        if url:
            self.sink = WebhookSink(url, timeout=app.config.get("SYNC_WEBHOOK_TIMEOUT", 5.0))
        else:
            self.sink = log_sink
        self.run_async = bool(app.config.get("SYNC_NOTIFIER_ASYNC", True))
        if self.run_async and self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=app.config.get("SYNC_NOTIFIER_WORKERS", 2),
                thread_name_prefix="inventory-sync",
            )
        app.extensions["sync_notifier"] = self

    def set_sink(self, sink: Callable[[SyncEvent], None]) -> None:
        self.sink = sink

    def _deliver(self, event: SyncEvent) -> None:
        try:
            self.sink(event)
        except Exception:
            logger.exception(
                "Failed to deliver inventory sync for variant %s (%s)",
                event.variant_id,
                event.trigger_reason,
            )

    def notify(self, variant_id: int, trigger_reason: str, context: dict | None = None) -> Optional[Future]:
        event = SyncEvent(variant_id=variant_id, trigger_reason=trigger_reason, context=dict(context or {}))
        if not self.run_async or self._executor is None:
            self._deliver(event)
            return None
        try:
            return self._executor.submit(self._deliver, event)
        except RuntimeError:
            # Executor already shut down (interpreter exit); deliver inline instead.
            self._deliver(event)
            return None

    def notify_many(self, variant_ids: Iterable[int], trigger_reason: str, context: dict | None = None) -> None:
        # Preserve first-seen order while dropping duplicates
        for variant_id in dict.fromkeys(variant_ids):
            self.notify(variant_id, trigger_reason, context)

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
