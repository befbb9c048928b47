"""Export Notifications

Export nodes with a push-style destination (`exportType: "webhook"`) hand
their rows to a Notifier. Notification is fire-and-forget: `notify` returns
immediately, delivery happens on a background thread, and delivery errors
are logged and dropped. Nothing is retried.
"""

from __future__ import annotations

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional, Protocol

import httpx

from .logging_config import get_notify_logger
from .settings import EXPORT_WEBHOOK_TIMEOUT, EXPORT_WEBHOOK_WORKERS

logger = get_notify_logger()


class Notifier(Protocol):
    """Anything that can send a payload somewhere without blocking."""

    def notify(self, url: str, payload: Dict[str, Any]) -> None:
        ...


class NullNotifier:
    """Notifier that drops everything. Used when no delivery is wanted."""

    def notify(self, url: str, payload: Dict[str, Any]) -> None:
        logger.debug(f"Dropping export notification for {url}")


class WebhookNotifier:
    """POSTs export payloads as JSON from a small worker pool."""

    def __init__(
        self,
        timeout: float = EXPORT_WEBHOOK_TIMEOUT,
        max_workers: int = EXPORT_WEBHOOK_WORKERS,
    ):
        self._timeout = timeout
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="export-webhook",
        )
        self._client: Optional[httpx.Client] = None
        self._lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        """Get or create the shared httpx client."""
        with self._lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(timeout=self._timeout)
            return self._client

    def notify(self, url: str, payload: Dict[str, Any]) -> None:
        try:
            self._executor.submit(self._post, url, payload)
        except RuntimeError as e:
            # Executor already shut down
            logger.warning(f"Export notification to {url} not scheduled: {e}")

    def _post(self, url: str, payload: Dict[str, Any]) -> None:
        try:
            body = json.dumps(payload, ensure_ascii=False, default=str)
            resp = self._get_client().post(
                url, content=body, headers={"Content-Type": "application/json"},
            )
            logger.info(f"Export webhook {url} -> {resp.status_code}")
        except Exception as e:
            # Log error but never surface it to the run
            logger.error(f"Export webhook to {url} failed: {e}")

    def close(self) -> None:
        self._executor.shutdown(wait=False)
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None


_default_notifier: Optional[WebhookNotifier] = None
_default_lock = threading.Lock()


def get_default_notifier() -> WebhookNotifier:
    """Get or create the process-wide webhook notifier."""
    global _default_notifier
    with _default_lock:
        if _default_notifier is None:
            _default_notifier = WebhookNotifier()
        return _default_notifier


def close_default_notifier() -> None:
    global _default_notifier
    with _default_lock:
        notifier, _default_notifier = _default_notifier, None
    if notifier is not None:
        notifier.close()
