"""
Best-effort audit of selected places to a remote history endpoint.

Posts are handed to a background worker and never awaited; failures are
logged and dropped, never retried.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional

import requests

from settings import settings

logger = logging.getLogger(__name__)


class HistoryAuditSink:
    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.url = url or settings.HISTORY_AUDIT_URL
        self.timeout = timeout if timeout is not None else settings.HISTORY_AUDIT_TIMEOUT_SECONDS
        self._session = session or requests.Session()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="history-audit")

    def send(self, payload: dict[str, Any]) -> Future:
        """Queue a POST of `payload`; returns immediately."""
        future = self._executor.submit(self._post, payload)
        future.add_done_callback(self._log_failure)
        return future

    def _post(self, payload: dict[str, Any]) -> None:
        resp = self._session.post(self.url, json=payload, timeout=self.timeout)
        resp.raise_for_status()

    def _log_failure(self, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.warning("Error saving history to %s: %s", self.url, exc)

    def close(self) -> None:
        self._executor.shutdown(wait=False)
        self._session.close()


def get_default_audit_sink() -> Optional[HistoryAuditSink]:
    if not settings.HISTORY_AUDIT_ENABLED:
        return None
    return HistoryAuditSink()
