"""Forward geocoding (free-text place search) using OpenStreetMap Nominatim.

The API surface is intentionally small: one query in, a list of raw provider
records out. Parsing into domain candidates happens in `candidates_from_raw`
so the transport can be swapped without touching the search engine.
"""

from __future__ import annotations

import logging
import os
import re
import threading
import time
from typing import Any, Iterable, List, Optional

import requests

from domain.models import Candidate, NetworkError
from settings import settings

logger = logging.getLogger(__name__)
_session = requests.Session()
_last_request_ts: float = 0.0
_lock = threading.Lock()
_MIN_INTERVAL_SEC = float(os.getenv("NOMINATIM_MIN_INTERVAL", "1.1"))
_logged_ua = False

FALLBACK_UA = "place-search/0.1 (contact: example@example.com)"


def _redact_email(ua: str) -> str:
    if "@" not in ua:
        return ua
    return re.sub(r"\S+@\S+", "<redacted>", ua)


def build_headers(user_agent: Optional[str] = None, referer: Optional[str] = None) -> dict[str, str]:
    ua = user_agent or settings.NOMINATIM_USER_AGENT
    if ua is None:
        logger.warning(
            "NOMINATIM_USER_AGENT not set in environment; using fallback UA. "
            "This may violate Nominatim usage policy."
        )
        ua = FALLBACK_UA
    headers = {"User-Agent": ua}
    referer = referer or settings.NOMINATIM_REFERER
    if referer:
        headers["Referer"] = referer
    return headers


def _throttled_get(
    url: str,
    *,
    params: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
) -> requests.Response:
    """Perform a GET request with a simple global rate limit."""
    global _last_request_ts
    with _lock:
        now = time.time()
        delta = now - _last_request_ts
        if delta < _MIN_INTERVAL_SEC:
            time.sleep(_MIN_INTERVAL_SEC - delta)
        _last_request_ts = time.time()
    return _session.get(url, params=params, headers=headers, timeout=timeout)


class GeocodeClient:
    """Issues a single text query against Nominatim's /search endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.NOMINATIM_SEARCH_URL).rstrip("/")
        self.headers = headers or build_headers()
        self.timeout = timeout if timeout is not None else settings.NOMINATIM_TIMEOUT_SECONDS

    def search(self, text: str, limit: int = 5) -> List[dict]:
        """Return up to `limit` raw provider records for `text`.

        Raises NetworkError on transport failures, HTTP errors and
        malformed payloads.
        """
        global _logged_ua
        if not _logged_ua:
            logger.debug("Nominatim User-Agent: %s", _redact_email(self.headers.get("User-Agent", "")))
            _logged_ua = True

        params = {
            "format": "json",
            "q": text,
            "limit": str(limit),
        }
        try:
            resp = _throttled_get(self.base_url, params=params, headers=self.headers, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise NetworkError(f"Nominatim search failed for {text!r}: {exc}") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise NetworkError(f"Nominatim search returned invalid JSON for {text!r}") from exc

        if not isinstance(data, list):
            raise NetworkError(f"Nominatim search returned unexpected payload for {text!r}")
        results = [item for item in data if isinstance(item, dict)][:limit]
        logger.debug("GeocodeClient.search: q=%r limit=%d got %d results", text, limit, len(results))
        return results


def candidates_from_raw(items: Iterable[dict]) -> List[Candidate]:
    """Map raw provider records to candidates, keeping provider order."""
    return [Candidate.from_raw(item) for item in items]
