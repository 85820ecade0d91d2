"""
Heartbeat-based active session tracking.

Browsers call enter/ping while a page is open and leave when it closes.
A session counts as active while its last heartbeat is no older than
the TTL. Expiry is detected lazily by sweeping a page's sessions when
it is counted, so there is no timer per session.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Iterable, List, Optional

from frontend.logging_utils import get_logger

logger = get_logger(__name__)

ACTIVE_TTL_SECONDS = 60.0
SMS_PAGE_LABEL = "/sms/"
KNOWN_PAGES = (SMS_PAGE_LABEL,)


class _PageSessions:
    __slots__ = ("lock", "last_seen", "retired")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.last_seen: Dict[str, float] = {}
        # set once the bucket has been unlinked from the tracker
        self.retired = False


class ActiveSessionTracker:
    def __init__(
        self,
        ttl_seconds: float = ACTIVE_TTL_SECONDS,
        known_pages: Iterable[str] = KNOWN_PAGES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.known_pages = tuple(known_pages)
        if not self.known_pages:
            raise ValueError("at least one known page label is required")
        self._clock = clock
        self._pages: Dict[str, _PageSessions] = {}
        self._lock = threading.Lock()

    def normalize_page(self, page: Optional[str]) -> str:
        """Map anything but a known page label to the canonical label."""
        if page is not None and page in self.known_pages:
            return page
        return self.known_pages[0]

    def _bucket(self, page: str) -> _PageSessions:
        bucket = self._pages.get(page)
        if bucket is None:
            with self._lock:
                bucket = self._pages.setdefault(page, _PageSessions())
        return bucket

    def _retire(self, page: str, bucket: _PageSessions) -> None:
        # caller holds bucket.lock
        bucket.retired = True
        with self._lock:
            if self._pages.get(page) is bucket:
                del self._pages[page]

    def enter(self, page: Optional[str], session_id: str, now: Optional[float] = None) -> None:
        self.ping(page, session_id, now)

    def ping(self, page: Optional[str], session_id: str, now: Optional[float] = None) -> None:
        page = self.normalize_page(page)
        ts = self._clock() if now is None else now
        while True:
            bucket = self._bucket(page)
            with bucket.lock:
                if bucket.retired:
                    # lost a race with a sweep that emptied the page
                    continue
                bucket.last_seen[str(session_id)] = ts
                return

    def leave(self, page: Optional[str], session_id: str) -> None:
        page = self.normalize_page(page)
        bucket = self._pages.get(page)
        if bucket is None:
            return
        with bucket.lock:
            if bucket.retired:
                return
            bucket.last_seen.pop(str(session_id), None)
            if not bucket.last_seen:
                self._retire(page, bucket)

    def count_active(self, page: Optional[str], now: Optional[float] = None) -> int:
        """Evict sessions silent for longer than the TTL and count the rest."""
        page = self.normalize_page(page)
        now = self._clock() if now is None else now
        bucket = self._pages.get(page)
        if bucket is None:
            return 0
        with bucket.lock:
            if bucket.retired:
                return 0
            stale = [sid for sid, seen in bucket.last_seen.items() if now - seen > self.ttl_seconds]
            for sid in stale:
                del bucket.last_seen[sid]
            count = len(bucket.last_seen)
            if count == 0:
                self._retire(page, bucket)
        if stale:
            logger.debug(f"evicted {len(stale)} stale sessions from {page}")
        return count

    def pages(self) -> List[str]:
        """Known pages first, then any other tracked page in sorted order."""
        with self._lock:
            tracked = [p for p in self._pages if p not in self.known_pages]
        return list(self.known_pages) + sorted(tracked)

    def sweep(self, now: Optional[float] = None) -> Dict[str, int]:
        now = self._clock() if now is None else now
        return {page: self.count_active(page, now) for page in self.pages()}
