"""Thread-safe in-memory cache of verification results.

Results are keyed by a fingerprint of the request (SHA-256 of its canonical
JSON), so submitting the same request twice returns the stored result
without re-running the providers.

Entries expire after CACHE_TTL_SECONDS; the oldest entry is evicted once
CACHE_MAX_ENTRIES is reached.
"""

import hashlib
import json
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from datesafe import config
from datesafe.models import ComprehensiveVerificationResult, VerificationRequest


def request_fingerprint(request: VerificationRequest) -> str:
    """SHA-256 over the request's canonical JSON (sorted keys, compact separators)."""
    canonical = json.dumps(
        request.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class VerificationCache:
    """Request fingerprint -> result, with TTL expiry and a size cap."""

    def __init__(
        self,
        max_entries: int = config.CACHE_MAX_ENTRIES,
        ttl_seconds: int = config.CACHE_TTL_SECONDS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._entries: Dict[str, Tuple[datetime, ComprehensiveVerificationResult]] = {}
        self._lock = threading.Lock()
        self._max_entries = max(1, max_entries)
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def get(self, request: VerificationRequest) -> Optional[ComprehensiveVerificationResult]:
        """Return a copy of the cached result, or None if missing or expired."""
        key = request_fingerprint(request)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, result = entry
            if self._clock() - stored_at > self._ttl:
                del self._entries[key]
                return None
            return result.model_copy(deep=True)

    def put(self, request: VerificationRequest, result: ComprehensiveVerificationResult) -> None:
        key = request_fingerprint(request)
        with self._lock:
            self._entries.pop(key, None)
            while len(self._entries) >= self._max_entries:
                # Dicts keep insertion order, so the first key is the oldest
                del self._entries[next(iter(self._entries))]
            self._entries[key] = (self._clock(), result.model_copy(deep=True))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
