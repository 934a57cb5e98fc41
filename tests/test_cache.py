"""Tests for the verification result cache."""

from datetime import timedelta

from conftest import FIXED_NOW, match_messages
from datesafe.cache import VerificationCache, request_fingerprint
from datesafe.models import ComprehensiveVerificationResult, VerificationRequest


class Clock:
    def __init__(self):
        self.now = FIXED_NOW

    def __call__(self):
        return self.now


def _request(text: str) -> VerificationRequest:
    return VerificationRequest(conversation=match_messages([text]))


class TestFingerprint:

    def test_equal_requests_share_fingerprint(self):
        assert request_fingerprint(_request("hi")) == request_fingerprint(_request("hi"))

    def test_any_change_changes_fingerprint(self):
        assert request_fingerprint(_request("hi")) != request_fingerprint(_request("hi!"))
        assert request_fingerprint(VerificationRequest()) != request_fingerprint(
            VerificationRequest(photos=["a.jpg"])
        )

    def test_fingerprint_is_sha256_hex(self):
        fingerprint = request_fingerprint(VerificationRequest())
        assert len(fingerprint) == 64
        int(fingerprint, 16)


class TestVerificationCache:

    def test_miss_then_hit(self):
        cache = VerificationCache()
        request = _request("hi")

        assert cache.get(request) is None
        cache.put(request, ComprehensiveVerificationResult(overallTrustScore=72))

        assert cache.get(request).overallTrustScore == 72
        assert len(cache) == 1

    def test_returns_independent_copies(self):
        cache = VerificationCache()
        request = _request("hi")
        stored = ComprehensiveVerificationResult()
        cache.put(request, stored)

        stored.criticalWarnings.append("changed after put")
        cache.get(request).criticalWarnings.append("changed after get")

        assert cache.get(request).criticalWarnings == []

    def test_entries_expire(self):
        clock = Clock()
        cache = VerificationCache(ttl_seconds=60, clock=clock)
        request = _request("hi")
        cache.put(request, ComprehensiveVerificationResult())

        clock.now = FIXED_NOW + timedelta(seconds=59)
        assert cache.get(request) is not None

        clock.now = FIXED_NOW + timedelta(seconds=61)
        assert cache.get(request) is None
        assert len(cache) == 0

    def test_oldest_entry_is_evicted(self):
        cache = VerificationCache(max_entries=2)
        first, second, third = _request("one"), _request("two"), _request("three")

        cache.put(first, ComprehensiveVerificationResult())
        cache.put(second, ComprehensiveVerificationResult())
        cache.put(third, ComprehensiveVerificationResult())

        assert cache.get(first) is None
        assert cache.get(second) is not None
        assert cache.get(third) is not None
        assert len(cache) == 2

    def test_clear(self):
        cache = VerificationCache()
        cache.put(_request("hi"), ComprehensiveVerificationResult())
        cache.clear()
        assert len(cache) == 0
