"""
profile.py - Social Profile Verifier
=====================================

Checks the match's linked social profiles and web presence and produces a
ProfileVerificationResult.

Flow for one verify() call:
    1. Drop malformed URLs (no scheme or host)
    2. Open one HTTP session, fetch every known-platform profile concurrently, close it
    3. Score each fetched platform; networkAuthenticity is their running mean
    4. Account ages, connection totals, name and location consistency
    5. WHOIS on the primary domain gives web presence years
    6. verificationConfidence and profileLegitimacy from the totals

Platform scoring:
    instagram  base 50, +30 follower/post ratio 100..1000, -40 ratio above 10000
    facebook   base 50, +20 for 50+ friends, +20 for 5+ tagged photos, -30 below 20 friends
    twitter    base 50, +25 account age 24+ months, -30 below 3 months
    linkedin   base 50, +20 for 100+ connections, +20 professional presence

A failed fetch is logged and the platform is skipped; it never fails the call.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from datesafe import config
from datesafe.errors import MalformedInput
from datesafe.models import ProfileData, ProfileVerificationResult
from datesafe.providers import ProfileFetchProvider, WhoisProvider

logger = logging.getLogger(__name__)

_PLATFORM_HOSTS = {
    "instagram.com": "instagram",
    "facebook.com": "facebook",
    "linkedin.com": "linkedin",
    "twitter.com": "twitter",
    "x.com": "twitter",
}

_JOIN_DATE_FORMATS = ("%B %Y", "%b %Y", "%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m")

_DAYS_PER_MONTH = 30.0
_DAYS_PER_YEAR = 365.0


def detect_platform(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    for domain, platform in _PLATFORM_HOSTS.items():
        if host == domain or host.endswith("." + domain):
            return platform
    return "unknown"


def validate_url(url: str) -> str:
    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise MalformedInput(url, "Not an absolute http(s) URL")
    return url.strip()


def parse_join_date(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not value:
        return None
    text = str(value).strip()
    if text.lower().startswith("joined "):
        text = text[7:]
    for fmt in _JOIN_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProfileSignalProvider:
    """Verifies linked social profiles through injected fetch and WHOIS providers."""

    def __init__(
        self,
        fetcher: Optional[ProfileFetchProvider],
        whois_lookup: Optional[WhoisProvider] = None,
        fetch_timeout: float = config.FETCH_TIMEOUT_SECONDS,
        max_workers: int = config.MAX_WORKERS,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._fetcher = fetcher
        self._whois = whois_lookup
        self._fetch_timeout = fetch_timeout
        self._max_workers = max(1, max_workers)
        self._clock = clock

    # ── public API ──────────────────────────────────────────────────────

    def verify(self, urls: Sequence[str], profile_data: Optional[ProfileData] = None) -> ProfileVerificationResult:
        result = ProfileVerificationResult()

        valid_urls: List[str] = []
        for url in urls:
            try:
                valid_urls.append(validate_url(url))
            except MalformedInput as exc:
                logger.warning(f"Skipping profile URL: {exc}")

        fetched = self._fetch_all(valid_urls, result)

        scores = [self._score_platform(platform, data, result) for platform, data in fetched]
        scores = [s for s in scores if s is not None]
        network = result.socialFootprint.friendNetworkAnalysis
        if scores:
            network.networkAuthenticity = sum(scores) / len(scores)
        else:
            network.networkAuthenticity = 50.0
            result.unavailableSignals.append("network_authenticity")
        result.unavailableSignals.append("mutual_friends")

        result.socialFootprint.consistencyAcrossPlatforms = self._name_consistency(fetched, profile_data)
        self._verify_location(fetched, profile_data, result)
        self._web_presence(valid_urls, result)

        result.verificationConfidence = self._verification_confidence(result)
        result.profileLegitimacy = self._profile_legitimacy(result)

        logger.info(
            f"Profiles verified: urls={len(valid_urls)} "
            f"platforms={result.socialFootprint.platformsFound} "
            f"legitimacy={result.profileLegitimacy:.0f}"
        )
        return result

    # ── fetching ────────────────────────────────────────────────────────

    def _fetch_all(self, urls: List[str], result: ProfileVerificationResult) -> List[Tuple[str, Dict[str, Any]]]:
        """Fetch every social profile URL in one session; returns (platform, data) in input order.

        Other URLs are never requested; they only feed the WHOIS lookup.
        """
        urls = [url for url in urls if detect_platform(url) != "unknown"]
        if not urls:
            return []
        if self._fetcher is None:
            result.unavailableSignals.append("profile_fetch")
            return []

        fetched: List[Tuple[str, Dict[str, Any]]] = []
        with self._fetcher.open_session() as session:
            pool = ThreadPoolExecutor(max_workers=min(self._max_workers, len(urls)), thread_name_prefix="profile")
            try:
                futures = []
                for url in urls:
                    platform = detect_platform(url)
                    futures.append((url, platform, pool.submit(self._fetcher.fetch, url, platform, session)))
                deadline = time.monotonic() + self._fetch_timeout
                for url, platform, future in futures:
                    try:
                        data = future.result(timeout=max(0.0, deadline - time.monotonic()))
                    except FutureTimeout:
                        logger.warning(f"Profile fetch timed out: {url}")
                        continue
                    except Exception as exc:
                        logger.warning(f"Profile fetch failed for {url}: {exc}")
                        continue
                    result.socialFootprint.platformsFound.append(platform)
                    fetched.append((platform, data or {}))
            finally:
                pool.shutdown(wait=False, cancel_futures=True)
        return fetched

    # ── per-platform scoring ────────────────────────────────────────────

    def _score_platform(self, platform: str, data: Dict[str, Any], result: ProfileVerificationResult) -> Optional[float]:
        network = result.socialFootprint.friendNetworkAnalysis

        age_months = self._account_age_months(data.get("joinDate"))
        if age_months is not None:
            result.socialFootprint.accountAges.append(age_months)

        if platform == "instagram":
            followers = int(data.get("followers") or 0)
            posts = int(data.get("posts") or 0)
            network.totalConnections += followers
            return self._instagram_score(followers, posts)

        if platform == "facebook":
            friends = int(data.get("friends") or 0)
            tagged = int(data.get("taggedPhotos") or 0)
            network.totalConnections += friends
            score = 50.0
            if friends >= 50:
                score += 20
            if tagged >= 5:
                score += 20
            if friends < 20:
                score -= 30
            return max(0.0, min(100.0, score))

        if platform == "twitter":
            network.totalConnections += int(data.get("followers") or 0)
            if age_months is None:
                return None
            score = 50.0
            if age_months >= 24:
                score += 25
            if age_months < 3:
                score -= 30
            return max(0.0, min(100.0, score))

        if platform == "linkedin":
            connections = int(data.get("connections") or 0)
            network.totalConnections += connections
            professional = int(data.get("workExperience") or 0) > 0 or int(data.get("education") or 0) > 0
            if professional:
                result.digitalFootprint.professionalPresence = True
            score = 50.0
            if connections >= 100:
                score += 20
            if professional:
                score += 20
            return max(0.0, min(100.0, score))

        return None

    @staticmethod
    def _instagram_score(followers: int, posts: int) -> float:
        score = 50.0
        ratio = followers / posts if posts > 0 else 0.0
        if 100 < ratio < 1000:
            score += 30
        if ratio > 10000:
            score -= 40
        return max(0.0, min(100.0, score))

    def _account_age_months(self, join_date: Any) -> Optional[float]:
        joined = parse_join_date(join_date)
        if joined is None:
            return None
        days = (self._clock() - joined).total_seconds() / 86400.0
        return max(0.0, days / _DAYS_PER_MONTH)

    # ── consistency ─────────────────────────────────────────────────────

    @staticmethod
    def _name_consistency(fetched: List[Tuple[str, Dict[str, Any]]], profile_data: Optional[ProfileData]) -> float:
        names = [str(data["name"]).lower() for _, data in fetched if data.get("name")]
        stated = (profile_data.name or "").strip() if profile_data else ""
        if not stated or not names:
            return 50.0
        first_name = stated.split()[0].lower()
        return sum(1 for name in names if first_name in name) / len(names) * 100.0

    @staticmethod
    def _verify_location(
        fetched: List[Tuple[str, Dict[str, Any]]],
        profile_data: Optional[ProfileData],
        result: ProfileVerificationResult,
    ) -> None:
        location = result.locationVerification
        location.statedLocation = (profile_data.location or "").strip() if profile_data else ""
        location.verifiedLocations = [str(data["location"]) for _, data in fetched if data.get("location")]

        if not location.statedLocation or not location.verifiedLocations:
            location.locationConsistent = None
            return

        city = location.statedLocation.split(",")[0].strip().lower()
        location.locationConsistent = any(city in found.lower() for found in location.verifiedLocations)

    # ── web presence ────────────────────────────────────────────────────

    @staticmethod
    def primary_domain(urls: Sequence[str]) -> Optional[str]:
        """Hostname of the first non-social URL, else of the first URL."""
        if not urls:
            return None
        chosen = next((u for u in urls if detect_platform(u) == "unknown"), urls[0])
        host = (urlparse(chosen).hostname or "").lower()
        if host.startswith("www."):
            host = host[4:]
        return host or None

    def _web_presence(self, urls: List[str], result: ProfileVerificationResult) -> None:
        domain = self.primary_domain(urls)
        if domain is None:
            return
        if self._whois is None:
            result.unavailableSignals.append("web_presence")
            return

        try:
            record = self._whois.lookup(domain)
        except Exception as exc:
            logger.warning(f"WHOIS lookup failed for {domain}: {exc}")
            result.unavailableSignals.append("web_presence")
            return

        created = record.get("creationDate")
        if not isinstance(created, datetime):
            return
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        days = (self._clock() - created).total_seconds() / 86400.0
        result.digitalFootprint.webPresenceYears = max(0.0, days / _DAYS_PER_YEAR)

    # ── totals ──────────────────────────────────────────────────────────

    @staticmethod
    def _verification_confidence(result: ProfileVerificationResult) -> float:
        confidence = len(result.socialFootprint.platformsFound) * 15.0
        confidence += min(result.socialFootprint.friendNetworkAnalysis.networkAuthenticity, 30.0)
        confidence += min(result.digitalFootprint.webPresenceYears * 5.0, 25.0)
        if result.digitalFootprint.professionalPresence:
            confidence += 20
        return min(confidence, 100.0)

    @staticmethod
    def _profile_legitimacy(result: ProfileVerificationResult) -> float:
        platforms = len(result.socialFootprint.platformsFound)
        years = result.digitalFootprint.webPresenceYears

        legitimacy = 50.0
        if platforms >= 3:
            legitimacy += 20
        if result.digitalFootprint.professionalPresence:
            legitimacy += 15
        if years > 2:
            legitimacy += 15
        if result.socialFootprint.friendNetworkAnalysis.networkAuthenticity > 70:
            legitimacy += 20

        if platforms < 2:
            legitimacy -= 30
        if years < 1:
            legitimacy -= 20
        return max(0.0, min(100.0, legitimacy))
