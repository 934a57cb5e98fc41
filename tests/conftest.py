"""
Shared test configuration.

Fake providers here are deterministic stand-ins for the external contracts
(image inspection, face analysis, reverse search, profile fetch, WHOIS), so
every analyzer and the engine can be exercised without I/O.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

import pytest
import requests

from datesafe.conversation import ConversationSignalProvider
from datesafe.engine import FusionEngine
from datesafe.models import Message
from datesafe.patterns import PatternRegistry
from datesafe.providers import (
    FaceAnalysisProvider,
    ImageMetadataProvider,
    ProfileFetchProvider,
    ReverseImageSearchProvider,
    WhoisProvider,
)

FIXED_NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


# === Fake providers ===

def photo_metadata(**overrides) -> dict:
    """Neutral metadata: small square image, no EXIF, no compression signal."""
    data = {
        "width": 800,
        "height": 800,
        "format": "png",
        "exif": {},
        "luminanceMean": 120.0,
        "dynamicRange": 0.5,
        "sharpness": 0.5,
        "quantizationMean": None,
        "borderColor": [128.0, 128.0, 128.0],
    }
    data.update(overrides)
    return data


class FakeImageInspector(ImageMetadataProvider):
    def __init__(self, by_ref: Optional[Dict[str, dict]] = None, failing: Iterable[str] = ()):
        self.by_ref = by_ref or {}
        self.failing = set(failing)

    def inspect(self, ref: str) -> dict:
        if ref in self.failing:
            raise OSError(f"cannot identify image file {ref!r}")
        return self.by_ref.get(ref, photo_metadata())


class FakeFaceAnalyzer(FaceAnalysisProvider):
    def __init__(self, by_ref: Dict[str, List[dict]]):
        self.by_ref = by_ref

    def detect(self, ref: str) -> List[dict]:
        return self.by_ref.get(ref, [])


class FakeReverseSearch(ReverseImageSearchProvider):
    def __init__(self, by_ref: Optional[Dict[str, List[dict]]] = None):
        self.by_ref = by_ref or {}

    def search(self, ref: str) -> List[dict]:
        return self.by_ref.get(ref, [])


class TrackingSession(requests.Session):
    def __init__(self):
        super().__init__()
        self.closed = False

    def close(self):
        self.closed = True
        super().close()


class FakeProfileFetcher(ProfileFetchProvider):
    def __init__(self, by_url: Dict[str, dict], failing: Iterable[str] = ()):
        self.by_url = by_url
        self.failing = set(failing)
        self.sessions: List[TrackingSession] = []
        self.fetched: List[str] = []

    def open_session(self) -> requests.Session:
        session = TrackingSession()
        self.sessions.append(session)
        return session

    def fetch(self, url: str, platform: str, session: requests.Session) -> dict:
        self.fetched.append(url)
        if url in self.failing:
            raise requests.ConnectionError(f"connection refused: {url}")
        return dict(self.by_url.get(url, {}))


class FakeWhois(WhoisProvider):
    def __init__(self, created: Optional[datetime] = None, fail: bool = False):
        self.created = created
        self.fail = fail
        self.domains: List[str] = []

    def lookup(self, domain: str) -> dict:
        self.domains.append(domain)
        if self.fail:
            raise ConnectionError("whois server unreachable")
        return {"creationDate": self.created}


# === Message builders ===

def match_messages(texts: Iterable[str], start: datetime = FIXED_NOW, gap_minutes: float = 10) -> List[Message]:
    """Messages sent only by the match, spaced `gap_minutes` apart."""
    return [
        Message(sender="match", content=text, timestamp=start + timedelta(minutes=i * gap_minutes))
        for i, text in enumerate(texts)
    ]


def exchange(pairs: Iterable[tuple], start: datetime = FIXED_NOW, reply_minutes: float = 5,
             turn_minutes: float = 60) -> List[Message]:
    """Alternating user -> match messages. Each pair is (user_text, match_text)."""
    messages = []
    for i, (user_text, match_text) in enumerate(pairs):
        sent = start + timedelta(minutes=i * turn_minutes)
        messages.append(Message(sender="user", content=user_text, timestamp=sent))
        messages.append(Message(sender="match", content=match_text, timestamp=sent + timedelta(minutes=reply_minutes)))
    return messages


ROMANCE_SCRIPT = [
    "Hello my dear, I am deployed overseas on an oil rig contract.",
    "My deceased wife left me an inheritance in gold.",
    "God brought us together, it is destiny.",
    "There is an emergency, I am stranded at the hospital.",
    "Please send the money by western union for the customs fees.",
]


# === Fixtures ===

@pytest.fixture(scope="session")
def registry() -> PatternRegistry:
    """The packaged pattern registry."""
    return PatternRegistry.load()


@pytest.fixture
def conversation_provider(registry) -> ConversationSignalProvider:
    return ConversationSignalProvider(registry)


@pytest.fixture
def romance_conversation() -> List[Message]:
    return match_messages(ROMANCE_SCRIPT)


@pytest.fixture
def make_engine():
    """Factory for FusionEngine instances that are closed after the test."""
    engines = []

    def factory(**kwargs) -> FusionEngine:
        engine = FusionEngine(**kwargs)
        engines.append(engine)
        return engine

    yield factory
    for engine in engines:
        engine.close()
