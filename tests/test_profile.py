"""Tests for the social profile verifier and the profile page parser."""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from conftest import FIXED_NOW, FakeProfileFetcher, FakeWhois
from datesafe import config, providers
from datesafe.errors import MalformedInput, SignalUnavailable
from datesafe.models import ProfileData
from datesafe.profile import (
    ProfileSignalProvider,
    detect_platform,
    parse_join_date,
    validate_url,
)
from datesafe.providers import PythonWhoisLookup, parse_count, parse_profile_html

INSTAGRAM = "https://www.instagram.com/jane.doe"
FACEBOOK = "https://facebook.com/jane.doe"
TWITTER = "https://x.com/janedoe"
LINKEDIN = "https://www.linkedin.com/in/janedoe"


def _verifier(by_url, failing=(), whois=None):
    fetcher = FakeProfileFetcher(by_url, failing=failing)
    return ProfileSignalProvider(fetcher, whois_lookup=whois, clock=lambda: FIXED_NOW), fetcher


class TestPlatformScoring:

    def test_instagram_ratio_in_range(self):
        verifier, _ = _verifier({INSTAGRAM: {"followers": 5000, "posts": 20}})
        result = verifier.verify([INSTAGRAM])

        assert result.socialFootprint.platformsFound == ["instagram"]
        assert result.socialFootprint.friendNetworkAnalysis.networkAuthenticity == 80
        assert result.socialFootprint.friendNetworkAnalysis.totalConnections == 5000

    def test_instagram_follower_farm(self):
        verifier, _ = _verifier({INSTAGRAM: {"followers": 500000, "posts": 10}})
        result = verifier.verify([INSTAGRAM])
        assert result.socialFootprint.friendNetworkAnalysis.networkAuthenticity == 10

    def test_facebook(self):
        verifier, _ = _verifier({FACEBOOK: {"friends": 60, "taggedPhotos": 6}})
        result = verifier.verify([FACEBOOK])
        assert result.socialFootprint.friendNetworkAnalysis.networkAuthenticity == 90

    def test_sparse_facebook(self):
        verifier, _ = _verifier({FACEBOOK: {"friends": 10, "taggedPhotos": 0}})
        result = verifier.verify([FACEBOOK])
        assert result.socialFootprint.friendNetworkAnalysis.networkAuthenticity == 20

    def test_twitter_account_age(self):
        verifier, _ = _verifier({TWITTER: {"joinDate": "January 2020", "followers": 12}})
        result = verifier.verify([TWITTER])

        assert result.socialFootprint.friendNetworkAnalysis.networkAuthenticity == 75
        assert result.socialFootprint.accountAges[0] == pytest.approx(1461 / 30.0)

    def test_new_twitter_account(self):
        verifier, _ = _verifier({TWITTER: {"joinDate": "December 2023"}})
        result = verifier.verify([TWITTER])
        assert result.socialFootprint.friendNetworkAnalysis.networkAuthenticity == 20

    def test_linkedin_professional_presence(self):
        verifier, _ = _verifier({LINKEDIN: {"connections": 500, "workExperience": 3, "education": 1}})
        result = verifier.verify([LINKEDIN])

        assert result.socialFootprint.friendNetworkAnalysis.networkAuthenticity == 90
        assert result.digitalFootprint.professionalPresence is True

    def test_network_authenticity_is_mean(self):
        verifier, _ = _verifier({
            INSTAGRAM: {"followers": 5000, "posts": 20},
            FACEBOOK: {"friends": 60, "taggedPhotos": 6},
            TWITTER: {"joinDate": "January 2020"},
        })
        result = verifier.verify([INSTAGRAM, FACEBOOK, TWITTER])

        assert result.socialFootprint.platformsFound == ["instagram", "facebook", "twitter"]
        assert result.socialFootprint.friendNetworkAnalysis.networkAuthenticity == pytest.approx(245 / 3)

    def test_unscored_network_is_unavailable(self):
        verifier, _ = _verifier({})
        result = verifier.verify(["https://example.com/about"])

        assert result.socialFootprint.friendNetworkAnalysis.networkAuthenticity == 50
        assert "network_authenticity" in result.unavailableSignals
        assert "mutual_friends" in result.unavailableSignals


class TestTotals:

    def test_strong_footprint_is_clamped(self):
        whois = FakeWhois(created=datetime(2015, 1, 1))
        verifier, _ = _verifier({
            INSTAGRAM: {"followers": 5000, "posts": 20},
            FACEBOOK: {"friends": 60, "taggedPhotos": 6},
            TWITTER: {"joinDate": "January 2020"},
            LINKEDIN: {"connections": 500, "workExperience": 2},
        }, whois=whois)
        result = verifier.verify([INSTAGRAM, FACEBOOK, TWITTER, LINKEDIN])

        assert result.profileLegitimacy == 100
        assert result.verificationConfidence == 100
        assert result.digitalFootprint.webPresenceYears > 8

    def test_malformed_urls_only(self):
        verifier, fetcher = _verifier({})
        result = verifier.verify(["not a url", "ftp://files.example.com/x", "https://"])

        assert result.socialFootprint.platformsFound == []
        assert result.profileLegitimacy == 0
        assert fetcher.sessions == []

    def test_no_urls(self):
        verifier, _ = _verifier({})
        result = verifier.verify([])

        assert result.profileLegitimacy == 0
        assert result.verificationConfidence == 30


class TestFetching:

    def test_failed_fetch_is_skipped(self):
        verifier, _ = _verifier(
            {INSTAGRAM: {"followers": 5000, "posts": 20}},
            failing=[FACEBOOK],
        )
        result = verifier.verify([FACEBOOK, INSTAGRAM])

        assert result.socialFootprint.platformsFound == ["instagram"]
        assert result.socialFootprint.friendNetworkAnalysis.networkAuthenticity == 80

    def test_one_session_per_call_and_closed(self):
        verifier, fetcher = _verifier({INSTAGRAM: {}, FACEBOOK: {}})
        verifier.verify([INSTAGRAM, FACEBOOK])
        verifier.verify([INSTAGRAM])

        assert len(fetcher.sessions) == 2
        assert all(session.closed for session in fetcher.sessions)

    def test_session_closed_when_fetch_fails(self):
        verifier, fetcher = _verifier({}, failing=[INSTAGRAM])
        verifier.verify([INSTAGRAM])
        assert fetcher.sessions[0].closed

    def test_only_social_platforms_are_fetched(self):
        whois = FakeWhois(created=datetime(2020, 1, 1, tzinfo=timezone.utc))
        verifier, fetcher = _verifier({INSTAGRAM: {"followers": 5000, "posts": 20}}, whois=whois)
        result = verifier.verify(["http://169.254.169.254/latest/meta-data", INSTAGRAM])

        assert fetcher.fetched == [INSTAGRAM]
        assert result.socialFootprint.platformsFound == ["instagram"]
        assert whois.domains == ["169.254.169.254"]

    def test_non_social_urls_open_no_session(self):
        verifier, fetcher = _verifier({}, whois=FakeWhois())
        verifier.verify(["https://janedoe.com", "http://localhost:8080/admin"])

        assert fetcher.sessions == []
        assert fetcher.fetched == []

    def test_without_fetcher(self):
        result = ProfileSignalProvider(None).verify([INSTAGRAM])
        assert "profile_fetch" in result.unavailableSignals


class TestConsistency:

    @pytest.mark.parametrize("found,expected", [
        ("Austin, Texas", True),
        ("Lagos, Nigeria", False),
    ])
    def test_location(self, found, expected):
        verifier, _ = _verifier({INSTAGRAM: {"location": found}})
        result = verifier.verify([INSTAGRAM], ProfileData(location="Austin, TX"))

        assert result.locationVerification.statedLocation == "Austin, TX"
        assert result.locationVerification.locationConsistent is expected

    def test_location_unknown_without_profile_location(self):
        verifier, _ = _verifier({INSTAGRAM: {}})
        result = verifier.verify([INSTAGRAM], ProfileData(location="Austin, TX"))
        assert result.locationVerification.locationConsistent is None

    def test_name_consistency(self):
        verifier, _ = _verifier({
            INSTAGRAM: {"name": "Jane Doe"},
            FACEBOOK: {"name": "Maria Lopez"},
        })
        result = verifier.verify([INSTAGRAM, FACEBOOK], ProfileData(name="Jane Smith"))
        assert result.socialFootprint.consistencyAcrossPlatforms == 50

        result = verifier.verify([INSTAGRAM], ProfileData(name="Jane Smith"))
        assert result.socialFootprint.consistencyAcrossPlatforms == 100

    def test_name_consistency_neutral_without_name(self):
        verifier, _ = _verifier({INSTAGRAM: {"name": "Jane Doe"}})
        result = verifier.verify([INSTAGRAM])
        assert result.socialFootprint.consistencyAcrossPlatforms == 50


class TestWebPresence:

    def test_whois_uses_first_non_social_domain(self):
        whois = FakeWhois(created=datetime(2020, 1, 1, tzinfo=timezone.utc))
        verifier, _ = _verifier({}, whois=whois)
        result = verifier.verify([INSTAGRAM, "https://www.janedoe-design.com/about"])

        assert whois.domains == ["janedoe-design.com"]
        assert result.digitalFootprint.webPresenceYears == pytest.approx(1461 / 365.0)

    def test_whois_failure_is_unavailable(self):
        verifier, _ = _verifier({}, whois=FakeWhois(fail=True))
        result = verifier.verify(["https://janedoe.com"])

        assert "web_presence" in result.unavailableSignals
        assert result.digitalFootprint.webPresenceYears == 0

    def test_missing_whois_provider(self):
        verifier, _ = _verifier({})
        result = verifier.verify(["https://janedoe.com"])
        assert "web_presence" in result.unavailableSignals

    def test_python_whois_picks_earliest_date(self, monkeypatch):
        dates = [datetime(2012, 5, 1), datetime(2010, 3, 1)]
        monkeypatch.setattr(providers.whois, "whois", lambda domain: SimpleNamespace(creation_date=dates))

        assert PythonWhoisLookup().lookup("example.com") == {"creationDate": datetime(2010, 3, 1)}

    def test_python_whois_without_date(self, monkeypatch):
        monkeypatch.setattr(providers.whois, "whois", lambda domain: SimpleNamespace(creation_date=None))
        assert PythonWhoisLookup().lookup("example.com") == {"creationDate": None}


class TestHelpers:

    @pytest.mark.parametrize("url,platform", [
        ("https://www.instagram.com/jane", "instagram"),
        ("https://m.facebook.com/jane", "facebook"),
        ("https://x.com/jane", "twitter"),
        ("https://twitter.com/jane", "twitter"),
        ("https://linkedin.com/in/jane", "linkedin"),
        ("https://notinstagram.com/jane", "unknown"),
        ("https://instagram.com.evil.io/jane", "unknown"),
    ])
    def test_detect_platform(self, url, platform):
        assert detect_platform(url) == platform

    def test_validate_url(self):
        assert validate_url("  https://example.com/x ") == "https://example.com/x"
        with pytest.raises(MalformedInput):
            validate_url("example.com/x")

    def test_parse_join_date(self):
        assert parse_join_date("Joined March 2019") == datetime(2019, 3, 1, tzinfo=timezone.utc)
        assert parse_join_date("2021-06-15") == datetime(2021, 6, 15, tzinfo=timezone.utc)
        assert parse_join_date("sometime") is None
        assert parse_join_date(None) is None

    @pytest.mark.parametrize("raw,expected", [
        ("1,234", 1234),
        ("12.5K", 12500),
        ("3M", 3000000),
        ("", 0),
    ])
    def test_parse_count(self, raw, expected):
        assert parse_count(raw) == expected

    def test_parse_profile_html(self):
        html = (
            '<meta property="og:title" content="Jane Doe (@jane.doe)">'
            "<span>12.5K Followers</span><span>310 Following</span><span>87 Posts</span>"
            "<p>Joined March 2019</p>"
            '<script>{"addressLocality": "Austin"}</script>'
        )
        data = parse_profile_html(html, "instagram")

        assert data["followers"] == 12500
        assert data["following"] == 310
        assert data["posts"] == 87
        assert data["joinDate"] == "March 2019"
        assert data["name"] == "Jane Doe"
        assert data["location"] == "Austin"
        assert "workExperience" not in data

    def test_parse_linkedin_html(self):
        html = '500+ connections <li class="experience-item"></li><li class="experience-item"></li>'
        data = parse_profile_html(html, "linkedin")

        assert data["connections"] == 500
        assert data["workExperience"] == 2
        assert data["education"] == 0


class TestHttpProviders:

    class _Response:
        def __init__(self, text="", payload=None, status=200):
            self.text = text
            self._payload = payload
            self.status = status

        def raise_for_status(self):
            if self.status >= 400:
                raise providers.requests.HTTPError(f"{self.status} error")

        def json(self):
            return self._payload

    def test_profile_fetcher_parses_page(self):
        page = "<span>250 Followers</span><span>40 Posts</span>"

        class Session:
            def get(self, url, timeout):
                return TestHttpProviders._Response(text=page)

        data = providers.HttpProfileFetcher(timeout=1).fetch(INSTAGRAM, "instagram", Session())
        assert data == {"followers": 250, "posts": 40}

    def test_profile_fetcher_raises_on_http_error(self):
        class Session:
            def get(self, url, timeout):
                return TestHttpProviders._Response(status=404)

        with pytest.raises(providers.requests.HTTPError):
            providers.HttpProfileFetcher(timeout=1).fetch(INSTAGRAM, "instagram", Session())

    def test_open_session_sets_user_agent(self):
        with providers.HttpProfileFetcher().open_session() as session:
            assert session.headers["User-Agent"] == config.PROFILE_USER_AGENT

    def test_reverse_search_posts_image(self, tmp_path, monkeypatch):
        image = tmp_path / "a.jpg"
        image.write_bytes(b"not really a jpeg")
        calls = []

        def fake_post(url, files, headers, timeout):
            calls.append((url, headers))
            return TestHttpProviders._Response(payload={"results": [
                {"url": "https://stock.example.com/1", "title": "Smiling man"},
                {"title": "no url"},
            ]})

        monkeypatch.setattr(providers.requests, "post", fake_post)
        search = providers.HttpReverseImageSearch(
            "https://search.example.com", api_key="k", timeout=1, photo_root=str(tmp_path),
        )

        assert search.search(str(image)) == [{"url": "https://stock.example.com/1", "title": "Smiling man"}]
        assert calls == [("https://search.example.com", {"x-api-key": "k"})]

    def test_reverse_search_without_endpoint(self):
        with pytest.raises(SignalUnavailable):
            providers.HttpReverseImageSearch("").search("a.jpg")

    def test_reverse_search_refuses_files_outside_root(self, tmp_path, monkeypatch):
        root = tmp_path / "photos"
        root.mkdir()
        secret = tmp_path / "secret.txt"
        secret.write_text("not a photo")
        calls = []
        monkeypatch.setattr(providers.requests, "post", lambda *args, **kwargs: calls.append(args))

        search = providers.HttpReverseImageSearch("https://search.example.com", photo_root=str(root))
        with pytest.raises(MalformedInput):
            search.search(str(secret))
        assert calls == []
