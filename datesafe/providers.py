"""
providers.py - External Signal Provider Contracts
==================================================

The analyzers never do computer vision, reverse image search, scraping or
WHOIS themselves. They depend on the small contracts below and combine what
the providers return. A provider either returns its documented shape or
raises; the caller treats a raise as "signal absent" for that item.

Contracts:
    ImageMetadataProvider.inspect(ref)       -> {width, height, format, exif, luminanceMean,
                                                 dynamicRange, sharpness, quantizationMean, borderColor}
    FaceAnalysisProvider.detect(ref)         -> [{age, gender, descriptor, landmarks, deepfakeProbability?}]
    ReverseImageSearchProvider.search(ref)   -> [{url, title}]
    ProfileFetchProvider.fetch(url, platform, session)
                                             -> {followers, following, friends, posts, taggedPhotos,
                                                 joinDate, connections, workExperience, education,
                                                 name, location}
    WhoisProvider.lookup(domain)             -> {creationDate}

Default implementations:
    PillowImageInspector    - image files under PHOTO_ROOT via Pillow (EXIF, statistics, JPEG tables)
    HttpReverseImageSearch  - JSON search endpoint via requests (only when configured)
    HttpProfileFetcher      - public profile pages via requests, parsed with regexes
                              (only known social platforms are ever fetched)
    PythonWhoisLookup       - python-whois

No default face provider is shipped; without one, face signals are
reported as unavailable rather than guessed.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
import whois
from PIL import ExifTags, Image, ImageStat

from datesafe import config
from datesafe.errors import MalformedInput, SignalUnavailable

logger = logging.getLogger(__name__)


def resolve_photo_path(ref: str, photo_root: str) -> str:
    """Absolute path of a photo reference, which must stay inside photo_root.

    Relative refs are taken from photo_root; symlinks and '..' are resolved
    before the check. Raises MalformedInput for anything outside it.
    """
    if not photo_root:
        raise MalformedInput(ref, "No photo directory configured")
    root = os.path.realpath(photo_root)
    path = os.path.realpath(os.path.join(root, ref))
    if os.path.commonpath([root, path]) != root:
        raise MalformedInput(ref, "Photo outside the permitted photo directory")
    return path


# ═══════════════════════════════════════════════════════════════════════
# CONTRACTS
# ═══════════════════════════════════════════════════════════════════════

class ImageMetadataProvider(ABC):
    @abstractmethod
    def inspect(self, ref: str) -> Dict[str, Any]:
        ...


class FaceAnalysisProvider(ABC):
    @abstractmethod
    def detect(self, ref: str) -> List[Dict[str, Any]]:
        ...


class ReverseImageSearchProvider(ABC):
    @abstractmethod
    def search(self, ref: str) -> List[Dict[str, Any]]:
        ...


class ProfileFetchProvider(ABC):
    def open_session(self) -> requests.Session:
        """A fresh HTTP session, closed by the caller when verification ends."""
        session = requests.Session()
        session.headers.update({"User-Agent": config.PROFILE_USER_AGENT})
        return session

    @abstractmethod
    def fetch(self, url: str, platform: str, session: requests.Session) -> Dict[str, Any]:
        ...


class WhoisProvider(ABC):
    @abstractmethod
    def lookup(self, domain: str) -> Dict[str, Any]:
        ...


# ═══════════════════════════════════════════════════════════════════════
# PILLOW IMAGE INSPECTOR
# ═══════════════════════════════════════════════════════════════════════

_EXIF_IFD = 0x8769
_GPS_IFD = 0x8825
_BORDER_FRACTION = 0.1


class PillowImageInspector(ImageMetadataProvider):
    """Reads an image file under photo_root and derives the statistics the photo analyzer needs."""

    def __init__(self, photo_root: str = config.PHOTO_ROOT) -> None:
        self.photo_root = photo_root

    def inspect(self, ref: str) -> Dict[str, Any]:
        with Image.open(resolve_photo_path(ref, self.photo_root)) as image:
            image.load()
            info: Dict[str, Any] = {
                "width": image.width,
                "height": image.height,
                "format": (image.format or "unknown").lower(),
                "exif": self._read_exif(image),
                "quantizationMean": self._quantization_mean(image),
            }
            rgb = image.convert("RGB")

        info["luminanceMean"] = ImageStat.Stat(rgb.convert("L")).mean[0]

        stat = ImageStat.Stat(rgb)
        info["sharpness"] = min(sum(stat.var) / len(stat.var) / 1000.0, 1.0)
        info["dynamicRange"] = sum((hi - lo) / 255.0 for lo, hi in stat.extrema) / len(stat.extrema)
        info["borderColor"] = self._border_color(rgb)
        return info

    @staticmethod
    def _read_exif(image: Image.Image) -> Dict[str, Any]:
        exif = image.getexif()
        if not exif:
            return {}

        data: Dict[str, Any] = {}
        for tag_id, value in exif.items():
            data[ExifTags.TAGS.get(tag_id, str(tag_id))] = value
        for tag_id, value in exif.get_ifd(_EXIF_IFD).items():
            data[ExifTags.TAGS.get(tag_id, str(tag_id))] = value
        for tag_id, value in exif.get_ifd(_GPS_IFD).items():
            data[ExifTags.GPSTAGS.get(tag_id, str(tag_id))] = value

        wanted = ("Make", "Model", "Software", "DateTimeOriginal",
                  "GPSLatitude", "GPSLatitudeRef", "GPSLongitude", "GPSLongitudeRef")
        result = {}
        for key in wanted:
            if key not in data:
                continue
            value = data[key]
            if isinstance(value, tuple):
                result[key] = [float(v) for v in value]
            elif isinstance(value, bytes):
                result[key] = value.decode("utf-8", errors="ignore").strip("\x00 ")
            else:
                result[key] = str(value).strip("\x00 ")
        return result

    @staticmethod
    def _quantization_mean(image: Image.Image) -> Optional[float]:
        tables = getattr(image, "quantization", None)
        if not tables:
            return None
        luminance = tables.get(0)
        if not luminance:
            return None
        return sum(luminance) / len(luminance)

    @staticmethod
    def _border_color(rgb: Image.Image) -> List[float]:
        """Mean RGB of the top and bottom bands, a cheap proxy for the background."""
        band = max(1, int(rgb.height * _BORDER_FRACTION))
        top = ImageStat.Stat(rgb.crop((0, 0, rgb.width, band))).mean
        bottom = ImageStat.Stat(rgb.crop((0, rgb.height - band, rgb.width, rgb.height))).mean
        return [(a + b) / 2.0 for a, b in zip(top, bottom)]


# ═══════════════════════════════════════════════════════════════════════
# REVERSE IMAGE SEARCH
# ═══════════════════════════════════════════════════════════════════════

class HttpReverseImageSearch(ReverseImageSearchProvider):
    """Uploads the image to a JSON search endpoint returning [{url, title}]."""

    def __init__(
        self,
        endpoint: str,
        api_key: str = "",
        timeout: float = config.FETCH_TIMEOUT_SECONDS,
        photo_root: str = config.PHOTO_ROOT,
    ) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self.photo_root = photo_root

    def search(self, ref: str) -> List[Dict[str, Any]]:
        if not self.endpoint:
            raise SignalUnavailable("No reverse image search endpoint configured")

        path = resolve_photo_path(ref, self.photo_root)
        headers = {"x-api-key": self.api_key} if self.api_key else {}
        with open(path, "rb") as fh:
            response = requests.post(
                self.endpoint,
                files={"image": fh},
                headers=headers,
                timeout=self.timeout,
            )
        response.raise_for_status()
        payload = response.json()
        results = payload.get("results", []) if isinstance(payload, dict) else payload
        logger.debug(f"Reverse image search for {ref!r}: {len(results)} results")
        return [
            {"url": str(item.get("url", "")), "title": str(item.get("title") or "")}
            for item in results
            if isinstance(item, dict) and item.get("url")
        ]


# ═══════════════════════════════════════════════════════════════════════
# PROFILE FETCHING
# ═══════════════════════════════════════════════════════════════════════

_COUNT = r"([\d][\d,.]*\s*[KkMm]?)"

_PROFILE_PATTERNS = {
    "followers": re.compile(_COUNT + r"\s+Followers", re.IGNORECASE),
    "following": re.compile(_COUNT + r"\s+Following", re.IGNORECASE),
    "posts": re.compile(_COUNT + r"\s+(?:Posts|Tweets|posts)", re.IGNORECASE),
    "friends": re.compile(_COUNT + r"\s+friends", re.IGNORECASE),
    "taggedPhotos": re.compile(_COUNT + r"\s+tagged\s+photos?", re.IGNORECASE),
    "connections": re.compile(_COUNT + r"\+?\s+connections", re.IGNORECASE),
}
_JOIN_DATE = re.compile(r"Joined\s+([A-Z][a-z]+\s+\d{4})")
_OG_TITLE = re.compile(r'<meta[^>]+property="og:title"[^>]+content="([^"]*)"', re.IGNORECASE)
_LOCALITY = re.compile(r'"addressLocality"\s*:\s*"([^"]+)"|Lives in\s+([^<"\n]+)')
_WORK_ITEMS = re.compile(r'"jobTitle"|experience-item', re.IGNORECASE)
_EDUCATION_ITEMS = re.compile(r'"EducationalOrganization"|education-item', re.IGNORECASE)


def parse_count(raw: str) -> int:
    """'1,234' -> 1234, '12.5K' -> 12500, '3M' -> 3000000."""
    text = raw.strip().replace(",", "").replace(" ", "")
    multiplier = 1
    if text[-1:] in ("K", "k"):
        multiplier, text = 1_000, text[:-1]
    elif text[-1:] in ("M", "m"):
        multiplier, text = 1_000_000, text[:-1]
    try:
        return int(float(text) * multiplier)
    except ValueError:
        return 0


def parse_profile_html(html: str, platform: str) -> Dict[str, Any]:
    """Extract the public counters a profile page exposes. Missing values are omitted."""
    data: Dict[str, Any] = {}
    for key, pattern in _PROFILE_PATTERNS.items():
        match = pattern.search(html)
        if match:
            data[key] = parse_count(match.group(1))

    join = _JOIN_DATE.search(html)
    if join:
        data["joinDate"] = join.group(1)

    title = _OG_TITLE.search(html)
    if title:
        data["name"] = title.group(1).split("(")[0].split("|")[0].strip()

    locality = _LOCALITY.search(html)
    if locality:
        data["location"] = (locality.group(1) or locality.group(2)).strip()

    if platform == "linkedin":
        data["workExperience"] = len(_WORK_ITEMS.findall(html))
        data["education"] = len(_EDUCATION_ITEMS.findall(html))
    return data


class HttpProfileFetcher(ProfileFetchProvider):
    """GETs a public profile page and parses its counters."""

    def __init__(self, timeout: float = config.FETCH_TIMEOUT_SECONDS) -> None:
        self.timeout = timeout

    def fetch(self, url: str, platform: str, session: requests.Session) -> Dict[str, Any]:
        response = session.get(url, timeout=self.timeout)
        response.raise_for_status()
        logger.debug(f"Fetched {platform} profile {url} ({len(response.text)} bytes)")
        return parse_profile_html(response.text, platform)


# ═══════════════════════════════════════════════════════════════════════
# WHOIS
# ═══════════════════════════════════════════════════════════════════════

class PythonWhoisLookup(WhoisProvider):

    def lookup(self, domain: str) -> Dict[str, Any]:
        record = whois.whois(domain)
        created = record.creation_date
        # Registrars may return several creation dates
        if isinstance(created, list):
            created = min((d for d in created if isinstance(d, datetime)), default=None)
        if not isinstance(created, datetime):
            created = None
        return {"creationDate": created}
